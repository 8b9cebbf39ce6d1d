"""
Waaier Bot - グループチャット駆動の集まりスケジューラー

単一のグループ会話のメッセージを監視し、短いテキストコマンドで
「集まり」イベント（時刻・参加者リスト）を1件だけ管理します:
- トリガートークンでのイベント作成
- 返信スレッドでの参加・離脱・時刻変更・状況確認
- 予定時刻経過後の自動リセット
"""

__version__ = "0.1.0"

from .config import BotConfig, load_config
from .handler import GatheringMessageHandler
from .runner import BotRunner

__all__ = ["BotConfig", "load_config", "GatheringMessageHandler", "BotRunner"]
