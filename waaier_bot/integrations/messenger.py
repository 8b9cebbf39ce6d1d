"""
メッセージ送信

通知テキストを会話に送信します。送信結果は成功/失敗の真偽値のみで、
コア側は結果をログに残すだけでリトライしません。
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from rich.console import Console
from rich.panel import Panel

logger = logging.getLogger(__name__)


class Messenger(ABC):
    """会話へのテキスト送信インターフェース"""

    @abstractmethod
    async def send(self, conversation_id: str, text: str) -> bool:
        """テキストを送信（成功なら True）"""


class ConnectionMessenger(Messenger):
    """ChatConnection 経由で送信する Messenger"""

    def __init__(self, connection):
        self.connection = connection

    async def send(self, conversation_id: str, text: str) -> bool:
        logger.info(f"メッセージ送信: {conversation_id}")
        return await self.connection.send(conversation_id, text)


class ConsoleMessenger(Messenger):
    """
    コンソール出力 Messenger（シミュレーター用）
    - 送信内容をパネル表示
    - 送信履歴を保持
    """

    def __init__(self, console: Optional[Console] = None, echo: bool = True):
        self.console = console or Console()
        self.echo = echo
        self.sent: List[Tuple[str, str]] = []

    async def send(self, conversation_id: str, text: str) -> bool:
        self.sent.append((conversation_id, text))
        if self.echo:
            self.console.print(Panel(text, title=f"🤖 → {conversation_id}", border_style="green"))
        return True
