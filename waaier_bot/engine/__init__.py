"""
コマンド解釈エンジン

受信メッセージの分類（CommandParser）と、集まりイベントの状態機械（EventEngine）。
"""

from .command_parser import CommandParser
from .event_engine import EventEngine, TransitionResult
from .notifications import NotificationRenderer

__all__ = [
    "CommandParser",
    "EventEngine",
    "TransitionResult",
    "NotificationRenderer",
]
