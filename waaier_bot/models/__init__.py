"""
データモデル - Waaier Bot

このパッケージには、集まりイベントとメッセージのモデルが含まれています。
"""

from .event import GatheringEvent
from .message import (
    InboundMessage,
    CommandIntent,
    ParsedCommand,
    Notification,
    NotificationKind,
)

__all__ = [
    # Event関連
    "GatheringEvent",

    # Message関連
    "InboundMessage",
    "CommandIntent",
    "ParsedCommand",
    "Notification",
    "NotificationKind",
]
