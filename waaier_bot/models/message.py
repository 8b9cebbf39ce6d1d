"""
メッセージモデル

受信メッセージ、解析済みコマンド、送信通知を表現します。
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, validator


class InboundMessage(BaseModel):
    """受信テキストメッセージ"""
    text: str = Field(..., description="本文")
    sender_id: str = Field(..., description="送信者ID")
    conversation_id: str = Field(..., description="会話ID")
    message_id: str = Field(..., description="メッセージID")
    replied_to_message_id: Optional[str] = Field(None, description="返信先メッセージID")
    timestamp_seconds: int = Field(..., description="送信時刻（UNIX秒）")

    @validator('replied_to_message_id')
    def normalize_replied_to(cls, v):
        """空文字の返信先は返信なしとして扱う"""
        return v or None

    def is_reply(self) -> bool:
        return self.replied_to_message_id is not None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "InboundMessage":
        """トランスポートの生データから InboundMessage を作成

        グループ会話では送信者が participant に、会話IDが remote_jid に入る形式と、
        フィールド名そのままの形式の両方を受け付けます。
        """
        info = payload.get("info", payload)
        context = payload.get("context_info") or {}

        return cls(
            text=payload.get("text", ""),
            sender_id=info.get("participant") or info.get("sender") or info.get("sender_id") or "",
            conversation_id=info.get("remote_jid") or info.get("conversation_id") or "",
            message_id=info.get("id") or info.get("message_id") or "",
            replied_to_message_id=(
                context.get("quoted_message_id")
                or payload.get("quoted_message_id")
                or payload.get("replied_to_message_id")
            ),
            timestamp_seconds=int(info.get("timestamp", info.get("timestamp_seconds", 0))),
        )


class CommandIntent(str, Enum):
    """コマンド意図"""
    CREATE_EVENT = "create_event"
    STATUS_QUERY = "status_query"
    ADD_SELF = "add_self"
    REMOVE_SELF = "remove_self"
    SET_TIME = "set_time"
    IGNORE = "ignore"


class ParsedCommand(BaseModel):
    """解析済みコマンド"""
    intent: CommandIntent
    hours: Optional[int] = None
    minutes: Optional[int] = None
    reason: Optional[str] = Field(None, description="IGNORE の理由（デバッグログ用）")

    @validator('hours')
    def validate_hours(cls, v):
        if v is not None and not 0 <= v <= 23:
            raise ValueError('hours は0-23の範囲である必要があります')
        return v

    @validator('minutes')
    def validate_minutes(cls, v):
        if v is not None and not 0 <= v <= 59:
            raise ValueError('minutes は0-59の範囲である必要があります')
        return v

    @classmethod
    def ignore(cls, reason: str) -> "ParsedCommand":
        return cls(intent=CommandIntent.IGNORE, reason=reason)

    @classmethod
    def set_time(cls, hours: int, minutes: int) -> "ParsedCommand":
        return cls(intent=CommandIntent.SET_TIME, hours=hours, minutes=minutes)

    @property
    def is_ignored(self) -> bool:
        return self.intent == CommandIntent.IGNORE


class NotificationKind(str, Enum):
    """通知種別"""
    CREATED = "created"
    STATUS = "status"
    ADDED = "added"
    REMOVED = "removed"
    CANCELLED = "cancelled"
    TIME_CHANGED = "time_changed"


class Notification(BaseModel):
    """送信通知"""
    conversation_id: str
    text: str
    kind: NotificationKind
