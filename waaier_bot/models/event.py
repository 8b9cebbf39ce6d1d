"""
GatheringEvent エンティティモデル

現在アクティブな「集まり」イベント（時刻・参加者・返信アンカー）を表現します。
イベントが存在しない状態は None で表します。
"""

from datetime import datetime
from typing import Dict, List

from pydantic import BaseModel, Field, validator


class GatheringEvent(BaseModel):
    """集まりイベントエンティティ

    変更系の操作はすべて新しいインスタンスを返し、元のインスタンスは変更しません。
    """

    scheduled_time: datetime = Field(..., description="予定日時（タイムゾーン付き）")

    # sender_id -> 表示名。挿入順が表示順
    attendees: Dict[str, str] = Field(..., description="参加者（送信者ID -> 表示名）")

    # 返信を受け付けるメッセージID（挿入順を保持する集合として扱う）
    ack_message_ids: List[str] = Field(default_factory=list, description="返信アンカーのメッセージIDリスト")

    class Config:
        """Pydantic設定"""
        validate_assignment = True

    @validator('scheduled_time')
    def validate_scheduled_time(cls, v):
        """予定日時はタイムゾーン付きである必要がある"""
        if v.tzinfo is None or v.utcoffset() is None:
            raise ValueError('scheduled_time はタイムゾーン付きの日時である必要があります')
        return v

    @validator('attendees')
    def validate_attendees(cls, v):
        """参加者は空にできない"""
        if not v:
            raise ValueError('参加者が1人もいないイベントは存在できません')
        return v

    @validator('ack_message_ids')
    def validate_ack_message_ids(cls, v):
        """重複を除去（順序は保持）"""
        return list(dict.fromkeys(v))

    def is_expired(self, now: datetime) -> bool:
        """予定時刻を過ぎているか"""
        return self.scheduled_time < now

    def has_attendee(self, sender_id: str) -> bool:
        return sender_id in self.attendees

    def attendee_count(self) -> int:
        return len(self.attendees)

    def attendee_names(self) -> List[str]:
        """表示名リスト（参加順）"""
        return list(self.attendees.values())

    def is_acknowledged(self, message_id: str) -> bool:
        """返信先として受け付けるメッセージIDか"""
        return message_id in self.ack_message_ids

    def with_attendee(self, sender_id: str, display_name: str) -> "GatheringEvent":
        """参加者を追加したイベントを返す（既に参加済みなら自身を返す）"""
        if self.has_attendee(sender_id):
            return self
        attendees = dict(self.attendees)
        attendees[sender_id] = display_name
        return self.copy(update={"attendees": attendees})

    def without_attendee(self, sender_id: str) -> "GatheringEvent":
        """参加者を削除したイベントを返す

        最後の参加者を削除するとイベント自体が成立しなくなるため、
        呼び出し側で attendee_count() を確認してからイベントを破棄すること。
        """
        if not self.has_attendee(sender_id):
            return self
        if self.attendee_count() == 1:
            raise ValueError('最後の参加者は削除できません。イベントを破棄してください')
        attendees = {k: v for k, v in self.attendees.items() if k != sender_id}
        return self.copy(update={"attendees": attendees})

    def with_time_of_day(self, hours: int, minutes: int) -> "GatheringEvent":
        """日付を保ったまま時・分を変更したイベントを返す"""
        if not 0 <= hours <= 23 or not 0 <= minutes <= 59:
            raise ValueError(f'不正な時刻です: {hours}:{minutes}')
        scheduled_time = self.scheduled_time.replace(hour=hours, minute=minutes, second=0, microsecond=0)
        return self.copy(update={"scheduled_time": scheduled_time})

    def acknowledge(self, message_id: str) -> "GatheringEvent":
        """返信アンカーにメッセージIDを追加したイベントを返す"""
        if self.is_acknowledged(message_id):
            return self
        return self.copy(update={"ack_message_ids": [*self.ack_message_ids, message_id]})
