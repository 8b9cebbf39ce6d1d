"""
通知メッセージのレンダリング
"""

from datetime import datetime
from typing import Iterable

from ..models import GatheringEvent, Notification, NotificationKind

TIME_FORMAT = "%a %H:%M"
ATTENDEE_SEPARATOR = ", "


class NotificationRenderer:
    """通知テンプレートから送信テキストを組み立てる（副作用なし）"""

    def __init__(self, event_name: str = "Waaier"):
        self.event_name = event_name

        self.templates = {
            NotificationKind.CREATED: "A new {event_name} event is created for {time}.",
            NotificationKind.STATUS: "{status}",
            NotificationKind.ADDED: "You are added to the list!\n\n{status}",
            NotificationKind.REMOVED: "You are removed from the list!\n\n{status}",
            NotificationKind.CANCELLED: "Nobody is going.\n🦀 {event_name} is cancelled. 🦀",
            NotificationKind.TIME_CHANGED: "Time is updated to {time}.",
        }

    @staticmethod
    def format_time(value: datetime) -> str:
        """曜日 + 24時間表記"""
        return value.strftime(TIME_FORMAT)

    @staticmethod
    def format_attendees(names: Iterable[str]) -> str:
        return ATTENDEE_SEPARATOR.join(names)

    def status_block(self, event: GatheringEvent) -> str:
        return "🕒 {time}\nPeople that are going:\n{names}".format(
            time=self.format_time(event.scheduled_time),
            names=self.format_attendees(event.attendee_names()),
        )

    def render_text(self, kind: NotificationKind, event: GatheringEvent) -> str:
        """通知本文を作成

        キャンセル通知でも直前のイベントを受け取り、テンプレートの変数を揃えます。
        """
        body = self.templates[kind].format(
            event_name=self.event_name,
            time=self.format_time(event.scheduled_time),
            status=self.status_block(event),
        )
        return f"[{self.event_name}]\n\n{body}"

    def render(self, kind: NotificationKind, event: GatheringEvent, conversation_id: str) -> Notification:
        return Notification(
            conversation_id=conversation_id,
            text=self.render_text(kind, event),
            kind=kind,
        )
