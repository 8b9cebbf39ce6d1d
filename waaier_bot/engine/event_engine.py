"""
イベントエンジン (Event Engine)

集まりイベントのライフサイクルを管理する状態機械です。
状態は呼び出し側が保持し、process() に渡して新しい状態を受け取ります。

状態:
    NoEvent      -- state is None
    EventActive  -- state is GatheringEvent
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from pydantic import BaseModel

from ..config import BotConfig
from ..errors import InvalidTransitionError
from ..integrations.contacts import ContactResolver
from ..models import (
    CommandIntent, GatheringEvent, InboundMessage, Notification,
    NotificationKind, ParsedCommand
)
from .command_parser import CommandParser
from .notifications import NotificationRenderer

logger = logging.getLogger(__name__)


class TransitionResult(BaseModel):
    """状態遷移の結果"""
    state: Optional[GatheringEvent] = None
    notification: Optional[Notification] = None

    @classmethod
    def unchanged(cls, state: Optional[GatheringEvent]) -> "TransitionResult":
        return cls(state=state)


class EventEngine:
    """イベントエンジン - 解析済みコマンドをイベント状態に適用する"""

    def __init__(
        self,
        config: BotConfig,
        contact_resolver: ContactResolver,
        parser: Optional[CommandParser] = None,
        renderer: Optional[NotificationRenderer] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """
        イベントエンジンを初期化

        Args:
            config: Bot設定
            contact_resolver: 送信者IDから表示名を解決する
            parser: コマンドパーサー（省略時は config から作成）
            renderer: 通知レンダラー（省略時は config から作成）
            clock: 現在時刻を返す関数（省略時は設定タイムゾーンの現在時刻）
        """
        self.config = config
        self.contact_resolver = contact_resolver
        self.parser = parser or CommandParser(config)
        self.renderer = renderer or NotificationRenderer(config.event_name)
        self.clock = clock or (lambda: datetime.now(config.tzinfo))

        self.handlers = {
            CommandIntent.CREATE_EVENT: self._handle_create_event,
            CommandIntent.STATUS_QUERY: self._handle_status_query,
            CommandIntent.ADD_SELF: self._handle_add_self,
            CommandIntent.REMOVE_SELF: self._handle_remove_self,
            CommandIntent.SET_TIME: self._handle_set_time,
        }

    def now(self) -> datetime:
        return self.clock()

    def default_event_time(self, now: datetime) -> datetime:
        """既定のイベント日時（今日の既定時刻、過ぎていれば翌日）"""
        scheduled = now.replace(
            hour=self.config.default_hour,
            minute=self.config.default_minute,
            second=0,
            microsecond=0
        )
        if scheduled < now:
            scheduled = scheduled + timedelta(days=1)
        return scheduled

    def create_event(self, creator_id: str, creator_name: str, message_id: str, now: datetime) -> GatheringEvent:
        """作成者を参加者に含めた新しいイベントを作成"""
        return GatheringEvent(
            scheduled_time=self.default_event_time(now),
            attendees={creator_id: creator_name},
            ack_message_ids=[message_id],
        )

    def process(self, state: Optional[GatheringEvent], message: InboundMessage) -> TransitionResult:
        """
        受信メッセージを1件処理

        Args:
            state: 現在のイベント（None はイベントなし）
            message: 受信メッセージ

        Returns:
            新しい状態と、送信すべき通知（0件または1件）
        """
        if not self.parser.is_in_scope(message):
            logger.debug(f"対象外メッセージを無視: {message.message_id}")
            return TransitionResult.unchanged(state)

        now = self.now()

        # 期限切れイベントは通知なしで破棄し、このメッセージも処理しない
        if state is not None and state.is_expired(now):
            logger.info(f"イベント期限切れのためリセット: {self.renderer.format_time(state.scheduled_time)}")
            return TransitionResult(state=None)

        command = self.parser.parse(state, message)
        return self.apply(state, command, message, now)

    def apply(
        self,
        state: Optional[GatheringEvent],
        command: ParsedCommand,
        message: InboundMessage,
        now: datetime
    ) -> TransitionResult:
        """解析済みコマンドを状態に適用"""
        if command.is_ignored:
            logger.debug(f"メッセージを無視: {message.message_id} ({command.reason})")
            return TransitionResult.unchanged(state)

        if command.intent == CommandIntent.CREATE_EVENT:
            if state is not None:
                raise InvalidTransitionError('アクティブなイベントが存在する状態でイベント作成はできません')
        elif state is None:
            raise InvalidTransitionError(f'イベントが存在しない状態で {command.intent.value} は適用できません')

        handler = self.handlers[command.intent]
        return handler(state, command, message, now)

    def _resolve_sender(self, message: InboundMessage) -> Optional[str]:
        """送信者の表示名を解決（失敗時は None）"""
        try:
            display_name = self.contact_resolver.resolve(message.sender_id)
        except Exception as e:
            logger.error(f"連絡先解決エラー: {message.sender_id}: {str(e)}")
            return None

        if not display_name:
            logger.info(f"送信者を解決できないためコマンドを破棄: {message.sender_id}")
            return None
        return display_name

    def _notify(self, kind: NotificationKind, event: GatheringEvent, message: InboundMessage) -> Notification:
        return self.renderer.render(kind, event, message.conversation_id)

    def _handle_create_event(self, state, command, message, now) -> TransitionResult:
        """イベント作成"""
        creator_name = self._resolve_sender(message)
        if creator_name is None:
            return TransitionResult.unchanged(state)

        event = self.create_event(message.sender_id, creator_name, message.message_id, now)
        logger.info(f"イベント作成: {self.renderer.format_time(event.scheduled_time)} by {creator_name}")

        return TransitionResult(
            state=event,
            notification=self._notify(NotificationKind.CREATED, event, message)
        )

    def _handle_status_query(self, state, command, message, now) -> TransitionResult:
        """状況確認（返信アンカーに追加）"""
        event = state.acknowledge(message.message_id)
        return TransitionResult(
            state=event,
            notification=self._notify(NotificationKind.STATUS, event, message)
        )

    def _handle_add_self(self, state, command, message, now) -> TransitionResult:
        """参加"""
        display_name = self._resolve_sender(message)
        if display_name is None or state.has_attendee(message.sender_id):
            return TransitionResult.unchanged(state)

        event = state.with_attendee(message.sender_id, display_name)
        logger.info(f"参加者追加: {display_name} ({event.attendee_count()}人)")

        return TransitionResult(
            state=event,
            notification=self._notify(NotificationKind.ADDED, event, message)
        )

    def _handle_remove_self(self, state, command, message, now) -> TransitionResult:
        """離脱（最後の参加者ならイベント中止）"""
        display_name = self._resolve_sender(message)
        if display_name is None or not state.has_attendee(message.sender_id):
            return TransitionResult.unchanged(state)

        if state.attendee_count() == 1:
            logger.info(f"参加者がいなくなったためイベント中止: {display_name}")
            return TransitionResult(
                state=None,
                notification=self._notify(NotificationKind.CANCELLED, state, message)
            )

        event = state.without_attendee(message.sender_id)
        logger.info(f"参加者削除: {display_name} ({event.attendee_count()}人)")

        return TransitionResult(
            state=event,
            notification=self._notify(NotificationKind.REMOVED, event, message)
        )

    def _handle_set_time(self, state, command, message, now) -> TransitionResult:
        """時刻変更（日付は維持）"""
        event = state.with_time_of_day(command.hours, command.minutes)
        logger.info(f"時刻変更: {self.renderer.format_time(event.scheduled_time)}")

        return TransitionResult(
            state=event,
            notification=self._notify(NotificationKind.TIME_CHANGED, event, message)
        )
