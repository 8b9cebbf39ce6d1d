"""
受信メッセージハンドラー

トランスポートから届くメッセージを1件ずつ EventEngine に通し、
結果の通知を Messenger で送信します。イベント状態はこのハンドラーが保持します。
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError

from .config import BotConfig
from .engine import EventEngine, TransitionResult
from .integrations.contacts import ContactResolver
from .integrations.messenger import Messenger
from .models import GatheringEvent, InboundMessage, Notification

logger = logging.getLogger(__name__)


class GatheringMessageHandler:
    """
    集まりイベントのメッセージハンドラー
    - メッセージの逐次処理
    - イベント状態の保持
    - 通知送信と送信失敗のログ記録
    """

    def __init__(
        self,
        config: BotConfig,
        contact_resolver: ContactResolver,
        messenger: Messenger,
        engine: Optional[EventEngine] = None
    ):
        self.config = config
        self.messenger = messenger
        self.engine = engine or EventEngine(config, contact_resolver)

        self.state: Optional[GatheringEvent] = None
        self._lock = asyncio.Lock()

    @property
    def has_active_event(self) -> bool:
        return self.state is not None

    def handle_error(self, error: Exception) -> None:
        """トランスポートのエラー通知"""
        logger.error(f"エラーが発生しました: {str(error)}")

    async def handle_payload(self, payload: Dict[str, Any]) -> Optional[Notification]:
        """トランスポートの生データを処理"""
        try:
            message = InboundMessage.from_payload(payload)
        except (ValidationError, ValueError, TypeError) as e:
            logger.warning(f"受信データを解析できません: {str(e)}")
            return None
        return await self.handle_text_message(message)

    async def handle_text_message(self, message: InboundMessage) -> Optional[Notification]:
        """
        テキストメッセージを1件処理

        Returns:
            送信した（または送信を試みた）通知。通知がなければ None
        """
        async with self._lock:
            result: TransitionResult = self.engine.process(self.state, message)
            self.state = result.state

            if result.notification is not None:
                await self._send(result.notification)

            return result.notification

    async def _send(self, notification: Notification) -> bool:
        """通知送信（失敗はログのみ、リトライしない）"""
        try:
            sent = await self.messenger.send(notification.conversation_id, notification.text)
        except Exception as e:
            logger.error(f"通知送信エラー: {notification.kind.value}: {str(e)}")
            return False

        if not sent:
            logger.warning(f"通知送信失敗: {notification.kind.value} -> {notification.conversation_id}")
        return bool(sent)
