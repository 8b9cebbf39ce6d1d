"""
Botランナー

接続・ログイン・疎通確認を行い、SIGINT/SIGTERM を受けるまで待機したあと
安全に切断してセッションを保存します。
"""

import asyncio
import logging
import signal
from typing import Optional

from .config import BotConfig
from .errors import ConnectionCheckError
from .handler import GatheringMessageHandler
from .integrations.connection import ChatConnection, QRCallback, login
from .integrations.contacts import ContactResolver
from .integrations.messenger import ConnectionMessenger
from .integrations.session_store import SessionStore

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class BotRunner:
    """Botプロセスのライフサイクル管理"""

    def __init__(
        self,
        config: BotConfig,
        connection: ChatConnection,
        contact_resolver: ContactResolver,
        session_store: Optional[SessionStore] = None,
        qr_callback: Optional[QRCallback] = None
    ):
        self.config = config
        self.connection = connection
        self.session_store = session_store or SessionStore(config.session_path, config.session_key)
        self.qr_callback = qr_callback

        self.handler = GatheringMessageHandler(
            config,
            contact_resolver,
            ConnectionMessenger(connection)
        )
        self.shutdown_event = asyncio.Event()

    def request_shutdown(self) -> None:
        """シャットダウン要求"""
        if not self.shutdown_event.is_set():
            logger.info("シャットダウン要求を受信")
            self.shutdown_event.set()

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in SHUTDOWN_SIGNALS:
            try:
                loop.add_signal_handler(sig, self.request_shutdown)
            except (NotImplementedError, RuntimeError):
                # Windows など add_signal_handler 未対応の環境
                signal.signal(sig, lambda *_: loop.call_soon_threadsafe(self.request_shutdown))

    async def start(self) -> None:
        """ハンドラー登録・ログイン・疎通確認"""
        self.connection.add_handler(self.handler)

        await login(self.connection, self.session_store, self.qr_callback)

        if not await self.connection.admin_test():
            raise ConnectionCheckError("電話端末に接続できません")

        logger.info(f"Bot起動完了: {self.config.allowed_conversation_id}")

    async def stop(self) -> None:
        """切断してセッションを保存"""
        logger.info("シャットダウン中...")
        session = await self.connection.disconnect()
        self.session_store.write(session)

    async def run(self) -> None:
        """シグナルを受けるまで稼働"""
        self._install_signal_handlers()
        await self.start()

        try:
            await self.shutdown_event.wait()
        finally:
            await self.stop()
