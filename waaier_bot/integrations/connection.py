"""
チャット接続とログイン処理

メッセージングサービスへの接続（トランスポート）は ChatConnection として抽象化し、
ここではセッション復元・QRログイン・セッション保存の流れだけを実装します。
"""

import io
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

import qrcode
from rich.console import Console

from ..errors import LoginError, SessionNotFoundError, SessionStoreError
from .session_store import SessionData, SessionStore

logger = logging.getLogger(__name__)

QRCallback = Callable[[str], None]


class ChatConnection(ABC):
    """メッセージングサービスへの接続"""

    @abstractmethod
    async def login(self, qr_callback: QRCallback) -> SessionData:
        """QRコードで新規ログイン（QRコード文字列は qr_callback に渡される）"""

    @abstractmethod
    async def restore(self, session: SessionData) -> SessionData:
        """保存済みセッションで再接続"""

    @abstractmethod
    async def admin_test(self) -> bool:
        """電話端末との疎通確認"""

    @abstractmethod
    async def send(self, conversation_id: str, text: str) -> bool:
        """テキストメッセージ送信"""

    @abstractmethod
    def add_handler(self, handler: Any) -> None:
        """受信メッセージハンドラー登録"""

    @abstractmethod
    async def disconnect(self) -> SessionData:
        """切断し、最新のセッションを返す"""


def render_qr_code(code: str) -> str:
    """QRコードを端末表示用のテキストに変換"""
    qr = qrcode.QRCode(border=1)
    qr.add_data(code)
    qr.make(fit=True)

    buffer = io.StringIO()
    qr.print_ascii(out=buffer, invert=True)
    return buffer.getvalue()


def render_qr_to_terminal(code: str, console: Optional[Console] = None) -> None:
    """QRコードを端末に表示"""
    console = console or Console()
    console.print("📱 スマートフォンでQRコードをスキャンしてください", style="cyan")
    console.print(render_qr_code(code), highlight=False)


async def login(
    connection: ChatConnection,
    store: SessionStore,
    qr_callback: Optional[QRCallback] = None
) -> SessionData:
    """
    ログイン

    保存済みセッションがあれば復元し、なければQRコードで新規ログインします。
    いずれの場合も得られたセッションを保存します。

    Args:
        connection: チャット接続
        store: セッションストア
        qr_callback: QRコード表示関数（省略時は端末表示）

    Returns:
        ログイン後のセッション
    """
    qr_callback = qr_callback or render_qr_to_terminal

    try:
        saved_session = store.read()
    except SessionNotFoundError:
        saved_session = None
    except SessionStoreError as e:
        # 読めないセッションは新規ログインでやり直す
        logger.warning(f"保存済みセッションを読み込めません: {str(e)}")
        saved_session = None

    if saved_session is None:
        logger.info("新規ログイン開始（QRコード）")
        try:
            session = await connection.login(qr_callback)
        except Exception as e:
            raise LoginError(f"ログインできません: {e}") from e
    else:
        logger.info("保存済みセッションで再接続")
        try:
            session = await connection.restore(saved_session)
        except Exception as e:
            raise LoginError(f"セッションを復元できません: {e}") from e

    store.write(session)
    return session
