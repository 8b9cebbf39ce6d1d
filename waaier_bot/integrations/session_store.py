"""
セッション永続化

トランスポートのログインセッションをファイルに保存・復元します。
暗号化キーが設定されている場合は Fernet で暗号化して保存します。
"""

import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from cryptography.fernet import Fernet, InvalidToken
from pydantic import BaseModel, Field, ValidationError

from ..errors import SessionNotFoundError, SessionStoreError

logger = logging.getLogger(__name__)

# セッションファイルは所有者のみ読み書き可能
SESSION_FILE_MODE = 0o600


class SessionData(BaseModel):
    """ログインセッション"""
    client_id: str = Field(..., description="クライアントID")
    client_token: str = Field(..., description="クライアントトークン")
    server_token: str = Field(..., description="サーバートークン")
    enc_key: str = Field(..., description="暗号鍵（Base64）")
    mac_key: str = Field(..., description="MAC鍵（Base64）")
    wid: str = Field(..., description="ログインしたアカウントのID")
    saved_at: Optional[datetime] = Field(None, description="保存時刻")


class SessionStore:
    """
    セッションファイル管理
    - JSON形式で保存（パーミッション 0600）
    - Fernet暗号化（任意）
    """

    def __init__(self, path: Union[str, Path], encryption_key: Optional[str] = None):
        """
        Args:
            path: セッションファイルのパス
            encryption_key: Fernetキー（None の場合は平文JSON）
        """
        self.path = Path(path)
        self.fernet: Optional[Fernet] = None

        if encryption_key:
            try:
                self.fernet = Fernet(encryption_key.encode() if isinstance(encryption_key, str) else encryption_key)
            except (ValueError, TypeError) as e:
                raise SessionStoreError(f"セッション暗号化キーの初期化に失敗しました: {e}")

    def exists(self) -> bool:
        return self.path.is_file()

    def read(self) -> SessionData:
        """保存済みセッションを読み込む"""
        if not self.exists():
            raise SessionNotFoundError(f"セッションファイルがありません: {self.path}")

        try:
            raw = self.path.read_bytes()
        except OSError as e:
            raise SessionStoreError(f"セッションファイルを読み込めません: {e}")

        if self.fernet is not None:
            try:
                raw = self.fernet.decrypt(raw)
            except InvalidToken:
                raise SessionStoreError("セッションファイルの復号に失敗しました")

        try:
            return SessionData(**json.loads(raw.decode("utf-8")))
        except (ValueError, TypeError, ValidationError) as e:
            raise SessionStoreError(f"セッションファイルの形式が不正です: {e}")

    def write(self, session: SessionData) -> None:
        """セッションを保存（既存ファイルは上書き）"""
        session = session.copy(update={"saved_at": datetime.utcnow()})
        data = session.json().encode("utf-8")

        if self.fernet is not None:
            data = self.fernet.encrypt(data)

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, SESSION_FILE_MODE)
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.chmod(self.path, SESSION_FILE_MODE)
        except OSError as e:
            raise SessionStoreError(f"セッションファイルを保存できません: {e}")

        logger.info(f"セッション保存: {self.path}")

    def clear(self) -> None:
        """保存済みセッションを削除"""
        try:
            self.path.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            raise SessionStoreError(f"セッションファイルを削除できません: {e}")
        logger.info(f"セッション削除: {self.path}")
