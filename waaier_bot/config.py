"""
Bot設定

YAMLファイル（任意）と WAAIER_* 環境変数から BotConfig を組み立てます。
"""

import logging
import os
import time
from pathlib import Path
from typing import Any, Dict, Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import BaseModel, Field, ValidationError, validator

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "WAAIER_"

# 環境変数で上書き可能な項目
ENV_FIELDS = (
    "allowed_conversation_id",
    "start_timestamp",
    "default_hour",
    "default_minute",
    "trigger_token",
    "status_token",
    "add_prefix",
    "remove_prefix",
    "event_name",
    "timezone",
    "session_path",
    "session_key",
)


class BotConfig(BaseModel):
    """Bot設定"""
    allowed_conversation_id: str = Field(..., description="Botが動作する唯一の会話ID")
    start_timestamp: int = Field(
        default_factory=lambda: int(time.time()),
        description="プロセス開始時刻（これより前のメッセージは無視）"
    )

    # イベント既定値
    default_hour: int = Field(default=17, description="既定のイベント時刻（時）")
    default_minute: int = Field(default=45, description="既定のイベント時刻（分）")
    event_name: str = Field(default="Waaier", description="通知に表示するイベント名")
    timezone: str = Field(default="Europe/Amsterdam", description="会話のタイムゾーン")

    # コマンドトークン
    trigger_token: str = Field(default="_?_", description="イベント作成トークン")
    status_token: str = Field(default="?", description="状況確認トークン（1文字）")
    add_prefix: str = Field(default="+1", description="参加コマンド（2文字）")
    remove_prefix: str = Field(default="-1", description="離脱コマンド（2文字）")

    # セッション
    session_path: str = Field(default=".session.json", description="セッションファイルのパス")
    session_key: Optional[str] = Field(None, description="セッション暗号化キー（Fernet）")

    class Config:
        """Pydantic設定"""
        validate_assignment = True

    @validator('allowed_conversation_id')
    def validate_conversation_id(cls, v):
        """会話IDの検証"""
        if not v or not v.strip():
            raise ValueError('allowed_conversation_id は空にできません')
        return v.strip()

    @validator('default_hour')
    def validate_default_hour(cls, v):
        if not 0 <= v <= 23:
            raise ValueError('default_hour は0-23の範囲である必要があります')
        return v

    @validator('default_minute')
    def validate_default_minute(cls, v):
        if not 0 <= v <= 59:
            raise ValueError('default_minute は0-59の範囲である必要があります')
        return v

    @validator('status_token')
    def validate_status_token(cls, v):
        """状況確認トークンは1文字"""
        if len(v) != 1:
            raise ValueError('status_token は1文字である必要があります')
        return v

    @validator('add_prefix', 'remove_prefix')
    def validate_prefix(cls, v):
        """参加・離脱プレフィックスは2文字"""
        if len(v) != 2:
            raise ValueError('コマンドプレフィックスは2文字である必要があります')
        return v

    @validator('trigger_token')
    def validate_trigger_token(cls, v):
        if not v:
            raise ValueError('trigger_token は空にできません')
        return v

    @validator('timezone')
    def validate_timezone(cls, v):
        """タイムゾーン名の検証"""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f'不明なタイムゾーンです: {v}')
        return v

    @property
    def tzinfo(self) -> ZoneInfo:
        """会話のタイムゾーン"""
        return ZoneInfo(self.timezone)


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigurationError(f"設定ファイルを読み込めません: {path}: {e}")
    except yaml.YAMLError as e:
        raise ConfigurationError(f"設定ファイルのYAMLが不正です: {path}: {e}")

    if not isinstance(data, dict):
        raise ConfigurationError(f"設定ファイルのトップレベルはマッピングである必要があります: {path}")
    return data


def _read_env(environ: Dict[str, str]) -> Dict[str, Any]:
    values = {}
    for field in ENV_FIELDS:
        value = environ.get(f"{ENV_PREFIX}{field.upper()}")
        if value is not None and value != "":
            values[field] = value
    return values


def load_config(
    path: Optional[Union[str, Path]] = None,
    overrides: Optional[Dict[str, Any]] = None,
    environ: Optional[Dict[str, str]] = None
) -> BotConfig:
    """
    設定を読み込む

    優先順位: overrides > 環境変数 > YAMLファイル > 既定値

    Args:
        path: YAML設定ファイルのパス（None の場合は WAAIER_CONFIG を参照）
        overrides: 明示的な上書き値
        environ: 環境変数（テスト用、省略時は os.environ）

    Returns:
        BotConfig
    """
    environ = dict(os.environ) if environ is None else environ

    if path is None:
        path = environ.get(f"{ENV_PREFIX}CONFIG")

    values: Dict[str, Any] = {}
    if path:
        values.update(_read_yaml(Path(path)))
        logger.info(f"設定ファイル読み込み: {path}")

    values.update(_read_env(environ))
    values.update({k: v for k, v in (overrides or {}).items() if v is not None})

    try:
        return BotConfig(**values)
    except ValidationError as e:
        raise ConfigurationError(f"設定が不正です: {e}")
