"""
コマンドパーサー

受信メッセージを現在のイベント状態に応じてコマンド意図へ分類します。
不正な入力や対象外のメッセージはすべて IGNORE になり、例外は送出しません。
"""

import logging
import re
from typing import Optional, Tuple

from ..config import BotConfig
from ..models import CommandIntent, GatheringEvent, InboundMessage, ParsedCommand

logger = logging.getLogger(__name__)

# 先頭の "時:分"（ASCII数字のみ、前後の空白と後続テキストは無視）
TIME_PATTERN = re.compile(r"^\s*([0-9]+):([0-9]+)")
MAX_TIME_DIGITS = 2


class CommandParser:
    """
    コマンドパーサー
    - 会話・開始時刻によるスコープ判定
    - 返信スレッドによるコマンド受付判定
    - 固定トークン・プレフィックス・時刻の解析
    """

    def __init__(self, config: BotConfig):
        self.config = config

    def is_in_scope(self, message: InboundMessage) -> bool:
        """Botが扱ってよいメッセージか（開始時刻以降・許可された会話）"""
        if message.timestamp_seconds < self.config.start_timestamp:
            return False
        return message.conversation_id == self.config.allowed_conversation_id

    @staticmethod
    def parse_time(text: str) -> Optional[Tuple[int, int]]:
        """'時:分' を解析（範囲外・形式不正は None）"""
        match = TIME_PATTERN.match(text)
        if not match:
            return None

        hours_text, minutes_text = match.group(1), match.group(2)
        if len(hours_text) > MAX_TIME_DIGITS or len(minutes_text) > MAX_TIME_DIGITS:
            return None

        hours, minutes = int(hours_text), int(minutes_text)
        if not 0 <= hours <= 23 or not 0 <= minutes <= 59:
            return None
        return hours, minutes

    def parse(self, state: Optional[GatheringEvent], message: InboundMessage) -> ParsedCommand:
        """メッセージをコマンド意図に分類"""
        if not self.is_in_scope(message):
            return ParsedCommand.ignore("out_of_scope")

        text = message.text

        if state is None:
            if text == self.config.trigger_token:
                return ParsedCommand(intent=CommandIntent.CREATE_EVENT)
            return ParsedCommand.ignore("no_active_event")

        # イベント中のトリガーは新しい返信アンカーとして状況を再表示
        if text == self.config.trigger_token:
            return ParsedCommand(intent=CommandIntent.STATUS_QUERY)

        if not message.is_reply() or not state.is_acknowledged(message.replied_to_message_id):
            return ParsedCommand.ignore("not_a_reply_to_event")

        if text == self.config.status_token:
            return ParsedCommand(intent=CommandIntent.STATUS_QUERY)
        if text.startswith(self.config.add_prefix):
            return ParsedCommand(intent=CommandIntent.ADD_SELF)
        if text.startswith(self.config.remove_prefix):
            return ParsedCommand(intent=CommandIntent.REMOVE_SELF)

        parsed_time = self.parse_time(text)
        if parsed_time is None:
            return ParsedCommand.ignore("malformed_time")

        return ParsedCommand.set_time(*parsed_time)
