"""
Shared fixtures for Waaier Bot tests
"""

from datetime import datetime
from typing import Callable, Optional
from zoneinfo import ZoneInfo

import pytest

from waaier_bot.config import BotConfig
from waaier_bot.integrations.contacts import ContactBook
from waaier_bot.models import InboundMessage

GROUP_ID = "31600000000-1597505379@g.us"
OTHER_GROUP_ID = "31600000000-1111111111@g.us"
START_TIMESTAMP = 1_700_000_000
TZ = ZoneInfo("Europe/Amsterdam")

# 2024-03-11 は月曜日
MONDAY_NOON = datetime(2024, 3, 11, 12, 0, tzinfo=TZ)


@pytest.fixture
def config() -> BotConfig:
    return BotConfig(
        allowed_conversation_id=GROUP_ID,
        start_timestamp=START_TIMESTAMP,
        timezone="Europe/Amsterdam",
    )


@pytest.fixture
def contacts() -> ContactBook:
    return ContactBook({
        "U_ALICE": "Alice",
        "U_BOB": "Bob",
        "U_CAROL": "Carol",
    })


@pytest.fixture
def make_message() -> Callable[..., InboundMessage]:
    """InboundMessage ファクトリ"""

    def _make(
        text: str,
        sender_id: str = "U_ALICE",
        message_id: str = "m1",
        reply_to: Optional[str] = None,
        conversation_id: str = GROUP_ID,
        timestamp: int = START_TIMESTAMP + 60,
    ) -> InboundMessage:
        return InboundMessage(
            text=text,
            sender_id=sender_id,
            conversation_id=conversation_id,
            message_id=message_id,
            replied_to_message_id=reply_to,
            timestamp_seconds=timestamp,
        )

    return _make
