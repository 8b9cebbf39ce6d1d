"""
Unit tests for EventEngine state machine
Tests the gathering lifecycle: creation, expiry, attendee add/remove, time change
"""

from datetime import datetime, timedelta
from unittest.mock import Mock

import pytest
from freezegun import freeze_time

from tests.conftest import MONDAY_NOON, START_TIMESTAMP, TZ
from waaier_bot.engine.event_engine import EventEngine, TransitionResult
from waaier_bot.errors import InvalidTransitionError
from waaier_bot.models import CommandIntent, GatheringEvent, NotificationKind, ParsedCommand


class MutableClock:
    """テスト用の時計"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock(MONDAY_NOON)


@pytest.fixture
def engine(config, contacts, clock) -> EventEngine:
    return EventEngine(config, contacts, clock=clock)


@pytest.fixture
def active_event() -> GatheringEvent:
    return GatheringEvent(
        scheduled_time=datetime(2024, 3, 11, 17, 45, tzinfo=TZ),
        attendees={"U_ALICE": "Alice"},
        ack_message_ids=["m1"],
    )


class TestDefaultEventTime:
    """既定のイベント日時"""

    def test_today_when_before_default(self, engine) -> None:
        scheduled = engine.default_event_time(MONDAY_NOON)
        assert scheduled == datetime(2024, 3, 11, 17, 45, tzinfo=TZ)

    def test_tomorrow_when_past_default(self, engine) -> None:
        scheduled = engine.default_event_time(datetime(2024, 3, 11, 18, 0, tzinfo=TZ))
        assert scheduled == datetime(2024, 3, 12, 17, 45, tzinfo=TZ)

    def test_exactly_default_is_today(self, engine) -> None:
        now = datetime(2024, 3, 11, 17, 45, tzinfo=TZ)
        assert engine.default_event_time(now) == now

    def test_configured_default_time(self, config, contacts) -> None:
        engine = EventEngine(config.copy(update={"default_hour": 20, "default_minute": 0}), contacts)
        assert engine.default_event_time(MONDAY_NOON) == datetime(2024, 3, 11, 20, 0, tzinfo=TZ)

    @freeze_time("2024-03-11 11:00:00")
    def test_system_clock_uses_configured_timezone(self, config, contacts) -> None:
        """時計省略時は設定タイムゾーンの現在時刻（UTC 11:00 = アムステルダム 12:00）"""
        engine = EventEngine(config, contacts)

        assert engine.now() == MONDAY_NOON
        assert engine.default_event_time(engine.now()) == datetime(2024, 3, 11, 17, 45, tzinfo=TZ)


class TestCreateEvent:
    """イベント作成"""

    def test_create_event_scenario(self, engine, make_message) -> None:
        """_?_ で作成し、作成メッセージへの +1 返信で参加者追加"""
        result = engine.process(None, make_message("_?_", sender_id="U_ALICE", message_id="m1"))

        assert result.state is not None
        assert result.state.scheduled_time == datetime(2024, 3, 11, 17, 45, tzinfo=TZ)
        assert result.state.attendee_names() == ["Alice"]
        assert result.state.ack_message_ids == ["m1"]
        assert result.notification.kind == NotificationKind.CREATED
        assert result.notification.text == "[Waaier]\n\nA new Waaier event is created for Mon 17:45."

        result = engine.process(result.state, make_message("+1", sender_id="U_BOB", message_id="m2", reply_to="m1"))

        assert result.state.attendee_names() == ["Alice", "Bob"]
        assert result.notification.kind == NotificationKind.ADDED
        assert result.notification.text == (
            "[Waaier]\n\nYou are added to the list!\n\n"
            "🕒 Mon 17:45\nPeople that are going:\nAlice, Bob"
        )

    def test_create_after_default_time_rolls_to_tomorrow(self, engine, clock, make_message) -> None:
        clock.now = datetime(2024, 3, 11, 20, 0, tzinfo=TZ)

        result = engine.process(None, make_message("_?_"))

        assert result.state.scheduled_time == datetime(2024, 3, 12, 17, 45, tzinfo=TZ)
        assert "Tue 17:45" in result.notification.text

    def test_unresolved_creator_is_dropped(self, engine, make_message) -> None:
        result = engine.process(None, make_message("_?_", sender_id="U_STRANGER"))

        assert result.state is None
        assert result.notification is None

    def test_resolver_exception_is_treated_as_unresolved(self, config, clock, make_message) -> None:
        resolver = Mock()
        resolver.resolve.side_effect = RuntimeError("contact store unavailable")
        engine = EventEngine(config, resolver, clock=clock)

        result = engine.process(None, make_message("_?_"))

        assert result.state is None
        assert result.notification is None

    def test_create_while_active_is_programming_error(self, engine, active_event, make_message) -> None:
        command = ParsedCommand(intent=CommandIntent.CREATE_EVENT)

        with pytest.raises(InvalidTransitionError):
            engine.apply(active_event, command, make_message("_?_"), MONDAY_NOON)

    def test_command_without_event_is_programming_error(self, engine, make_message) -> None:
        command = ParsedCommand(intent=CommandIntent.ADD_SELF)

        with pytest.raises(InvalidTransitionError):
            engine.apply(None, command, make_message("+1"), MONDAY_NOON)


class TestExpiry:
    """期限切れイベントの自動リセット"""

    def test_expired_event_is_silently_discarded(self, engine, clock, active_event, make_message) -> None:
        clock.now = active_event.scheduled_time + timedelta(minutes=1)

        result = engine.process(active_event, make_message("?", message_id="m2", reply_to="m1"))

        assert result.state is None
        assert result.notification is None

    @pytest.mark.parametrize("text", ["_?_", "+1", "hello", "18:00"])
    def test_triggering_message_is_not_reprocessed(self, engine, clock, active_event, make_message, text) -> None:
        """期限切れを検出したメッセージで新しいイベントは作られない"""
        clock.now = active_event.scheduled_time + timedelta(hours=1)

        result = engine.process(active_event, make_message(text, message_id="m5", reply_to="m1"))

        assert result == TransitionResult(state=None, notification=None)

    def test_next_trigger_after_expiry_creates_new_event(self, engine, clock, active_event, make_message) -> None:
        clock.now = datetime(2024, 3, 11, 18, 0, tzinfo=TZ)

        reset = engine.process(active_event, make_message("_?_", message_id="m5"))
        created = engine.process(reset.state, make_message("_?_", sender_id="U_BOB", message_id="m6"))

        assert created.state.attendee_names() == ["Bob"]
        assert created.state.ack_message_ids == ["m6"]
        assert created.state.scheduled_time == datetime(2024, 3, 12, 17, 45, tzinfo=TZ)

    def test_out_of_scope_message_does_not_trigger_expiry(self, engine, clock, active_event, make_message) -> None:
        clock.now = active_event.scheduled_time + timedelta(hours=1)

        result = engine.process(active_event, make_message("?", timestamp=START_TIMESTAMP - 1))

        assert result.state is active_event


class TestStatusQuery:
    """状況確認"""

    def test_status_reply_is_acknowledged(self, engine, active_event, make_message) -> None:
        result = engine.process(active_event, make_message("?", sender_id="U_BOB", message_id="m2", reply_to="m1"))

        assert result.state.ack_message_ids == ["m1", "m2"]
        assert result.notification.kind == NotificationKind.STATUS
        assert result.notification.text == "[Waaier]\n\n🕒 Mon 17:45\nPeople that are going:\nAlice"

    def test_replies_to_status_message_are_accepted(self, engine, active_event, make_message) -> None:
        state = engine.process(active_event, make_message("?", message_id="m2", reply_to="m1")).state

        result = engine.process(state, make_message("+1", sender_id="U_BOB", message_id="m3", reply_to="m2"))
        assert result.state.attendee_names() == ["Alice", "Bob"]

    def test_repeated_trigger_opens_new_anchor(self, engine, active_event, make_message) -> None:
        result = engine.process(active_event, make_message("_?_", sender_id="U_CAROL", message_id="m8"))

        assert result.notification.kind == NotificationKind.STATUS
        assert result.state.is_acknowledged("m8")
        assert result.state.attendee_names() == ["Alice"]

    def test_status_does_not_require_resolved_sender(self, engine, active_event, make_message) -> None:
        result = engine.process(active_event, make_message("?", sender_id="U_STRANGER", message_id="m2", reply_to="m1"))
        assert result.notification is not None


class TestAttendees:
    """参加・離脱"""

    def test_add_existing_attendee_is_noop(self, engine, active_event, make_message) -> None:
        result = engine.process(active_event, make_message("+1", sender_id="U_ALICE", message_id="m2", reply_to="m1"))

        assert result.state is active_event
        assert result.notification is None

    def test_add_unresolved_sender_is_dropped(self, engine, active_event, make_message) -> None:
        result = engine.process(active_event, make_message("+1", sender_id="U_STRANGER", message_id="m2", reply_to="m1"))

        assert result.state is active_event
        assert result.notification is None

    def test_remove_one_of_many(self, engine, active_event, make_message) -> None:
        state = active_event.with_attendee("U_BOB", "Bob").with_attendee("U_CAROL", "Carol")

        result = engine.process(state, make_message("-1", sender_id="U_BOB", message_id="m2", reply_to="m1"))

        assert result.state.attendee_names() == ["Alice", "Carol"]
        assert result.notification.kind == NotificationKind.REMOVED
        assert result.notification.text == (
            "[Waaier]\n\nYou are removed from the list!\n\n"
            "🕒 Mon 17:45\nPeople that are going:\nAlice, Carol"
        )

    def test_remove_last_attendee_cancels_event(self, engine, active_event, make_message) -> None:
        result = engine.process(active_event, make_message("-1", sender_id="U_ALICE", message_id="m2", reply_to="m1"))

        assert result.state is None
        assert result.notification.kind == NotificationKind.CANCELLED
        assert result.notification.text == "[Waaier]\n\nNobody is going.\n🦀 Waaier is cancelled. 🦀"

    def test_remove_non_attendee_is_noop(self, engine, active_event, make_message) -> None:
        result = engine.process(active_event, make_message("-1", sender_id="U_BOB", message_id="m2", reply_to="m1"))

        assert result.state is active_event
        assert result.notification is None

    def test_create_then_remove_last_returns_to_no_event(self, engine, make_message) -> None:
        created = engine.process(None, make_message("_?_", sender_id="U_CAROL", message_id="m1"))
        removed = engine.process(created.state, make_message("-1", sender_id="U_CAROL", message_id="m2", reply_to="m1"))

        assert removed.state is None

    def test_add_remove_sequences_keep_invariants(self, engine, make_message) -> None:
        """任意の参加・離脱の列で重複なし・空にならない"""
        state = engine.process(None, make_message("_?_", sender_id="U_ALICE", message_id="m1")).state
        sequence = [
            ("+1", "U_BOB"), ("+1", "U_BOB"), ("+1", "U_CAROL"), ("-1", "U_ALICE"),
            ("+1", "U_ALICE"), ("-1", "U_BOB"), ("-1", "U_BOB"), ("+1", "U_CAROL"),
            ("-1", "U_CAROL"), ("+1", "U_BOB"),
        ]

        for index, (text, sender_id) in enumerate(sequence, start=2):
            result = engine.process(state, make_message(text, sender_id=sender_id, message_id=f"m{index}", reply_to="m1"))
            state = result.state

            assert state is not None
            names = state.attendee_names()
            assert names
            assert len(names) == len(set(names))

        assert state.attendee_names() == ["Alice", "Bob"]


class TestSetTime:
    """時刻変更"""

    def test_set_time_keeps_date(self, engine, clock, make_message) -> None:
        clock.now = datetime(2024, 3, 11, 20, 0, tzinfo=TZ)
        state = engine.process(None, make_message("_?_", message_id="m1")).state

        result = engine.process(state, make_message("19:30", message_id="m2", reply_to="m1"))

        assert result.state.scheduled_time == datetime(2024, 3, 12, 19, 30, tzinfo=TZ)
        assert result.notification.kind == NotificationKind.TIME_CHANGED
        assert result.notification.text == "[Waaier]\n\nTime is updated to Tue 19:30."

    @pytest.mark.parametrize("text", ["24:00", "12:60", "9:75", "9" * 5000 + ":00", "١٨:٣٠"])
    def test_out_of_range_time_is_noop(self, engine, active_event, make_message, text) -> None:
        result = engine.process(active_event, make_message(text, message_id="m2", reply_to="m1"))

        assert result.state is active_event
        assert result.notification is None

    def test_time_in_past_expires_on_next_message(self, engine, active_event, make_message) -> None:
        moved = engine.process(active_event, make_message("8:00", message_id="m2", reply_to="m1"))
        assert moved.state.scheduled_time == datetime(2024, 3, 11, 8, 0, tzinfo=TZ)

        result = engine.process(moved.state, make_message("?", message_id="m3", reply_to="m1"))
        assert result.state is None
        assert result.notification is None


class TestOutOfScope:
    """スコープ外メッセージ"""

    @pytest.mark.parametrize("text", ["_?_", "?", "+1", "-1", "18:00"])
    def test_pre_start_messages_have_no_effect(self, engine, active_event, make_message, text) -> None:
        for state in (None, active_event):
            result = engine.process(state, make_message(text, reply_to="m1", timestamp=START_TIMESTAMP - 10))

            assert result.state is state
            assert result.notification is None

    def test_unrelated_chat_does_not_mutate(self, engine, active_event, make_message) -> None:
        result = engine.process(active_event, make_message("+1 for pizza", sender_id="U_BOB", message_id="m2"))

        assert result.state is active_event
        assert result.notification is None

    def test_notification_targets_message_conversation(self, engine, config, make_message) -> None:
        result = engine.process(None, make_message("_?_"))
        assert result.notification.conversation_id == config.allowed_conversation_id
