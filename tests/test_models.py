"""Tests for session, message and slot models."""

from datetime import date, time

import pytest
from pydantic import ValidationError

from salon_dialog.exceptions import InvalidTransitionError
from salon_dialog.models.conversation_context import ConversationSession, ConversationState, OriginalIntent
from salon_dialog.models.messages import ChoiceOption, InboundEvent, OutboundKind, OutboundMessage
from salon_dialog.models.slots import CandidateSlot, day_of_week, parse_slot_id

from tests.conftest import START_EPOCH


def started(cap: int = 10) -> ConversationSession:
    return ConversationSession.start(
        customer_id="+15550001",
        salon_id="salon-1",
        original_intent=OriginalIntent(service="haircut", date="2026-10-22", time="15:00", preferred_staff="anna"),
        language="he",
        ttl_seconds=1800,
        absolute_ceiling_seconds=3600,
        choice_log_cap=cap,
        now=START_EPOCH,
    )


def options(n: int):
    return [ChoiceOption(id=f"o{i}", title=f"Option {i}") for i in range(n)]


class TestConversationSession:
    def test_start(self):
        session = started()
        assert session.state == ConversationState.CHOICE_PRESENTED
        assert session.expires_at == START_EPOCH + 1800
        assert session.ceiling_at == START_EPOCH + 3600
        assert session.session_id.startswith("sess_")

    def test_serialization_round_trip(self):
        session = started()
        session.transition(ConversationState.SLOTS_SHOWN)
        session.presented_slots = [CandidateSlot(date(2026, 10, 22), time(14, 0), "anna", "haircut")]
        session.record_choice("same_day_diff_time", result_shown=True, now=START_EPOCH + 5)
        session.page_offsets = {"same_day_diff_time": 5}
        session.see_more_offered = True

        restored = ConversationSession.from_dict(session.to_dict())
        assert restored == session
        assert restored.original_intent.requested_time == time(15, 0)

    def test_invalid_transition(self):
        session = started()
        with pytest.raises(InvalidTransitionError):
            session.transition(ConversationState.CONFIRMING)

    def test_completed_is_terminal(self):
        session = started()
        session.transition(ConversationState.COMPLETED)
        assert session.is_terminal()
        with pytest.raises(InvalidTransitionError):
            session.transition(ConversationState.CHOICE_PRESENTED)

    def test_choice_log_cap_drops_oldest(self):
        session = started(cap=3)
        for i in range(5):
            session.record_choice(f"c{i}", now=START_EPOCH + i)

        assert [c.choice_id for c in session.choices] == ["c2", "c3", "c4"]
        assert session.interaction_count == 5

    def test_extend_stops_at_ceiling(self):
        session = started()
        assert session.extend(900, START_EPOCH) == START_EPOCH + 2700
        assert session.extend(900, START_EPOCH) == START_EPOCH + 3600
        assert session.is_expired(START_EPOCH + 3600)


class TestOutboundMessage:
    @pytest.mark.parametrize("count,kind", [
        (0, OutboundKind.TEXT),
        (1, OutboundKind.QUICK_REPLY),
        (3, OutboundKind.QUICK_REPLY),
        (4, OutboundKind.LIST),
        (10, OutboundKind.LIST),
    ])
    def test_kind_follows_option_count(self, count, kind):
        assert OutboundMessage.build("hi", "KEY", "en", options(count)).kind == kind

    def test_long_lists_truncated(self):
        message = OutboundMessage.build("hi", "KEY", "en", options(12))
        assert len(message.options) == 10
        assert message.option_ids[-1] == "o9"

    def test_to_dict_omits_empty_description(self):
        payload = OutboundMessage.build("hi", "KEY", "en", options(1)).to_dict()
        assert payload["options"] == [{"id": "o0", "title": "Option 0"}]
        assert payload["kind"] == "quick_reply"


class TestInboundEvent:
    def test_text_event(self):
        event = InboundEvent(salon_id="s1", customer_id="+1", text="  hello  ")
        assert event.text == "hello"
        assert event.event_type.value == "text"

    @pytest.mark.parametrize("payload", [
        {},
        {"text": "hi", "button_id": "confirm"},
        {"text": "   "},
    ])
    def test_exactly_one_payload(self, payload):
        with pytest.raises(ValidationError):
            InboundEvent(salon_id="s1", customer_id="+1", **payload)


class TestSlots:
    def test_slot_id(self):
        slot = CandidateSlot(date(2026, 10, 23), time(9, 5), "anna", "haircut")
        assert slot.slot_id == "slot|2026-10-23|09:05|anna"
        assert parse_slot_id(slot.slot_id) == {"date": "2026-10-23", "time": "09:05", "staff_id": "anna"}

    def test_staff_with_separator_survives(self):
        assert parse_slot_id("slot|2026-10-23|09:05|a|b")["staff_id"] == "a|b"

    @pytest.mark.parametrize("value", ["confirm", "slot|2026-13-01|09:00|anna", "slot|2026-10-23|nine|anna", "slot|2026-10-23|09:00|"])
    def test_malformed_slot_ids(self, value):
        assert parse_slot_id(value) is None

    def test_day_of_week_is_sunday_based(self):
        assert day_of_week(date(2026, 10, 25)) == 0
        assert day_of_week(date(2026, 10, 24)) == 6
