"""
Conversation Context Models
============================
Short-lived booking conversation state for one (customer, salon) pair.

The session is created when a booking request cannot be satisfied exactly,
survives across independent message-handling invocations in the session
store, and disappears on TTL lapse or explicit completion.
"""
import time
import uuid
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Optional, Dict, Any, List

from ..exceptions import InvalidTransitionError
from .slots import CandidateSlot, parse_hhmm


class ConversationState(str, Enum):
    """
    Booking dialog states.

    There is no `expired` state: expiry is only ever observed as the
    session missing from the store.
    """
    INITIAL = "initial"
    CHOICE_PRESENTED = "choice_presented"
    SLOTS_SHOWN = "slots_shown"
    CONFIRMING = "confirming"
    COMPLETED = "completed"


ALLOWED_TRANSITIONS: Dict[ConversationState, frozenset] = {
    ConversationState.INITIAL: frozenset({ConversationState.CHOICE_PRESENTED}),
    ConversationState.CHOICE_PRESENTED: frozenset({
        ConversationState.CHOICE_PRESENTED,
        ConversationState.SLOTS_SHOWN,
        ConversationState.COMPLETED,
    }),
    ConversationState.SLOTS_SHOWN: frozenset({
        ConversationState.CHOICE_PRESENTED,
        ConversationState.CONFIRMING,
        ConversationState.COMPLETED,
    }),
    ConversationState.CONFIRMING: frozenset({ConversationState.COMPLETED}),
    ConversationState.COMPLETED: frozenset(),
}


@dataclass
class OriginalIntent:
    """What the customer originally asked for"""
    service: Optional[str] = None
    date: Optional[str] = None  # YYYY-MM-DD
    time: Optional[str] = None  # HH:MM
    preferred_staff: Optional[str] = None
    confidence: float = 0.0

    @property
    def requested_date(self) -> Optional[date]:
        return date.fromisoformat(self.date) if self.date else None

    @property
    def requested_time(self):
        return parse_hhmm(self.time) if self.time else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "service": self.service,
            "date": self.date,
            "time": self.time,
            "preferred_staff": self.preferred_staff,
            "confidence": self.confidence,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OriginalIntent":
        return cls(
            service=data.get("service"),
            date=data.get("date"),
            time=data.get("time"),
            preferred_staff=data.get("preferred_staff"),
            confidence=float(data.get("confidence", 0.0)),
        )


@dataclass
class ChoiceRecord:
    """One presented or selected choice in the session log"""
    choice_id: str
    timestamp: float
    result_shown: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"choice_id": self.choice_id, "timestamp": self.timestamp, "result_shown": self.result_shown}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChoiceRecord":
        return cls(
            choice_id=data["choice_id"],
            timestamp=float(data.get("timestamp", 0.0)),
            result_shown=bool(data.get("result_shown", False)),
        )


def generate_session_id() -> str:
    """sess_<epoch ms>_<random>"""
    return f"sess_{int(time.time() * 1000)}_{uuid.uuid4().hex[:7]}"


@dataclass
class ConversationSession:
    """
    Full booking conversation state for a (customer, salon) pair.

    Attributes:
        customer_id: Messaging identity of the customer (phone number)
        salon_id: Salon the conversation belongs to
        original_intent: Parsed request that could not be satisfied
        language: Detected customer language
        state: Current dialog state
        choices: Capped log of presented/selected choices (newest last)
        presented_slots: Slots currently offered as buttons
        page_offsets: Next result offset per alternative choice type
        see_more_offered: Whether the current page carries a "see more" button
        selected_slot: Slot picked and awaiting confirmation
        created_at / expires_at / ceiling_at: epoch seconds
    """
    customer_id: str
    salon_id: str
    original_intent: OriginalIntent = field(default_factory=OriginalIntent)
    language: str = "en"
    state: ConversationState = ConversationState.INITIAL
    session_id: str = field(default_factory=generate_session_id)
    choices: List[ChoiceRecord] = field(default_factory=list)
    interaction_count: int = 0
    see_more_count: int = 0
    last_choice_type: Optional[str] = None
    page_offsets: Dict[str, int] = field(default_factory=dict)
    see_more_offered: bool = False
    presented_slots: List[CandidateSlot] = field(default_factory=list)
    selected_slot: Optional[CandidateSlot] = None
    created_at: float = field(default_factory=time.time)
    expires_at: float = 0.0
    ceiling_at: float = 0.0
    choice_log_cap: int = 10

    @classmethod
    def start(
        cls,
        customer_id: str,
        salon_id: str,
        original_intent: OriginalIntent,
        language: str,
        ttl_seconds: int,
        absolute_ceiling_seconds: int,
        choice_log_cap: int = 10,
        now: Optional[float] = None,
    ) -> "ConversationSession":
        """Create a fresh session already moved to `choice_presented`"""
        now = time.time() if now is None else now
        session = cls(
            customer_id=customer_id,
            salon_id=salon_id,
            original_intent=original_intent,
            language=language,
            created_at=now,
            expires_at=now + min(ttl_seconds, absolute_ceiling_seconds),
            ceiling_at=now + absolute_ceiling_seconds,
            choice_log_cap=choice_log_cap,
        )
        session.transition(ConversationState.CHOICE_PRESENTED)
        return session

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------
    def can_transition(self, target: ConversationState) -> bool:
        return target in ALLOWED_TRANSITIONS[self.state]

    def transition(self, target: ConversationState) -> None:
        if not self.can_transition(target):
            raise InvalidTransitionError(self.state.value, target.value)
        self.state = target

    def is_terminal(self) -> bool:
        return self.state == ConversationState.COMPLETED

    # ------------------------------------------------------------------
    # Choice log
    # ------------------------------------------------------------------
    def record_choice(self, choice_id: str, result_shown: bool = False, now: Optional[float] = None) -> None:
        """Append to the choice log, dropping the oldest entries beyond the cap"""
        self.choices.append(ChoiceRecord(choice_id, time.time() if now is None else now, result_shown))
        if len(self.choices) > self.choice_log_cap:
            self.choices = self.choices[-self.choice_log_cap:]
        self.interaction_count += 1

    def find_presented_slot(self, slot_id: str) -> Optional[CandidateSlot]:
        for slot in self.presented_slots:
            if slot.slot_id == slot_id:
                return slot
        return None

    # ------------------------------------------------------------------
    # Lifetime
    # ------------------------------------------------------------------
    def is_expired(self, now: Optional[float] = None) -> bool:
        now = time.time() if now is None else now
        return now >= self.ceiling_at or now >= self.expires_at

    def remaining_seconds(self, now: Optional[float] = None) -> int:
        now = time.time() if now is None else now
        return max(0, int(min(self.expires_at, self.ceiling_at) - now))

    def extend(self, extra_seconds: int, now: Optional[float] = None) -> float:
        """Push expiry out by `extra_seconds`, never past the absolute ceiling"""
        now = time.time() if now is None else now
        self.expires_at = min(max(self.expires_at, now) + extra_seconds, self.ceiling_at)
        return self.expires_at

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------
    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage"""
        return {
            "session_id": self.session_id,
            "customer_id": self.customer_id,
            "salon_id": self.salon_id,
            "original_intent": self.original_intent.to_dict(),
            "language": self.language,
            "state": self.state.value,
            "choices": [choice.to_dict() for choice in self.choices],
            "interaction_count": self.interaction_count,
            "see_more_count": self.see_more_count,
            "last_choice_type": self.last_choice_type,
            "page_offsets": dict(self.page_offsets),
            "see_more_offered": self.see_more_offered,
            "presented_slots": [slot.to_dict() for slot in self.presented_slots],
            "selected_slot": self.selected_slot.to_dict() if self.selected_slot else None,
            "created_at": self.created_at,
            "expires_at": self.expires_at,
            "ceiling_at": self.ceiling_at,
            "choice_log_cap": self.choice_log_cap,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConversationSession":
        """Create from dictionary. Raises KeyError/ValueError on malformed data."""
        selected = data.get("selected_slot")
        return cls(
            session_id=data["session_id"],
            customer_id=data["customer_id"],
            salon_id=data["salon_id"],
            original_intent=OriginalIntent.from_dict(data.get("original_intent") or {}),
            language=data.get("language", "en"),
            state=ConversationState(data.get("state", ConversationState.INITIAL.value)),
            choices=[ChoiceRecord.from_dict(c) for c in data.get("choices", [])],
            interaction_count=int(data.get("interaction_count", 0)),
            see_more_count=int(data.get("see_more_count", 0)),
            last_choice_type=data.get("last_choice_type"),
            page_offsets={str(k): int(v) for k, v in (data.get("page_offsets") or {}).items()},
            see_more_offered=bool(data.get("see_more_offered", False)),
            presented_slots=[CandidateSlot.from_dict(s) for s in data.get("presented_slots", [])],
            selected_slot=CandidateSlot.from_dict(selected) if selected else None,
            created_at=float(data["created_at"]),
            expires_at=float(data["expires_at"]),
            ceiling_at=float(data["ceiling_at"]),
            choice_log_cap=int(data.get("choice_log_cap", 10)),
        )
