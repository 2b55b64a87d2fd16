"""Shared test fixtures and in-memory fakes."""

from datetime import date, datetime, time
from typing import Dict, List, Optional, Tuple

import pytest
from redis import exceptions as redis_exceptions

from salon_dialog.config import Settings
from salon_dialog.core.popular_times import PopularTimesAnalyzer
from salon_dialog.core.slot_ranker import AlternativeSlotRanker
from salon_dialog.core.templates import MessageTemplateStore
from salon_dialog.memory.session_manager import SessionContextStore, SessionKey
from salon_dialog.models.messages import InboundEvent
from salon_dialog.models.slots import BookingRecord, CandidateSlot
from salon_dialog.orchestration.router import MessageRouter
from salon_dialog.utils.circuit_breaker import reset_circuit_breakers
from salon_dialog.utils.language_detector import LanguageDetector
from salon_dialog.core.intent_classifier import LLMIntentClassifier

# Wednesday
TODAY = date(2026, 10, 21)
START_EPOCH = 1_792_000_000.0


class FakeClock:
    def __init__(self, now: float = START_EPOCH):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeRedis:
    """
    Minimal async redis stand-in.

    With a clock, keys are evicted when their TTL lapses; without one they
    live forever, which lets tests exercise the store's own expiry checks.
    """

    def __init__(self, clock: Optional[FakeClock] = None, down: bool = False):
        self.clock = clock
        self.down = down
        self.data: Dict[str, Tuple[str, Optional[float]]] = {}
        self.setex_calls: List[Tuple[str, int]] = []

    def _check(self):
        if self.down:
            raise redis_exceptions.ConnectionError("Connection refused")

    def _live(self, key: str) -> bool:
        if key not in self.data:
            return False
        _, expires = self.data[key]
        if self.clock is not None and expires is not None and self.clock() >= expires:
            del self.data[key]
            return False
        return True

    async def get(self, key):
        self._check()
        return self.data[key][0] if self._live(key) else None

    async def setex(self, key, ttl, value):
        self._check()
        self.setex_calls.append((key, ttl))
        expires = self.clock() + ttl if self.clock is not None else None
        self.data[key] = (value, expires)
        return True

    async def delete(self, key):
        self._check()
        return 1 if self.data.pop(key, None) is not None else 0

    async def ttl(self, key):
        self._check()
        if not self._live(key):
            return -2
        _, expires = self.data[key]
        return -1 if expires is None or self.clock is None else int(expires - self.clock())

    async def scan_iter(self, match=None, count=None):
        self._check()
        prefix = (match or "*").rstrip("*")
        for key in list(self.data):
            if key.startswith(prefix):
                yield key

    async def ping(self):
        self._check()
        return True

    async def aclose(self):
        pass


class FakeBookingSource:
    """In-memory availability, history and booking backend"""

    def __init__(self, slots: Optional[List[CandidateSlot]] = None, history: Optional[List[BookingRecord]] = None):
        self.slots = list(slots or [])
        self.history = list(history or [])
        self.fail = set()
        self.calls: List[Tuple] = []
        self.created: List[CandidateSlot] = []
        self.contact = "+1 555 0100"

    def _record(self, name, *args):
        self.calls.append((name, *args))
        if name in self.fail:
            raise RuntimeError(f"{name} unavailable")

    async def get_available_slots(self, salon_id, service_id, start_date, end_date):
        self._record("get_available_slots", salon_id, service_id, start_date, end_date)
        return [
            s for s in self.slots
            if start_date <= s.date <= end_date and (not service_id or s.service_id == service_id)
        ]

    async def get_booking_history(self, salon_id, since, service_id=None):
        self._record("get_booking_history", salon_id, since, service_id)
        return list(self.history)

    async def create_booking(self, salon_id, customer_id, slot):
        self._record("create_booking", salon_id, customer_id, slot)
        self.created.append(slot)
        return {"id": f"b{len(self.created)}", "status": "confirmed"}

    async def get_salon_contact(self, salon_id):
        self._record("get_salon_contact", salon_id)
        return self.contact


def make_slot(day: date, hhmm: str, staff: str = "anna", service: str = "haircut") -> CandidateSlot:
    hour, minute = hhmm.split(":")
    return CandidateSlot(day, time(int(hour), int(minute)), staff, service)


def text_event(text: str, customer: str = "+15550001", salon: str = "salon-1") -> InboundEvent:
    return InboundEvent(salon_id=salon, customer_id=customer, text=text)


def button_event(button_id: str, customer: str = "+15550001", salon: str = "salon-1") -> InboundEvent:
    return InboundEvent(salon_id=salon, customer_id=customer, button_id=button_id)


@pytest.fixture(autouse=True)
def _reset_breakers():
    reset_circuit_breakers()
    yield
    reset_circuit_breakers()


@pytest.fixture
def settings():
    return Settings(_env_file=None, openai_api_key=None, default_language="en")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def store(fake_redis, settings, clock):
    return SessionContextStore(redis_client=fake_redis, settings=settings, clock=clock)


@pytest.fixture
def session_key():
    return SessionKey("+15550001", "salon-1")


@pytest.fixture
def templates(settings):
    return MessageTemplateStore(default_language=settings.default_language)


@pytest.fixture
def ranker(settings):
    return AlternativeSlotRanker(settings)


@pytest.fixture
def source():
    return FakeBookingSource()


@pytest.fixture
def analyzer(source, settings, templates):
    return PopularTimesAnalyzer(source, settings, templates, clock=lambda: datetime(2026, 10, 21, 12, 0))


@pytest.fixture
def router(source, store, analyzer, templates, ranker, settings):
    return MessageRouter(
        data_source=source,
        store=store,
        detector=LanguageDetector(settings),
        classifier=LLMIntentClassifier(settings),
        ranker=ranker,
        analyzer=analyzer,
        templates=templates,
        settings=settings,
        today=lambda: TODAY,
    )
