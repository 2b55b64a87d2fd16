"""Tests for the Redis-backed session context store."""

import json

from salon_dialog.memory.session_manager import SessionContextStore, SessionKey
from salon_dialog.models.conversation_context import ConversationSession, ConversationState, OriginalIntent

from tests.conftest import FakeRedis


def new_session(settings, clock):
    return ConversationSession.start(
        customer_id="+15550001",
        salon_id="salon-1",
        original_intent=OriginalIntent(service="haircut", date="2026-10-22", time="15:00"),
        language="ru",
        ttl_seconds=settings.session_ttl_seconds,
        absolute_ceiling_seconds=settings.session_absolute_ceiling_seconds,
        now=clock(),
    )


class TestSaveAndGet:
    async def test_round_trip(self, store, session_key, settings, clock):
        session = new_session(settings, clock)
        assert await store.save(session_key, session, settings.session_ttl_seconds)

        loaded = await store.get(session_key)
        assert loaded is not None
        assert loaded.session_id == session.session_id
        assert loaded.state == ConversationState.CHOICE_PRESENTED
        assert loaded.language == "ru"
        assert loaded.original_intent.time == "15:00"

    async def test_redis_key_and_ttl(self, store, fake_redis, session_key, settings, clock):
        await store.save(session_key, new_session(settings, clock), settings.session_ttl_seconds)
        assert fake_redis.setex_calls == [("booking:session:+15550001:salon-1", 1800)]

    async def test_ttl_capped_at_ceiling(self, store, fake_redis, session_key, settings, clock):
        await store.save(session_key, new_session(settings, clock), 10_000)
        assert fake_redis.setex_calls[-1][1] == settings.session_absolute_ceiling_seconds

    async def test_absent(self, store, session_key):
        assert await store.get(session_key) is None

    async def test_corrupt_payload_reads_as_absent(self, store, fake_redis, session_key):
        fake_redis.data[session_key.redis_key(store.prefix)] = ("{not json", None)
        assert await store.get(session_key) is None

    async def test_expired_entry_not_yet_evicted(self, store, session_key, settings, clock):
        # FakeRedis without a clock never evicts, as with a lagging server clock
        await store.save(session_key, new_session(settings, clock), settings.session_ttl_seconds)
        clock.advance(settings.session_ttl_seconds + 1)
        assert await store.get(session_key) is None

    async def test_past_ceiling_reads_as_absent(self, store, fake_redis, session_key, settings, clock):
        session = new_session(settings, clock)
        await store.save(session_key, session, settings.session_ttl_seconds)
        raw = json.loads(fake_redis.data[session_key.redis_key(store.prefix)][0])
        raw["expires_at"] = raw["ceiling_at"] + 1000
        fake_redis.data[session_key.redis_key(store.prefix)] = (json.dumps(raw), None)

        clock.advance(settings.session_absolute_ceiling_seconds)
        assert await store.get(session_key) is None

    async def test_last_write_wins(self, store, session_key, settings, clock):
        first = new_session(settings, clock)
        second = new_session(settings, clock)
        await store.save(session_key, first)
        await store.save(session_key, second)
        assert (await store.get(session_key)).session_id == second.session_id


class TestExtend:
    async def test_extend_adds_increment(self, store, session_key, settings, clock):
        session = new_session(settings, clock)
        await store.save(session_key, session, settings.session_ttl_seconds)

        new_expiry = await store.extend(session_key)
        assert new_expiry == clock() + settings.session_ttl_seconds + settings.session_extend_seconds

    async def test_extend_never_passes_ceiling(self, store, session_key, settings, clock):
        session = new_session(settings, clock)
        ceiling = session.created_at + settings.session_absolute_ceiling_seconds
        await store.save(session_key, session, settings.session_ttl_seconds)

        for _ in range(10):
            clock.advance(200)
            await store.extend(session_key)
            loaded = await store.get(session_key)
            assert loaded.expires_at <= ceiling

        assert loaded.expires_at == ceiling

    async def test_extend_missing_session(self, store, session_key):
        assert await store.extend(session_key) is None

    async def test_delete(self, store, session_key, settings, clock):
        await store.save(session_key, new_session(settings, clock))
        assert await store.delete(session_key)
        assert await store.get(session_key) is None


class TestUnreachableStore:
    async def test_operations_degrade(self, settings, clock, session_key):
        store = SessionContextStore(redis_client=FakeRedis(down=True), settings=settings, clock=clock)
        session = new_session(settings, clock)

        assert await store.save(session_key, session) is False
        assert await store.get(session_key) is None
        assert await store.extend(session_key) is None
        assert await store.delete(session_key) is False
        assert await store.ping() is False


class TestMonitoring:
    async def test_statistics(self, settings, clock):
        store = SessionContextStore(redis_client=FakeRedis(clock=clock), settings=settings, clock=clock)
        for customer in ("+1", "+2"):
            await store.save(SessionKey(customer, "salon-1"), new_session(settings, clock), 1000)

        assert len(await store.active_session_keys()) == 2
        assert await store.statistics() == {"total_sessions": 2, "average_ttl": 1000}

    def test_key_normalization(self):
        key = SessionKey("+1 (555) 000-1", " salon 1 ")
        assert key.redis_key("booking:session:") == "booking:session:+15550001:salon_1"
