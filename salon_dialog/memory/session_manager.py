import asyncio
import json
import time
from typing import Callable, Dict, List, NamedTuple, Optional

import redis.asyncio as redis
from redis import exceptions as redis_exceptions
from loguru import logger

from ..config import Settings, get_settings
from ..models.conversation_context import ConversationSession
from ..utils.circuit_breaker import get_circuit_breaker, CircuitBreakerOpenError


class SessionKey(NamedTuple):
    """Sessions are keyed by the (customer, salon) pair"""
    customer_id: str
    salon_id: str

    def redis_key(self, prefix: str) -> str:
        customer = "".join(c for c in self.customer_id if c.isalnum() or c == "+")
        salon = self.salon_id.strip().replace(" ", "_")
        return f"{prefix}{customer}:{salon}"


STORE_ERRORS = (
    redis_exceptions.ConnectionError,
    redis_exceptions.TimeoutError,
    redis_exceptions.ResponseError,
    asyncio.TimeoutError,
    CircuitBreakerOpenError,
    OSError,
)


class SessionContextStore:
    """
    Redis-backed conversation session store with TTL and sliding extension.

    Every operation degrades instead of raising: an unreachable store reads as
    "no session" and writes are dropped with an error log, so the caller falls
    back to stateless handling.
    """

    def __init__(
        self,
        redis_client=None,
        settings: Optional[Settings] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings or get_settings()
        # Async Redis client with short timeouts so a slow store never blocks a reply
        self.redis = redis_client or redis.from_url(
            self.settings.redis_url,
            decode_responses=True,
            socket_connect_timeout=1,
            socket_timeout=1,
            socket_keepalive=True,
            retry_on_timeout=False,
        )
        self.clock = clock
        self.prefix = self.settings.redis_key_prefix
        self.timeout = self.settings.redis_operation_timeout_seconds
        logger.info("✅ Session context store initialized")

    def _key(self, key: SessionKey) -> str:
        return key.redis_key(self.prefix)

    async def _execute(self, name: str, coro_factory):
        breaker = get_circuit_breaker(f"redis_{name}", failure_threshold=3, recovery_timeout=30)

        async def _bounded():
            return await asyncio.wait_for(coro_factory(), timeout=self.timeout)

        return await breaker.call_async(_bounded)

    def _ttl_for(self, session: ConversationSession, ttl_seconds: Optional[int]) -> int:
        now = self.clock()
        ttl = ttl_seconds if ttl_seconds is not None else session.remaining_seconds(now)
        return int(min(ttl, session.ceiling_at - now))

    async def save(self, key: SessionKey, session: ConversationSession, ttl_seconds: Optional[int] = None) -> bool:
        """
        Create or overwrite the session (last write wins).

        The effective TTL never reaches past the session's absolute ceiling.
        Returns False when nothing was persisted.
        """
        redis_key = self._key(key)
        ttl = self._ttl_for(session, ttl_seconds)
        if ttl <= 0:
            logger.warning(f"⏰ Not saving {redis_key}: absolute ceiling already reached")
            return False

        session.expires_at = min(self.clock() + ttl, session.ceiling_at)
        try:
            serialized = json.dumps(session.to_dict(), ensure_ascii=False)
            await self._execute("write", lambda: self.redis.setex(redis_key, ttl, serialized))
            logger.debug(f"💾 SESSION SAVED: {redis_key} state={session.state.value} ttl={ttl}s")
            return True
        except STORE_ERRORS as exc:
            logger.error(f"🔴 SESSION STORE UNAVAILABLE: cannot save {redis_key} - {exc}")
            logger.error("🔴 IMPACT: next message from this customer starts a fresh conversation")
            return False
        except (TypeError, ValueError) as exc:
            logger.error(f"❌ Session {redis_key} is not serializable: {exc}")
            return False

    async def get(self, key: SessionKey) -> Optional[ConversationSession]:
        """
        Load the session, or None when absent, expired, corrupt or unreachable.

        The stored absolute ceiling is checked here as well, so a session the
        store has not evicted yet (clock skew) still reads as absent.
        """
        redis_key = self._key(key)
        try:
            raw = await self._execute("read", lambda: self.redis.get(redis_key))
        except STORE_ERRORS as exc:
            logger.error(f"🔴 SESSION STORE UNAVAILABLE: cannot read {redis_key} - {exc}")
            logger.error("🔴 FALLBACK: treating customer as new (stateless mode)")
            return None

        if not raw:
            logger.debug(f"📖 No session found for {redis_key}")
            return None

        try:
            session = ConversationSession.from_dict(json.loads(raw))
        except (KeyError, ValueError, TypeError) as exc:
            logger.warning(f"⚠️ Corrupt session data for {redis_key}: {exc}")
            return None

        if session.is_expired(self.clock()):
            logger.info(f"⏰ Session {session.session_id} past its expiry/ceiling - treating as absent")
            return None

        return session

    async def extend(self, key: SessionKey, extra_seconds: Optional[int] = None) -> Optional[float]:
        """
        Slide the session expiry by `extra_seconds` (default: configured
        increment), capped at the absolute ceiling. Returns the new expiry.

        Read and write are not atomic; a session lapsing in between simply
        stays lapsed.
        """
        extra = extra_seconds if extra_seconds is not None else self.settings.session_extend_seconds
        session = await self.get(key)
        if session is None:
            return None

        now = self.clock()
        new_expiry = session.extend(extra, now)
        ttl = int(new_expiry - now)
        if ttl <= 0:
            return None

        redis_key = self._key(key)
        try:
            serialized = json.dumps(session.to_dict(), ensure_ascii=False)
            await self._execute("write", lambda: self.redis.setex(redis_key, ttl, serialized))
            logger.debug(f"⏳ SESSION EXTENDED: {redis_key} +{extra}s (ttl now {ttl}s)")
            return new_expiry
        except STORE_ERRORS as exc:
            logger.error(f"🔴 SESSION STORE UNAVAILABLE: cannot extend {redis_key} - {exc}")
            return None

    async def delete(self, key: SessionKey) -> bool:
        """Delete session data"""
        redis_key = self._key(key)
        try:
            result = await self._execute("write", lambda: self.redis.delete(redis_key))
            logger.debug(f"🗑️ SESSION DELETED: {redis_key} (keys_deleted={result})")
            return bool(result)
        except STORE_ERRORS as exc:
            logger.error(f"🔴 SESSION STORE UNAVAILABLE: cannot delete {redis_key} - {exc}")
            return False

    async def active_session_keys(self) -> List[str]:
        """All live session keys (monitoring only - uses SCAN)"""
        keys: List[str] = []
        try:
            async for key in self.redis.scan_iter(match=f"{self.prefix}*", count=100):
                keys.append(key)
        except STORE_ERRORS as exc:
            logger.error(f"❌ Failed to list active sessions: {exc}")
        return keys

    async def statistics(self) -> Dict[str, int]:
        """Session count and average remaining TTL in seconds"""
        keys = await self.active_session_keys()
        total_ttl = 0
        try:
            for key in keys:
                total_ttl += max(0, await self.redis.ttl(key))
        except STORE_ERRORS as exc:
            logger.error(f"❌ Failed to read session TTLs: {exc}")
            return {"total_sessions": len(keys), "average_ttl": 0}
        return {
            "total_sessions": len(keys),
            "average_ttl": total_ttl // len(keys) if keys else 0,
        }

    async def ping(self) -> bool:
        try:
            return bool(await self._execute("read", lambda: self.redis.ping()))
        except STORE_ERRORS as exc:
            logger.warning(f"⚠️ Redis ping failed: {exc}")
            return False

    async def close(self) -> None:
        await self.redis.aclose()
        logger.info("✅ Redis async connection closed")


_store: Optional[SessionContextStore] = None


def get_session_store() -> SessionContextStore:
    """Get or create the process-wide session store"""
    global _store
    if _store is None:
        _store = SessionContextStore()
    return _store
