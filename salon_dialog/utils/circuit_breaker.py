"""
Circuit breakers for collaborator calls
=======================================
One named breaker per collaborator (language detector, intent classifier,
slot search, booking API ...). After `failure_threshold` consecutive
failures the breaker opens and calls fail fast until `recovery_timeout`
seconds have passed; the next call is then let through as a probe.
"""

import time
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

from loguru import logger


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"  # one probe allowed


class CircuitBreakerOpenError(Exception):
    """Raised instead of calling a collaborator whose breaker is open"""
    pass


class CircuitBreaker:
    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: int = 30,
        expected_exception: type = Exception,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.expected_exception = expected_exception
        self.clock = clock

        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.opened_at: Optional[float] = None

    @property
    def retry_in(self) -> int:
        """Seconds until an open breaker lets a probe through"""
        if self.opened_at is None:
            return 0
        return max(0, int(self.recovery_timeout - (self.clock() - self.opened_at)))

    def _admit(self) -> None:
        if self.state != CircuitState.OPEN:
            return
        if self.retry_in > 0:
            logger.warning(f"🚫 [{self.name}] breaker open - skipping call (probe in {self.retry_in}s)")
            raise CircuitBreakerOpenError(f"[{self.name}] circuit OPEN, probe in {self.retry_in}s")
        logger.info(f"🔄 [{self.name}] breaker half-open - probing")
        self.state = CircuitState.HALF_OPEN

    def _record_success(self) -> None:
        if self.state == CircuitState.HALF_OPEN:
            logger.info(f"✅ [{self.name}] probe succeeded - breaker closed")
        self.reset()

    def _record_failure(self) -> None:
        self.failure_count += 1
        if self.state == CircuitState.HALF_OPEN or self.failure_count >= self.failure_threshold:
            self.state = CircuitState.OPEN
            self.opened_at = self.clock()
            logger.error(
                f"🔴 [{self.name}] breaker OPEN after {self.failure_count} failures "
                f"(cool-down {self.recovery_timeout}s)"
            )
        else:
            logger.warning(f"⚠️ [{self.name}] failure {self.failure_count}/{self.failure_threshold}")

    def call(self, func: Callable, *args, **kwargs) -> Any:
        """Run a synchronous callable under the breaker"""
        self._admit()
        try:
            result = func(*args, **kwargs)
        except self.expected_exception:
            self._record_failure()
            raise
        self._record_success()
        return result

    async def call_async(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """Await a coroutine function under the breaker; timeouts count as failures"""
        self._admit()
        try:
            result = await func(*args, **kwargs)
        except self.expected_exception:
            self._record_failure()
            raise
        self._record_success()
        return result

    def reset(self) -> None:
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.opened_at = None

    def snapshot(self) -> Dict[str, Any]:
        return {"state": self.state.value, "failures": self.failure_count, "retry_in": self.retry_in}


_circuit_breakers: Dict[str, CircuitBreaker] = {}


def get_circuit_breaker(name: str, **kwargs) -> CircuitBreaker:
    """Get or create the process-wide breaker for a collaborator"""
    breaker = _circuit_breakers.get(name)
    if breaker is None:
        breaker = _circuit_breakers[name] = CircuitBreaker(name, **kwargs)
    return breaker


def circuit_breaker_states() -> Dict[str, Dict[str, Any]]:
    """Snapshot of every registered breaker, for the health endpoint"""
    return {name: breaker.snapshot() for name, breaker in sorted(_circuit_breakers.items())}


def reset_circuit_breakers() -> None:
    """Close every registered breaker (used on startup and in tests)"""
    for breaker in _circuit_breakers.values():
        breaker.reset()
