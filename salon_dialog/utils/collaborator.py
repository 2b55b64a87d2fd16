"""
Bounded collaborator calls.

Every call to language detection, intent classification, slot search or
history aggregation goes through `call_collaborator`: one attempt, a hard
timeout, and a named circuit breaker. No synchronous retries.
"""
import asyncio
from typing import Any, Awaitable, Callable, Optional

from loguru import logger

from ..config import get_settings
from ..exceptions import CollaboratorError, CollaboratorTimeoutError
from .circuit_breaker import CircuitBreakerOpenError, get_circuit_breaker


async def call_collaborator(
    name: str,
    func: Callable[..., Awaitable[Any]],
    *args,
    timeout: Optional[float] = None,
    **kwargs,
) -> Any:
    if timeout is None:
        timeout = get_settings().collaborator_timeout_seconds
    breaker = get_circuit_breaker(name, failure_threshold=5, recovery_timeout=30)

    async def _bounded():
        return await asyncio.wait_for(func(*args, **kwargs), timeout=timeout)

    try:
        return await breaker.call_async(_bounded)
    except asyncio.TimeoutError as exc:
        logger.warning(f"⏱️ {name} timed out after {timeout:.2f}s")
        raise CollaboratorTimeoutError(name, f"timed out after {timeout:.2f}s") from exc
    except CircuitBreakerOpenError as exc:
        raise CollaboratorError(name, str(exc)) from exc
    except CollaboratorError:
        raise
    except Exception as exc:
        logger.warning(f"⚠️ {name} failed: {exc}")
        raise CollaboratorError(name, str(exc)) from exc
