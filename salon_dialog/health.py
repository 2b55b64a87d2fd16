"""
Health check endpoint.

Reports session store reachability and the effective dialog configuration.
A down store is "degraded", not unhealthy: the router keeps answering in
stateless mode.
"""
from fastapi import APIRouter, Request

from .config import get_settings
from .utils.circuit_breaker import circuit_breaker_states

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    settings = get_settings()
    message_router = request.app.state.message_router
    redis_ok = await message_router.store.ping()

    return {
        "status": "healthy" if redis_ok else "degraded",
        "service": settings.app_name,
        "checks": {
            "redis": "connected" if redis_ok else "unreachable",
            "popular_times_cache": message_router.analyzer.get_cache_stats(),
            "circuit_breakers": circuit_breaker_states(),
        },
        "config": {
            "intent_confidence_threshold": settings.intent_confidence_threshold,
            "session_ttl_seconds": settings.session_ttl_seconds,
            "session_extend_seconds": settings.session_extend_seconds,
            "session_absolute_ceiling_seconds": settings.session_absolute_ceiling_seconds,
            "default_language": settings.default_language,
        },
    }
