"""
Salon Dialog Engine - application entry point
==============================================
FastAPI app exposing the inbound webhook, the booking-created hook and a
health check.

Run with:
    uvicorn salon_dialog.main:app --host 0.0.0.0 --port 8000
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from loguru import logger

from .config import get_settings
from .logging_config import configure_logging
from .middleware.error_handler import ErrorHandlingMiddleware
from .middleware.request_id import RequestIDMiddleware
from .api.webhook_handler import webhook as webhook_router
from .health import router as health_router
from .orchestration.router import MessageRouter, get_message_router


def create_app(message_router: Optional[MessageRouter] = None) -> FastAPI:
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("🚀 Application startup - initializing dialog engine...")
        app.state.message_router = message_router or get_message_router()
        yield

        # Close network clients before the event loop goes away
        logger.info("🛑 Application shutdown - cleaning up resources...")
        router = app.state.message_router
        try:
            await router.store.close()
        except Exception as e:
            logger.warning(f"⚠️ Error closing Redis: {e}")
        close = getattr(router.data_source, "close", None)
        if close is not None:
            try:
                await close()
                logger.info("✅ HTTP client closed")
            except Exception as e:
                logger.warning(f"⚠️ Error closing HTTP client: {e}")
        logger.info("✅ Application shutdown complete")

    app = FastAPI(
        title=settings.app_name,
        description="Appointment booking dialog engine for salon messaging channels",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Last added executes first: errors wrap request-id tagging
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(ErrorHandlingMiddleware)

    app.include_router(webhook_router)
    app.include_router(health_router)
    return app


configure_logging()
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run("salon_dialog.main:app", host=settings.app_host, port=settings.app_port)
