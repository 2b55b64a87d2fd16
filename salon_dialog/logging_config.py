import logging
import sys

from loguru import logger

from .config import get_settings

TEXT_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | req={extra[request_id]} | "
    "{name}:{function}:{line} | {message}"
)

# Chatty third-party loggers that go through stdlib logging
QUIET_LIBRARIES = ("httpx", "httpcore", "openai")


def configure_logging() -> None:
    """
    Route all engine logs through a single loguru sink.

    Lines carry the request id bound by RequestIDMiddleware ("-" outside a
    request). With LOG_JSON set, records are serialized for log shipping.
    """
    settings = get_settings()
    logger.remove()
    logger.configure(extra={"request_id": "-"})

    logger.add(
        sys.stdout,
        level=settings.log_level.upper(),
        format="{message}" if settings.log_json else TEXT_FORMAT,
        serialize=settings.log_json,
        backtrace=False,
        diagnose=False,
        enqueue=True,
    )

    for name in QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.debug(f"Logging configured (level={settings.log_level.upper()}, json={settings.log_json})")
