from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from loguru import logger

from .request_id import get_request_id


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Last-resort guard: unexpected exceptions become a 500 JSON body"""

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception:  # noqa: BLE001
            request_id = get_request_id()
            logger.exception(f"Unhandled error [{request_id}] {request.method} {request.url.path}")
            return JSONResponse(
                status_code=500,
                content={"detail": "Internal Server Error", "request_id": request_id},
            )
