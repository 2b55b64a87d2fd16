"""
Request ID Middleware - Tags every webhook call with a trace ID
The ID is reused by the booking API client and bound into log lines
"""

import contextvars
import uuid

from fastapi import Request
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

# Context variable for request ID - accessible across async calls
request_id_var = contextvars.ContextVar('request_id', default=None)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Accepts an upstream X-Request-ID or generates a short one, and echoes it
    back in the response headers.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())[:8]
        token = request_id_var.set(request_id)
        request.state.request_id = request_id

        with logger.contextualize(request_id=request_id):
            logger.info(f"📨 REQUEST START [{request_id}] {request.method} {request.url.path}")
            try:
                response = await call_next(request)
            finally:
                request_id_var.reset(token)

            response.headers["X-Request-ID"] = request_id
            logger.info(f"✅ REQUEST END [{request_id}] Status: {response.status_code}")
            return response


def get_request_id() -> str:
    """Get current request ID from context"""
    return request_id_var.get() or "NO-ID"
