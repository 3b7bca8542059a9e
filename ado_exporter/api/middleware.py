"""
API Middleware - Write Timeout, Request Tracking

Middleware for the exporter's FastAPI application:
- Write timeout (answer 503 instead of hanging when rendering takes too long)
- Request ID tracking (for debugging scrapes)
"""

import asyncio
import time
import uuid
from collections.abc import Callable

from fastapi import Request, Response, status
from fastapi.responses import PlainTextResponse
from starlette.middleware.base import BaseHTTPMiddleware

from ado_exporter.core import get_logger

logger = get_logger(__name__)


# ============================================================
# Write Timeout Middleware
# ============================================================


class WriteTimeoutMiddleware(BaseHTTPMiddleware):
    """
    Bound the time a handler may take to produce its response.

    Configuration:
        - timeout: Seconds before the request is answered with 503 (0 disables)
    """

    def __init__(self, app, timeout: float = 10.0):
        super().__init__(app)
        self.timeout = timeout

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if self.timeout <= 0:
            return await call_next(request)

        try:
            return await asyncio.wait_for(call_next(request), timeout=self.timeout)
        except TimeoutError:
            logger.warning(
                "Request exceeded write timeout",
                extra={"path": request.url.path, "timeout": self.timeout},
            )
            return PlainTextResponse("Service Unavailable", status_code=status.HTTP_503_SERVICE_UNAVAILABLE)


# ============================================================
# Request ID Middleware
# ============================================================


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Add unique request ID to each request for tracing and debugging.

    Adds X-Request-ID header to the response. Requests are logged at debug
    level since scrapes arrive every few seconds.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        start_time = time.time()
        response = await call_next(request)
        duration_ms = (time.time() - start_time) * 1000

        response.headers["X-Request-ID"] = request_id

        logger.debug(
            "API response",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 2),
            },
        )

        return response
