"""
Request logging middleware for the Relaycast gateway.

Logs each HTTP request (health, metrics, OAuth callback) with method,
path, status and latency.  Socket.IO traffic is handled before it
reaches FastAPI and is not logged here.
"""

from __future__ import annotations

import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger(__name__)


class LoggingMiddleware(BaseHTTPMiddleware):
    """Log every HTTP request with method, path, status, and latency."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint,
    ) -> Response:
        start = time.monotonic()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("http_request_failed", method=request.method, path=request.url.path)
            raise
        duration_ms = (time.monotonic() - start) * 1000
        log = logger.debug if request.url.path.startswith("/metrics") else logger.info
        log(
            "http_request",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=round(duration_ms, 2),
        )
        return response
