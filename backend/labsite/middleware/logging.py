"""
Logging middleware for request/response tracking.

Logs one line when a request completes (method, path, status, latency,
client IP, request ID) and an error line with traceback when the handler
raises. Must be registered AFTER RequestIDMiddleware so that
``request.state.request_id`` is available.
"""

import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from labsite.core.logging_config import get_logger
from labsite.core.security import get_client_ip


logger = get_logger(__name__)


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware to log all HTTP requests.

    Log output (JSON):
        {
            "timestamp": "2026-01-05T10:30:00.123456+00:00",
            "level": "INFO",
            "message": "Request completed",
            "method": "POST",
            "path": "/api/v1/writeups/verify-otp",
            "status_code": 401,
            "latency_ms": 8.1,
            "client_ip": "203.0.113.7",
            "request_id": "abc-123"
        }

    Query strings are not logged; they can carry email addresses.
    """

    async def dispatch(
        self, request: Request, call_next: Callable
    ) -> Response:
        method = request.method
        path = request.url.path
        request_id = getattr(request.state, "request_id", None)
        client_ip = get_client_ip(request)

        start_time = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as exc:
            latency_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                f"Request failed: {exc}",
                extra={
                    "method": method,
                    "path": path,
                    "latency_ms": round(latency_ms, 2),
                    "client_ip": client_ip,
                    "request_id": request_id,
                    "exception_type": type(exc).__name__,
                },
                exc_info=True,
            )
            raise

        latency_ms = (time.perf_counter() - start_time) * 1000
        level = logger.warning if response.status_code >= 500 else logger.info
        level(
            "Request completed",
            extra={
                "method": method,
                "path": path,
                "status_code": response.status_code,
                "latency_ms": round(latency_ms, 2),
                "client_ip": client_ip,
                "request_id": request_id,
            },
        )
        return response
