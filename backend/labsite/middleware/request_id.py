"""
Request ID middleware for correlation tracking.

Every request gets a correlation ID: the client's ``X-Request-ID`` header
when it looks sane, otherwise a new UUID. The ID is stored on
``request.state.request_id`` and echoed in the response headers.
"""

import re
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware


# Client-supplied IDs end up in logs; accept only short token-like values
_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,128}$")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add request ID correlation to all requests.

    Example:
        app.add_middleware(RequestIDMiddleware)

    Usage in routes:
        @router.post("/writeups/verify-otp")
        async def verify_otp(request: Request):
            logger.info("Unlock", extra={"request_id": request.state.request_id})
    """

    header_name = "X-Request-ID"

    async def dispatch(
        self, request: Request, call_next: Callable
    ) -> Response:
        request_id = request.headers.get(self.header_name)
        if not request_id or not _REQUEST_ID_PATTERN.fullmatch(request_id):
            request_id = str(uuid.uuid4())

        request.state.request_id = request_id

        response = await call_next(request)
        response.headers[self.header_name] = request_id
        return response
