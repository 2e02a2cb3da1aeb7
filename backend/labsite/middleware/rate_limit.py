"""
Per-IP rate limiting middleware using the token bucket algorithm.

Each client IP gets a bucket holding ``limit`` tokens that refills at
``limit / 60`` tokens per second; every request takes one token. An empty
bucket answers 429 with ``Retry-After``. Authentication paths get a
smaller bucket than the rest of the API.

Buckets live in process memory, so limits are per worker and reset on
restart.
"""

import logging
import time
from typing import Callable, Dict, Tuple

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from labsite.core.security import get_client_ip

logger = logging.getLogger(__name__)


class TokenBucket:
    """
    Token bucket for rate limiting.

    Attributes:
        capacity: Maximum number of tokens in the bucket
        refill_rate: Number of tokens added per second
        tokens: Current number of available tokens
        last_refill: Monotonic timestamp of the last refill
    """

    def __init__(self, capacity: int, refill_rate: float):
        self.capacity = capacity
        self.refill_rate = refill_rate
        self.tokens = float(capacity)
        self.last_refill = time.monotonic()

    def _refill(self) -> None:
        now = time.monotonic()
        elapsed = now - self.last_refill
        self.tokens = min(self.capacity, self.tokens + elapsed * self.refill_rate)
        self.last_refill = now

    def consume(self, tokens: int = 1) -> bool:
        """
        Take ``tokens`` from the bucket if enough are available.

        Returns:
            True if the tokens were consumed, False otherwise
        """
        self._refill()
        if self.tokens >= tokens:
            self.tokens -= tokens
            return True
        return False

    def get_wait_time(self) -> float:
        """Seconds until one token is available."""
        if self.tokens >= 1:
            return 0.0
        return (1 - self.tokens) / self.refill_rate


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Rate limiting middleware using a token bucket per client IP and tier.

    Example:
        app.add_middleware(
            RateLimitMiddleware,
            auth_limit=10,
            default_limit=60,
        )
    """

    AUTH_PATH_MARKERS = ("/auth", "/setup", "/writeups/")
    IDLE_TIMEOUT = 600

    def __init__(
        self,
        app,
        auth_limit: int = 10,
        default_limit: int = 60,
        cleanup_interval: int = 300,
    ):
        """
        Args:
            app: ASGI application
            auth_limit: Requests per minute for credential-checking endpoints
            default_limit: Requests per minute for other endpoints
            cleanup_interval: Seconds between sweeps of idle buckets
        """
        super().__init__(app)
        self.auth_limit = auth_limit
        self.default_limit = default_limit
        self.cleanup_interval = cleanup_interval

        # {(ip, tier): (bucket, last_access)}
        self.buckets: Dict[Tuple[str, str], Tuple[TokenBucket, float]] = {}
        self.last_cleanup = time.monotonic()

        logger.info(
            "Rate limiting initialized",
            extra={"auth_limit": auth_limit, "default_limit": default_limit},
        )

    def _get_tier(self, path: str) -> Tuple[str, int]:
        """Return the bucket tier name and its per-minute limit for ``path``."""
        if any(marker in path for marker in self.AUTH_PATH_MARKERS):
            return "auth", self.auth_limit
        return "default", self.default_limit

    def _get_or_create_bucket(self, ip: str, tier: str, limit: int) -> TokenBucket:
        now = time.monotonic()

        if now - self.last_cleanup > self.cleanup_interval:
            self._cleanup_old_buckets(now)

        key = (ip, tier)
        if key in self.buckets:
            bucket, _ = self.buckets[key]
            self.buckets[key] = (bucket, now)
            return bucket

        bucket = TokenBucket(capacity=limit, refill_rate=limit / 60.0)
        self.buckets[key] = (bucket, now)
        return bucket

    def _cleanup_old_buckets(self, now: float) -> None:
        stale = [
            key for key, (_, last_access) in self.buckets.items()
            if now - last_access > self.IDLE_TIMEOUT
        ]
        for key in stale:
            del self.buckets[key]

        if stale:
            logger.info("Cleaned up idle rate limit buckets", extra={"count": len(stale)})

        self.last_cleanup = now

    async def dispatch(
        self, request: Request, call_next: Callable
    ) -> Response:
        client_ip = get_client_ip(request)
        path = request.url.path
        tier, limit = self._get_tier(path)

        bucket = self._get_or_create_bucket(client_ip, tier, limit)

        if not bucket.consume():
            retry_after = int(bucket.get_wait_time()) + 1

            logger.warning(
                "Rate limit exceeded",
                extra={
                    "client_ip": client_ip,
                    "path": path,
                    "limit": limit,
                    "retry_after": retry_after,
                    "request_id": getattr(request.state, "request_id", None),
                },
            )

            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={
                    "detail": "Rate limit exceeded",
                    "limit": limit,
                    "window": "1 minute",
                    "retry_after": retry_after,
                },
                headers={
                    "Retry-After": str(retry_after),
                    "X-RateLimit-Limit": str(limit),
                    "X-RateLimit-Remaining": "0",
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(limit)
        response.headers["X-RateLimit-Remaining"] = str(int(bucket.tokens))
        return response
