"""
Security headers middleware.

The API only serves JSON, so the policy is locked down: no framing, no
MIME sniffing, no referrer leakage beyond the origin, and a CSP that
loads nothing. Interactive docs (/docs, /redoc) get a relaxed CSP so the
Swagger and ReDoc bundles can load from their CDN.

References:
- OWASP Secure Headers Project: https://owasp.org/www-project-secure-headers/
"""

import logging
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


API_CSP = "default-src 'none'; frame-ancestors 'none'; base-uri 'none'; form-action 'none'"

DOCS_CSP = (
    "default-src 'self'; "
    "script-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
    "style-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net https://fonts.googleapis.com; "
    "img-src 'self' data: https://fastapi.tiangolo.com https://cdn.redoc.ly; "
    "font-src 'self' https://fonts.gstatic.com; "
    "worker-src 'self' blob:; "
    "frame-ancestors 'none'"
)

DOCS_PATHS = ("/docs", "/redoc")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Add security headers to every response.

    Args:
        enable_hsts: Send Strict-Transport-Security (production only,
            the site must be served over HTTPS)
        csp_policy: Override for the API Content-Security-Policy

    Example:
        app.add_middleware(SecurityHeadersMiddleware, enable_hsts=settings.is_production)
    """

    def __init__(
        self,
        app,
        enable_hsts: bool = False,
        csp_policy: Optional[str] = None,
    ):
        super().__init__(app)
        self.enable_hsts = enable_hsts
        self.csp_policy = csp_policy or API_CSP

        logger.info(
            "Security headers middleware initialized",
            extra={"enable_hsts": enable_hsts},
        )

    async def dispatch(
        self, request: Request, call_next: Callable
    ) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = (
            "geolocation=(), microphone=(), camera=(), payment=(), usb=()"
        )

        if request.url.path.startswith(DOCS_PATHS):
            response.headers["Content-Security-Policy"] = DOCS_CSP
        else:
            response.headers["Content-Security-Policy"] = self.csp_policy

        if self.enable_hsts:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response
