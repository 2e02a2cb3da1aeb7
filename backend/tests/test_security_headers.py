"""
Tests for security headers middleware.

Validates OWASP-recommended security headers are present in responses.
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from labsite.middleware.security_headers import API_CSP, DOCS_CSP, SecurityHeadersMiddleware


def build_app(**kwargs) -> FastAPI:
    app = FastAPI()
    app.add_middleware(SecurityHeadersMiddleware, **kwargs)

    @app.get("/api/v1/machines")
    async def machines():
        return []

    return app


class TestSecurityHeaders:
    @pytest.fixture
    def client(self):
        return TestClient(build_app())

    def test_basic_headers(self, client):
        response = client.get("/api/v1/machines")

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert response.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"
        assert "camera=()" in response.headers["Permissions-Policy"]

    def test_api_csp_loads_nothing(self, client):
        response = client.get("/api/v1/machines")

        assert response.headers["Content-Security-Policy"] == API_CSP

    def test_docs_get_relaxed_csp(self, client):
        response = client.get("/docs")

        assert response.headers["Content-Security-Policy"] == DOCS_CSP

    def test_no_hsts_by_default(self, client):
        response = client.get("/api/v1/machines")

        assert "Strict-Transport-Security" not in response.headers

    def test_hsts_when_enabled(self):
        response = TestClient(build_app(enable_hsts=True)).get("/api/v1/machines")

        assert "max-age=31536000" in response.headers["Strict-Transport-Security"]

    def test_custom_csp(self):
        response = TestClient(build_app(csp_policy="default-src 'self'")).get("/api/v1/machines")

        assert response.headers["Content-Security-Policy"] == "default-src 'self'"
