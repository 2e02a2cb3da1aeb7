"""
Pytest configuration and shared fixtures.

This module provides:
- Environment variable setup for tests
- A fresh in-memory database per test
- An HTTP client bound to the FastAPI app
- Admin account / session fixtures and mocked outbound services
"""

import os
import sys
from pathlib import Path
from unittest.mock import AsyncMock

import pytest


# Set test environment variables BEFORE any imports
# This must happen first to ensure settings load with test values
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["ADMIN_SETUP_KEY"] = "test-setup-key"
os.environ["ADMIN_API_KEY"] = "test-admin-api-key"
os.environ["MAILGUN_API_KEY"] = ""
os.environ["MAILGUN_DOMAIN"] = ""
os.environ["LOG_JSON"] = "false"

# Add backend directory to path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))


ADMIN_USERNAME = "jerry_admin"
ADMIN_PASSWORD = "Sup3r$ecretPass"
ADMIN_API_KEY = os.environ["ADMIN_API_KEY"]
SETUP_KEY = os.environ["ADMIN_SETUP_KEY"]


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(scope="function")
async def async_session():
    """
    Provide an async database session on a fresh schema.

    The in-memory database lives on the engine's single pooled connection;
    disposing the engine after the test throws the database away.
    """
    from labsite import models  # noqa: F401 - register every table
    from labsite.core.database import async_session_maker, engine
    from labsite.models.base import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session_maker() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def email_service():
    """Mailgun replacement that accepts every message."""
    from labsite.services.email import MailgunEmailService

    service = AsyncMock(spec=MailgunEmailService)
    service.send_email.return_value = True
    service.send_otp.return_value = True
    service.send_welcome.return_value = True
    service.send_new_machine_notification.return_value = 0
    return service


@pytest.fixture
def geolocation_service():
    from labsite.services.geolocation import GeolocationService

    service = AsyncMock(spec=GeolocationService)
    service.lookup.return_value = {}
    return service


@pytest.fixture
async def client(async_session, email_service, geolocation_service):
    """
    HTTP client for the app with outbound services mocked.

    Individual tests can add more entries to ``app.dependency_overrides``;
    all overrides are cleared afterwards.
    """
    from httpx import ASGITransport, AsyncClient

    from labsite.api.dependencies import get_email_service, get_geolocation_service
    from labsite.main import app

    app.dependency_overrides[get_email_service] = lambda: email_service
    app.dependency_overrides[get_geolocation_service] = lambda: geolocation_service

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
async def admin_user(async_session):
    """Create an active admin account."""
    from labsite.core.security import get_password_hash
    from labsite.repositories.admin import AdminRepository

    user = await AdminRepository(async_session).create_user(
        ADMIN_USERNAME, get_password_hash(ADMIN_PASSWORD)
    )
    await async_session.commit()
    return {"id": user.id, "username": ADMIN_USERNAME, "password": ADMIN_PASSWORD}


@pytest.fixture
async def admin_headers(async_session, admin_user):
    """Authorization header carrying a valid admin session token."""
    from labsite.repositories.admin import AdminRepository

    admin_session = await AdminRepository(async_session).create_session(
        admin_user["id"], "127.0.0.1", "pytest"
    )
    await async_session.commit()
    return {"Authorization": f"Bearer {admin_session.token}"}
