"""
Integration tests for admin authentication, setup, user management and
session maintenance endpoints.

Tests cover:
- POST /api/v1/admin/auth/login (success, wrong password, lockout)
- GET /api/v1/admin/auth/session, POST /api/v1/admin/auth/logout
- GET/POST /api/v1/admin/setup
- /api/v1/admin/users
- /api/v1/admin/sessions/cleanup and /stats
"""

import pytest
from sqlalchemy import select

from conftest import ADMIN_API_KEY, ADMIN_PASSWORD, ADMIN_USERNAME, SETUP_KEY
from labsite.models.admin import AdminSession
from labsite.models.audit import AdminLog
from labsite.models.base import utc_iso_after


LOGIN_URL = "/api/v1/admin/auth/login"


class TestLogin:
    async def test_login_success_sets_session_cookie(self, client, admin_user):
        # Act
        response = await client.post(
            LOGIN_URL, json={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD}
        )

        # Assert
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["redirect"] == "/admin"
        assert data["user"]["username"] == ADMIN_USERNAME
        assert "passwordHash" not in data["user"]
        assert len(response.cookies["admin_session"]) == 64

    async def test_login_wrong_password(self, client, admin_user):
        response = await client.post(
            LOGIN_URL, json={"username": ADMIN_USERNAME, "password": "nope"}
        )

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid credentials"

    async def test_unknown_user_gets_same_error(self, client, admin_user):
        response = await client.post(
            LOGIN_URL, json={"username": "ghost", "password": "nope"}
        )

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid credentials"

    async def test_missing_fields_is_400(self, client, admin_user):
        response = await client.post(LOGIN_URL, json={"username": ADMIN_USERNAME})

        assert response.status_code == 400

    async def test_lockout_after_five_failures(self, client, admin_user):
        # Arrange
        bad = {"username": ADMIN_USERNAME, "password": "wrong-password"}
        statuses = [(await client.post(LOGIN_URL, json=bad)).status_code for _ in range(5)]

        # Act: even the right password is refused while locked
        response = await client.post(
            LOGIN_URL, json={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD}
        )

        # Assert
        assert statuses == [401] * 5
        assert response.status_code == 429
        assert "15 minutes" in response.json()["detail"]

    async def test_rotating_forwarded_for_does_not_escape_lockout(self, client, admin_user):
        bad = {"username": ADMIN_USERNAME, "password": "wrong-password"}
        statuses = [
            (await client.post(
                LOGIN_URL, json=bad, headers={"X-Forwarded-For": f"203.0.113.{n}"}
            )).status_code
            for n in range(1, 8)
        ]

        assert statuses == [401] * 5 + [429] * 2

    async def test_every_outcome_is_audited(self, client, admin_user, async_session):
        await client.post(LOGIN_URL, json={"username": ADMIN_USERNAME, "password": "nope"})
        await client.post(LOGIN_URL, json={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD})

        result = await async_session.execute(select(AdminLog.action).order_by(AdminLog.id))
        assert list(result.scalars()) == ["login_failure", "login_success"]


class TestSession:
    async def test_session_with_bearer_token(self, client, admin_headers):
        response = await client.get("/api/v1/admin/auth/session", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["authenticated"] is True
        assert data["user"]["username"] == ADMIN_USERNAME

    async def test_session_without_token(self, client):
        response = await client.get("/api/v1/admin/auth/session")

        assert response.json() == {"authenticated": False, "user": None}

    async def test_expired_session_is_rejected(self, client, admin_user, async_session):
        # Arrange
        token = "a" * 64
        async_session.add(AdminSession(
            token=token,
            user_id=admin_user["id"],
            expires_at=utc_iso_after(minutes=-1),
            is_active=True,
        ))
        await async_session.commit()

        # Act
        response = await client.get(
            "/api/v1/admin/auth/session", headers={"Authorization": f"Bearer {token}"}
        )

        # Assert
        assert response.json()["authenticated"] is False
        actions = await async_session.execute(select(AdminLog.action))
        assert "session_expired" in list(actions.scalars())

    async def test_logout_deactivates_session(self, client, admin_headers):
        response = await client.post("/api/v1/admin/auth/logout", headers=admin_headers)
        after = await client.get("/api/v1/admin/users", headers=admin_headers)

        assert response.status_code == 200
        assert after.status_code == 401

    async def test_admin_routes_require_session(self, client):
        response = await client.get("/api/v1/admin/users")

        assert response.status_code == 401


class TestSetup:
    async def test_status_without_admins(self, client):
        response = await client.get("/api/v1/admin/setup")

        assert response.json() == {"hasAdminUser": False, "adminCount": 0}

    async def test_create_first_admin(self, client):
        response = await client.post("/api/v1/admin/setup", json={
            "username": "jerry",
            "password": "Str0ng!Passw0rd",
            "setupKey": SETUP_KEY,
        })

        assert response.status_code == 201
        assert response.json()["user"]["username"] == "jerry"
        status = await client.get("/api/v1/admin/setup")
        assert status.json() == {"hasAdminUser": True, "adminCount": 1}

    async def test_wrong_setup_key(self, client, async_session):
        response = await client.post("/api/v1/admin/setup", json={
            "username": "jerry",
            "password": "Str0ng!Passw0rd",
            "setupKey": "guess",
        })

        assert response.status_code == 401
        actions = await async_session.execute(select(AdminLog.action))
        assert list(actions.scalars()) == ["setup_failure"]

    async def test_weak_password_lists_reasons(self, client):
        response = await client.post("/api/v1/admin/setup", json={
            "username": "jerry",
            "password": "weakpass",
            "setupKey": SETUP_KEY,
        })

        assert response.status_code == 400
        assert "uppercase" in response.json()["detail"]

    async def test_duplicate_username(self, client, admin_user):
        response = await client.post("/api/v1/admin/setup", json={
            "username": ADMIN_USERNAME,
            "password": "Str0ng!Passw0rd",
            "setupKey": SETUP_KEY,
        })

        assert response.status_code == 409

    async def test_database_status(self, client):
        response = await client.get("/api/v1/admin/setup/database")

        data = response.json()
        assert data["ready"] is True
        assert data["tables"]["htb_machines"] is True

    async def test_database_setup_seeds_stats(self, client):
        response = await client.post("/api/v1/admin/setup/database", json={"setupKey": SETUP_KEY})
        stats = await client.get("/api/v1/htb-stats")

        assert response.status_code == 200
        assert stats.json()["machinesPwned"] == 127


class TestAdminUsers:
    async def test_list_hides_password_data(self, client, admin_headers):
        response = await client.get("/api/v1/admin/users", headers=admin_headers)

        users = response.json()
        assert [u["username"] for u in users] == [ADMIN_USERNAME]
        assert "passwordHash" not in users[0]

    async def test_create_and_duplicate(self, client, admin_headers):
        body = {"username": "second_admin", "password": "longenough"}

        created = await client.post("/api/v1/admin/users", json=body, headers=admin_headers)
        duplicate = await client.post("/api/v1/admin/users", json=body, headers=admin_headers)

        assert created.status_code == 201
        assert duplicate.status_code == 409

    async def test_short_password_rejected(self, client, admin_headers):
        response = await client.post(
            "/api/v1/admin/users",
            json={"username": "second_admin", "password": "short"},
            headers=admin_headers,
        )

        assert response.status_code == 400

    async def test_disable_user(self, client, admin_headers):
        created = await client.post(
            "/api/v1/admin/users",
            json={"username": "second_admin", "password": "longenough"},
            headers=admin_headers,
        )

        response = await client.patch(
            "/api/v1/admin/users",
            json={"userId": created.json()["id"], "isActive": False},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["isActive"] is False

    async def test_disable_unknown_user(self, client, admin_headers):
        response = await client.patch(
            "/api/v1/admin/users", json={"userId": 999, "isActive": False}, headers=admin_headers
        )

        assert response.status_code == 404


class TestSessionMaintenance:
    async def test_cleanup_with_api_key(self, client, admin_user, async_session):
        # Arrange: one expired and one deactivated session
        async_session.add_all([
            AdminSession(token="b" * 64, user_id=admin_user["id"],
                         expires_at=utc_iso_after(hours=-1), is_active=True),
            AdminSession(token="c" * 64, user_id=admin_user["id"],
                         expires_at=utc_iso_after(hours=1), is_active=False),
            AdminSession(token="d" * 64, user_id=admin_user["id"],
                         expires_at=utc_iso_after(hours=1), is_active=True),
        ])
        await async_session.commit()

        # Act
        response = await client.post(
            "/api/v1/admin/sessions/cleanup", headers={"X-Admin-Key": ADMIN_API_KEY}
        )

        # Assert
        assert response.status_code == 200
        assert response.json()["deletedSessions"] == 2
        remaining = await async_session.execute(select(AdminSession.token))
        assert list(remaining.scalars()) == ["d" * 64]

    async def test_cleanup_rejects_wrong_key(self, client):
        response = await client.post(
            "/api/v1/admin/sessions/cleanup", headers={"X-Admin-Key": "wrong"}
        )

        assert response.status_code == 401

    async def test_stats_with_admin_session(self, client, admin_headers):
        response = await client.get("/api/v1/admin/sessions/stats", headers=admin_headers)

        assert response.json() == {"total": 1, "active": 1, "expired": 0}
