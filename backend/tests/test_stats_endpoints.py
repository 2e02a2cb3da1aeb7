"""
Integration tests for the HTB and THM stats endpoints.
"""

from unittest.mock import AsyncMock

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from conftest import ADMIN_API_KEY
from labsite.core.database import get_db
from labsite.main import app
from labsite.models.audit import AdminLog
from labsite.services.runtime_stats import runtime_htb_stats


HTB_URL = "/api/v1/htb-stats"
THM_URL = "/api/v1/thm-stats"


@pytest.fixture
def restore_runtime_stats():
    saved = runtime_htb_stats.snapshot()
    yield runtime_htb_stats
    for key, value in saved.items():
        setattr(runtime_htb_stats, key, value)


class TestHTBStats:
    async def test_get_without_row(self, client):
        response = await client.get(HTB_URL)

        assert response.status_code == 404
        assert response.json()["detail"] == "No stats found"

    async def test_post_requires_admin(self, client):
        response = await client.post(HTB_URL, json={"machinesPwned": 3})

        assert response.status_code == 401

    async def test_post_then_get(self, client, admin_headers):
        body = {"machinesPwned": 42, "globalRanking": 1200, "finalScore": 300, "htbRank": "Pro Hacker"}

        posted = await client.post(HTB_URL, json=body, headers=admin_headers)
        fetched = await client.get(HTB_URL)

        assert posted.status_code == 200
        data = fetched.json()
        assert {k: data[k] for k in body} == body
        assert data["lastUpdated"]

    async def test_post_missing_fields_use_reset_values(self, client, admin_headers):
        response = await client.post(HTB_URL, json={"machinesPwned": 9}, headers=admin_headers)

        data = response.json()
        assert data["machinesPwned"] == 9
        assert data["globalRanking"] == 0
        assert data["htbRank"] == "Noob"

    async def test_post_without_body(self, client, admin_headers):
        response = await client.post(HTB_URL, headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["htbRank"] == "Noob"

    async def test_put_requires_every_field(self, client, admin_headers):
        response = await client.put(HTB_URL, json={"machinesPwned": 9}, headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid request"

    async def test_put_replaces_row(self, client, admin_headers):
        body = {"machinesPwned": 50, "globalRanking": 800, "finalScore": 410, "htbRank": "Elite Hacker"}

        response = await client.put(HTB_URL, json=body, headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["htbRank"] == "Elite Hacker"

    async def test_delete_resets_to_defaults(self, client, admin_headers, async_session):
        # Arrange
        await client.put(
            HTB_URL,
            json={"machinesPwned": 50, "globalRanking": 800, "finalScore": 410, "htbRank": "Elite Hacker"},
            headers=admin_headers,
        )

        # Act
        response = await client.delete(HTB_URL, headers=admin_headers)

        # Assert
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        stats = data["stats"]
        assert (stats["machinesPwned"], stats["globalRanking"], stats["finalScore"], stats["htbRank"]) == (
            0, 999999, 0, "Noob",
        )
        actions = await async_session.execute(select(AdminLog.action).order_by(AdminLog.id))
        assert list(actions.scalars()) == ["UPDATE_HTB_STATS_PUT", "RESET_HTB_STATS"]


class TestRuntimeHTBStats:
    async def test_starts_from_settings(self, client, restore_runtime_stats):
        response = await client.get(f"{HTB_URL}/runtime")

        assert response.json()["machinesPwned"] == 127

    async def test_update_requires_api_key(self, client, restore_runtime_stats):
        response = await client.post(f"{HTB_URL}/runtime", json={"machinesPwned": 130})

        assert response.status_code == 401

    async def test_update_with_api_key(self, client, restore_runtime_stats):
        response = await client.post(
            f"{HTB_URL}/runtime",
            json={"machinesPwned": 130},
            headers={"X-Admin-Key": ADMIN_API_KEY},
        )

        data = response.json()
        assert data["machinesPwned"] == 130
        assert data["htbRank"] == "Hacker"


class TestTHMStats:
    async def test_defaults_without_row(self, client):
        response = await client.get(THM_URL)

        assert response.status_code == 200
        data = response.json()
        assert data["thmRank"] == "0x4 [Seeker]"
        assert data["roomsCompleted"] == 17
        assert "X-Fallback" not in response.headers

    async def test_post_requires_rank_or_rooms(self, client, admin_headers):
        response = await client.post(THM_URL, json={"streak": 10}, headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["detail"] == "thmRank or roomsCompleted is required"

    async def test_post_merges_fields(self, client, admin_headers):
        await client.post(THM_URL, json={"thmRank": "0x5 [Hacker]"}, headers=admin_headers)
        await client.post(THM_URL, json={"roomsCompleted": 25}, headers=admin_headers)

        data = (await client.get(THM_URL)).json()

        assert data["thmRank"] == "0x5 [Hacker]"
        assert data["roomsCompleted"] == 25
        assert data["badges"] == 4

    async def test_database_failure_serves_defaults(self, client):
        broken = AsyncMock()
        broken.get.side_effect = OperationalError("SELECT", {}, Exception("database is locked"))

        async def broken_db():
            yield broken

        app.dependency_overrides[get_db] = broken_db

        response = await client.get(THM_URL)

        assert response.status_code == 200
        assert response.headers["X-Fallback"] == "true"
        assert response.json()["thmRank"] == "0x4 [Seeker]"
        broken.rollback.assert_awaited()
