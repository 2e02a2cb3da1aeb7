"""
Integration tests for newsletter signup, supporter listings, member
management and the audit log endpoints.
"""

from unittest.mock import AsyncMock, patch

from sqlalchemy import select

from labsite.models.audit import AdminLog, UnauthorizedAccessLog
from labsite.models.base import utc_iso_after
from labsite.models.member import Member
from labsite.repositories.members import MemberRepository, NewsletterRepository


SIGNUP = {"name": "Priya", "email": "Priya@Gmail.com", "country": "India"}


class TestNewsletter:
    async def test_subscribe(self, client, email_service):
        response = await client.post("/api/v1/newsletter", json=SIGNUP)

        assert response.status_code == 200
        assert response.json()["message"] == "Successfully subscribed to newsletter"
        email_service.send_welcome.assert_awaited_once_with("priya@gmail.com", "Priya")

    async def test_duplicate_email_is_case_insensitive(self, client):
        await client.post("/api/v1/newsletter", json=SIGNUP)

        response = await client.post(
            "/api/v1/newsletter", json={**SIGNUP, "email": "priya@gmail.com"}
        )

        assert response.status_code == 409
        assert response.json()["detail"] == "Email already subscribed"

    async def test_racing_duplicate_is_409(self, client):
        """The unique index catches a signup that slipped past the existence check."""
        await client.post("/api/v1/newsletter", json=SIGNUP)

        with patch.object(NewsletterRepository, "email_exists", AsyncMock(return_value=False)):
            response = await client.post("/api/v1/newsletter", json=SIGNUP)

        assert response.status_code == 409
        assert response.json()["detail"] == "Email already subscribed"

    async def test_welcome_failure_does_not_fail_signup(self, client, email_service):
        email_service.send_welcome.return_value = False

        response = await client.post("/api/v1/newsletter", json=SIGNUP)

        assert response.status_code == 200

    async def test_invalid_email(self, client):
        response = await client.post("/api/v1/newsletter", json={**SIGNUP, "email": "priya"})

        assert response.status_code == 400

    async def test_subscribers_are_admin_only(self, client, admin_headers):
        await client.post("/api/v1/newsletter", json=SIGNUP)

        anonymous = await client.get("/api/v1/newsletter/subscribers")
        admin = await client.get("/api/v1/newsletter/subscribers", headers=admin_headers)

        assert anonymous.status_code == 401
        assert [s["email"] for s in admin.json()] == ["priya@gmail.com"]


class TestSupporters:
    async def test_tiers_fall_back_to_demo_supporters(self, client):
        response = await client.get("/api/v1/subscribers/tiers")

        names = [s["name"] for s in response.json()["subscribers"]]
        assert names == ["Sam", "Cloud", "Alex", "Nova", "Zero"]

    async def test_tiers_list_real_supporters(self, client, async_session):
        async_session.add_all([
            Member(email="one@gmail.com", name="Ada", status="active", tier_name="Sudo Access"),
            Member(email="two@gmail.com", name="Bob", status="active", tier_name="Reader"),
            Member(email="three@gmail.com", name="Cy", status="cancelled", tier_name="Ring Zero"),
        ])
        await async_session.commit()

        response = await client.get("/api/v1/subscribers/tiers")

        supporters = response.json()["subscribers"]
        assert [s["name"] for s in supporters] == ["Ada"]
        assert "email" not in supporters[0]

    async def test_latest_supporters_limit(self, client, async_session):
        async_session.add_all([
            Member(
                email=f"fan{i}@gmail.com",
                name=f"Fan {i}",
                status="active",
                subscribed_at=utc_iso_after(days=-i),
            )
            for i in range(6)
        ])
        await async_session.commit()

        response = await client.get("/api/v1/subscribers/latest")

        names = [s["name"] for s in response.json()["subscribers"]]
        assert names == ["Fan 0", "Fan 1", "Fan 2", "Fan 3"]


class TestMembers:
    async def test_create_and_list(self, client, admin_headers):
        created = await client.post(
            "/api/v1/admin/members",
            json={"email": "Member@ProtonMail.com", "name": "Max", "tierName": "Sudo"},
            headers=admin_headers,
        )
        listed = await client.get("/api/v1/admin/members", headers=admin_headers)

        assert created.status_code == 201
        assert created.json()["email"] == "member@protonmail.com"
        assert [m["email"] for m in listed.json()] == ["member@protonmail.com"]

    async def test_duplicate_member(self, client, admin_headers):
        body = {"email": "member@protonmail.com"}
        await client.post("/api/v1/admin/members", json=body, headers=admin_headers)

        response = await client.post("/api/v1/admin/members", json=body, headers=admin_headers)

        assert response.status_code == 409

    async def test_racing_duplicate_member_is_409(self, client, admin_headers):
        body = {"email": "member@protonmail.com"}
        await client.post("/api/v1/admin/members", json=body, headers=admin_headers)

        with patch.object(MemberRepository, "get_by_email", AsyncMock(return_value=None)):
            response = await client.post("/api/v1/admin/members", json=body, headers=admin_headers)

        assert response.status_code == 409


class TestAdminLogs:
    async def test_pagination(self, client, admin_headers, async_session):
        async_session.add_all([AdminLog(action=f"ACTION_{i}") for i in range(3)])
        await async_session.commit()

        first = await client.get("/api/v1/admin/logs", params={"limit": 2}, headers=admin_headers)
        second = await client.get(
            "/api/v1/admin/logs", params={"limit": 2, "offset": 2}, headers=admin_headers
        )

        assert len(first.json()["logs"]) == 2
        assert first.json()["pagination"]["hasMore"] is True
        assert len(second.json()["logs"]) == 1
        assert second.json()["pagination"]["hasMore"] is False

    async def test_filter_by_action_and_decode_data(self, client, admin_headers, async_session):
        entry = AdminLog(action="UPDATE_HTB_STATS")
        entry.set_data({"machinesPwned": 3})
        async_session.add_all([entry, AdminLog(action="OTHER")])
        await async_session.commit()

        response = await client.get(
            "/api/v1/admin/logs", params={"action": "UPDATE_HTB_STATS"}, headers=admin_headers
        )

        logs = response.json()["logs"]
        assert [log["action"] for log in logs] == ["UPDATE_HTB_STATS"]
        assert logs[0]["data"] == {"machinesPwned": 3}

    async def test_limit_is_bounded(self, client, admin_headers):
        response = await client.get("/api/v1/admin/logs", params={"limit": 1000}, headers=admin_headers)

        assert response.status_code == 400

    async def test_cleanup_old_logs(self, client, admin_headers, async_session):
        async_session.add_all([
            AdminLog(action="OLD", timestamp=utc_iso_after(days=-45)),
            AdminLog(action="RECENT", timestamp=utc_iso_after(days=-2)),
        ])
        await async_session.commit()

        response = await client.delete("/api/v1/admin/logs", params={"days": 30}, headers=admin_headers)

        assert response.json()["deletedCount"] == 1
        actions = await async_session.execute(select(AdminLog.action).order_by(AdminLog.id))
        assert list(actions.scalars()) == ["RECENT", "CLEANUP_LOGS"]


class TestAccessLogs:
    async def test_report_unauthorized_access(self, client, admin_headers, async_session):
        response = await client.post(
            "/api/v1/admin/unauthorized-logs",
            json={"path": "/admin/<script>", "reason": "page_view"},
            headers={"Referer": "https://0xjerry.jerome.co.in/"},
        )

        assert response.status_code == 201
        row = await async_session.execute(
            select(UnauthorizedAccessLog.path, UnauthorizedAccessLog.referer)
        )
        path, referer = row.one()
        assert "<" not in path
        assert referer == "https://0xjerry.jerome.co.in/"

    async def test_report_without_body_uses_defaults(self, client, admin_headers):
        await client.post("/api/v1/admin/unauthorized-logs")

        response = await client.get("/api/v1/admin/unauthorized-logs", headers=admin_headers)

        entry = response.json()[0]
        assert entry["path"] == "/admin/unauthorized"
        assert entry["reason"] == "page_view"

    async def test_access_logs_are_admin_only(self, client):
        assert (await client.get("/api/v1/admin/unauthorized-logs")).status_code == 401
        assert (await client.get("/api/v1/admin/writeup-access-logs")).status_code == 401
