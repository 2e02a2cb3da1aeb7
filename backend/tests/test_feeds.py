"""
Tests for the tools, CVE and forum feeds.

Upstream clients are replaced with AsyncMocks; nothing here touches the
network.
"""

from unittest.mock import AsyncMock

import httpx
import pytest

from labsite.api.dependencies import get_cve_service, get_forum_service, get_tools_service
from labsite.main import app
from labsite.services.cve_feed import CVEFeedService, transform_vulnerability
from labsite.services.forums import (
    SAMPLE_REDDIT_POSTS,
    ForumFeedError,
    ForumService,
    RedditForumClient,
    StackOverflowForumClient,
    is_security_question,
)
from labsite.services.tools import (
    GitHubToolsService,
    ToolsService,
    categorize_repo,
    merge_tools,
    sort_tools,
)


def failing_github():
    github = AsyncMock(spec=GitHubToolsService)
    github.fetch_tools.side_effect = httpx.ConnectError("api.github.com unreachable")
    return github


class TestToolHelpers:
    def test_dynamic_entry_wins_on_same_id(self):
        static = [{"id": "sqlmapproject-sqlmap", "name": "sqlmap", "description": "static"}]
        dynamic = [{"id": "sqlmapproject-sqlmap", "name": "sqlmap", "description": "live", "stars": 31000}]

        merged = merge_tools(static, dynamic)

        assert merged == dynamic

    def test_sort_by_stars_then_name(self):
        tools = [
            {"id": "a", "name": "Zeta", "stars": 10},
            {"id": "b", "name": "Alpha", "stars": 500},
        ]

        assert [t["id"] for t in sort_tools(tools)] == ["b", "a"]

    def test_sort_by_name_without_stars(self):
        tools = [{"id": "b", "name": "ffuf"}, {"id": "a", "name": "Burp"}]

        assert [t["id"] for t in sort_tools(tools)] == ["a", "b"]

    def test_categorize_repo(self):
        tags = categorize_repo({
            "name": "PEASS-ng",
            "description": "Privilege Escalation Awesome Scripts for Windows and Linux",
            "language": "C#",
            "topics": ["penetration-testing"],
        })

        assert tags == ["C#", "Windows", "Linux", "Pentesting"]

    def test_categorize_repo_default(self):
        assert categorize_repo({"name": "misc"}) == ["Security"]

    def test_repo_to_tool(self):
        tool = GitHubToolsService.repo_to_tool("sqlmapproject/sqlmap", {
            "name": "sqlmap",
            "html_url": "https://github.com/sqlmapproject/sqlmap",
            "stargazers_count": 31000,
            "language": "Python",
        })

        assert tool["id"] == "sqlmapproject-sqlmap"
        assert tool["stars"] == 31000
        assert tool["description"] == "Security tool repository"


class TestToolsService:
    async def test_static_source(self):
        result = await ToolsService(github=failing_github()).get_tools(source="static")

        assert result["meta"]["source"] == "static"
        assert result["meta"]["total"] == len(result["tools"]) > 0

    async def test_all_without_fresh_skips_github(self):
        github = failing_github()

        result = await ToolsService(github=github).get_tools(source="all")

        assert result["meta"]["source"] == "all"
        github.fetch_tools.assert_not_awaited()

    async def test_github_failure_serves_static_fallback(self):
        result = await ToolsService(github=failing_github()).get_tools(source="github")

        assert result["meta"]["source"] == "static-fallback"
        assert "unreachable" in result["meta"]["error"]
        assert result["tools"]

    async def test_fresh_merge_overwrites_static(self):
        github = AsyncMock(spec=GitHubToolsService)
        github.fetch_tools.return_value = [{
            "id": "sqlmapproject-sqlmap",
            "name": "sqlmap",
            "description": "live data",
            "tags": ["Python"],
            "stars": 31000,
        }]

        result = await ToolsService(github=github).get_tools(source="all", fresh=True)

        sqlmap = [t for t in result["tools"] if t["id"] == "sqlmapproject-sqlmap"]
        assert len(sqlmap) == 1
        assert sqlmap[0]["description"] == "live data"


class TestToolsEndpoint:
    async def test_fallback_header(self, client):
        app.dependency_overrides[get_tools_service] = lambda: ToolsService(github=failing_github())

        response = await client.get("/api/v1/tools", params={"source": "github"})

        assert response.status_code == 200
        assert response.headers["X-Fallback"] == "true"
        assert response.json()["meta"]["source"] == "static-fallback"

    async def test_invalid_source(self, client):
        response = await client.get("/api/v1/tools", params={"source": "gitlab"})

        assert response.status_code == 400


class TestCVE:
    def test_transform_prefers_cvss_v31(self):
        item = {"cve": {
            "id": "CVE-2024-3400",
            "published": "2024-04-12T08:15:06.230",
            "lastModified": "2024-04-15T00:00:00.000",
            "descriptions": [
                {"lang": "es", "value": "Inyección de comandos"},
                {"lang": "en", "value": "Command injection in GlobalProtect"},
            ],
            "metrics": {
                "cvssMetricV31": [{"cvssData": {"baseScore": 10.0, "baseSeverity": "CRITICAL"}}],
                "cvssMetricV2": [{"cvssData": {"baseScore": 7.5}, "baseSeverity": "HIGH"}],
            },
            "references": [{"url": "https://security.paloaltonetworks.com/CVE-2024-3400"}],
            "configurations": [{"nodes": [{"cpeMatch": [
                {"criteria": "cpe:2.3:o:paloaltonetworks:pan-os:11.1.0:*:*:*:*:*:*:*"},
            ]}]}],
        }}

        cve = transform_vulnerability(item)

        assert cve["severity"] == "CRITICAL"
        assert cve["score"] == 10.0
        assert cve["description"] == "Command injection in GlobalProtect"
        assert cve["affectedProducts"] == ["cpe:2.3:o:paloaltonetworks:pan-os:11.1.0:*:*:*:*:*:*:*"]

    def test_transform_v2_severity_on_metric(self):
        item = {"cve": {
            "id": "CVE-2014-0160",
            "metrics": {"cvssMetricV2": [{"cvssData": {"baseScore": 5.0}, "baseSeverity": "MEDIUM"}]},
        }}

        cve = transform_vulnerability(item)

        assert cve["severity"] == "MEDIUM"
        assert cve["description"] == "No description available"

    def test_transform_without_metrics(self):
        cve = transform_vulnerability({"cve": {"id": "CVE-2024-0001"}})

        assert (cve["severity"], cve["score"]) == ("UNKNOWN", 0)

    async def test_endpoint_falls_back_on_upstream_error(self, client):
        service = AsyncMock(spec=CVEFeedService)
        service.fetch_recent.side_effect = httpx.ReadTimeout("NVD timed out")
        app.dependency_overrides[get_cve_service] = lambda: service

        response = await client.get("/api/v1/cve")

        assert response.status_code == 200
        assert response.headers["X-Fallback"] == "true"
        assert [c["id"] for c in response.json()] == ["CVE-2024-SAMPLE", "CVE-2024-EXAMPLE"]

    async def test_endpoint_returns_live_items(self, client):
        service = AsyncMock(spec=CVEFeedService)
        service.fetch_recent.return_value = [transform_vulnerability({"cve": {"id": "CVE-2024-0001"}})]
        app.dependency_overrides[get_cve_service] = lambda: service

        response = await client.get("/api/v1/cve")

        assert "X-Fallback" not in response.headers
        assert response.json()[0]["publishedDate"] == ""


class TestForums:
    def test_security_question_by_keyword(self):
        assert is_security_question({"title": "Preventing XSS in templates", "tags": ["python"]})

    def test_security_question_by_tag(self):
        assert is_security_question({"title": "Storing tokens", "tags": ["Authentication"]})

    def test_unrelated_question(self):
        assert not is_security_question({"title": "Flexbox centering", "tags": ["css"]})

    async def test_missing_reddit_credentials(self):
        client = RedditForumClient(user_agent="labsite-tests")
        client.client_id = None

        assert client.configured is False
        with pytest.raises(ForumFeedError):
            await client.fetch_posts()

    async def test_reddit_failure_serves_samples(self):
        reddit = AsyncMock(spec=RedditForumClient)
        reddit.fetch_posts.side_effect = ForumFeedError("no credentials")
        service = ForumService(reddit=reddit, stackoverflow=AsyncMock(spec=StackOverflowForumClient))

        posts, is_fallback = await service.get_posts("reddit")

        assert is_fallback is True
        assert posts == SAMPLE_REDDIT_POSTS

    async def test_empty_result_serves_samples(self):
        stackoverflow = AsyncMock(spec=StackOverflowForumClient)
        stackoverflow.fetch_posts.return_value = []
        service = ForumService(reddit=AsyncMock(spec=RedditForumClient), stackoverflow=stackoverflow)

        posts, is_fallback = await service.get_posts("stackoverflow")

        assert is_fallback is True
        assert posts[0]["source"] == "Stack Overflow"

    async def test_endpoint_live_posts(self, client):
        stackoverflow = AsyncMock(spec=StackOverflowForumClient)
        stackoverflow.fetch_posts.return_value = [{
            "title": "Is bcrypt still fine for password hashing?",
            "link": "https://stackoverflow.com/questions/1",
            "upvotes": 12,
            "comments": 3,
            "source": "Stack Overflow",
        }]
        service = ForumService(reddit=AsyncMock(spec=RedditForumClient), stackoverflow=stackoverflow)
        app.dependency_overrides[get_forum_service] = lambda: service

        response = await client.get("/api/v1/forums", params={"source": "stackoverflow"})

        assert "X-Fallback" not in response.headers
        assert response.json()[0]["upvotes"] == 12

    async def test_endpoint_fallback_header(self, client):
        reddit = AsyncMock(spec=RedditForumClient)
        reddit.fetch_posts.side_effect = httpx.ConnectError("reddit down")
        service = ForumService(reddit=reddit, stackoverflow=AsyncMock(spec=StackOverflowForumClient))
        app.dependency_overrides[get_forum_service] = lambda: service

        response = await client.get("/api/v1/forums")

        assert response.headers["X-Fallback"] == "true"
        assert len(response.json()) == len(SAMPLE_REDDIT_POSTS)
