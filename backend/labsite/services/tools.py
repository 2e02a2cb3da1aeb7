"""
Security tools listing: curated static tools plus live GitHub metadata.

Static tools ship with the package in ``labsite/data/tools.json``. GitHub
tools are built from the repositories in ``settings.security_repos``.
When both are merged, a GitHub entry replaces the static entry with the
same id.
"""

import logging
from datetime import datetime, timezone
from functools import cmp_to_key
from typing import Any, Dict, List, Optional

import httpx

from labsite.core.config import settings
from labsite.data import load_json

logger = logging.getLogger(__name__)

Tool = Dict[str, Any]


def load_static_tools() -> List[Tool]:
    """
    Read the curated tool list bundled with the package.

    Raises:
        OSError / ValueError: If the data file is missing or malformed
    """
    tools = load_json("tools.json")
    if not isinstance(tools, list):
        raise ValueError("tools.json must contain a JSON array")
    return tools


def categorize_repo(repo: Dict[str, Any]) -> List[str]:
    """
    Derive display tags for a GitHub repository.

    Tags come from the primary language, keywords in the repository name
    and description, and a few well-known topics. Falls back to
    ``["Security"]`` when nothing matches.
    """
    name = (repo.get("name") or "").lower()
    description = (repo.get("description") or "").lower()
    topics = repo.get("topics") or []
    tags: List[str] = []

    if repo.get("language"):
        tags.append(repo["language"])

    keyword_tags = [
        (("payload", "shell"), "Payload"),
        (("enum", "recon"), "Reconnaissance"),
        (("exploit", "metasploit"), "Exploitation"),
        (("priv", "escalation"), "Privilege Escalation"),
        (("web", "sql"), "Web"),
        (("network", "nmap"), "Networking"),
        (("forensic", "volatility"), "Forensics"),
        (("crack", "hash"), "Cracking"),
    ]
    for keywords, tag in keyword_tags:
        if any(keyword in name for keyword in keywords):
            tags.append(tag)
    if "windows" in name or "windows" in description:
        tags.append("Windows")
    if "linux" in name or "linux" in description:
        tags.append("Linux")

    topic_tags = {
        "penetration-testing": "Pentesting",
        "security": "Security",
        "cybersecurity": "Cybersecurity",
    }
    tags.extend(topic_tags[topic] for topic in topics if topic in topic_tags)

    return list(dict.fromkeys(tags)) or ["Security"]


def merge_tools(static_tools: List[Tool], dynamic_tools: List[Tool]) -> List[Tool]:
    """Merge two tool lists by id; dynamic entries overwrite static ones."""
    merged: Dict[str, Tool] = {}
    for tool in static_tools:
        merged[tool["id"]] = tool
    for tool in dynamic_tools:
        merged[tool["id"]] = tool
    return list(merged.values())


def _compare_tools(a: Tool, b: Tool) -> int:
    if a.get("stars") and b.get("stars"):
        return b["stars"] - a["stars"]
    name_a, name_b = a.get("name", "").lower(), b.get("name", "").lower()
    return (name_a > name_b) - (name_a < name_b)


def sort_tools(tools: List[Tool]) -> List[Tool]:
    """Most-starred first when both tools have stars, otherwise by name."""
    return sorted(tools, key=cmp_to_key(_compare_tools))


class GitHubToolsService:
    """
    Fetch repository metadata for the configured security repositories.

    Usage:
        service = GitHubToolsService()
        tools = await service.fetch_tools()
    """

    MAX_REPOS = 10
    USER_AGENT = "labsite-tools"

    def __init__(
        self,
        repos: Optional[List[str]] = None,
        api_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.repos = repos if repos is not None else settings.security_repos
        self.api_url = (api_url or settings.github_api_url).rstrip("/")
        self.token = token if token is not None else settings.github_token
        self.timeout = timeout or settings.http_timeout

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": self.USER_AGENT,
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    @staticmethod
    def repo_to_tool(full_name: str, repo: Dict[str, Any]) -> Tool:
        return {
            "id": full_name.replace("/", "-").lower(),
            "name": repo.get("name") or full_name.split("/")[-1],
            "description": repo.get("description") or "Security tool repository",
            "link": repo.get("html_url"),
            "tags": categorize_repo(repo),
            "lastUpdated": repo.get("updated_at"),
            "stars": repo.get("stargazers_count"),
            "language": repo.get("language") or "Multiple",
        }

    async def fetch_tools(self) -> List[Tool]:
        """
        Fetch up to ``MAX_REPOS`` repositories.

        A repository that fails to load is skipped and logged.
        """
        tools: List[Tool] = []
        async with httpx.AsyncClient(timeout=self.timeout, headers=self._headers()) as client:
            for full_name in self.repos[: self.MAX_REPOS]:
                try:
                    response = await client.get(f"{self.api_url}/repos/{full_name}")
                    response.raise_for_status()
                    tools.append(self.repo_to_tool(full_name, response.json()))
                except (httpx.HTTPError, ValueError) as exc:
                    logger.warning(
                        "Failed to fetch GitHub repo",
                        extra={"repo": full_name, "error": str(exc)},
                    )
        return tools


class ToolsService:
    """Assemble the tools listing for a requested source."""

    SOURCES = ("all", "static", "github")

    def __init__(self, github: Optional[GitHubToolsService] = None):
        self.github = github or GitHubToolsService()

    async def get_tools(self, source: str = "all", fresh: bool = False) -> Dict[str, Any]:
        """
        Build ``{tools, meta}`` for ``source``.

        ``all`` only contacts GitHub when ``fresh`` is set. Any failure
        falls back to the static list with ``meta.source = "static-fallback"``.
        """
        try:
            if source == "static":
                tools = load_static_tools()
            elif source == "github":
                tools = await self.github.fetch_tools()
            else:
                dynamic = await self.github.fetch_tools() if fresh else []
                tools = merge_tools(load_static_tools(), dynamic)
        except (httpx.HTTPError, OSError, ValueError) as exc:
            logger.error("Error fetching tools, serving static fallback", extra={"error": str(exc)})
            return self._fallback(str(exc))

        tools = sort_tools(tools)
        return {
            "tools": tools,
            "meta": {
                "total": len(tools),
                "lastUpdated": datetime.now(timezone.utc).isoformat(),
                "source": source,
            },
        }

    def _fallback(self, error: str) -> Dict[str, Any]:
        try:
            tools = load_static_tools()
        except (OSError, ValueError):
            logger.exception("Static tools unavailable")
            tools = []
        return {
            "tools": tools,
            "meta": {
                "total": len(tools),
                "lastUpdated": datetime.now(timezone.utc).isoformat(),
                "source": "static-fallback",
                "error": error,
            },
        }
