"""
Latest security tools gathered from several GitHub-backed sources.

Each source is one or more GitHub API calls (repository search, repository
metadata or repository contents). A source that fails is logged and
contributes nothing; the listing is built from whatever the other sources
returned.
"""

import asyncio
import base64
import json
import logging
import re
from datetime import datetime, timedelta, timezone
from functools import cmp_to_key
from typing import Any, Callable, Dict, List

import httpx

from labsite.services.tools import GitHubToolsService

logger = logging.getLogger(__name__)

LatestTool = Dict[str, Any]

SOURCE_NAMES = [
    "GitHub Trending",
    "Awesome Security",
    "CVE PoC",
    "Kali Linux",
    "OWASP",
    "HackerOne",
    "Metasploit",
    "Nuclei",
]

OWASP_REPOS = [
    "OWASP/owasp-top-10",
    "OWASP/CheatSheetSeries",
    "OWASP/ASVS",
    "OWASP/wstg",
    "OWASP/NodeGoat",
]

_GITHUB_LINK = re.compile(r"https://github\.com/[^\s)\]]+")
_REPO_PATH = re.compile(r"github\.com/([^/]+/[^/#?]+)")

_KEYWORD_TAGS = [
    ("web", "Web"),
    ("network", "Network"),
    ("mobile", "Mobile"),
    ("forensic", "Forensics"),
    ("malware", "Malware"),
    ("reverse", "Reverse Engineering"),
    ("crypto", "Cryptography"),
]


def extract_repo_tags(repo: Dict[str, Any]) -> List[str]:
    """Language, keyword and capitalised topic tags; ``["Security"]`` when empty."""
    name = (repo.get("name") or "").lower()
    description = (repo.get("description") or "").lower()
    tags: List[str] = []

    if repo.get("language"):
        tags.append(repo["language"])
    for keyword, tag in _KEYWORD_TAGS:
        if keyword in name or keyword in description:
            tags.append(tag)
    for topic in repo.get("topics") or []:
        tags.append(topic[:1].upper() + topic[1:])

    return list(dict.fromkeys(tags)) or ["Security"]


def _published(tool: LatestTool) -> datetime:
    value = tool.get("publishedAt") or ""
    try:
        published = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return datetime.min.replace(tzinfo=timezone.utc)
    if published.tzinfo is None:
        published = published.replace(tzinfo=timezone.utc)
    return published


def _compare_latest(a: LatestTool, b: LatestTool) -> int:
    if a.get("stars") and b.get("stars") and a["stars"] != b["stars"]:
        return b["stars"] - a["stars"]
    published_a, published_b = _published(a), _published(b)
    return (published_a < published_b) - (published_a > published_b)


def dedupe_and_sort(tools: List[LatestTool], limit: int) -> List[LatestTool]:
    """
    Keep the first tool per name, then order by stars (when both have
    them) and publication date, newest first.
    """
    unique: Dict[str, LatestTool] = {}
    for tool in tools:
        unique.setdefault(tool["name"], tool)
    return sorted(unique.values(), key=cmp_to_key(_compare_latest))[:limit]


class LatestToolsService(GitHubToolsService):
    """
    Aggregate recently published security tooling.

    Usage:
        service = LatestToolsService()
        result = await service.get_latest(category="cve", limit=10)
    """

    USER_AGENT = "labsite-latest-tools"
    SEARCH_PAGE_SIZE = 10

    def _search_queries(self) -> Dict[str, List[str]]:
        now = datetime.now(timezone.utc)
        recent = (now - timedelta(days=30)).date().isoformat()
        year_start = f"{now.year}-01-01"
        return {
            "trending": [
                f"security created:>{recent} stars:>10",
                f"pentesting created:>{recent} stars:>5",
                f"cybersecurity created:>{recent} stars:>5",
                f"hacking created:>{recent} stars:>10",
            ],
            "cve": [f"CVE-{now.year} in:name created:>{year_start}"],
            "h1": ["hackerone disclosed poc"],
            "metasploit": ["metasploit module exploit"],
        }

    @staticmethod
    def repo_to_latest(
        repo: Dict[str, Any],
        prefix: str,
        source: str,
        default_description: str,
        tags: List[str],
    ) -> LatestTool:
        return {
            "id": f"{prefix}-{repo.get('id')}",
            "name": repo.get("name") or "unknown",
            "description": repo.get("description") or default_description,
            "link": repo.get("html_url"),
            "tags": tags,
            "source": source,
            "publishedAt": repo.get("created_at"),
            "stars": repo.get("stargazers_count"),
            "language": repo.get("language"),
        }

    async def _search(self, client: httpx.AsyncClient, query: str, per_page: int) -> List[Dict[str, Any]]:
        response = await client.get(
            f"{self.api_url}/search/repositories",
            params={"q": query, "sort": "updated", "order": "desc", "per_page": per_page},
        )
        response.raise_for_status()
        return response.json().get("items") or []

    async def _contents(self, client: httpx.AsyncClient, path: str) -> Any:
        response = await client.get(f"{self.api_url}/repos/{path}")
        response.raise_for_status()
        return response.json()

    @staticmethod
    def _decode_file(payload: Dict[str, Any]) -> str:
        return base64.b64decode(payload.get("content") or "").decode("utf-8")

    async def fetch_trending(self, client: httpx.AsyncClient) -> List[LatestTool]:
        tools: List[LatestTool] = []
        for query in self._search_queries()["trending"]:
            try:
                repos = await self._search(client, query, per_page=5)
            except (httpx.HTTPError, ValueError) as exc:
                logger.warning("Trending search failed", extra={"query": query, "error": str(exc)})
                continue
            tools.extend(
                self.repo_to_latest(
                    repo, "trending", "GitHub Trending", "Trending security tool",
                    extract_repo_tags(repo),
                )
                for repo in repos
            )
        return tools

    async def fetch_awesome(self, client: httpx.AsyncClient) -> List[LatestTool]:
        readme = self._decode_file(
            await self._contents(client, "sbilly/awesome-security/contents/README.md")
        )
        links = list(dict.fromkeys(_GITHUB_LINK.findall(readme)))[:10]

        tools: List[LatestTool] = []
        for link in links:
            match = _REPO_PATH.search(link)
            if not match:
                continue
            try:
                repo = await self._contents(client, match.group(1))
            except (httpx.HTTPError, ValueError) as exc:
                logger.warning("Awesome list repo failed", extra={"repo": match.group(1), "error": str(exc)})
                continue
            tools.append(self.repo_to_latest(
                repo, "awesome", "Awesome Security", "Tool from awesome-security list",
                extract_repo_tags(repo),
            ))
        return tools

    async def fetch_cve_pocs(self, client: httpx.AsyncClient) -> List[LatestTool]:
        query = self._search_queries()["cve"][0]
        repos = await self._search(client, query, per_page=self.SEARCH_PAGE_SIZE)
        return [
            self.repo_to_latest(
                repo, "cve", "CVE PoC", "CVE proof-of-concept",
                ["CVE", "Exploit", *(repo.get("topics") or [])],
            )
            for repo in repos
        ]

    async def fetch_kali(self, client: httpx.AsyncClient) -> List[LatestTool]:
        entries = json.loads(
            self._decode_file(await self._contents(client, "LionSec/katoolin/contents/tools.json"))
        )
        now = datetime.now(timezone.utc).isoformat()
        return [
            {
                "id": f"kali-{index}",
                "name": entry.get("name") or "Kali Tool",
                "description": entry.get("description") or "Security tool from Kali Linux",
                "link": entry.get("url") or "https://www.kali.org/",
                "tags": ["Kali Linux", "Security", entry.get("category") or "Tool"],
                "source": "Kali Linux",
                "publishedAt": now,
                "stars": None,
                "language": "Various",
            }
            for index, entry in enumerate(entries[:15])
        ]

    async def fetch_owasp(self, client: httpx.AsyncClient) -> List[LatestTool]:
        tools: List[LatestTool] = []
        for full_name in OWASP_REPOS:
            try:
                repo = await self._contents(client, full_name)
            except (httpx.HTTPError, ValueError) as exc:
                logger.warning("OWASP repo failed", extra={"repo": full_name, "error": str(exc)})
                continue
            tools.append(self.repo_to_latest(
                repo, "owasp", "OWASP", "OWASP security resource",
                ["OWASP", "Security", "Web Security", *(repo.get("topics") or [])],
            ))
        return tools

    async def fetch_hackerone(self, client: httpx.AsyncClient) -> List[LatestTool]:
        query = self._search_queries()["h1"][0]
        repos = await self._search(client, query, per_page=self.SEARCH_PAGE_SIZE)
        return [
            self.repo_to_latest(
                repo, "h1", "HackerOne Community", "Bug bounty PoC from HackerOne",
                ["Bug Bounty", "HackerOne", "PoC", *(repo.get("topics") or [])],
            )
            for repo in repos
        ]

    async def fetch_metasploit(self, client: httpx.AsyncClient) -> List[LatestTool]:
        query = self._search_queries()["metasploit"][0]
        repos = await self._search(client, query, per_page=self.SEARCH_PAGE_SIZE)
        return [
            self.repo_to_latest(
                repo, "msf", "Metasploit Community", "Metasploit module or exploit",
                ["Metasploit", "Exploit", "Module", *(repo.get("topics") or [])],
            )
            for repo in repos
        ]

    async def fetch_nuclei(self, client: httpx.AsyncClient) -> List[LatestTool]:
        listing = await self._contents(client, "projectdiscovery/nuclei-templates/contents/http")
        directories = [item for item in listing if item.get("type") == "dir"][:10]
        now = datetime.now(timezone.utc).isoformat()
        return [
            {
                "id": f"nuclei-{index}",
                "name": f"Nuclei {item['name']} Templates",
                "description": f"Nuclei vulnerability detection templates for {item['name']}",
                "link": f"https://github.com/projectdiscovery/nuclei-templates/tree/main/http/{item['name']}",
                "tags": ["Nuclei", "Templates", "Vulnerability Scanner", item["name"]],
                "source": "Nuclei Templates",
                "publishedAt": now,
                "stars": None,
                "language": "YAML",
            }
            for index, item in enumerate(directories)
        ]

    def _fetchers(self) -> Dict[str, Callable[[httpx.AsyncClient], Any]]:
        return {
            "trending": self.fetch_trending,
            "awesome": self.fetch_awesome,
            "cve": self.fetch_cve_pocs,
            "kali": self.fetch_kali,
            "owasp": self.fetch_owasp,
            "h1": self.fetch_hackerone,
            "metasploit": self.fetch_metasploit,
            "nuclei": self.fetch_nuclei,
        }

    async def _run_source(self, name: str, fetch, client: httpx.AsyncClient) -> List[LatestTool]:
        try:
            return await fetch(client)
        except (httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.warning("Latest tools source failed", extra={"source": name, "error": str(exc)})
            return []

    async def get_latest(self, category: str = "all", limit: int = 30) -> Dict[str, Any]:
        """
        Build ``{tools, meta}`` for ``category`` (``all`` or a single source).

        Sources run concurrently; results keep the source order above, so
        duplicate names resolve to the earliest source.
        """
        selected = [
            (name, fetch)
            for name, fetch in self._fetchers().items()
            if category in ("all", name)
        ]
        async with httpx.AsyncClient(timeout=self.timeout, headers=self._headers()) as client:
            results = await asyncio.gather(
                *(self._run_source(name, fetch, client) for name, fetch in selected)
            )

        tools = dedupe_and_sort([tool for batch in results for tool in batch], limit)
        return {
            "tools": tools,
            "meta": {
                "total": len(tools),
                "category": category,
                "lastUpdated": datetime.now(timezone.utc).isoformat(),
                "sources": SOURCE_NAMES,
            },
        }
