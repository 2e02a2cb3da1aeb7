"""
External feed endpoints: security tools, latest tools, recent CVEs and forum posts.

Every request goes upstream; nothing is cached. When an upstream fails the
endpoint still answers 200 with fallback data and ``X-Fallback: true``;
the latest-tools listing just leaves the failed source out.
"""

from typing import List, Literal

import httpx
from fastapi import APIRouter, Query, Response

from labsite.api.dependencies import CVEFeed, ForumFeed, LatestToolsFeed, ToolsFeed
from labsite.core.logging_config import get_logger
from labsite.schemas.feeds import CVEItem, ForumPost, LatestToolsResponse, ToolsResponse
from labsite.services.cve_feed import fallback_cves


router = APIRouter()
logger = get_logger(__name__)

FALLBACK_HEADER = "X-Fallback"


@router.get("/tools", response_model=ToolsResponse)
async def list_tools(
    response: Response,
    tools_service: ToolsFeed,
    source: Literal["all", "static", "github"] = Query("all"),
    fresh: bool = Query(False),
) -> ToolsResponse:
    """
    Security tools.

    ``all`` merges the curated list with live GitHub data (only when
    ``fresh`` is set); a GitHub entry wins over a curated one with the
    same id.
    """
    result = await tools_service.get_tools(source=source, fresh=fresh)
    if result["meta"]["source"] == "static-fallback":
        response.headers[FALLBACK_HEADER] = "true"
    return ToolsResponse.model_validate(result)


@router.get("/tools/latest", response_model=LatestToolsResponse)
async def list_latest_tools(
    latest_service: LatestToolsFeed,
    category: Literal[
        "all", "trending", "awesome", "cve", "kali", "owasp", "h1", "metasploit", "nuclei"
    ] = Query("all"),
    limit: int = Query(30, ge=1, le=100),
) -> LatestToolsResponse:
    """
    Recently published tooling from the GitHub-backed sources selected by
    ``category``.

    Tools are unique by name and ordered by stars, then publication date.
    """
    result = await latest_service.get_latest(category=category, limit=limit)
    return LatestToolsResponse.model_validate(result)


@router.get("/cve", response_model=List[CVEItem])
async def list_cves(response: Response, cve_service: CVEFeed) -> List[CVEItem]:
    """CVEs published in the last 30 days, newest first."""
    try:
        cves = await cve_service.fetch_recent()
    except (httpx.HTTPError, ValueError) as exc:
        logger.error("NVD request failed, serving sample CVEs", extra={"error": str(exc)})
        response.headers[FALLBACK_HEADER] = "true"
        cves = fallback_cves()
    return [CVEItem.model_validate(cve) for cve in cves]


@router.get("/forums", response_model=List[ForumPost])
async def list_forum_posts(
    response: Response,
    forum_service: ForumFeed,
    source: Literal["reddit", "stackoverflow"] = Query("reddit"),
) -> List[ForumPost]:
    posts, is_fallback = await forum_service.get_posts(source)
    if is_fallback:
        response.headers[FALLBACK_HEADER] = "true"
    return [ForumPost.model_validate(post) for post in posts]
