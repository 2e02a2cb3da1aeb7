"""
Recent CVE feed from the NVD 2.0 API.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import httpx

from labsite.core.config import settings

logger = logging.getLogger(__name__)


class CVEFeedService:
    """
    Fetch CVEs published in the last ``window_days`` days, newest first.

    ``fetch_recent`` raises ``httpx.HTTPError`` on upstream failure; the
    caller decides whether to serve fallback data.
    """

    DEFAULT_WINDOW_DAYS = 30
    DEFAULT_RESULTS = 50
    USER_AGENT = "labsite-cve-fetcher/1.0"

    def __init__(
        self,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
        window_days: int = DEFAULT_WINDOW_DAYS,
        results_per_page: int = DEFAULT_RESULTS,
    ):
        self.api_url = api_url or settings.nvd_api_url
        self.timeout = timeout or settings.http_timeout
        self.window_days = window_days
        self.results_per_page = results_per_page

    def _params(self, now: datetime) -> Dict[str, Any]:
        start = (now - timedelta(days=self.window_days)).date().isoformat()
        end = now.date().isoformat()
        return {
            "pubStartDate": f"{start}T00:00:00.000",
            "pubEndDate": f"{end}T23:59:59.999",
            "resultsPerPage": self.results_per_page,
            "startIndex": 0,
        }

    async def fetch_recent(self) -> List[Dict[str, Any]]:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(
                self.api_url,
                params=self._params(datetime.now(timezone.utc)),
                headers={"User-Agent": self.USER_AGENT},
            )
            response.raise_for_status()
            data = response.json()

        cves = [transform_vulnerability(item) for item in data.get("vulnerabilities") or []]
        cves.sort(key=lambda cve: cve["publishedDate"] or "", reverse=True)
        logger.info("Fetched CVEs from NVD", extra={"count": len(cves)})
        return cves


def _primary_metric(metrics: Dict[str, Any]) -> Dict[str, Any]:
    for key in ("cvssMetricV31", "cvssMetricV30", "cvssMetricV2"):
        entries = metrics.get(key) or []
        if entries:
            return entries[0]
    return {}


def _affected_products(configurations: Any) -> List[str]:
    # NVD returns a list of configurations, each with nodes of cpeMatch entries
    if isinstance(configurations, dict):
        configurations = [configurations]
    products: List[str] = []
    for config in configurations or []:
        for node in config.get("nodes") or []:
            for match in node.get("cpeMatch") or []:
                criteria = match.get("criteria")
                if criteria:
                    products.append(criteria)
    return products


def transform_vulnerability(item: Dict[str, Any]) -> Dict[str, Any]:
    """Map one NVD ``vulnerabilities[]`` entry to the CVE item shape."""
    cve = item.get("cve") or {}
    metric = _primary_metric(cve.get("metrics") or {})
    cvss = metric.get("cvssData") or {}

    description = next(
        (d.get("value") for d in cve.get("descriptions") or [] if d.get("lang") == "en"),
        None,
    )

    return {
        "id": cve.get("id", "UNKNOWN"),
        "title": cve.get("id", "UNKNOWN"),
        "description": description or "No description available",
        # CVSS v2 keeps the severity on the metric itself
        "severity": cvss.get("baseSeverity") or metric.get("baseSeverity") or "UNKNOWN",
        "score": cvss.get("baseScore") or 0,
        "publishedDate": cve.get("published", ""),
        "lastModified": cve.get("lastModified", ""),
        "references": [ref["url"] for ref in cve.get("references") or [] if ref.get("url")],
        "affectedProducts": _affected_products(cve.get("configurations")),
    }


def fallback_cves() -> List[Dict[str, Any]]:
    """Sample entries served when the NVD API is unavailable."""
    now = datetime.now(timezone.utc)
    yesterday = (now - timedelta(days=1)).isoformat()
    return [
        {
            "id": "CVE-2024-SAMPLE",
            "title": "CVE-2024-SAMPLE",
            "description": (
                "CVE data temporarily unavailable. This is sample data. The NVD API "
                "may be rate-limited or experiencing issues. Please try refreshing the page."
            ),
            "severity": "HIGH",
            "score": 8.5,
            "publishedDate": yesterday,
            "lastModified": now.isoformat(),
            "references": ["https://nvd.nist.gov/", "https://cve.org/"],
            "affectedProducts": ["Sample Product"],
        },
        {
            "id": "CVE-2024-EXAMPLE",
            "title": "CVE-2024-EXAMPLE",
            "description": "Another sample CVE entry. Real CVE data will show here when the API is available.",
            "severity": "MEDIUM",
            "score": 6.2,
            "publishedDate": yesterday,
            "lastModified": yesterday,
            "references": ["https://nvd.nist.gov/"],
            "affectedProducts": ["Example Software"],
        },
    ]
