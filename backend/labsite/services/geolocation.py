"""
Best-effort IP geolocation via ip-api.com.
"""

import logging
from typing import Dict, Optional

import httpx

from labsite.core.config import settings
from labsite.core.security import is_private_ip

logger = logging.getLogger(__name__)


class GeolocationService:
    """
    Resolve an IP address to country / region / city.

    Lookups never raise; private addresses and upstream failures resolve to
    an empty dict.
    """

    DEFAULT_TIMEOUT = 3.0

    def __init__(self, base_url: Optional[str] = None, timeout: float = DEFAULT_TIMEOUT):
        self.base_url = (base_url or settings.ipgeo_api_url).rstrip("/")
        self.timeout = timeout

    async def lookup(self, ip: str) -> Dict[str, str]:
        if is_private_ip(ip):
            return {}

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(
                    f"{self.base_url}/{ip}",
                    params={"fields": "status,country,regionName,city"},
                )
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Geolocation lookup failed", extra={"ip": ip, "error": str(exc)})
            return {}

        if data.get("status") != "success":
            return {}

        location = {
            "country": data.get("country"),
            "region": data.get("regionName"),
            "city": data.get("city"),
        }
        return {key: value for key, value in location.items() if value}
