"""IP geolocation lookup (ipapi.co) for currency detection"""

import logging
from typing import Optional

import httpx

from ...cache import cache
from ...config import IPAPI_URL

logger = logging.getLogger(__name__)

GEOLOCATION_CACHE_SECONDS = 24 * 60 * 60

# Private and loopback addresses have no country
LOCAL_PREFIXES = ("127.", "10.", "192.168.", "::1", "localhost", "unknown")


async def lookup_country_code(ip_address: Optional[str]) -> Optional[str]:
    """Return the ISO country code for an IP, or None when it cannot be determined"""
    if not ip_address or ip_address.startswith(LOCAL_PREFIXES):
        return None

    cache_key = f"geo:country:{ip_address}"
    cached = cache.get(cache_key)
    if cached:
        return cached

    url = f"{IPAPI_URL.rstrip('/')}/{ip_address}/json/"
    try:
        async with httpx.AsyncClient(timeout=5.0) as client:
            response = await client.get(url, headers={"Accept": "application/json"})
            response.raise_for_status()
            data = response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.warning(f"⚠️ IP geolocation failed for {ip_address}: {e}")
        return None

    if data.get("error"):
        logger.warning(f"⚠️ IP geolocation error for {ip_address}: {data.get('reason')}")
        return None

    country_code = data.get("country_code")
    if country_code:
        cache.set(cache_key, country_code, ttl=GEOLOCATION_CACHE_SECONDS)
    return country_code
