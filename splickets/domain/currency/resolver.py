"""
Currency resolution

Precedence: server-stored user preference, then the browser-stored choice,
then IP geolocation, then USD. Unsupported values at any step fall through.
"""

import logging
from typing import Awaitable, Callable, Optional

from .currencies import DEFAULT_CURRENCY, currency_for_country, normalize_currency
from .geolocation import lookup_country_code

logger = logging.getLogger(__name__)

SOURCE_USER = "user"
SOURCE_BROWSER = "browser"
SOURCE_IP = "ip"
SOURCE_DEFAULT = "default"


async def resolve_currency(
    user_preference: Optional[str] = None,
    stored: Optional[str] = None,
    ip_address: Optional[str] = None,
    country_lookup: Optional[Callable[[Optional[str]], Awaitable[Optional[str]]]] = None,
) -> tuple[str, str]:
    """Returns (currency_code, source); country_lookup defaults to the ipapi.co lookup"""
    currency = normalize_currency(user_preference)
    if currency:
        return currency, SOURCE_USER

    currency = normalize_currency(stored)
    if currency:
        return currency, SOURCE_BROWSER

    if ip_address:
        try:
            country_code = await (country_lookup or lookup_country_code)(ip_address)
        except Exception as e:
            logger.warning(f"⚠️ Country lookup failed, using {DEFAULT_CURRENCY}: {e}")
            country_code = None
        currency = currency_for_country(country_code)
        if currency:
            return currency, SOURCE_IP

    return DEFAULT_CURRENCY, SOURCE_DEFAULT
