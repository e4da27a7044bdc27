"""Supported display currencies and the country -> currency map used for IP detection"""

from typing import Optional

DEFAULT_CURRENCY = "USD"

# Display order matters for the currency picker
SUPPORTED_CURRENCIES = [
    {"code": "USD", "symbol": "$", "name": "US Dollar"},
    {"code": "GBP", "symbol": "£", "name": "British Pound"},
    {"code": "EUR", "symbol": "€", "name": "Euro"},
    {"code": "ZAR", "symbol": "R", "name": "South African Rand"},
    {"code": "AUD", "symbol": "A$", "name": "Australian Dollar"},
    {"code": "NZD", "symbol": "NZ$", "name": "New Zealand Dollar"},
    {"code": "CAD", "symbol": "C$", "name": "Canadian Dollar"},
    {"code": "AED", "symbol": "AED", "name": "UAE Dirham"},
    {"code": "SGD", "symbol": "S$", "name": "Singapore Dollar"},
]

SUPPORTED_CURRENCY_CODES = frozenset(c["code"] for c in SUPPORTED_CURRENCIES)

EU_COUNTRIES = [
    "AT", "BE", "BG", "HR", "CY", "CZ", "DK", "EE", "FI", "FR", "DE", "GR", "HU", "IE",
    "IT", "LV", "LT", "LU", "MT", "NL", "PL", "PT", "RO", "SK", "SI", "ES", "SE",
]

# Rand is used across the Southern African Customs Union and neighbours
ZAR_COUNTRIES = ["ZA", "LS", "SZ", "NA", "ZW", "BW", "MZ"]

COUNTRY_CURRENCY_MAP = {
    "US": "USD",
    "GB": "GBP",
    **{country: "EUR" for country in EU_COUNTRIES},
    **{country: "ZAR" for country in ZAR_COUNTRIES},
    "AU": "AUD",
    "NZ": "NZD",
    "CA": "CAD",
    "AE": "AED",
    "SG": "SGD",
}


def normalize_currency(code: Optional[str]) -> Optional[str]:
    """Upper-cased code when supported, else None"""
    if not code:
        return None
    code = code.strip().upper()
    return code if code in SUPPORTED_CURRENCY_CODES else None


def currency_for_country(country_code: Optional[str]) -> Optional[str]:
    if not country_code:
        return None
    return COUNTRY_CURRENCY_MAP.get(country_code.strip().upper())


def get_currency_symbol(code: Optional[str]) -> str:
    normalized = normalize_currency(code)
    for currency in SUPPORTED_CURRENCIES:
        if currency["code"] == normalized:
            return currency["symbol"]
    return f"{code} " if code else "$"
