"""
IP geolocation lookups backed by MaxMind GeoLite2 databases.
"""
from .currency import COUNTRY_CURRENCIES, CURRENCY_SYMBOLS, currency_for_country
from .eu import EU_COUNTRIES, is_eu_country
from .lookup import GeoLookup
from .timezone import TimezoneOffsets

__all__ = [
    "COUNTRY_CURRENCIES",
    "CURRENCY_SYMBOLS",
    "EU_COUNTRIES",
    "GeoLookup",
    "TimezoneOffsets",
    "currency_for_country",
    "is_eu_country",
]
