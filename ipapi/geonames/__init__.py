"""
GeoNames-backed country data: bordering countries and spoken languages.

Each dataset lives in a CountryDataStore refreshed in bulk, one country
per request, by the refresh coordinator.
"""
from .client import GeoNamesClient
from .countries import COUNTRY_CODES, country_codes
from .errors import (
    UpstreamError,
    UpstreamPayloadError,
    UpstreamServiceError,
    UpstreamStatusError,
)
from .models import Neighbour, parse_language_field, parse_languages, parse_neighbours
from .store import (
    CountryDataStore,
    RefreshReport,
    languages_store,
    neighbours_store,
)

__all__ = [
    # Client
    "GeoNamesClient",
    # Errors
    "UpstreamError",
    "UpstreamPayloadError",
    "UpstreamServiceError",
    "UpstreamStatusError",
    # Records
    "Neighbour",
    "parse_language_field",
    "parse_languages",
    "parse_neighbours",
    # Stores
    "CountryDataStore",
    "RefreshReport",
    "languages_store",
    "neighbours_store",
    "COUNTRY_CODES",
    "country_codes",
]
