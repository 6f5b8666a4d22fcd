"""
Construction and teardown of the long-lived service components.
"""
import logging
from dataclasses import dataclass
from typing import Optional

import maxminddb

from config.settings import Settings
from ipapi.cache import NEVER_EXPIRES, ExpiringCache
from ipapi.geoip import GeoLookup, TimezoneOffsets
from ipapi.geonames import (
    CountryDataStore,
    GeoNamesClient,
    Neighbour,
    country_codes,
    languages_store,
    neighbours_store,
)
from ipapi.scheduler import RefreshCoordinator

logger = logging.getLogger("services")


@dataclass
class Services:
    """Everything the HTTP layer needs, owned for the process lifetime."""
    client: GeoNamesClient
    neighbours: CountryDataStore[Neighbour]
    languages: CountryDataStore[str]
    coordinator: RefreshCoordinator
    response_cache: ExpiringCache
    timezone_cache: ExpiringCache
    lookup: Optional[GeoLookup] = None

    def start(self) -> None:
        """Start the background refresh of the country stores."""
        self.coordinator.start()

    def close(self) -> None:
        """Stop background threads and release resources."""
        self.coordinator.stop(timeout=10.0)
        self.response_cache.close()
        self.timezone_cache.close()
        self.client.close()
        if self.lookup is not None:
            self.lookup.close()

    def get_stats(self) -> dict:
        return {
            "coordinator": self.coordinator.get_stats(),
            "neighbours": self.neighbours.get_stats(),
            "languages": self.languages.get_stats(),
            "response_cache": self.response_cache.get_stats(),
        }


def build_services(settings: Settings) -> Services:
    """Wire the client, stores, coordinator, caches and lookup from settings."""
    client = GeoNamesClient(
        username=settings.geonames_username,
        base_url=settings.geonames_base_url,
        timeout=settings.upstream_timeout_seconds,
    )
    countries = country_codes()
    delay = settings.upstream_request_delay_seconds
    neighbours = neighbours_store(client, countries, request_delay=delay)
    languages = languages_store(client, countries, request_delay=delay)

    # Neighbours first, then languages: both share the GeoNames quota
    coordinator = RefreshCoordinator()
    if client.enabled:
        coordinator.add(neighbours, settings.neighbours_interval_seconds)
        coordinator.add(languages, settings.languages_interval_seconds)
    else:
        logger.info("GEONAMES_USERNAME not set; neighbours and languages will be disabled")

    response_cache = ExpiringCache(
        default_ttl=settings.cache_ttl_seconds,
        sweep_interval=settings.cache_sweep_interval_seconds,
        name="responses",
    )
    timezone_cache = ExpiringCache(
        default_ttl=NEVER_EXPIRES,
        sweep_interval=settings.cache_sweep_interval_seconds,
        name="timezones",
    )

    services = Services(
        client=client,
        neighbours=neighbours,
        languages=languages,
        coordinator=coordinator,
        response_cache=response_cache,
        timezone_cache=timezone_cache,
    )

    try:
        services.lookup = GeoLookup.open(
            settings.db_path,
            timezones=TimezoneOffsets(timezone_cache),
            response_cache=response_cache,
            neighbours=neighbours,
            languages=languages,
        )
    except (OSError, ValueError, maxminddb.InvalidDatabaseError) as e:
        logger.error(
            f"Failed to open GeoIP databases at {settings.db_path}: {e}. "
            "Ensure MaxMind databases exist at DB_PATH (e.g. /data)"
        )

    return services
