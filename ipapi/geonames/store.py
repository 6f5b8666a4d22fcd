"""
Country-keyed stores refreshed in bulk from GeoNames.

One generic implementation serves both datasets; each instance binds a
GeoNames endpoint and a parser for its record type.
"""
import threading
import time
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Generic, Iterable, List, Optional, Tuple, TypeVar

from .client import GeoNamesClient
from .errors import UpstreamError
from .models import Neighbour, parse_languages, parse_neighbours

logger = logging.getLogger("geonames.store")

T = TypeVar("T")

NEIGHBOURS_ENDPOINT = "neighboursJSON"
COUNTRY_INFO_ENDPOINT = "countryInfoJSON"
DEFAULT_REQUEST_DELAY = 1.1


@dataclass
class RefreshReport:
    """Outcome of one refresh cycle over a store's country list."""
    store: str
    updated: List[str] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)  # empty upstream result
    failed: List[str] = field(default_factory=list)
    cancelled: bool = False
    skipped: bool = False  # no credentials configured
    duration: float = 0.0

    @property
    def attempted(self) -> int:
        return len(self.updated) + len(self.unchanged) + len(self.failed)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "store": self.store,
            "updated": len(self.updated),
            "unchanged": len(self.unchanged),
            "failed": len(self.failed),
            "cancelled": self.cancelled,
            "skipped": self.skipped,
            "duration": round(self.duration, 1),
        }


def normalize_countries(countries: Iterable[str]) -> List[str]:
    """Upper-case, deduplicate and sort country codes, dropping blanks."""
    return sorted({c.strip().upper() for c in countries if c and c.strip()})


class CountryDataStore(Generic[T]):
    """
    Country code -> list of records, refreshed one country at a time.

    Reads never block and never do I/O. A refresh commits each country's
    new records with a single dict assignment, so a concurrent reader sees
    either the previous list or the new one. Failed or empty responses
    leave the previous entry in place; the mapping is never cleared.
    """

    def __init__(
        self,
        name: str,
        endpoint: str,
        parser: Callable[[Dict[str, Any]], List[T]],
        client: GeoNamesClient,
        countries: Iterable[str],
        request_delay: float = DEFAULT_REQUEST_DELAY,
    ):
        """
        Initialize the store.

        Args:
            name: Dataset name used in logs ("neighbours", "languages")
            endpoint: GeoNames endpoint queried once per country
            parser: Turns a decoded response into records
            client: GeoNames client; refreshes are skipped if it has no username
            countries: Country codes to refresh
            request_delay: Seconds to pause after every upstream request
        """
        self.name = name
        self.endpoint = endpoint
        self._parser = parser
        self._client = client
        self._countries = normalize_countries(countries)
        self._request_delay = request_delay

        self._data: Dict[str, Tuple[T, ...]] = {}
        self._write_lock = threading.Lock()
        self._last_report: Optional[RefreshReport] = None

    @property
    def countries(self) -> List[str]:
        return list(self._countries)

    @property
    def enabled(self) -> bool:
        return self._client.enabled

    @property
    def last_report(self) -> Optional[RefreshReport]:
        return self._last_report

    def get(self, country: str) -> List[T]:
        """Records for a country, or an empty list if none were ever fetched."""
        if not country:
            return []
        return list(self._data.get(country.upper(), ()))

    def snapshot(self) -> Dict[str, List[T]]:
        """Copy of the whole mapping."""
        return {code: list(records) for code, records in dict(self._data).items()}

    def __len__(self) -> int:
        return len(self._data)

    def _commit(self, country: str, records: List[T]) -> None:
        with self._write_lock:
            self._data[country] = tuple(records)

    def refresh_country(self, country: str) -> bool:
        """
        Fetch and store one country.

        Returns:
            True if the entry was replaced, False for an empty result

        Raises:
            UpstreamError: the request or its payload failed
        """
        payload = self._client.fetch(self.endpoint, country)
        records = self._parser(payload)
        if not records:
            return False
        self._commit(country, records)
        return True

    def refresh_all_once(self, cancel: Optional[threading.Event] = None) -> RefreshReport:
        """
        Run one full refresh cycle, blocking until it completes.

        Countries are fetched in sorted order with request_delay seconds
        after each request, failures included. A failing country is logged
        and skipped. If cancel is set, the cycle stops before the next
        request; the delay itself is interrupted by cancel as well.
        """
        report = RefreshReport(store=self.name)
        if not self._client.enabled:
            report.skipped = True
            return report

        cancel = cancel or threading.Event()
        started = time.monotonic()
        logger.info(f"Refreshing {self.name} for {len(self._countries)} countries")

        for country in self._countries:
            if cancel.is_set():
                report.cancelled = True
                break

            try:
                if self.refresh_country(country):
                    report.updated.append(country)
                else:
                    report.unchanged.append(country)
                    logger.debug(f"No {self.name} returned for {country}, keeping previous data")
            except UpstreamError as e:
                report.failed.append(country)
                logger.warning(f"Failed to refresh {self.name} for {country}: {e}")
            except Exception as e:
                report.failed.append(country)
                logger.error(f"Unexpected error refreshing {self.name} for {country}: {e}")

            if cancel.wait(self._request_delay):
                report.cancelled = True
                break

        report.duration = time.monotonic() - started
        self._last_report = report

        if report.cancelled:
            logger.info(f"{self.name.capitalize()} refresh cancelled: {report.to_dict()}")
        else:
            logger.info(f"{self.name.capitalize()} updated: {report.to_dict()}")
        return report

    def get_stats(self) -> Dict[str, Any]:
        """Get store statistics."""
        return {
            "name": self.name,
            "enabled": self.enabled,
            "countries": len(self._countries),
            "entries": len(self._data),
            "last_refresh": self._last_report.to_dict() if self._last_report else None,
        }


def neighbours_store(
    client: GeoNamesClient,
    countries: Iterable[str],
    request_delay: float = DEFAULT_REQUEST_DELAY,
) -> CountryDataStore[Neighbour]:
    """Store of bordering countries, from neighboursJSON."""
    return CountryDataStore(
        name="neighbours",
        endpoint=NEIGHBOURS_ENDPOINT,
        parser=parse_neighbours,
        client=client,
        countries=countries,
        request_delay=request_delay,
    )


def languages_store(
    client: GeoNamesClient,
    countries: Iterable[str],
    request_delay: float = DEFAULT_REQUEST_DELAY,
) -> CountryDataStore[str]:
    """Store of spoken language tags, from countryInfoJSON."""
    return CountryDataStore(
        name="languages",
        endpoint=COUNTRY_INFO_ENDPOINT,
        parser=parse_languages,
        client=client,
        countries=countries,
        request_delay=request_delay,
    )
