"""
IP lookup facade over the MaxMind GeoLite2 databases.

Assembles an ip-api style response from the City and ASN databases and
attaches the GeoNames data held in the country stores. The stores are
only read here; refreshing them is the coordinator's job.
"""
import ipaddress
import logging
from contextlib import suppress
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

import maxminddb

from ipapi.cache import ExpiringCache
from .currency import currency_for_country
from .eu import is_eu_country
from .timezone import TimezoneOffsets

logger = logging.getLogger("geoip.lookup")

CITY_DB = "GeoLite2-City.mmdb"
ASN_DB = "GeoLite2-ASN.mmdb"


class CountryData(Protocol):
    def get(self, country: str) -> List[Any]:
        ...


def _as_mapping(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _english_name(record: Dict[str, Any]) -> str:
    name = _as_mapping(record.get("names")).get("en")
    return name if isinstance(name, str) else ""


def _to_json(item: Any) -> Any:
    to_dict = getattr(item, "to_dict", None)
    return to_dict() if callable(to_dict) else item


class GeoLookup:
    """
    Resolves IP addresses to location, network and country details.

    Responses are memoised per address in the response cache.
    """

    def __init__(
        self,
        city_reader: Any,
        asn_reader: Optional[Any],
        timezones: TimezoneOffsets,
        response_cache: ExpiringCache,
        neighbours: Optional[CountryData] = None,
        languages: Optional[CountryData] = None,
    ):
        self._city = city_reader
        self._asn = asn_reader
        self._timezones = timezones
        self._responses = response_cache
        self._neighbours = neighbours
        self._languages = languages

    @classmethod
    def open(
        cls,
        db_path: Path,
        timezones: TimezoneOffsets,
        response_cache: ExpiringCache,
        neighbours: Optional[CountryData] = None,
        languages: Optional[CountryData] = None,
    ) -> "GeoLookup":
        """
        Open the City and ASN databases under db_path.

        Raises:
            FileNotFoundError: the City database is missing
        """
        db_path = Path(db_path)
        city_reader = maxminddb.open_database(str(db_path / CITY_DB))

        asn_reader = None
        try:
            asn_reader = maxminddb.open_database(str(db_path / ASN_DB))
        except (OSError, maxminddb.InvalidDatabaseError) as e:
            logger.warning(f"ASN database unavailable, continuing without it: {e}")

        return cls(city_reader, asn_reader, timezones, response_cache, neighbours, languages)

    def lookup(self, ip: str) -> Dict[str, Any]:
        """
        Look up an IP address.

        Raises:
            ValueError: ip is not a valid IPv4 or IPv6 address
        """
        query = str(ipaddress.ip_address(ip.strip()))

        cached, found = self._responses.get(query)
        if found:
            return cached

        response = self._build(query)
        self._responses.set(query, response)
        return response

    def _build(self, query: str) -> Dict[str, Any]:
        city = _as_mapping(self._city.get(query))

        continent = _as_mapping(city.get("continent"))
        country = _as_mapping(city.get("country"))
        location = _as_mapping(city.get("location"))
        postal = _as_mapping(city.get("postal"))
        country_code = country.get("iso_code") or ""

        response: Dict[str, Any] = {
            "query": query,
            "status": "success",
            "continent": _english_name(continent),
            "continentCode": continent.get("code") or "",
            "country": _english_name(country),
            "countryCode": country_code,
            "region": "",
            "regionName": "",
            "city": _english_name(_as_mapping(city.get("city"))),
            "zip": postal.get("code") or "",
            "lat": location.get("latitude"),
            "lon": location.get("longitude"),
            "timezone": location.get("time_zone") or "",
            "offset": 0,
            "isp": "",
            "org": "",
            "as": "",
            "asname": "",
            "mobile": False,
            "proxy": False,
            "hosting": False,
            "currencyCode": "",
            "currencySymbol": "",
            "neighbours": [],
            "isEUCountry": False,
            "languages": [],
        }

        subdivisions = city.get("subdivisions")
        if isinstance(subdivisions, list) and subdivisions:
            subdivision = _as_mapping(subdivisions[0])
            response["region"] = subdivision.get("iso_code") or ""
            response["regionName"] = _english_name(subdivision)

        self._add_asn(query, response)

        if country_code:
            response["currencyCode"], response["currencySymbol"] = currency_for_country(country_code)
            response["isEUCountry"] = is_eu_country(country_code)
            if self._neighbours is not None:
                response["neighbours"] = [_to_json(n) for n in self._neighbours.get(country_code)]
            if self._languages is not None:
                response["languages"] = list(self._languages.get(country_code))

        response["offset"] = self._timezones.offset(response["timezone"])
        return response

    def _add_asn(self, query: str, response: Dict[str, Any]) -> None:
        if self._asn is None:
            return

        try:
            asn = _as_mapping(self._asn.get(query))
        except (ValueError, maxminddb.InvalidDatabaseError) as e:
            # ASN data is optional
            logger.warning(f"Failed to lookup ASN data for {query}: {e}")
            return

        number = asn.get("autonomous_system_number")
        organization = asn.get("autonomous_system_organization") or ""
        if number is None:
            return

        # ip-api format, e.g. "AS15169 Google LLC"
        response["as"] = f"AS{number} {organization}".strip()
        response["asname"] = organization
        response["isp"] = organization
        response["org"] = organization

    def close(self) -> None:
        """Close the database readers."""
        for reader in (self._city, self._asn):
            if reader is not None:
                with suppress(Exception):
                    reader.close()
