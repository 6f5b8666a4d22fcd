"""
Record types fetched from GeoNames and the parsers that build them.
"""
from dataclasses import dataclass
from typing import Any, Dict, List


@dataclass(frozen=True)
class Neighbour:
    """A country sharing a border with the looked-up country."""
    country_code: str
    country_name: str

    def to_dict(self) -> Dict[str, str]:
        """Convert to the camelCase shape used in lookup responses."""
        return {
            "countryCode": self.country_code,
            "countryName": self.country_name,
        }


def _geonames_items(payload: Dict[str, Any]) -> List[Dict[str, Any]]:
    items = payload.get("geonames")
    if not isinstance(items, list):
        return []
    return [item for item in items if isinstance(item, dict)]


def parse_neighbours(payload: Dict[str, Any]) -> List[Neighbour]:
    """
    Parse a neighboursJSON response.

    Items missing either the country code or the name are dropped.
    """
    neighbours = []
    for item in _geonames_items(payload):
        code = item.get("countryCode") or ""
        name = item.get("countryName") or ""
        if not code or not name:
            continue
        neighbours.append(Neighbour(country_code=code, country_name=name))
    return neighbours


def parse_language_field(value: Any) -> List[str]:
    """
    Split a GeoNames languages field such as "fr-BE,nl,de-BE,fr".

    Segments are trimmed, empty ones dropped, and exact duplicates removed
    keeping the first occurrence. Region variants stay distinct.
    """
    if not isinstance(value, str):
        return []

    languages = []
    seen = set()
    for part in value.split(","):
        code = part.strip()
        if not code or code in seen:
            continue
        seen.add(code)
        languages.append(code)
    return languages


def parse_languages(payload: Dict[str, Any]) -> List[str]:
    """Parse a countryInfoJSON response into its ordered language tags."""
    items = _geonames_items(payload)
    if not items:
        return []
    return parse_language_field(items[0].get("languages"))
