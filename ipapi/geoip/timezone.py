"""
UTC offsets for IANA timezone names.
"""
import logging
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ipapi.cache import NEVER_EXPIRES, ExpiringCache

logger = logging.getLogger("geoip.timezone")


class TimezoneOffsets:
    """
    Resolves timezone names to their current offset from UTC in seconds.

    Loaded ZoneInfo objects are kept in the given cache without expiry.
    The offset itself is computed on every call because it changes with
    daylight saving time.
    """

    def __init__(self, cache: ExpiringCache):
        self._cache = cache

    def _zone(self, name: str) -> Optional[ZoneInfo]:
        zone, found = self._cache.get(name)
        if found:
            return zone

        try:
            zone = ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError) as e:
            logger.debug(f"Unknown timezone {name!r}: {e}")
            return None

        self._cache.set(name, zone, ttl=NEVER_EXPIRES)
        return zone

    def offset(self, name: str, at: Optional[datetime] = None) -> int:
        """Seconds east of UTC for the zone at the given time (default: now); 0 if unknown."""
        if not name:
            return 0

        zone = self._zone(name)
        if zone is None:
            return 0

        moment = at or datetime.now(timezone.utc)
        delta = moment.astimezone(zone).utcoffset()
        return int(delta.total_seconds()) if delta is not None else 0
