"""
Core cache data structures.
"""
from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class CacheEntry:
    """
    A cached value with an absolute expiry time.

    expires_at is measured on the owning cache's clock; None means the
    entry never expires and is never removed by the sweeper.
    """
    value: Any
    expires_at: Optional[float] = None

    @property
    def never_expires(self) -> bool:
        return self.expires_at is None

    def is_expired(self, now: float) -> bool:
        """Check if the entry has passed its expiry time."""
        if self.expires_at is None:
            return False
        return now > self.expires_at

    def remaining(self, now: float) -> Optional[float]:
        """Seconds left before expiry, or None for entries that never expire."""
        if self.expires_at is None:
            return None
        return max(0.0, self.expires_at - now)
