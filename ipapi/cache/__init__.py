"""
In-memory caching with per-entry expiry and background sweeping.
"""
from .core import CacheEntry
from .expiring import ExpiringCache, DEFAULT_SWEEP_INTERVAL, NEVER_EXPIRES

__all__ = [
    "CacheEntry",
    "ExpiringCache",
    "DEFAULT_SWEEP_INTERVAL",
    "NEVER_EXPIRES",
]
