"""
In-memory key/value cache with per-entry expiry and a background sweeper.
"""
import threading
import time
import logging
from typing import Any, Callable, Dict, Optional, Tuple

from .core import CacheEntry

logger = logging.getLogger("cache.expiring")

DEFAULT_SWEEP_INTERVAL = 60.0

# TTL marker for entries that never expire
NEVER_EXPIRES = float("inf")


class ExpiringCache:
    """
    Thread-safe TTL cache.

    - Entries expire lazily: get() treats an expired entry as absent but
      leaves it in place for the sweeper.
    - A daemon thread sweeps expired entries every sweep_interval seconds.
      The sweep only reclaims memory; reads never depend on it.
    - Writers are serialized by a lock. Readers never take it: every write
      replaces a whole CacheEntry in a single dict assignment.
    - Every finite TTL expires at now + ttl, so a TTL of zero or less is
      stale as soon as the clock moves. Only NEVER_EXPIRES stores an entry
      without expiry.

    The sweeper lives as long as the cache handle. Call close(), or use the
    cache as a context manager, to stop it.

    Usage:
        with ExpiringCache(default_ttl=300) as cache:
            cache.set("8.8.8.8", response)
            value, found = cache.get("8.8.8.8")
    """

    def __init__(
        self,
        default_ttl: float,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
        start_sweeper: bool = True,
        name: str = "cache",
    ):
        """
        Initialize the cache.

        Args:
            default_ttl: Seconds an entry stays valid after set(), or NEVER_EXPIRES
            sweep_interval: Seconds between background sweeps
            clock: Monotonic time source, replaceable in tests
            start_sweeper: Start the background sweeper immediately
            name: Label used for the sweeper thread and log lines
        """
        self._entries: Dict[str, CacheEntry] = {}
        self._write_lock = threading.Lock()
        self._default_ttl = default_ttl
        self._sweep_interval = sweep_interval
        self._clock = clock
        self._name = name

        self._closed = threading.Event()
        self._sweeper: Optional[threading.Thread] = None

        self._stats = {
            "sweeps": 0,
            "swept": 0,
        }

        if start_sweeper:
            self._start_sweeper()

    @property
    def default_ttl(self) -> float:
        return self._default_ttl

    def _expiry_for(self, ttl: Optional[float]) -> Optional[float]:
        ttl = self._default_ttl if ttl is None else ttl
        if ttl == NEVER_EXPIRES:
            return None
        return self._clock() + ttl

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """
        Store a value, overwriting any existing entry.

        Args:
            key: Cache key
            value: Any value
            ttl: Override the default TTL for this entry (NEVER_EXPIRES for no expiry)
        """
        entry = CacheEntry(value=value, expires_at=self._expiry_for(ttl))
        with self._write_lock:
            self._entries[key] = entry

    def get(self, key: str) -> Tuple[Any, bool]:
        """
        Look up a key.

        Returns:
            (value, True) for a live entry, (None, False) if the key is
            absent or its entry has expired.
        """
        entry = self._entries.get(key)
        if entry is None or entry.is_expired(self._clock()):
            return None, False
        return entry.value, True

    def delete(self, key: str) -> None:
        """Remove a key if present."""
        with self._write_lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        """Remove every entry."""
        with self._write_lock:
            self._entries = {}

    def size(self) -> int:
        """Number of stored entries, including expired ones not yet swept."""
        return len(self._entries)

    def __len__(self) -> int:
        return self.size()

    def sweep(self) -> int:
        """
        Remove every expired entry.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        with self._write_lock:
            expired = [k for k, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]
            self._stats["sweeps"] += 1
            self._stats["swept"] += len(expired)

        if expired:
            logger.debug(f"Swept {len(expired)} expired entries from {self._name}")
        return len(expired)

    def _start_sweeper(self) -> None:
        self._sweeper = threading.Thread(
            target=self._sweep_loop,
            name=f"{self._name}-sweeper",
            daemon=True,
        )
        self._sweeper.start()

    def _sweep_loop(self) -> None:
        # Event.wait returns True once close() is called
        while not self._closed.wait(self._sweep_interval):
            try:
                self.sweep()
            except Exception as e:
                logger.error(f"Sweep failed for {self._name}: {e}")

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def close(self, timeout: Optional[float] = None) -> None:
        """Stop the background sweeper. Safe to call more than once."""
        self._closed.set()
        sweeper = self._sweeper
        if sweeper is not None and sweeper.is_alive() and sweeper is not threading.current_thread():
            sweeper.join(timeout)
        self._sweeper = None

    def __enter__(self) -> "ExpiringCache":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        return {
            "entries": len(self._entries),
            "default_ttl": None if self._default_ttl == NEVER_EXPIRES else self._default_ttl,
            "sweeps": self._stats["sweeps"],
            "swept": self._stats["swept"],
            "sweeper_running": self._sweeper is not None and self._sweeper.is_alive(),
        }
