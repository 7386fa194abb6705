"""Process-wide in-memory response cache with a fixed TTL and hit/miss stats."""
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from newsletterbot.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CacheStats:
    """Cumulative cache counters since start or last clear()."""
    hits: int
    misses: int
    keys: int

    def to_dict(self) -> Dict[str, int]:
        return {"hits": self.hits, "misses": self.misses, "keys": self.keys}


@dataclass
class _CacheEntry:
    value: Any
    inserted_at: float


class ResponseCache:
    """
    Time-expiring key/value store shared by concurrent requests.

    Every instance has a single TTL. Entries older than the TTL are treated
    as misses and evicted on access. Writes also sweep expired entries at
    most once per TTL, so keys that are never read again do not pile up.
    The lock only guards the dict and the counters; callers never hold it
    across an await.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._store: Dict[str, _CacheEntry] = {}
        self._hits = 0
        self._misses = 0
        self._last_sweep = clock()

    def _is_expired(self, entry: _CacheEntry, now: float) -> bool:
        return now - entry.inserted_at > self.ttl_seconds

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None on a miss."""
        now = self._clock()
        with self._lock:
            entry = self._store.get(key)
            if entry is not None and self._is_expired(entry, now):
                del self._store[key]
                entry = None

            if entry is None:
                self._misses += 1
                return None

            self._hits += 1
            return entry.value

    def set(self, key: str, value: Any) -> None:
        """Store a value; None is not cacheable since it signals a miss."""
        if value is None:
            raise ValueError("Cannot cache None")
        now = self._clock()
        with self._lock:
            if now - self._last_sweep >= self.ttl_seconds:
                self._purge_expired(now)
            self._store[key] = _CacheEntry(value=value, inserted_at=now)

    def _purge_expired(self, now: float) -> None:
        expired = [key for key, entry in self._store.items() if self._is_expired(entry, now)]
        for key in expired:
            del self._store[key]
        self._last_sweep = now
        if expired:
            logger.debug(f"Evicted {len(expired)} expired cache entries")

    def stats(self) -> CacheStats:
        now = self._clock()
        with self._lock:
            live = sum(1 for entry in self._store.values() if not self._is_expired(entry, now))
            return CacheStats(hits=self._hits, misses=self._misses, keys=live)

    def clear(self) -> None:
        """Drop all entries and reset the counters."""
        with self._lock:
            self._store.clear()
            self._hits = 0
            self._misses = 0
        logger.info("Response cache cleared")

    def __len__(self) -> int:
        return self.stats().keys
