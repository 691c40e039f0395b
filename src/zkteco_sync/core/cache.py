"""Thread-safe in-memory get-or-compute cache with per-entry TTL."""
from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Dict, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _CacheEntry:
    """One cached value and its expiry."""

    __slots__ = ("value", "stored_at", "expires_at")

    def __init__(self, value: Any, ttl: float, now: float) -> None:
        self.value = value
        self.stored_at = now
        self.expires_at = now + ttl


class TTLCache:
    """In-memory cache offering get-or-compute semantics.

    ``compute`` runs outside the lock so a slow device query does not block
    readers of other keys. Failures are not cached.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._lock = threading.Lock()
        self._data: Dict[str, _CacheEntry] = {}
        self._clock = clock

    def get(self, key: str) -> Optional[Any]:
        """Return a live value, or ``None`` on miss or expiry."""
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            if entry.expires_at <= self._clock():
                del self._data[key]
                return None
            return entry.value

    def set(self, key: str, value: Any, ttl: float) -> None:
        with self._lock:
            self._data[key] = _CacheEntry(value, ttl, self._clock())

    def get_or_compute(self, key: str, ttl: float, compute: Callable[[], T]) -> T:
        cached = self.get(key)
        if cached is not None:
            logger.debug("Cache hit for %s", key)
            return cached

        value = compute()
        self.set(key, value, ttl)
        logger.debug("Cache stored %s for %ss", key, ttl)
        return value

    def invalidate(self, key: Optional[str] = None) -> None:
        """Drop one key, or everything when ``key`` is None."""
        with self._lock:
            if key is None:
                self._data.clear()
            else:
                self._data.pop(key, None)

    def get_status(self) -> Dict[str, Dict[str, Any]]:
        """Return remaining TTL per cached key."""
        now = self._clock()
        with self._lock:
            return {
                key: {
                    "age_seconds": round(now - entry.stored_at, 1),
                    "expires_in_seconds": round(entry.expires_at - now, 1),
                }
                for key, entry in self._data.items()
                if entry.expires_at > now
            }


def device_info_key(ip: str) -> str:
    return f"device_info:{ip}"


# Module-level singleton
_cache: Optional[TTLCache] = None


def get_cache() -> TTLCache:
    """Get the global cache (lazy loaded)."""
    global _cache
    if _cache is None:
        _cache = TTLCache()
    return _cache
