"""In-process read-through cache with per-entry TTL.

Keys are plain tuples built by :func:`cache_key`; nothing is interpolated into
strings, so a date is the same key whatever its display format.
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import date, datetime
from typing import Any, Callable, Dict, Generic, Hashable, Optional, Tuple, TypeVar

from observability.metrics import experience_cache_requests_total

logger = logging.getLogger(__name__)

V = TypeVar("V")

CacheKey = Tuple[Hashable, ...]


class _Miss:
    def __repr__(self) -> str:
        return "MISS"

    def __bool__(self) -> bool:
        return False


MISS: Any = _Miss()


def cache_key(operation: str, *parts: Any) -> CacheKey:
    """Build a cache key from an operation name and its arguments.

    datetimes are reduced to their calendar date, so any time of day on the
    same date addresses the same entry.
    """
    normalized = []
    for part in parts:
        if isinstance(part, datetime):
            part = part.date()
        elif isinstance(part, (list, dict, set)):
            raise TypeError(f"unhashable cache key part: {part!r}")
        normalized.append(part)
    return (operation, *normalized)


class _Entry(Generic[V]):
    __slots__ = ("value", "expires_at")

    def __init__(self, value: V, expires_at: Optional[float]):
        self.value = value
        self.expires_at = expires_at

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class TTLCache(Generic[V]):
    """Keyed cache with lazy TTL eviction.

    A ttl of 0 or less stores nothing. Concurrent misses on the same key may
    both populate it; the last write wins. With ``max_entries`` set, a put that
    overflows drops expired entries first, then the oldest writes.
    """

    def __init__(
        self,
        name: str,
        default_ttl: float = 300,
        *,
        clock: Callable[[], float] = time.monotonic,
        max_entries: Optional[int] = None,
    ):
        self.name = name
        self.default_ttl = default_ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: Dict[CacheKey, _Entry[V]] = {}
        self._lock = threading.RLock()

    def get(self, key: CacheKey) -> Any:
        """Return the cached value, or ``MISS``."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.is_expired(self._clock()):
                del self._entries[key]
                entry = None

        if entry is None:
            experience_cache_requests_total.labels(cache=self.name, outcome="miss").inc()
            return MISS

        experience_cache_requests_total.labels(cache=self.name, outcome="hit").inc()
        return entry.value

    def put(self, key: CacheKey, value: V, ttl: Optional[float] = None) -> None:
        effective_ttl = self.default_ttl if ttl is None else ttl
        if effective_ttl <= 0:
            return
        now = self._clock()
        with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = _Entry(value, now + effective_ttl)
            if self.max_entries is not None and len(self._entries) > self.max_entries:
                self._evict(now)
        logger.debug(f"[{self.name}] cached {key!r} for {effective_ttl}s")

    def _evict(self, now: float) -> None:
        for key in [k for k, entry in self._entries.items() if entry.is_expired(now)]:
            del self._entries[key]
        while len(self._entries) > self.max_entries:
            del self._entries[next(iter(self._entries))]

    def invalidate(self, key: Optional[CacheKey] = None) -> None:
        """Drop one key, or everything when no key is given."""
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)

    def __len__(self) -> int:
        now = self._clock()
        with self._lock:
            return sum(1 for entry in self._entries.values() if not entry.is_expired(now))


def as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value
