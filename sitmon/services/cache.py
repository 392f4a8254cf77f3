"""
Result cache - holds the latest analysis result for a bounded time.

Entries expire after their TTL and are dropped on the next lookup. There is
no size bound and no stale serving: the engine stores a handful of keys and
an expired result must never be returned.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Generic, TypeVar

from loguru import logger


V = TypeVar("V")


@dataclass(frozen=True)
class CacheEntry(Generic[V]):
    value: V
    stored_at: datetime
    ttl: timedelta

    @property
    def expires_at(self) -> datetime:
        return self.stored_at + self.ttl

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


@dataclass
class CacheStats:
    """Lookup counters; ``size`` is refreshed by ``CacheManager.get_stats``."""

    hits: int = 0
    misses: int = 0
    expirations: int = 0
    size: int = 0

    @property
    def hit_rate(self) -> float:
        lookups = self.hits + self.misses
        return self.hits / lookups if lookups else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "expirations": self.expirations,
            "size": self.size,
            "hit_rate": f"{self.hit_rate:.2%}",
        }


class CacheManager:
    """
    TTL cache keyed by string, safe to share between concurrent runs.

    The clock is injectable so expiry can be driven from tests.

    Usage:
        cache = CacheManager(default_ttl=timedelta(minutes=5))
        await cache.set("latest", result)
        result = await cache.get("latest")
    """

    def __init__(
        self,
        default_ttl: timedelta = timedelta(minutes=5),
        clock: Callable[[], datetime] = datetime.now,
        debug: bool = False,
    ):
        self.default_ttl = default_ttl
        self._entries: dict[str, CacheEntry[Any]] = {}
        self._clock = clock
        self._debug = debug
        self._lock = asyncio.Lock()
        self._stats = CacheStats()

    async def get(self, key: str) -> Any | None:
        """Return the cached value, or None when absent or expired."""
        async with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.is_expired(self._clock()):
                self._entries.pop(key)
                self._stats.expirations += 1
                self._trace(f"expired {key}")
                entry = None

            if entry is None:
                self._stats.misses += 1
                self._trace(f"miss {key}")
                return None

            self._stats.hits += 1
            self._trace(f"hit {key}")
            return entry.value

    async def set(self, key: str, value: Any, ttl: timedelta | None = None) -> None:
        ttl = ttl or self.default_ttl
        async with self._lock:
            self._entries[key] = CacheEntry(value=value, stored_at=self._clock(), ttl=ttl)
        self._trace(f"set {key} for {ttl.total_seconds():.0f}s")

    async def delete(self, key: str) -> bool:
        async with self._lock:
            removed = self._entries.pop(key, None) is not None
        if removed:
            self._trace(f"deleted {key}")
        return removed

    async def clear(self) -> None:
        async with self._lock:
            dropped = len(self._entries)
            self._entries.clear()
        self._trace(f"cleared {dropped} entries")

    async def cleanup_expired(self) -> int:
        """Drop every expired entry and return how many were dropped."""
        async with self._lock:
            now = self._clock()
            stale = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in stale:
                del self._entries[key]
            self._stats.expirations += len(stale)
        if stale:
            self._trace(f"cleanup dropped {len(stale)} entries")
        return len(stale)

    def get_stats(self) -> CacheStats:
        self._stats.size = len(self._entries)
        return self._stats

    def _trace(self, message: str) -> None:
        if self._debug:
            logger.debug(f"[CacheManager] {message}")
