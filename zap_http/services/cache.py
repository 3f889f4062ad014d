"""
ResultCache - Async result cache keyed by logical query identity.

Features:
- Memory-based cache with LRU eviction
- Separate freshness and retention windows per entry
- Stale-while-revalidate fetches that fall back to retained data
- Runtime-adjustable defaults (driven by upstream Cache-Control)
"""

import asyncio
import hashlib
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Generic, TypeVar

from loguru import logger

T = TypeVar("T")

DEFAULT_FRESH_FOR = timedelta(minutes=5)
DEFAULT_RETAIN_FOR = timedelta(minutes=10)


@dataclass
class CacheEntry(Generic[T]):
    """A single cache entry with metadata."""

    data: T
    timestamp: datetime
    fresh_until: datetime
    retain_until: datetime

    def is_stale(self) -> bool:
        """Past its freshness window but still retained."""
        now = datetime.now()
        return self.fresh_until < now <= self.retain_until

    def is_valid(self) -> bool:
        """Still inside the retention window."""
        return datetime.now() <= self.retain_until


@dataclass
class CacheResult(Generic[T]):
    """Result from cache lookup."""

    data: T
    from_cache: str  # 'memory' | 'stale'
    is_stale: bool


class ResultCache:
    """
    Async-compatible result cache with freshness and retention windows.

    Usage:
        cache = ResultCache(prefix="portfolio_")

        data = await cache.fetch(
            cache.generate_key(url, params),
            lambda: client.get("/portfolio", params=params),
        )
    """

    def __init__(
        self,
        prefix: str = "zap_",
        max_size: int = 100,
        fresh_for: timedelta = DEFAULT_FRESH_FOR,
        retain_for: timedelta = DEFAULT_RETAIN_FOR,
        debug: bool = False,
    ):
        self._memory: dict[str, CacheEntry[Any]] = {}
        self._prefix = prefix
        self._max_size = max_size
        self._fresh_for = fresh_for
        self._retain_for = max(retain_for, fresh_for)
        self._debug = debug
        self._lock = asyncio.Lock()
        self._stats = CacheStats()

    @property
    def fresh_for(self) -> timedelta:
        return self._fresh_for

    @property
    def retain_for(self) -> timedelta:
        return self._retain_for

    def configure_defaults(self, fresh_for: timedelta, retain_for: timedelta) -> None:
        """Replace the default windows used by later `set` calls."""
        self._fresh_for, self._retain_for = fresh_for, max(retain_for, fresh_for)
        logger.info(
            f"Result cache defaults updated: fresh {fresh_for.total_seconds()}s, "
            f"retain {self._retain_for.total_seconds()}s"
        )

    def generate_key(self, url: str, params: dict[str, Any] | None = None) -> str:
        """Generate a cache key from URL and params."""
        if params:
            sorted_params = "&".join(f"{k}={v}" for k, v in sorted(params.items()))
            full_key = f"{url}?{sorted_params}"
        else:
            full_key = url

        # Hash long keys
        if len(full_key) > 200:
            hash_val = hashlib.md5(full_key.encode()).hexdigest()[:16]
            return f"{self._prefix}{hash_val}"

        return f"{self._prefix}{full_key}"

    async def get(self, key: str) -> CacheResult[Any] | None:
        """
        Get value from cache.

        Returns CacheResult if found and retained, None otherwise.
        """
        async with self._lock:
            entry = self._memory.get(key)
            if entry is None:
                self._stats.misses += 1
                self._log(f"MISS: {key[:50]}")
                return None

            if not entry.is_valid():
                del self._memory[key]
                self._stats.misses += 1
                self._log(f"EXPIRED: {key[:50]}")
                return None

            is_stale = entry.is_stale()
            if is_stale:
                self._stats.stale_hits += 1
                self._log(f"STALE HIT: {key[:50]}")
            else:
                self._stats.hits += 1
                self._log(f"HIT: {key[:50]}")

            return CacheResult(
                data=entry.data,
                from_cache="stale" if is_stale else "memory",
                is_stale=is_stale,
            )

    async def set(
        self,
        key: str,
        data: Any,
        fresh_for: timedelta | None = None,
        retain_for: timedelta | None = None,
    ) -> None:
        """Store `data`, using the current defaults for missing windows."""
        fresh = fresh_for if fresh_for is not None else self._fresh_for
        retain = retain_for if retain_for is not None else self._retain_for

        now = datetime.now()
        entry = CacheEntry(
            data=data,
            timestamp=now,
            fresh_until=now + fresh,
            retain_until=now + max(retain, fresh),
        )

        async with self._lock:
            if len(self._memory) >= self._max_size and key not in self._memory:
                self._evict_oldest()

            self._memory[key] = entry
            self._log(f"SET: {key[:50]} (fresh: {fresh.total_seconds()}s)")

    async def fetch(self, key: str, fetcher: Callable[[], Awaitable[T]]) -> T:
        """
        Return fresh cached data, or fetch and store it.

        Stale entries are refetched; if the refetch fails the stale data is
        returned instead of the error.
        """
        cached = await self.get(key)
        if cached is not None and not cached.is_stale:
            return cached.data

        try:
            data = await fetcher()
        except Exception as e:
            if cached is None:
                raise
            logger.warning(f"Refresh of {key[:50]} failed, returning stale data: {e}")
            return cached.data

        await self.set(key, data)
        return data

    async def delete(self, key: str) -> bool:
        """Delete a specific key from cache."""
        async with self._lock:
            if key in self._memory:
                del self._memory[key]
                self._log(f"DELETE: {key[:50]}")
                return True
            return False

    async def invalidate(self, pattern: str) -> int:
        """Invalidate all keys containing `pattern`; returns the count."""
        async with self._lock:
            keys_to_delete = [k for k in self._memory if pattern in k]
            for key in keys_to_delete:
                del self._memory[key]

            if keys_to_delete:
                self._log(
                    f"INVALIDATE: {len(keys_to_delete)} entries matching '{pattern}'"
                )
            return len(keys_to_delete)

    async def clear(self) -> None:
        async with self._lock:
            count = len(self._memory)
            self._memory.clear()
            self._log(f"CLEAR: {count} entries removed")

    async def cleanup_expired(self) -> int:
        """Remove entries past retention. Returns count of removed entries."""
        async with self._lock:
            expired_keys = [k for k, v in self._memory.items() if not v.is_valid()]
            for key in expired_keys:
                del self._memory[key]

            if expired_keys:
                self._log(f"CLEANUP: {len(expired_keys)} expired entries removed")
            return len(expired_keys)

    def _evict_oldest(self) -> None:
        if not self._memory:
            return

        oldest_key = min(self._memory, key=lambda k: self._memory[k].timestamp)
        del self._memory[oldest_key]
        self._stats.evictions += 1
        self._log(f"EVICT: {oldest_key[:50]}")

    def get_stats(self) -> "CacheStats":
        """Get cache statistics."""
        self._stats.size = len(self._memory)
        self._stats.max_size = self._max_size
        return self._stats

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[ResultCache] {message}")


@dataclass
class CacheStats:
    """Cache statistics."""

    hits: int = 0
    misses: int = 0
    stale_hits: int = 0
    evictions: int = 0
    size: int = 0
    max_size: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.stale_hits + self.misses
        if total == 0:
            return 0.0
        return (self.hits + self.stale_hits) / total

    def to_dict(self) -> dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "stale_hits": self.stale_hits,
            "evictions": self.evictions,
            "size": self.size,
            "max_size": self.max_size,
            "hit_rate": f"{self.hit_rate:.2%}",
        }
