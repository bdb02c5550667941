"""
In-memory TTL + LRU cache engine for VoiceTrack.

Purpose
-------
A capacity-bounded, TTL-bounded opaque key-value store with running
hit/miss/set/delete statistics. It knows nothing about guilds, users or
leaderboards; `CacheManager` layers that on top.

Responsibilities
----------------
- Per-entry expiry, enforced lazily on read and actively by a periodic sweep
- Strict least-recently-used eviction when inserting a new key at capacity
- Statistics snapshot with a derived hit rate

Non-Responsibilities
--------------------
- Key construction and value encoding (handled by CacheManager)
- Cross-process sharing or persistence across restarts

Architecture Notes
------------------
- Recency is an access-order ledger: a strictly increasing counter stamped on
  the key by every hit and every set. Eviction removes the key holding the
  smallest stamp, so there are never ties.
- Capacity is checked only when the key being set is not already stored;
  overwriting never evicts.
- An entry is visible while `now < expires_at`. A read that finds an expired
  entry deletes it; the sweep removes the ones nobody reads again.
- All state is touched from the event loop thread only, so no locks are
  held. Methods are coroutines to match the storage calling convention.
- Time is read from an injectable millisecond clock (monotonic by default).

Performance Characteristics
---------------------------
- O(1) get/set/delete on the hot path
- O(n) eviction scan over the ledger
- O(n) sweep every `cleanup_interval` milliseconds
"""

from __future__ import annotations

import asyncio
import contextlib
import dataclasses
import time
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from voicetrack.core.cache.types import CacheConfig, CacheEntry, CacheStats
from voicetrack.core.logging.logger import get_logger

logger = get_logger(__name__)

Clock = Callable[[], float]


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class MemoryCache:
    """
    In-memory cache with TTL expiry and LRU eviction.

    Example:
        cache = MemoryCache(CacheConfig(ttl=60_000, max_size=2))
        await cache.init()
        await cache.set("a", 1)
        value = await cache.get("a")
        await cache.close()
    """

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        clock: Clock = monotonic_ms,
    ) -> None:
        """
        Initialize the engine.

        Args:
            config: Engine settings (default: `CacheConfig()`)
            clock: Zero-argument callable returning the current time in ms
        """
        self._config = config or CacheConfig()
        self._clock = clock

        self._entries: Dict[str, CacheEntry] = {}
        self._access_order: Dict[str, int] = {}
        self._access_counter = 0

        self._stats = CacheStats()
        self._cleanup_task: Optional[asyncio.Task] = None

        logger.debug(
            "MemoryCache initialized",
            extra={
                "ttl_ms": self._config.ttl,
                "max_size": self._config.max_size,
                "enable_stats": self._config.enable_stats,
            },
        )

    @property
    def config(self) -> CacheConfig:
        return self._config

    def __len__(self) -> int:
        return len(self._entries)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def init(self) -> None:
        """Start the periodic expiry sweep. A second call is a no-op."""
        if self._cleanup_task is not None and not self._cleanup_task.done():
            return
        self._cleanup_task = asyncio.get_running_loop().create_task(
            self._cleanup_loop(), name="voicetrack-cache-sweep"
        )
        logger.debug(
            "Cache sweep started",
            extra={"interval_ms": self._config.cleanup_interval},
        )

    async def close(self) -> None:
        """Stop the sweep and drop every entry. Safe to call repeatedly."""
        task, self._cleanup_task = self._cleanup_task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        self._entries.clear()
        self._access_order.clear()
        if self._config.enable_stats:
            self._stats.size = 0

    async def _cleanup_loop(self) -> None:
        interval = self._config.cleanup_interval / 1000.0
        while True:
            await asyncio.sleep(interval)
            try:
                self.purge_expired()
            except Exception as exc:
                logger.error(
                    "Cache sweep failed",
                    extra={"error_type": type(exc).__name__, "error_message": str(exc)},
                    exc_info=True,
                )

    # =========================================================================
    # SINGLE-KEY OPERATIONS
    # =========================================================================

    async def get(self, key: str) -> Optional[Any]:
        """
        Return the stored value, or None when absent or expired.

        A hit refreshes the key's recency. An expired entry is removed.
        """
        entry = self._entries.get(key)

        if entry is None:
            self._record_lookup(hit=False)
            return None

        if entry.is_expired(self._clock()):
            self._remove(key)
            self._record_lookup(hit=False)
            logger.debug("Cache key expired", extra={"cache_key": key})
            return None

        self._touch(key)
        self._record_lookup(hit=True)
        return entry.value

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """
        Store `value` for `ttl` ms (engine default when None).

        A zero or negative ttl stores an entry that is already expired.
        """
        lifetime = self._config.ttl if ttl is None else ttl
        expires_at = self._clock() + lifetime

        if key not in self._entries and len(self._entries) >= self._config.max_size:
            self._evict_lru()

        self._entries[key] = CacheEntry(value=value, expires_at=expires_at)
        self._touch(key)

        if self._config.enable_stats:
            self._stats.sets += 1
            self._stats.size = len(self._entries)

    async def delete(self, key: str) -> None:
        """Remove `key`; counted as a delete even when nothing was stored."""
        self._remove(key)
        if self._config.enable_stats:
            self._stats.deletes += 1
            self._stats.size = len(self._entries)

    async def has(self, key: str) -> bool:
        """Existence check. Expires lazily like `get`; touches neither stats nor recency."""
        entry = self._entries.get(key)
        if entry is None:
            return False

        if entry.is_expired(self._clock()):
            self._remove(key)
            if self._config.enable_stats:
                self._stats.size = len(self._entries)
            return False

        return True

    async def clear(self) -> None:
        """Drop all entries and restart the ledger. Cumulative counters are kept."""
        self._entries.clear()
        self._access_order.clear()
        self._access_counter = 0

        if self._config.enable_stats:
            self._stats.size = 0

    # =========================================================================
    # BATCH OPERATIONS
    # =========================================================================

    async def mget(self, keys: Iterable[str]) -> List[Optional[Any]]:
        return [await self.get(key) for key in keys]

    async def mset(
        self, entries: Iterable[Tuple[str, Any]], ttl: Optional[int] = None
    ) -> None:
        for key, value in entries:
            await self.set(key, value, ttl)

    # =========================================================================
    # STATISTICS / MAINTENANCE
    # =========================================================================

    async def get_stats(self) -> CacheStats:
        """Return a copy of the counters."""
        return dataclasses.replace(self._stats)

    def reset_stats(self) -> None:
        self._stats = CacheStats(size=len(self._entries))

    def purge_expired(self) -> int:
        """
        Remove every expired entry.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            self._remove(key)

        if self._config.enable_stats:
            self._stats.size = len(self._entries)

        if expired:
            logger.debug(
                "Cache sweep removed expired entries",
                extra={"removed": len(expired), "size": len(self._entries)},
            )
        return len(expired)

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _touch(self, key: str) -> None:
        self._access_order[key] = self._access_counter
        self._access_counter += 1

    def _remove(self, key: str) -> None:
        self._entries.pop(key, None)
        self._access_order.pop(key, None)

    def _evict_lru(self) -> None:
        if not self._access_order:
            return
        oldest_key = min(self._access_order, key=self._access_order.__getitem__)
        self._remove(oldest_key)
        logger.debug("Cache evicted LRU key", extra={"cache_key": oldest_key})

    def _record_lookup(self, hit: bool) -> None:
        if not self._config.enable_stats:
            return

        if hit:
            self._stats.hits += 1
        else:
            self._stats.misses += 1
        self._stats.size = len(self._entries)

        total = self._stats.hits + self._stats.misses
        self._stats.hit_rate = self._stats.hits / total if total else 0.0
