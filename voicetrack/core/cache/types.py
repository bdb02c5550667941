"""
Cache engine contracts and value types.

Defines the adapter protocol the coordinator talks to, the engine's
configuration surface, its statistics snapshot, and the stored entry shape.
Every engine method is a coroutine so callers can treat cache and storage
uniformly.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Optional, Protocol, Tuple, runtime_checkable

from voicetrack.core.config.config import Config
from voicetrack.core.exceptions import CacheConfigurationError


@dataclass
class CacheEntry:
    """A stored value and the absolute monotonic time (ms) it stops being visible."""

    value: Any
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


@dataclass
class CacheStats:
    """
    Running engine counters.

    `hit_rate` is `hits / (hits + misses)`, or 0.0 before any lookup.
    """

    hits: int = 0
    misses: int = 0
    sets: int = 0
    deletes: int = 0
    size: int = 0
    hit_rate: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class CacheConfig:
    """
    Engine configuration.

    Attributes
    ----------
    ttl : int
        Default entry lifetime in milliseconds.
    max_size : int
        Maximum number of entries before LRU eviction.
    enable_stats : bool
        When False, statistics counters stay frozen.
    cleanup_interval : int
        Milliseconds between background expiry sweeps.
    """

    ttl: int = 300_000
    max_size: int = 1000
    enable_stats: bool = True
    cleanup_interval: int = 60_000

    def __post_init__(self) -> None:
        if self.max_size < 1:
            raise CacheConfigurationError(
                "max_size", f"must be at least 1, got {self.max_size}"
            )
        if self.cleanup_interval <= 0:
            raise CacheConfigurationError(
                "cleanup_interval", f"must be positive, got {self.cleanup_interval}"
            )

    @classmethod
    def from_config(cls) -> "CacheConfig":
        """Build from the static environment-driven `Config`."""
        return cls(
            ttl=Config.CACHE_TTL_MS,
            max_size=Config.CACHE_MAX_SIZE,
            enable_stats=Config.CACHE_ENABLE_STATS,
            cleanup_interval=Config.CACHE_CLEANUP_INTERVAL_MS,
        )


@runtime_checkable
class CacheAdapter(Protocol):
    """Opaque key-value store with TTL, as consumed by `CacheManager`."""

    async def init(self) -> None: ...

    async def get(self, key: str) -> Optional[Any]: ...

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def clear(self) -> None: ...

    async def has(self, key: str) -> bool: ...

    async def mget(self, keys: Iterable[str]) -> List[Optional[Any]]: ...

    async def mset(
        self, entries: Iterable[Tuple[str, Any]], ttl: Optional[int] = None
    ) -> None: ...

    async def get_stats(self) -> CacheStats: ...

    async def close(self) -> None: ...
