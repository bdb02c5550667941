"""
Domain-aware cache coordinator for VoiceTrack.

Purpose
-------
Sits in front of a cache engine and owns everything the engine does not know
about: key construction, encoding of guild/user/leaderboard values, TTL policy
per entity type, and the invalidation calls that follow persistent writes.

Responsibilities
----------------
- Build keys for the three key families (disjoint prefixes, one key per entity)
- Encode values to opaque JSON blobs and rebuild them on read
- Apply ConfigManager-driven TTLs with per-call overrides
- Delete keys after writes, including the leaderboard fan-out
- Degrade to a miss or a no-op on any engine or codec fault, wrapping it in
  `CacheError` and logging at that error's severity

Non-Responsibilities
--------------------
- Fetching from or writing to persistent storage (handled by the caller)
- Expiry and eviction mechanics (handled by the engine)

Key Format
----------
- `guild:{guild_id}`
- `user:{guild_id}:{user_id}`
- `leaderboard:{guild_id}:{sort_by}:{limit}:{offset}`

Return Discipline
-----------------
No public method raises. Reads return the value or None. Writes and single-key
invalidations return a bool success flag. `invalidate_leaderboards` returns the
number of keys it issued deletes for. Constructed without an engine, every read
misses and every write or invalidation is a successful no-op.

Leaderboard Invalidation
------------------------
Leaderboard keys are parameterized by sort field, page size and offset.
Rather than remembering every page ever cached, `invalidate_leaderboards`
deletes the product of the known sort fields, the common page sizes and offset
0 (3 x 4 x 1 = 12 keys with default settings). Pages outside that set, such as
offset > 0 or an unusual page size, stay cached until their own short TTL runs
out.
"""

from __future__ import annotations

import itertools
from typing import Any, Iterable, List, Optional

from voicetrack.core.cache import codec
from voicetrack.core.cache.memory import MemoryCache
from voicetrack.core.cache.types import CacheAdapter, CacheConfig, CacheStats
from voicetrack.core.config import Config, ConfigManager
from voicetrack.core.exceptions import (
    CacheError,
    get_error_severity,
    is_transient_error,
    should_alert,
)
from voicetrack.core.logging.logger import get_logger
from voicetrack.domain.models import GuildData, LeaderboardEntry, UserData

logger = get_logger(__name__)


class CacheManager:
    """
    Read-through / write-invalidate facade over a cache engine.

    Example
    -------
    >>> manager = CacheManager(MemoryCache())
    >>> guild = await manager.get_guild("123")
    >>> if guild is None:
    ...     guild = await storage.get_guild("123")
    ...     if guild is not None:
    ...         await manager.set_guild(guild)
    """

    GUILD_KEY = "guild:{guild_id}"
    USER_KEY = "user:{guild_id}:{user_id}"
    LEADERBOARD_KEY = "leaderboard:{guild_id}:{sort_by}:{limit}:{offset}"

    # Milliseconds; overridable via ConfigManager `cache.ttl.<type>`
    _TTL_DEFAULTS = {
        "guild": 300_000,
        "user": 300_000,
        "leaderboard": 60_000,
    }

    _FANOUT_DEFAULTS = {
        "sort_fields": ["voice_time", "xp", "level"],
        "page_sizes": [10, 25, 50, 100],
        "offsets": [0],
    }

    def __init__(self, cache: Optional[CacheAdapter] = None) -> None:
        self._cache = cache
        self._errors = 0

    @classmethod
    def from_config(cls) -> "CacheManager":
        """
        Coordinator over a `MemoryCache` sized from `Config`.

        Returns a disabled coordinator when `CACHE_ENABLED` is false.
        """
        if not Config.CACHE_ENABLED:
            logger.info("Caching disabled by configuration")
            return cls()
        return cls(MemoryCache(CacheConfig.from_config()))

    @property
    def enabled(self) -> bool:
        return self._cache is not None

    @property
    def errors(self) -> int:
        """Number of engine/codec faults swallowed so far."""
        return self._errors

    # =========================================================================
    # KEYS / POLICY
    # =========================================================================

    @classmethod
    def guild_key(cls, guild_id: str) -> str:
        return cls.GUILD_KEY.format(guild_id=guild_id)

    @classmethod
    def user_key(cls, guild_id: str, user_id: str) -> str:
        return cls.USER_KEY.format(guild_id=guild_id, user_id=user_id)

    @classmethod
    def leaderboard_key(cls, guild_id: str, sort_by: str, limit: int, offset: int) -> str:
        return cls.LEADERBOARD_KEY.format(
            guild_id=guild_id, sort_by=sort_by, limit=limit, offset=offset
        )

    @classmethod
    def _get_ttl(cls, cache_type: str) -> int:
        """
        TTL in milliseconds for a cache type from ConfigManager with fallback.

        >>> CacheManager._get_ttl("leaderboard")
        60000
        """
        default = cls._TTL_DEFAULTS[cache_type]
        return ConfigManager.get(f"cache.ttl.{cache_type}", default)

    @classmethod
    def leaderboard_fanout_keys(cls, guild_id: str) -> List[str]:
        """Keys deleted by `invalidate_leaderboards` for one guild."""
        sort_fields = ConfigManager.get(
            "cache.leaderboard.sort_fields", cls._FANOUT_DEFAULTS["sort_fields"]
        )
        page_sizes = ConfigManager.get(
            "cache.leaderboard.page_sizes", cls._FANOUT_DEFAULTS["page_sizes"]
        )
        offsets = ConfigManager.get(
            "cache.leaderboard.offsets", cls._FANOUT_DEFAULTS["offsets"]
        )
        return [
            cls.leaderboard_key(guild_id, sort_by, limit, offset)
            for sort_by, limit, offset in itertools.product(sort_fields, page_sizes, offsets)
        ]

    def _log_fault(
        self,
        operation: str,
        exc: Exception,
        cache_key: Optional[str] = None,
        **context: Any,
    ) -> CacheError:
        """Wrap an engine fault in `CacheError` and log it at its severity."""
        self._errors += 1
        error = exc if isinstance(exc, CacheError) else CacheError(operation, cache_key or "*", exc)
        cause = error.original_error or error
        if cache_key is not None:
            context["cache_key"] = cache_key

        log = logger.error if should_alert(error) else logger.warning
        log(
            f"Cache fault during {operation}; degrading",
            extra={
                "operation": operation,
                "error_type": type(cause).__name__,
                "error_message": str(cause),
                "error_code": error.error_code,
                "severity": get_error_severity(error).value,
                "retryable": is_transient_error(error),
                **context,
            },
            exc_info=True,
        )
        return error

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def init(self) -> None:
        """Start the engine's expiry sweep."""
        if not self.enabled:
            return
        try:
            await self._cache.init()
        except Exception as exc:
            self._log_fault("init", exc)

    async def clear(self) -> None:
        if not self.enabled:
            return
        try:
            await self._cache.clear()
        except Exception as exc:
            self._log_fault("clear", exc)

    async def close(self) -> None:
        if not self.enabled:
            return
        try:
            await self._cache.close()
        except Exception as exc:
            self._log_fault("close", exc)

    async def get_stats(self) -> Optional[CacheStats]:
        """Engine statistics, or None when caching is disabled or unavailable."""
        if not self.enabled:
            return None
        try:
            return await self._cache.get_stats()
        except Exception as exc:
            self._log_fault("get_stats", exc)
            return None

    # =========================================================================
    # GUILD SNAPSHOTS
    # =========================================================================

    async def get_guild(self, guild_id: str) -> Optional[GuildData]:
        """
        Cached guild snapshot with its user map and timestamps rebuilt.

        Returns
        -------
        Optional[GuildData]
            The snapshot, or None on miss, when disabled, or on any fault.
        """
        if not self.enabled:
            return None

        key = self.guild_key(guild_id)
        try:
            blob = await self._cache.get(key)
            if blob is None:
                logger.debug("Cache MISS: guild", extra={"cache_key": key, "guild_id": guild_id})
                return None
            logger.debug("Cache HIT: guild", extra={"cache_key": key, "guild_id": guild_id})
            return codec.decode_guild(blob, key)
        except Exception as exc:
            self._log_fault("get_guild", exc, cache_key=key, guild_id=guild_id)
            return None

    async def set_guild(self, guild: GuildData, ttl: Optional[int] = None) -> bool:
        """
        Cache a guild snapshot.

        Parameters
        ----------
        guild:
            Snapshot to store; its user map is flattened to a keyed mapping.
        ttl:
            Optional TTL override in milliseconds (default 5 minutes).
        """
        if not self.enabled:
            return True

        key = self.guild_key(guild.guild_id)
        try:
            blob = codec.encode_guild(guild, key)
            await self._cache.set(key, blob, ttl if ttl is not None else self._get_ttl("guild"))
            logger.debug(
                "Cached guild",
                extra={"cache_key": key, "guild_id": guild.guild_id, "users": len(guild.users)},
            )
            return True
        except Exception as exc:
            self._log_fault("set_guild", exc, cache_key=key, guild_id=guild.guild_id)
            return False

    async def invalidate_guild(self, guild_id: str) -> bool:
        """
        Drop the cached snapshot for `guild_id`.

        Call after every successful persistent write of the guild, before the
        writer returns. A missing key is not an error.
        """
        if not self.enabled:
            return True

        key = self.guild_key(guild_id)
        try:
            await self._cache.delete(key)
            logger.debug("Invalidated guild cache", extra={"cache_key": key, "guild_id": guild_id})
            return True
        except Exception as exc:
            self._log_fault("invalidate_guild", exc, cache_key=key, guild_id=guild_id)
            return False

    # =========================================================================
    # USER RECORDS
    # =========================================================================

    async def get_user(self, guild_id: str, user_id: str) -> Optional[UserData]:
        if not self.enabled:
            return None

        key = self.user_key(guild_id, user_id)
        try:
            blob = await self._cache.get(key)
            if blob is None:
                logger.debug("Cache MISS: user", extra={"cache_key": key})
                return None
            logger.debug("Cache HIT: user", extra={"cache_key": key})
            return codec.decode_user(blob, key)
        except Exception as exc:
            self._log_fault(
                "get_user", exc, cache_key=key, guild_id=guild_id, user_id=user_id
            )
            return None

    async def set_user(self, user: UserData, ttl: Optional[int] = None) -> bool:
        """Cache a user record under its guild; default TTL 5 minutes."""
        if not self.enabled:
            return True

        key = self.user_key(user.guild_id, user.user_id)
        try:
            blob = codec.encode_user(user, key)
            await self._cache.set(key, blob, ttl if ttl is not None else self._get_ttl("user"))
            logger.debug("Cached user", extra={"cache_key": key})
            return True
        except Exception as exc:
            self._log_fault("set_user", exc, cache_key=key)
            return False

    async def invalidate_user(self, guild_id: str, user_id: str) -> bool:
        if not self.enabled:
            return True

        key = self.user_key(guild_id, user_id)
        try:
            await self._cache.delete(key)
            logger.debug("Invalidated user cache", extra={"cache_key": key})
            return True
        except Exception as exc:
            self._log_fault("invalidate_user", exc, cache_key=key)
            return False

    # =========================================================================
    # LEADERBOARD PAGES
    # =========================================================================

    async def get_leaderboard(
        self, guild_id: str, sort_by: str, limit: int, offset: int
    ) -> Optional[List[LeaderboardEntry]]:
        if not self.enabled:
            return None

        key = self.leaderboard_key(guild_id, sort_by, limit, offset)
        try:
            blob = await self._cache.get(key)
            if blob is None:
                logger.debug("Cache MISS: leaderboard", extra={"cache_key": key})
                return None
            logger.debug("Cache HIT: leaderboard", extra={"cache_key": key})
            return codec.decode_leaderboard(blob, key)
        except Exception as exc:
            self._log_fault("get_leaderboard", exc, cache_key=key, guild_id=guild_id)
            return None

    async def set_leaderboard(
        self,
        guild_id: str,
        sort_by: str,
        limit: int,
        offset: int,
        entries: Iterable[LeaderboardEntry],
        ttl: Optional[int] = None,
    ) -> bool:
        """
        Cache one ranked page.

        Pages default to a 1 minute TTL: they are costly to build and any XP
        change can reorder them.
        """
        if not self.enabled:
            return True

        key = self.leaderboard_key(guild_id, sort_by, limit, offset)
        try:
            blob = codec.encode_leaderboard(list(entries), key)
            await self._cache.set(
                key, blob, ttl if ttl is not None else self._get_ttl("leaderboard")
            )
            logger.debug("Cached leaderboard page", extra={"cache_key": key})
            return True
        except Exception as exc:
            self._log_fault("set_leaderboard", exc, cache_key=key, guild_id=guild_id)
            return False

    async def invalidate_leaderboards(self, guild_id: str) -> int:
        """
        Fan out deletes over the common leaderboard pages of a guild.

        A failing delete is logged and skipped; the rest still run.

        Returns
        -------
        int
            Number of keys a delete was issued for (12 with default settings,
            0 when disabled).
        """
        if not self.enabled:
            return 0

        issued = 0
        for key in self.leaderboard_fanout_keys(guild_id):
            issued += 1
            try:
                await self._cache.delete(key)
            except Exception as exc:
                self._log_fault("invalidate_leaderboards", exc, cache_key=key, guild_id=guild_id)

        logger.debug(
            "Invalidated leaderboard pages",
            extra={"guild_id": guild_id, "keys": issued},
        )
        return issued
