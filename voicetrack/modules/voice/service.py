"""
Voice Data Service
==================

Purpose
-------
Single entry point for reading and mutating voice data. Reads go through the
cache and fall back to storage on a miss; writes go to storage first and then
invalidate exactly the cache keys the write made stale.

Domain
------
- Guild snapshots and guild configuration (default config on first access)
- User records: bulk updates and per-tick activity accrual with level-ups
- Leaderboard pages
- Voice sessions (opened, closed and persisted; never cached)
- Deletion of users and guilds

Invalidation Rules
------------------
==========================  =============================================
Write path                  Cache keys dropped after the write commits
==========================  =============================================
save_guild_config           guild
get_guild_config (create)   guild
update_user                 user
start_session               user
record_activity             user; leaderboards only when the level rose
delete_user                 user, leaderboards
delete_guild                guild, leaderboards
==========================  =============================================

Known approximations: a user write leaves the guild snapshot's embedded user
map cached until its TTL, and leaderboard pages are only dropped on level-up
or deletion, so XP gains that reorder ranks without a level change surface
after the 1 minute leaderboard TTL.

Error Handling
--------------
Storage faults are logged and re-raised unchanged. Cache faults never reach
this layer; `CacheManager` degrades them to misses.
"""

from __future__ import annotations

from typing import Any, Awaitable, List, Optional, TypeVar

from voicetrack.core.cache import CacheManager, CacheStats
from voicetrack.core.exceptions import ValidationError
from voicetrack.core.logging.logger import get_logger
from voicetrack.domain.models import (
    SORT_FIELDS,
    ChannelData,
    GuildConfig,
    GuildData,
    LeaderboardEntry,
    LeaderboardQuery,
    SessionData,
    UserData,
    UserUpdate,
    utcnow,
)
from voicetrack.modules.shared.base_service import BaseService
from voicetrack.modules.voice.leveling import calculate_level, resolve_multiplier
from voicetrack.storage.base import StorageAdapter

T = TypeVar("T")


class VoiceDataService(BaseService):
    """
    Read-through / write-invalidate access to voice tracking data.

    Public Methods
    --------------
    - get_guild() / get_user() / get_leaderboard() -> cached reads
    - get_guild_config() / save_guild_config() -> guild configuration
    - update_user() -> bulk user update
    - record_activity() -> per-tick voice time and XP accrual
    - start_session() / end_session() / get_sessions() -> voice sessions
    - delete_user() / delete_guild() -> removal
    - get_cache_stats() -> engine statistics
    """

    def __init__(
        self,
        storage: StorageAdapter,
        cache: Optional[CacheManager] = None,
    ) -> None:
        """
        Args:
            storage: Persistent backend
            cache: Cache coordinator; a disabled coordinator is used when None
        """
        super().__init__(get_logger(__name__))
        self._storage = storage
        self._cache = cache if cache is not None else CacheManager()

    @property
    def cache(self) -> CacheManager:
        return self._cache

    async def _storage_call(self, operation: str, awaitable: Awaitable[T], **context: Any) -> T:
        try:
            return await awaitable
        except Exception as exc:
            self.log_error(operation, exc, **context)
            raise

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    async def init(self) -> None:
        await self._storage_call("init", self._storage.init())
        await self._cache.init()
        self.log.info("Voice data service ready", extra={"cache_enabled": self._cache.enabled})

    async def close(self) -> None:
        await self._cache.close()
        await self._storage_call("close", self._storage.close())

    async def get_cache_stats(self) -> Optional[CacheStats]:
        return await self._cache.get_stats()

    # ========================================================================
    # PUBLIC API - Read Operations
    # ========================================================================

    async def get_guild(self, guild_id: str) -> Optional[GuildData]:
        """
        Guild snapshot, from cache when possible.

        On a miss the snapshot is loaded from storage and cached; a guild
        storage does not know is returned as None and nothing is cached.
        """
        self.validate_non_empty_str(guild_id, "guild_id")

        guild = await self._cache.get_guild(guild_id)
        if guild is not None:
            return guild

        guild = await self._storage_call(
            "get_guild", self._storage.get_guild(guild_id), guild_id=guild_id
        )
        if guild is not None:
            await self._cache.set_guild(guild)
        return guild

    async def get_user(self, guild_id: str, user_id: str) -> Optional[UserData]:
        self.validate_non_empty_str(guild_id, "guild_id")
        self.validate_non_empty_str(user_id, "user_id")

        user = await self._cache.get_user(guild_id, user_id)
        if user is not None:
            return user

        user = await self._storage_call(
            "get_user",
            self._storage.get_user(guild_id, user_id),
            guild_id=guild_id,
            user_id=user_id,
        )
        if user is not None:
            await self._cache.set_user(user)
        return user

    async def get_leaderboard(
        self, guild_id: str, query: Optional[LeaderboardQuery] = None
    ) -> List[LeaderboardEntry]:
        """
        One ranked leaderboard page.

        Args:
            guild_id: Guild to rank
            query: Sort field (`voice_time`, `xp`, `level`), page size and
                offset; defaults to the top 10 by XP

        Raises:
            ValidationError: Unknown sort field or negative limit/offset
        """
        query = query or LeaderboardQuery()
        self.validate_non_empty_str(guild_id, "guild_id")
        if query.sort_by not in SORT_FIELDS:
            raise ValidationError(
                "sort_by", f"sort_by must be one of {', '.join(SORT_FIELDS)}, got {query.sort_by!r}"
            )
        self.validate_non_negative_int(query.limit, "limit")
        self.validate_non_negative_int(query.offset, "offset")

        entries = await self._cache.get_leaderboard(
            guild_id, query.sort_by, query.limit, query.offset
        )
        if entries is not None:
            return entries

        entries = await self._storage_call(
            "get_leaderboard",
            self._storage.get_leaderboard(guild_id, query.sort_by, query.limit, query.offset),
            guild_id=guild_id,
            sort_by=query.sort_by,
        )
        await self._cache.set_leaderboard(
            guild_id, query.sort_by, query.limit, query.offset, entries
        )
        return entries

    # ========================================================================
    # PUBLIC API - Guild Configuration
    # ========================================================================

    async def get_guild_config(self, guild_id: str) -> GuildConfig:
        """
        Guild configuration, creating and persisting the defaults on first use.
        """
        guild = await self.get_guild(guild_id)
        if guild is not None:
            return guild.config

        config = GuildConfig(guild_id=guild_id)
        await self._storage_call(
            "save_guild",
            self._storage.save_guild(GuildData(guild_id=guild_id, config=config)),
            guild_id=guild_id,
        )
        await self._cache.invalidate_guild(guild_id)

        self.log.info("Created default guild config", extra={"guild_id": guild_id})
        return config

    async def save_guild_config(self, config: GuildConfig) -> GuildData:
        """
        Persist a guild configuration.

        Existing users and extra data are kept. The read comes from storage,
        not the cache, so a stale snapshot can never overwrite newer users.
        """
        guild_id = config.guild_id
        self.validate_non_empty_str(guild_id, "guild_id")
        self.log_operation("save_guild_config", guild_id=guild_id)

        existing = await self._storage_call(
            "get_guild", self._storage.get_guild(guild_id), guild_id=guild_id
        )
        guild = GuildData(
            guild_id=guild_id,
            config=config,
            users=existing.users if existing else {},
            last_updated=utcnow(),
            extra_data=existing.extra_data if existing else {},
        )
        await self._storage_call(
            "save_guild", self._storage.save_guild(guild), guild_id=guild_id
        )
        await self._cache.invalidate_guild(guild_id)
        return guild

    # ========================================================================
    # PUBLIC API - User Writes
    # ========================================================================

    async def _multiplier_for(self, guild_id: str) -> float:
        guild = await self.get_guild(guild_id)
        return resolve_multiplier(guild.config if guild else None)

    async def _load_user_for_write(self, guild_id: str, user_id: str) -> UserData:
        user = await self._storage_call(
            "get_user",
            self._storage.get_user(guild_id, user_id),
            guild_id=guild_id,
            user_id=user_id,
        )
        return user if user is not None else UserData(user_id=user_id, guild_id=guild_id)

    async def update_user(
        self, guild_id: str, user_id: str, update: UserUpdate
    ) -> UserData:
        """
        Apply a bulk update, creating the user if absent.

        `add_xp` recalculates the level from total XP and only ever raises
        it; `set_level` then wins if given. `metadata` is shallow-merged.
        `last_seen` is left alone: this path edits totals, it does not
        record presence.

        Raises:
            ValidationError: Negative amounts or level
        """
        self.validate_non_empty_str(guild_id, "guild_id")
        self.validate_non_empty_str(user_id, "user_id")
        self.validate_non_negative_int(update.add_voice_time, "add_voice_time")
        self.validate_non_negative_int(update.add_xp, "add_xp")
        if update.set_level is not None:
            self.validate_non_negative_int(update.set_level, "set_level")

        self.log_operation("update_user", guild_id=guild_id, user_id=user_id)

        user = await self._load_user_for_write(guild_id, user_id)
        user.total_voice_time += update.add_voice_time

        if update.add_xp:
            user.xp += update.add_xp
            new_level = calculate_level(user.xp, await self._multiplier_for(guild_id))
            if new_level > user.level:
                user.level = new_level

        if update.set_level is not None:
            user.level = update.set_level

        if update.metadata:
            user.metadata.update(update.metadata)

        await self._storage_call(
            "save_user", self._storage.save_user(user), guild_id=guild_id, user_id=user_id
        )
        await self._cache.invalidate_user(guild_id, user_id)
        return user

    async def record_activity(
        self,
        guild_id: str,
        user_id: str,
        voice_time: int,
        xp: int,
        channel_id: Optional[str] = None,
    ) -> bool:
        """
        Accrue one tick of voice time and XP.

        Args:
            guild_id: Guild the user is in
            user_id: Accruing user
            voice_time: Milliseconds to add
            xp: Experience to add
            channel_id: Channel to credit the time to, if known

        Returns:
            True if the accrual raised the user's level
        """
        self.validate_non_empty_str(guild_id, "guild_id")
        self.validate_non_empty_str(user_id, "user_id")
        self.validate_non_negative_int(voice_time, "voice_time")
        self.validate_non_negative_int(xp, "xp")

        now = utcnow()
        user = await self._load_user_for_write(guild_id, user_id)
        user.total_voice_time += voice_time

        if channel_id:
            channel = user.get_channel(channel_id)
            if channel is None:
                user.channels.append(
                    ChannelData(
                        channel_id=channel_id,
                        voice_time=voice_time,
                        sessions=1,
                        last_activity=now,
                    )
                )
            else:
                channel.voice_time += voice_time
                channel.last_activity = now

        old_level = user.level
        user.xp += xp
        new_level = calculate_level(user.xp, await self._multiplier_for(guild_id))
        leveled_up = new_level > old_level
        if leveled_up:
            user.level = new_level

        user.last_seen = now

        await self._storage_call(
            "save_user", self._storage.save_user(user), guild_id=guild_id, user_id=user_id
        )
        await self._cache.invalidate_user(guild_id, user_id)

        if leveled_up:
            await self._cache.invalidate_leaderboards(guild_id)
            self.log.info(
                "User leveled up",
                extra={
                    "guild_id": guild_id,
                    "user_id": user_id,
                    "old_level": old_level,
                    "new_level": new_level,
                },
            )

        return leveled_up

    # ========================================================================
    # PUBLIC API - Sessions
    # ========================================================================

    async def start_session(
        self,
        guild_id: str,
        user_id: str,
        channel_id: str,
        was_muted: bool = False,
        was_deafened: bool = False,
    ) -> SessionData:
        """
        Open a voice session and count it on the user record.

        The returned session is not persisted; pass it to `end_session` when
        the user leaves.
        """
        self.validate_non_empty_str(guild_id, "guild_id")
        self.validate_non_empty_str(user_id, "user_id")
        self.validate_non_empty_str(channel_id, "channel_id")

        now = utcnow()
        session = SessionData(
            session_id=f"{int(now.timestamp() * 1000)}-{user_id}",
            user_id=user_id,
            guild_id=guild_id,
            channel_id=channel_id,
            start_time=now,
            was_muted=was_muted,
            was_deafened=was_deafened,
        )

        user = await self._load_user_for_write(guild_id, user_id)
        user.total_sessions += 1
        await self._storage_call(
            "save_user", self._storage.save_user(user), guild_id=guild_id, user_id=user_id
        )
        await self._cache.invalidate_user(guild_id, user_id)

        self.log_operation("start_session", guild_id=guild_id, user_id=user_id, channel_id=channel_id)
        return session

    async def end_session(self, session: SessionData) -> SessionData:
        """Stamp end time and duration (ms) on an open session and persist it."""
        session.end_time = utcnow()
        session.duration = max(
            0, int((session.end_time - session.start_time).total_seconds() * 1000)
        )
        await self._storage_call(
            "save_session",
            self._storage.save_session(session),
            guild_id=session.guild_id,
            user_id=session.user_id,
        )
        self.log_operation(
            "end_session",
            guild_id=session.guild_id,
            user_id=session.user_id,
            duration=session.duration,
        )
        return session

    async def get_sessions(
        self, guild_id: str, user_id: str, limit: Optional[int] = None
    ) -> List[SessionData]:
        """Stored sessions of one user, straight from storage."""
        self.validate_non_empty_str(guild_id, "guild_id")
        self.validate_non_empty_str(user_id, "user_id")
        if limit is not None:
            self.validate_non_negative_int(limit, "limit")

        return await self._storage_call(
            "get_sessions",
            self._storage.get_sessions(guild_id, user_id, limit),
            guild_id=guild_id,
            user_id=user_id,
        )

    # ========================================================================
    # PUBLIC API - Deletion
    # ========================================================================

    async def delete_user(self, guild_id: str, user_id: str) -> None:
        self.validate_non_empty_str(guild_id, "guild_id")
        self.validate_non_empty_str(user_id, "user_id")
        self.log_operation("delete_user", guild_id=guild_id, user_id=user_id)

        await self._storage_call(
            "delete_user",
            self._storage.delete_user(guild_id, user_id),
            guild_id=guild_id,
            user_id=user_id,
        )
        await self._cache.invalidate_user(guild_id, user_id)
        await self._cache.invalidate_leaderboards(guild_id)

    async def delete_guild(self, guild_id: str) -> None:
        self.validate_non_empty_str(guild_id, "guild_id")
        self.log_operation("delete_guild", guild_id=guild_id)

        await self._storage_call(
            "delete_guild", self._storage.delete_guild(guild_id), guild_id=guild_id
        )
        await self._cache.invalidate_guild(guild_id)
        await self._cache.invalidate_leaderboards(guild_id)
