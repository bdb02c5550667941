"""
Pytest Configuration and Fixtures for VoiceTrack Tests
======================================================

Purpose
-------
Shared fixtures for the unit suite: a controllable clock for the cache
engine, an in-memory storage fake, and engine/coordinator/service factories.

Architecture Notes
------------------
- Everything is in-process; no external infrastructure is started
- ConfigManager is reset around every test and pointed at an empty config
  directory so only built-in defaults apply
- The storage fake hands out copies so tests cannot mutate stored state by
  accident, mirroring a real serializing backend
"""

from __future__ import annotations

import copy
from typing import Dict, List, Optional, Tuple

import pytest
import pytest_asyncio

from voicetrack.core.cache import CacheConfig, CacheManager, MemoryCache
from voicetrack.core.config import ConfigManager
from voicetrack.domain.models import (
    GuildConfig,
    GuildData,
    LeaderboardEntry,
    SessionData,
    UserData,
)
from voicetrack.modules.voice.service import VoiceDataService

# ============================================================================
# CONFIGURATION ISOLATION
# ============================================================================


@pytest.fixture(autouse=True)
def isolated_config(tmp_path):
    """Built-in ConfigManager defaults only; overrides dropped after each test."""
    ConfigManager.reset()
    ConfigManager.initialize(config_dir=tmp_path / "config")
    yield
    ConfigManager.reset()


# ============================================================================
# CLOCK
# ============================================================================


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ============================================================================
# STORAGE FAKE
# ============================================================================


class InMemoryStorage:
    """Dict-backed `StorageAdapter` that ranks leaderboards on request."""

    _SORT_ATTRS = {
        "voice_time": "total_voice_time",
        "xp": "xp",
        "level": "level",
    }

    def __init__(self) -> None:
        self.guilds: Dict[str, GuildData] = {}
        self.sessions: List[SessionData] = []
        self.calls: List[Tuple[str, tuple]] = []
        self.initialized = False
        self.closed = False

    def _record(self, name: str, *args) -> None:
        self.calls.append((name, args))

    def count(self, name: str) -> int:
        return sum(1 for call, _ in self.calls if call == name)

    async def init(self) -> None:
        self.initialized = True

    async def close(self) -> None:
        self.closed = True

    async def get_guild(self, guild_id: str) -> Optional[GuildData]:
        self._record("get_guild", guild_id)
        guild = self.guilds.get(guild_id)
        return copy.deepcopy(guild) if guild else None

    async def save_guild(self, guild: GuildData) -> None:
        self._record("save_guild", guild.guild_id)
        self.guilds[guild.guild_id] = copy.deepcopy(guild)

    async def delete_guild(self, guild_id: str) -> None:
        self._record("delete_guild", guild_id)
        self.guilds.pop(guild_id, None)

    async def get_user(self, guild_id: str, user_id: str) -> Optional[UserData]:
        self._record("get_user", guild_id, user_id)
        guild = self.guilds.get(guild_id)
        if guild is None or user_id not in guild.users:
            return None
        return copy.deepcopy(guild.users[user_id])

    async def save_user(self, user: UserData) -> None:
        self._record("save_user", user.guild_id, user.user_id)
        guild = self.guilds.setdefault(
            user.guild_id,
            GuildData(guild_id=user.guild_id, config=GuildConfig(guild_id=user.guild_id)),
        )
        guild.users[user.user_id] = copy.deepcopy(user)

    async def delete_user(self, guild_id: str, user_id: str) -> None:
        self._record("delete_user", guild_id, user_id)
        guild = self.guilds.get(guild_id)
        if guild is not None:
            guild.users.pop(user_id, None)

    async def get_all_guilds(self) -> List[GuildData]:
        return [copy.deepcopy(guild) for guild in self.guilds.values()]

    async def get_leaderboard(
        self, guild_id: str, sort_by: str, limit: int, offset: int
    ) -> List[LeaderboardEntry]:
        self._record("get_leaderboard", guild_id, sort_by, limit, offset)
        guild = self.guilds.get(guild_id)
        if guild is None:
            return []

        attr = self._SORT_ATTRS[sort_by]
        ranked = sorted(guild.users.values(), key=lambda u: getattr(u, attr), reverse=True)
        page = ranked[offset : offset + limit]
        return [
            LeaderboardEntry(
                user_id=user.user_id,
                guild_id=guild_id,
                voice_time=user.total_voice_time,
                xp=user.xp,
                level=user.level,
                rank=offset + index + 1,
            )
            for index, user in enumerate(page)
        ]

    async def save_session(self, session: SessionData) -> None:
        self.sessions.append(copy.deepcopy(session))

    async def get_sessions(
        self, guild_id: str, user_id: str, limit: Optional[int] = None
    ) -> List[SessionData]:
        matching = [
            s for s in self.sessions if s.guild_id == guild_id and s.user_id == user_id
        ]
        return matching[:limit] if limit is not None else matching


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


# ============================================================================
# CACHE / SERVICE FACTORIES
# ============================================================================


@pytest.fixture
def make_engine(clock):
    """Factory for engines on the shared fake clock."""

    def _make(**overrides) -> MemoryCache:
        return MemoryCache(CacheConfig(**overrides), clock=clock)

    return _make


@pytest.fixture
def engine(make_engine) -> MemoryCache:
    return make_engine()


@pytest.fixture
def cache_manager(engine) -> CacheManager:
    return CacheManager(engine)


@pytest_asyncio.fixture
async def service(storage, cache_manager):
    svc = VoiceDataService(storage, cache_manager)
    await svc.init()
    yield svc
    await svc.close()


# ============================================================================
# DOMAIN FACTORIES
# ============================================================================


def make_user(guild_id: str = "g1", user_id: str = "u1", **fields) -> UserData:
    return UserData(user_id=user_id, guild_id=guild_id, **fields)


def make_guild(guild_id: str = "g1", users: Optional[List[UserData]] = None, **fields) -> GuildData:
    return GuildData(
        guild_id=guild_id,
        config=GuildConfig(guild_id=guild_id),
        users={user.user_id: user for user in users or []},
        **fields,
    )


@pytest.fixture
def user_factory():
    return make_user


@pytest.fixture
def guild_factory():
    return make_guild
