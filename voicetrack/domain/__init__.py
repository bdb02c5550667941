"""Domain entities shared by storage, cache and services."""

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
)

__all__ = [
    "SORT_FIELDS",
    "ChannelData",
    "GuildConfig",
    "GuildData",
    "LeaderboardEntry",
    "LeaderboardQuery",
    "SessionData",
    "UserData",
    "UserUpdate",
]
