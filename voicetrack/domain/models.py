"""
Domain models for VoiceTrack.

Purpose
-------
Typed shapes for the entities the storage layer persists and the cache layer
stores: guild snapshots, guild configuration, per-user records, per-channel
statistics, leaderboard rows and voice sessions.

Design Notes
------------
- Plain dataclasses; persistence and caching live elsewhere.
- Each open-ended entity carries exactly one extension map
  (`GuildConfig.extra`, `GuildData.extra_data`, `UserData.metadata`) so
  callers can attach their own fields without loosening the core schema.
- `to_dict()` produces JSON-ready primitives (timestamps as ISO-8601 UTC
  strings); `from_dict()` accepts that output back, plus `datetime` objects
  and epoch milliseconds for timestamps.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Union

TimestampLike = Union[datetime, str, int, float]

SORT_FIELDS = ("voice_time", "xp", "level")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: TimestampLike) -> datetime:
    """
    Rebuild an aware UTC datetime from its serialized form.

    Parameters
    ----------
    value:
        A `datetime`, an ISO-8601 string, or epoch milliseconds.

    Raises
    ------
    TypeError
        If the value has none of the accepted shapes.
    ValueError
        If a string is not valid ISO-8601.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    else:
        raise TypeError(f"Unsupported timestamp type: {type(value).__name__}")

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


# ============================================================================
# GUILD CONFIGURATION
# ============================================================================


@dataclass
class GuildConfig:
    """
    Per-guild tracking and leveling configuration.

    Attributes
    ----------
    guild_id : str
        Owning guild.
    track_all_channels : bool
        When False only `channel_ids` are tracked.
    min_users_to_track / max_users_to_track : int
        Channel occupancy bounds; `max_users_to_track == 0` means unlimited.
    level_multiplier_strategy : str
        Preset name (`standard`, `fast`, `slow`) used by leveling.
    extra : Dict[str, Any]
        Caller-defined settings.
    """

    guild_id: str
    track_bots: bool = False
    track_all_channels: bool = True
    channel_ids: List[str] = field(default_factory=list)
    track_muted: bool = True
    track_deafened: bool = True
    min_users_to_track: int = 0
    max_users_to_track: int = 0
    exempt_permissions: List[str] = field(default_factory=list)
    xp_strategy: str = "fixed"
    xp_config: Dict[str, Any] = field(default_factory=lambda: {"base_amount": 5})
    voice_time_strategy: str = "fixed"
    voice_time_config: Dict[str, Any] = field(
        default_factory=lambda: {"base_amount": 5000}
    )
    level_multiplier_strategy: str = "standard"
    level_multiplier_config: Dict[str, Any] = field(
        default_factory=lambda: {"base_multiplier": 0.1}
    )
    enable_leveling: bool = True
    enable_voice_time: bool = True
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "guild_id": self.guild_id,
            "track_bots": self.track_bots,
            "track_all_channels": self.track_all_channels,
            "channel_ids": list(self.channel_ids),
            "track_muted": self.track_muted,
            "track_deafened": self.track_deafened,
            "min_users_to_track": self.min_users_to_track,
            "max_users_to_track": self.max_users_to_track,
            "exempt_permissions": list(self.exempt_permissions),
            "xp_strategy": self.xp_strategy,
            "xp_config": dict(self.xp_config),
            "voice_time_strategy": self.voice_time_strategy,
            "voice_time_config": dict(self.voice_time_config),
            "level_multiplier_strategy": self.level_multiplier_strategy,
            "level_multiplier_config": dict(self.level_multiplier_config),
            "enable_leveling": self.enable_leveling,
            "enable_voice_time": self.enable_voice_time,
            "extra": dict(self.extra),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GuildConfig":
        known = {name for name in cls.__dataclass_fields__}
        kwargs = {key: value for key, value in data.items() if key in known}
        extra = dict(kwargs.pop("extra", None) or {})
        # Unknown keys are preserved rather than dropped
        extra.update({key: value for key, value in data.items() if key not in known})
        return cls(extra=extra, **kwargs)


# ============================================================================
# USER RECORDS
# ============================================================================


@dataclass
class ChannelData:
    """Accumulated voice statistics for one user in one channel."""

    channel_id: str
    voice_time: int = 0
    sessions: int = 0
    last_activity: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "channel_id": self.channel_id,
            "voice_time": self.voice_time,
            "sessions": self.sessions,
            "last_activity": format_timestamp(self.last_activity),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ChannelData":
        return cls(
            channel_id=str(data["channel_id"]),
            voice_time=int(data.get("voice_time", 0)),
            sessions=int(data.get("sessions", 0)),
            last_activity=parse_timestamp(data.get("last_activity") or utcnow()),
        )


@dataclass
class UserData:
    """
    A user's voice record within one guild.

    Attributes
    ----------
    total_voice_time : int
        Accumulated voice time in milliseconds.
    xp / level : int
        Experience points and the level derived from them.
    channels : List[ChannelData]
        Per-channel breakdown.
    metadata : Dict[str, Any]
        Caller-defined fields.
    """

    user_id: str
    guild_id: str
    total_voice_time: int = 0
    xp: int = 0
    level: int = 0
    channels: List[ChannelData] = field(default_factory=list)
    last_seen: datetime = field(default_factory=utcnow)
    streak: int = 0
    total_sessions: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)

    def get_channel(self, channel_id: str) -> Optional[ChannelData]:
        for channel in self.channels:
            if channel.channel_id == channel_id:
                return channel
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "guild_id": self.guild_id,
            "total_voice_time": self.total_voice_time,
            "xp": self.xp,
            "level": self.level,
            "channels": [channel.to_dict() for channel in self.channels],
            "last_seen": format_timestamp(self.last_seen),
            "streak": self.streak,
            "total_sessions": self.total_sessions,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "UserData":
        return cls(
            user_id=str(data["user_id"]),
            guild_id=str(data["guild_id"]),
            total_voice_time=int(data.get("total_voice_time", 0)),
            xp=int(data.get("xp", 0)),
            level=int(data.get("level", 0)),
            channels=[ChannelData.from_dict(c) for c in data.get("channels") or []],
            last_seen=parse_timestamp(data.get("last_seen") or utcnow()),
            streak=int(data.get("streak", 0)),
            total_sessions=int(data.get("total_sessions", 0)),
            metadata=dict(data.get("metadata") or {}),
        )


# ============================================================================
# GUILD SNAPSHOT
# ============================================================================


@dataclass
class GuildData:
    """
    A guild's configuration plus its user-membership snapshot.

    `users` is keyed by user id. `to_dict()` flattens it to a plain mapping;
    the cache codec is responsible for rebuilding it from either that mapping
    or a list of entries.
    """

    guild_id: str
    config: GuildConfig
    users: Dict[str, UserData] = field(default_factory=dict)
    last_updated: datetime = field(default_factory=utcnow)
    extra_data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "guild_id": self.guild_id,
            "config": self.config.to_dict(),
            "users": {user_id: user.to_dict() for user_id, user in self.users.items()},
            "last_updated": format_timestamp(self.last_updated),
            "extra_data": dict(self.extra_data),
        }


# ============================================================================
# LEADERBOARD / SESSIONS / UPDATE OPTIONS
# ============================================================================


@dataclass
class LeaderboardEntry:
    """One ranked row of a leaderboard page; `rank` is 1-based."""

    user_id: str
    guild_id: str
    voice_time: int
    xp: int
    level: int
    rank: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "guild_id": self.guild_id,
            "voice_time": self.voice_time,
            "xp": self.xp,
            "level": self.level,
            "rank": self.rank,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LeaderboardEntry":
        return cls(
            user_id=str(data["user_id"]),
            guild_id=str(data["guild_id"]),
            voice_time=int(data["voice_time"]),
            xp=int(data["xp"]),
            level=int(data["level"]),
            rank=int(data["rank"]),
        )


@dataclass
class LeaderboardQuery:
    sort_by: str = "xp"
    limit: int = 10
    offset: int = 0


@dataclass
class SessionData:
    """A single voice session; `end_time` and `duration` are set on close."""

    session_id: str
    user_id: str
    guild_id: str
    channel_id: str
    start_time: datetime = field(default_factory=utcnow)
    end_time: Optional[datetime] = None
    duration: Optional[int] = None
    xp_earned: int = 0
    was_muted: bool = False
    was_deafened: bool = False


@dataclass
class UserUpdate:
    """
    Options for the bulk user update path.

    All fields are optional; `metadata` is shallow-merged into the stored map.
    """

    add_voice_time: int = 0
    add_xp: int = 0
    set_level: Optional[int] = None
    metadata: Optional[Dict[str, Any]] = None
