"""
JSON codec between domain entities and the opaque values the cache engine stores.

The engine never holds live domain objects: every value goes in as a JSON
string, so a caller mutating the object it cached cannot change what the next
reader sees. Decoding rebuilds the nested user map and all timestamps.

Failures surface as `CacheSerializationError`; `CacheManager` turns those into
misses or no-ops.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Mapping, Union

from voicetrack.core.exceptions import CacheSerializationError
from voicetrack.domain.models import (
    GuildConfig,
    GuildData,
    LeaderboardEntry,
    UserData,
    parse_timestamp,
    utcnow,
)

Blob = Union[str, bytes, Mapping[str, Any], List[Any]]


def _dumps(payload: Any, operation: str, cache_key: str) -> str:
    try:
        return json.dumps(payload, separators=(",", ":"))
    except (TypeError, ValueError) as exc:
        raise CacheSerializationError(operation, cache_key, exc) from exc


def _loads(blob: Blob) -> Any:
    # Adapters that already hand back parsed structures are accepted as-is
    if isinstance(blob, (str, bytes, bytearray)):
        return json.loads(blob)
    return blob


def _users_from_payload(raw: Any, guild_id: str) -> Dict[str, UserData]:
    """
    Rebuild the user map from a keyed mapping or a list of entries.

    List entries may be `[user_id, record]` pairs or bare records carrying
    their own `user_id`.
    """
    users: Dict[str, UserData] = {}
    if not raw:
        return users

    if isinstance(raw, Mapping):
        items = raw.items()
    elif isinstance(raw, list):
        items = []
        for item in raw:
            if isinstance(item, Mapping):
                items.append((item["user_id"], item))
            else:
                user_id, record = item
                items.append((user_id, record))
    else:
        raise TypeError(f"Unsupported users payload: {type(raw).__name__}")

    for user_id, record in items:
        record = dict(record)
        record.setdefault("user_id", user_id)
        record.setdefault("guild_id", guild_id)
        users[str(user_id)] = UserData.from_dict(record)
    return users


# ============================================================================
# GUILD SNAPSHOTS
# ============================================================================


def encode_guild(guild: GuildData, cache_key: str = "") -> str:
    try:
        payload = guild.to_dict()
    except (AttributeError, TypeError, ValueError) as exc:
        raise CacheSerializationError("encode_guild", cache_key, exc) from exc
    return _dumps(payload, "encode_guild", cache_key)


def decode_guild(blob: Blob, cache_key: str = "") -> GuildData:
    try:
        data = _loads(blob)
        guild_id = str(data["guild_id"])
        config_raw = dict(data.get("config") or {})
        config_raw.setdefault("guild_id", guild_id)
        return GuildData(
            guild_id=guild_id,
            config=GuildConfig.from_dict(config_raw),
            users=_users_from_payload(data.get("users"), guild_id),
            last_updated=parse_timestamp(data.get("last_updated") or utcnow()),
            extra_data=dict(data.get("extra_data") or {}),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise CacheSerializationError("decode_guild", cache_key, exc) from exc


# ============================================================================
# USER RECORDS
# ============================================================================


def encode_user(user: UserData, cache_key: str = "") -> str:
    try:
        payload = user.to_dict()
    except (AttributeError, TypeError, ValueError) as exc:
        raise CacheSerializationError("encode_user", cache_key, exc) from exc
    return _dumps(payload, "encode_user", cache_key)


def decode_user(blob: Blob, cache_key: str = "") -> UserData:
    try:
        return UserData.from_dict(_loads(blob))
    except (KeyError, TypeError, ValueError) as exc:
        raise CacheSerializationError("decode_user", cache_key, exc) from exc


# ============================================================================
# LEADERBOARD PAGES
# ============================================================================


def encode_leaderboard(entries: List[LeaderboardEntry], cache_key: str = "") -> str:
    try:
        payload = [entry.to_dict() for entry in entries]
    except (AttributeError, TypeError) as exc:
        raise CacheSerializationError("encode_leaderboard", cache_key, exc) from exc
    return _dumps(payload, "encode_leaderboard", cache_key)


def decode_leaderboard(blob: Blob, cache_key: str = "") -> List[LeaderboardEntry]:
    try:
        return [LeaderboardEntry.from_dict(row) for row in _loads(blob)]
    except (KeyError, TypeError, ValueError) as exc:
        raise CacheSerializationError("decode_leaderboard", cache_key, exc) from exc
