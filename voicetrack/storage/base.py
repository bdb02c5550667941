"""
Storage backend contract for VoiceTrack.

Purpose
-------
Describes the persistent store the services read through and write to. Any
backend (JSON files, a document store, SQL) that provides these coroutines
can sit behind `VoiceDataService`.

Contract Notes
--------------
- Reads return None (or an empty list) when nothing exists; they do not raise
  for missing data.
- Faults are raised, ideally wrapped in `StorageError`; services let them
  propagate.
- `get_leaderboard` returns entries already ranked (1-based) for the
  requested page.
- A completed write is durable by the time the coroutine returns; cache
  invalidation happens only after that point.
"""

from __future__ import annotations

from typing import List, Optional, Protocol, runtime_checkable

from voicetrack.domain.models import GuildData, LeaderboardEntry, SessionData, UserData


@runtime_checkable
class StorageAdapter(Protocol):
    async def init(self) -> None: ...

    async def get_guild(self, guild_id: str) -> Optional[GuildData]: ...

    async def save_guild(self, guild: GuildData) -> None: ...

    async def delete_guild(self, guild_id: str) -> None: ...

    async def get_user(self, guild_id: str, user_id: str) -> Optional[UserData]: ...

    async def save_user(self, user: UserData) -> None: ...

    async def delete_user(self, guild_id: str, user_id: str) -> None: ...

    async def get_all_guilds(self) -> List[GuildData]: ...

    async def get_leaderboard(
        self, guild_id: str, sort_by: str, limit: int, offset: int
    ) -> List[LeaderboardEntry]: ...

    async def save_session(self, session: SessionData) -> None: ...

    async def get_sessions(
        self, guild_id: str, user_id: str, limit: Optional[int] = None
    ) -> List[SessionData]: ...

    async def close(self) -> None: ...
