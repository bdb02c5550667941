"""
Unit tests for CacheManager.

Covers key construction, round-trip fidelity of encoded values, TTL policy,
the leaderboard invalidation fan-out, disabled mode and fault degradation.
"""

import json
from datetime import datetime, timezone

import pytest

from voicetrack.core.cache import CacheManager
from voicetrack.core.config import ConfigManager
from voicetrack.core.exceptions import CacheError, ErrorSeverity
from voicetrack.domain.models import ChannelData, LeaderboardEntry


def _entries(guild_id="g1", count=3):
    return [
        LeaderboardEntry(
            user_id=f"u{i}",
            guild_id=guild_id,
            voice_time=1000 * (count - i),
            xp=100 * (count - i),
            level=count - i,
            rank=i + 1,
        )
        for i in range(count)
    ]


class FailingEngine:
    """Engine whose every call raises."""

    def __init__(self):
        self.calls = 0

    async def _boom(self, *args, **kwargs):
        self.calls += 1
        raise RuntimeError("engine down")

    init = get = set = delete = clear = has = mget = mset = get_stats = close = _boom


class TestKeys:
    def test_key_families_use_disjoint_prefixes(self):
        assert CacheManager.guild_key("1") == "guild:1"
        assert CacheManager.user_key("1", "2") == "user:1:2"
        assert CacheManager.leaderboard_key("1", "xp", 10, 0) == "leaderboard:1:xp:10:0"

    def test_fanout_keys_default_to_twelve(self):
        keys = CacheManager.leaderboard_fanout_keys("g1")

        assert len(keys) == 12
        assert len(set(keys)) == 12
        assert "leaderboard:g1:voice_time:100:0" in keys
        assert all(key.endswith(":0") for key in keys)

    def test_fanout_follows_config(self):
        ConfigManager.set("cache.leaderboard.page_sizes", [10])
        ConfigManager.set("cache.leaderboard.offsets", [0, 10])

        keys = CacheManager.leaderboard_fanout_keys("g1")

        assert len(keys) == 6


@pytest.mark.asyncio
class TestRoundTrip:
    """Values come back structurally equal after encoding."""

    async def test_guild_snapshot_round_trip(self, cache_manager, guild_factory, user_factory):
        seen = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)
        users = [
            user_factory(user_id="u1", xp=400, level=2, last_seen=seen, metadata={"nick": "a"}),
            user_factory(
                user_id="u2",
                total_voice_time=60_000,
                channels=[ChannelData(channel_id="c1", voice_time=60_000, sessions=2, last_activity=seen)],
            ),
        ]
        guild = guild_factory(users=users, last_updated=seen, extra_data={"tier": 2})
        guild.config.channel_ids = ["c1", "c2"]

        assert await cache_manager.set_guild(guild) is True
        cached = await cache_manager.get_guild("g1")

        assert cached is not guild
        assert set(cached.users) == {"u1", "u2"}
        for user_id, user in guild.users.items():
            assert cached.users[user_id].to_dict() == user.to_dict()
        assert cached.last_updated == seen
        assert cached.users["u2"].channels[0].last_activity == seen
        assert cached.config == guild.config
        assert cached.extra_data == {"tier": 2}

    async def test_cached_value_is_isolated_from_caller_mutation(self, cache_manager, user_factory):
        user = user_factory(xp=10)
        await cache_manager.set_user(user)

        user.xp = 9999

        assert (await cache_manager.get_user("g1", "u1")).xp == 10

    async def test_user_round_trip(self, cache_manager, user_factory):
        user = user_factory(total_voice_time=5000, xp=250, level=1, streak=3, total_sessions=4)

        await cache_manager.set_user(user)

        assert await cache_manager.get_user("g1", "u1") == user

    async def test_leaderboard_round_trip(self, cache_manager):
        entries = _entries()

        await cache_manager.set_leaderboard("g1", "xp", 10, 0, entries)

        assert await cache_manager.get_leaderboard("g1", "xp", 10, 0) == entries
        assert await cache_manager.get_leaderboard("g1", "xp", 25, 0) is None

    async def test_guild_users_stored_as_pair_list_are_rebuilt(self, cache_manager, engine):
        blob = json.dumps(
            {
                "guild_id": "g1",
                "config": {"guild_id": "g1"},
                "users": [["u1", {"xp": 5, "last_seen": "2024-01-01T00:00:00Z"}]],
                "last_updated": "2024-01-01T00:00:00+00:00",
            }
        )
        await engine.set("guild:g1", blob)

        cached = await cache_manager.get_guild("g1")

        assert cached.users["u1"].xp == 5
        assert cached.users["u1"].guild_id == "g1"
        assert cached.users["u1"].last_seen == datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.mark.asyncio
class TestTTLPolicy:
    async def test_default_ttls_per_entity(self, cache_manager, engine, mocker, guild_factory, user_factory):
        spy = mocker.spy(engine, "set")

        await cache_manager.set_guild(guild_factory())
        await cache_manager.set_user(user_factory())
        await cache_manager.set_leaderboard("g1", "xp", 10, 0, [])

        ttls = [call.args[2] for call in spy.call_args_list]
        assert ttls == [300_000, 300_000, 60_000]

    async def test_explicit_ttl_wins(self, cache_manager, engine, mocker, user_factory):
        spy = mocker.spy(engine, "set")

        await cache_manager.set_user(user_factory(), ttl=5)

        assert spy.call_args.args[2] == 5

    async def test_ttl_overridable_via_config(self, cache_manager, engine, clock):
        ConfigManager.set("cache.ttl.leaderboard", 1000)

        await cache_manager.set_leaderboard("g1", "xp", 10, 0, _entries())
        clock.advance(1000)

        assert await cache_manager.get_leaderboard("g1", "xp", 10, 0) is None


@pytest.mark.asyncio
class TestInvalidation:
    async def test_invalidate_guild_and_user(self, cache_manager, guild_factory, user_factory):
        await cache_manager.set_guild(guild_factory())
        await cache_manager.set_user(user_factory())

        assert await cache_manager.invalidate_guild("g1") is True
        assert await cache_manager.invalidate_user("g1", "u1") is True

        assert await cache_manager.get_guild("g1") is None
        assert await cache_manager.get_user("g1", "u1") is None

    async def test_invalidating_missing_keys_is_silent(self, cache_manager):
        assert await cache_manager.invalidate_guild("nope") is True
        assert await cache_manager.invalidate_user("nope", "nobody") is True

    async def test_leaderboard_fanout_issues_exactly_twelve_deletes(self, cache_manager, engine, mocker):
        await cache_manager.set_leaderboard("g1", "xp", 10, 0, _entries())
        spy = mocker.spy(engine, "delete")

        issued = await cache_manager.invalidate_leaderboards("g1")

        assert issued == 12
        assert spy.call_count == 12
        deleted = {call.args[0] for call in spy.call_args_list}
        assert deleted == set(CacheManager.leaderboard_fanout_keys("g1"))

    async def test_fanout_leaves_uncommon_pages_cached(self, cache_manager):
        """Offset > 0 and unlisted page sizes survive until their own TTL."""
        await cache_manager.set_leaderboard("g1", "xp", 10, 0, _entries())
        await cache_manager.set_leaderboard("g1", "xp", 10, 10, _entries())
        await cache_manager.set_leaderboard("g1", "level", 7, 0, _entries())

        await cache_manager.invalidate_leaderboards("g1")

        assert await cache_manager.get_leaderboard("g1", "xp", 10, 0) is None
        assert await cache_manager.get_leaderboard("g1", "xp", 10, 10) is not None
        assert await cache_manager.get_leaderboard("g1", "level", 7, 0) is not None

    async def test_fanout_is_scoped_to_one_guild(self, cache_manager):
        await cache_manager.set_leaderboard("g2", "xp", 10, 0, _entries("g2"))

        await cache_manager.invalidate_leaderboards("g1")

        assert await cache_manager.get_leaderboard("g2", "xp", 10, 0) is not None


@pytest.mark.asyncio
class TestDisabledMode:
    """Without an engine every call is a miss or a successful no-op."""

    async def test_reads_miss(self):
        manager = CacheManager()

        assert manager.enabled is False
        assert await manager.get_guild("g1") is None
        assert await manager.get_user("g1", "u1") is None
        assert await manager.get_leaderboard("g1", "xp", 10, 0) is None
        assert await manager.get_stats() is None

    async def test_writes_and_invalidations_succeed(self, guild_factory, user_factory):
        manager = CacheManager()

        await manager.init()
        assert await manager.set_guild(guild_factory()) is True
        assert await manager.set_user(user_factory()) is True
        assert await manager.set_leaderboard("g1", "xp", 10, 0, _entries()) is True
        assert await manager.invalidate_guild("g1") is True
        assert await manager.invalidate_user("g1", "u1") is True
        assert await manager.invalidate_leaderboards("g1") == 0
        await manager.clear()
        await manager.close()


@pytest.mark.asyncio
class TestFaultDegradation:
    """Engine and codec faults never escape the coordinator."""

    async def test_engine_faults_become_misses_and_no_ops(self, guild_factory, user_factory):
        engine = FailingEngine()
        manager = CacheManager(engine)

        await manager.init()
        assert await manager.get_guild("g1") is None
        assert await manager.get_user("g1", "u1") is None
        assert await manager.get_leaderboard("g1", "xp", 10, 0) is None
        assert await manager.set_guild(guild_factory()) is False
        assert await manager.set_user(user_factory()) is False
        assert await manager.invalidate_guild("g1") is False
        assert await manager.invalidate_user("g1", "u1") is False
        assert await manager.get_stats() is None
        await manager.clear()
        await manager.close()

        assert manager.errors == engine.calls

    async def test_fanout_continues_past_failing_deletes(self):
        engine = FailingEngine()
        manager = CacheManager(engine)

        issued = await manager.invalidate_leaderboards("g1")

        assert issued == 12
        assert engine.calls == 12

    async def test_corrupt_blob_is_a_miss(self, cache_manager, engine):
        await engine.set("user:g1:u1", "{not json")
        await engine.set("leaderboard:g1:xp:10:0", json.dumps([{"user_id": "u1"}]))

        assert await cache_manager.get_user("g1", "u1") is None
        assert await cache_manager.get_leaderboard("g1", "xp", 10, 0) is None
        assert cache_manager.errors == 2

    async def test_faults_are_wrapped_and_logged_as_warnings(self, mocker):
        manager = CacheManager(FailingEngine())
        log_warning = mocker.patch("voicetrack.core.cache.manager.logger.warning")
        log_error = mocker.patch("voicetrack.core.cache.manager.logger.error")

        await manager.get_guild("g1")

        log_error.assert_not_called()
        log_warning.assert_called_once()
        extra = log_warning.call_args.kwargs["extra"]
        assert extra["operation"] == "get_guild"
        assert extra["error_type"] == "RuntimeError"
        assert extra["error_code"] == "CACHE_ERROR"
        assert extra["retryable"] is True
        assert extra["cache_key"] == "guild:g1"

    async def test_corrupt_blob_is_logged_as_non_retryable(self, cache_manager, engine, mocker):
        log_warning = mocker.patch("voicetrack.core.cache.manager.logger.warning")
        await engine.set("user:g1:u1", "{not json")

        await cache_manager.get_user("g1", "u1")

        extra = log_warning.call_args.kwargs["extra"]
        assert extra["error_code"] == "CACHE_SERIALIZATION_ERROR"
        assert extra["retryable"] is False

    async def test_alerting_faults_are_logged_as_errors(self, mocker):
        class FatalCacheError(CacheError):
            DEFAULT_SEVERITY = ErrorSeverity.CRITICAL

        engine = mocker.AsyncMock()
        engine.delete.side_effect = FatalCacheError("delete", "guild:g1")
        manager = CacheManager(engine)
        log_error = mocker.patch("voicetrack.core.cache.manager.logger.error")

        assert await manager.invalidate_guild("g1") is False

        log_error.assert_called_once()
        assert log_error.call_args.kwargs["extra"]["severity"] == "critical"
