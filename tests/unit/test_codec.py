"""
Unit tests for the cache value codec.

Focus is on shapes the codec must tolerate on decode and on error wrapping,
not on exhaustive round trips.
"""

import json
from datetime import datetime, timezone

import pytest

from voicetrack.core.cache import codec
from voicetrack.core.exceptions import CacheSerializationError
from voicetrack.domain.models import GuildConfig, GuildData, UserData


class TestGuildDecoding:
    def test_users_as_keyed_mapping(self):
        blob = json.dumps(
            {
                "guild_id": "g1",
                "config": {"guild_id": "g1", "track_bots": True},
                "users": {"u1": {"user_id": "u1", "guild_id": "g1", "xp": 7}},
                "last_updated": "2024-03-01T10:00:00+00:00",
            }
        )

        guild = codec.decode_guild(blob)

        assert guild.config.track_bots is True
        assert guild.users["u1"].xp == 7
        assert guild.last_updated == datetime(2024, 3, 1, 10, tzinfo=timezone.utc)

    def test_users_as_record_list(self):
        blob = json.dumps(
            {
                "guild_id": "g1",
                "config": {},
                "users": [{"user_id": "u1", "xp": 1}, {"user_id": "u2", "xp": 2}],
            }
        )

        guild = codec.decode_guild(blob)

        assert sorted(guild.users) == ["u1", "u2"]
        assert guild.config.guild_id == "g1"
        assert guild.users["u2"].guild_id == "g1"

    def test_unknown_config_keys_kept_in_extra(self):
        blob = json.dumps({"guild_id": "g1", "config": {"guild_id": "g1", "prefix": "!"}})

        guild = codec.decode_guild(blob)

        assert guild.config.extra == {"prefix": "!"}

    def test_already_parsed_structure_is_accepted(self):
        payload = GuildData(guild_id="g1", config=GuildConfig(guild_id="g1")).to_dict()

        assert codec.decode_guild(payload).guild_id == "g1"

    def test_epoch_millisecond_timestamps(self):
        blob = json.dumps(
            {"user_id": "u1", "guild_id": "g1", "last_seen": 1_700_000_000_000}
        )

        user = codec.decode_user(blob)

        assert user.last_seen == datetime.fromtimestamp(1_700_000_000, tz=timezone.utc)


class TestErrorWrapping:
    @pytest.mark.parametrize(
        "blob",
        [
            "not json",
            json.dumps({"config": {}}),
            json.dumps({"guild_id": "g1", "users": 5}),
            json.dumps({"guild_id": "g1", "last_updated": "yesterday"}),
        ],
    )
    def test_bad_guild_blobs_raise_serialization_error(self, blob):
        with pytest.raises(CacheSerializationError) as exc_info:
            codec.decode_guild(blob, "guild:g1")

        assert exc_info.value.cache_key == "guild:g1"
        assert exc_info.value.is_retryable is False

    def test_unserializable_metadata_raises(self):
        user = UserData(user_id="u1", guild_id="g1", metadata={"when": object()})

        with pytest.raises(CacheSerializationError):
            codec.encode_user(user, "user:g1:u1")

    def test_leaderboard_row_missing_fields(self):
        with pytest.raises(CacheSerializationError):
            codec.decode_leaderboard(json.dumps([{"user_id": "u1"}]))
