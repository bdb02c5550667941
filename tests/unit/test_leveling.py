"""
Unit tests for leveling arithmetic.
"""

import pytest

from voicetrack.core.config import ConfigManager
from voicetrack.domain.models import GuildConfig
from voicetrack.modules.voice.leveling import (
    calculate_level,
    format_voice_time,
    level_progress,
    resolve_multiplier,
    xp_for_level,
    xp_to_next_level,
)


class TestLevelFormula:
    @pytest.mark.parametrize(
        "xp,expected",
        [(0, 0), (99, 0), (100, 1), (399, 1), (400, 2), (900, 3), (10_000, 10)],
    )
    def test_standard_multiplier(self, xp, expected):
        assert calculate_level(xp) == expected

    def test_faster_multiplier_levels_sooner(self):
        assert calculate_level(400, 0.15) == 3
        assert calculate_level(400, 0.05) == 1

    def test_negative_xp_is_level_zero(self):
        assert calculate_level(-50) == 0

    @pytest.mark.parametrize("level,expected", [(0, 0), (1, 100), (2, 400), (3, 900)])
    def test_xp_for_level(self, level, expected):
        assert xp_for_level(level) == expected

    def test_xp_for_level_is_consistent_with_calculate_level(self):
        for level in range(1, 30):
            threshold = xp_for_level(level)
            assert calculate_level(threshold) == level
            assert calculate_level(threshold - 1) == level - 1

    def test_xp_to_next_level(self):
        assert xp_to_next_level(150) == 250
        assert xp_to_next_level(0) == 100

    def test_level_progress(self):
        assert level_progress(100) == 0
        assert level_progress(250) == 50
        assert 0 <= level_progress(399) < 100


class TestMultiplierResolution:
    @pytest.mark.parametrize(
        "strategy,expected",
        [("standard", 0.1), ("fast", 0.15), ("slow", 0.05)],
    )
    def test_presets(self, strategy, expected):
        config = GuildConfig(guild_id="g1", level_multiplier_strategy=strategy)

        assert resolve_multiplier(config) == pytest.approx(expected)

    def test_presets_come_from_config(self):
        ConfigManager.set("leveling.multipliers", {"standard": 0.2})

        assert resolve_multiplier(GuildConfig(guild_id="g1")) == pytest.approx(0.2)

    def test_custom_strategy_uses_base_multiplier(self):
        config = GuildConfig(
            guild_id="g1",
            level_multiplier_strategy="custom",
            level_multiplier_config={"base_multiplier": 0.3},
        )

        assert resolve_multiplier(config) == pytest.approx(0.3)

    def test_unusable_strategy_falls_back(self):
        config = GuildConfig(
            guild_id="g1",
            level_multiplier_strategy="custom",
            level_multiplier_config={"base_multiplier": -1},
        )

        assert resolve_multiplier(config) == pytest.approx(0.1)

    def test_no_config(self):
        assert resolve_multiplier(None) == pytest.approx(0.1)


class TestFormatVoiceTime:
    @pytest.mark.parametrize(
        "ms,expected",
        [
            (0, "0s"),
            (4_000, "4s"),
            (184_000, "3m 4s"),
            (7_380_000, "2h 3m"),
            (93_784_000, "1d 2h 3m"),
            (-5, "0s"),
        ],
    )
    def test_formats(self, ms, expected):
        assert format_voice_time(ms) == expected
