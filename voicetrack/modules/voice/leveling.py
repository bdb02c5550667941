"""
Leveling arithmetic for voice XP.

Formula
-------
    level = floor(multiplier * sqrt(xp))
    xp_for_level(level) = (level / multiplier) ** 2

Multiplier presets (`standard` 0.1, `fast` 0.15, `slow` 0.05) come from
ConfigManager `leveling.multipliers` and are chosen by a guild's
`level_multiplier_strategy`. An unknown strategy falls back to the guild's
`level_multiplier_config.base_multiplier`, then to 0.1.

All functions are pure; nothing here touches storage or the cache.
"""

from __future__ import annotations

import math
from typing import Optional

from voicetrack.core.config import ConfigManager
from voicetrack.core.logging.logger import get_logger
from voicetrack.domain.models import GuildConfig

logger = get_logger(__name__)

DEFAULT_MULTIPLIER = 0.1

_PRESET_DEFAULTS = {
    "standard": 0.1,
    "fast": 0.15,
    "slow": 0.05,
}


def _valid_multiplier(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0


def resolve_multiplier(config: Optional[GuildConfig]) -> float:
    """
    Multiplier for a guild's configured strategy.

    >>> resolve_multiplier(GuildConfig(guild_id="1", level_multiplier_strategy="fast"))
    0.15
    """
    if config is None:
        return DEFAULT_MULTIPLIER

    strategy = config.level_multiplier_strategy or "standard"
    presets = ConfigManager.get("leveling.multipliers", _PRESET_DEFAULTS)

    if strategy in presets and _valid_multiplier(presets[strategy]):
        return float(presets[strategy])

    custom = config.level_multiplier_config.get("base_multiplier")
    if _valid_multiplier(custom):
        return float(custom)

    logger.warning(
        "Unknown level multiplier strategy; using default",
        extra={"guild_id": config.guild_id, "strategy": strategy},
    )
    return DEFAULT_MULTIPLIER


def calculate_level(xp: int, multiplier: float = DEFAULT_MULTIPLIER) -> int:
    if xp <= 0:
        return 0
    return math.floor(multiplier * math.sqrt(xp))


def xp_for_level(level: int, multiplier: float = DEFAULT_MULTIPLIER) -> int:
    """Minimum XP at which `level` is reached."""
    # Absorb float error: 3 / 0.1 is not exactly 30
    return math.ceil(round((level / multiplier) ** 2, 6))


def xp_to_next_level(xp: int, multiplier: float = DEFAULT_MULTIPLIER) -> int:
    next_level = calculate_level(xp, multiplier) + 1
    return xp_for_level(next_level, multiplier) - xp


def level_progress(xp: int, multiplier: float = DEFAULT_MULTIPLIER) -> int:
    """
    Percent progress from the current level threshold to the next one.

    Returns:
        Integer in [0, 100)
    """
    level = calculate_level(xp, multiplier)
    floor_xp = xp_for_level(level, multiplier)
    ceiling_xp = xp_for_level(level + 1, multiplier)
    span = ceiling_xp - floor_xp
    if span <= 0:
        return 0
    return min(99, max(0, round((xp - floor_xp) * 100 / span)))


def format_voice_time(milliseconds: int) -> str:
    """
    Render a duration compactly, keeping the two or three largest units.

    >>> format_voice_time(93_784_000)
    '1d 2h 3m'
    >>> format_voice_time(184_000)
    '3m 4s'
    """
    seconds = max(0, int(milliseconds)) // 1000
    minutes, seconds = divmod(seconds, 60)
    hours, minutes = divmod(minutes, 60)
    days, hours = divmod(hours, 24)

    if days:
        return f"{days}d {hours}h {minutes}m"
    if hours:
        return f"{hours}h {minutes}m"
    if minutes:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"
