"""
Voice Module
============

Domain: voice time, XP and leaderboard data for tracked guilds

Services:
- VoiceDataService: Read-through / write-invalidate access to voice data
"""

from voicetrack.modules.voice.leveling import (
    calculate_level,
    format_voice_time,
    level_progress,
    resolve_multiplier,
    xp_for_level,
    xp_to_next_level,
)
from voicetrack.modules.voice.service import VoiceDataService

__all__ = [
    "VoiceDataService",
    "calculate_level",
    "format_voice_time",
    "level_progress",
    "resolve_multiplier",
    "xp_for_level",
    "xp_to_next_level",
]
