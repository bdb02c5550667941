"""
Core infrastructure layer for VoiceTrack.

Purpose
-------
Single import surface for the infrastructure subsystems:

- Configuration (Config, ConfigManager)
- Caching (MemoryCache, CacheManager)
- Logging (setup_logging, get_logger, LogContext)
- Infrastructure exceptions

Domain logic lives in `voicetrack.modules`; this layer knows nothing about
voice accrual rules.
"""

from voicetrack.core.cache import CacheConfig, CacheManager, CacheStats, MemoryCache
from voicetrack.core.config import Config, ConfigManager
from voicetrack.core.exceptions import (
    CacheConfigurationError,
    CacheError,
    CacheSerializationError,
    ConfigurationError,
    StorageError,
    ValidationError,
    VoiceTrackInfrastructureException,
)
from voicetrack.core.logging import LogContext, get_logger, setup_logging, shutdown_logging

__all__ = [
    "Config",
    "ConfigManager",
    "CacheConfig",
    "CacheManager",
    "CacheStats",
    "MemoryCache",
    "LogContext",
    "get_logger",
    "setup_logging",
    "shutdown_logging",
    "VoiceTrackInfrastructureException",
    "ConfigurationError",
    "CacheConfigurationError",
    "CacheError",
    "CacheSerializationError",
    "StorageError",
    "ValidationError",
]
