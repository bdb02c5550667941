"""
Static configuration management for VoiceTrack.

Purpose
-------
Provides centralized static configuration loaded from environment variables
with sensible defaults, type validation, and bounds checking. Values are set
once at import and can be reloaded with `Config.load()`.

Responsibilities
----------------
- Load configuration from environment variables with .env support
- Provide type-safe access to all static configuration values
- Fall back to defaults (with a recorded validation error) on bad input
- Track which values came from the environment versus defaults

Non-Responsibilities
--------------------
- Tunable per-entity cache TTLs and fan-out shapes (handled by ConfigManager)
- Logging setup (handled by the logging subsystem)

Environment Variables
---------------------
- ENVIRONMENT: development / testing / staging / production
- LOG_LEVEL: Logging level (default: INFO)
- LOG_JSON: Force JSON console output (default: production only)
- LOG_TO_FILE: Enable the daily rotating JSON file handler (default: False)
- LOGS_DIR: Directory for log files (default: ./logs)
- CACHE_ENABLED: Build a cache engine at all (default: True)
- CACHE_TTL_MS: Default entry lifetime in milliseconds (default: 300000)
- CACHE_MAX_SIZE: Maximum number of entries (default: 1000)
- CACHE_ENABLE_STATS: Track hit/miss/set/delete counters (default: True)
- CACHE_CLEANUP_INTERVAL_MS: Expiry sweep interval (default: 60000)
"""

import logging
import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

load_dotenv()


class Environment(Enum):
    """Deployment environment types."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"

    @classmethod
    def from_string(cls, value: str) -> "Environment":
        """
        Parse environment string safely with fallback.

        Example
        -------
        >>> Environment.from_string("production") == Environment.PRODUCTION
        True
        >>> Environment.from_string("invalid") == Environment.DEVELOPMENT
        True
        """
        try:
            return cls(value.lower())
        except ValueError:
            # Structured logger is not initialized during bootstrap
            logging.warning(f"Unknown environment '{value}', defaulting to development")
            return cls.DEVELOPMENT


class _ConfigLoadMetrics:
    """
    Internal metrics tracker for configuration loading.

    Tracks which configuration values came from environment variables
    versus defaults, and any validation errors encountered.
    """

    def __init__(self):
        self.env_vars_loaded: Dict[str, bool] = {}
        self.validation_errors: Dict[str, str] = {}
        self.defaults_used: Dict[str, Any] = {}

    def record_env_load(self, key: str, from_env: bool, default: Any):
        self.env_vars_loaded[key] = from_env
        if not from_env:
            self.defaults_used[key] = default

    def record_validation_error(self, key: str, error: str):
        self.validation_errors[key] = error

    def get_summary(self) -> Dict[str, Any]:
        return {
            "total_configs": len(self.env_vars_loaded),
            "from_environment": sum(1 for v in self.env_vars_loaded.values() if v),
            "from_defaults": sum(1 for v in self.env_vars_loaded.values() if not v),
            "validation_errors": len(self.validation_errors),
            "defaults_used": list(self.defaults_used.keys()),
        }


class Config:
    """
    Centralized static configuration for VoiceTrack.

    Usage
    -----
    >>> Config.CACHE_TTL_MS
    300000
    >>> if Config.is_production():
    ...     logger.info("Running in production mode")
    """

    _metrics: Optional[_ConfigLoadMetrics] = None

    # =========================================================================
    # Environment / Logging
    # =========================================================================

    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    LOG_JSON: Optional[bool] = None
    LOG_TO_FILE: bool = False

    PROJECT_ROOT = Path.cwd()
    LOGS_DIR = PROJECT_ROOT / "logs"
    CONFIG_DIR = PROJECT_ROOT / "config"

    # =========================================================================
    # Cache Engine
    # =========================================================================

    CACHE_ENABLED: bool = True
    CACHE_TTL_MS: int = 300_000
    CACHE_MAX_SIZE: int = 1000
    CACHE_ENABLE_STATS: bool = True
    CACHE_CLEANUP_INTERVAL_MS: int = 60_000

    # =========================================================================
    # Helper Methods
    # =========================================================================

    @classmethod
    def _init_metrics(cls):
        if cls._metrics is None:
            cls._metrics = _ConfigLoadMetrics()

    @classmethod
    def _reject(cls, key: str, error: str) -> None:
        logging.warning(error)
        cls._metrics.record_validation_error(key, error)

    @classmethod
    def _safe_int(
        cls,
        key: str,
        default: int,
        min_val: Optional[int] = None,
        max_val: Optional[int] = None,
    ) -> int:
        """
        Safely parse integer from environment with validation.

        Parameters
        ----------
        key:
            Environment variable name.
        default:
            Default value if not set or invalid.
        min_val:
            Minimum allowed value (inclusive).
        max_val:
            Maximum allowed value (inclusive).

        Example
        -------
        >>> Config._safe_int("CACHE_MAX_SIZE", 1000, min_val=1)
        1000
        """
        cls._init_metrics()

        raw_value = os.getenv(key)
        if raw_value is None:
            cls._metrics.record_env_load(key, False, default)
            return default

        try:
            value = int(raw_value)
        except ValueError:
            cls._reject(key, f"{key}='{raw_value}' is not a valid integer, using default {default}")
            return default

        if min_val is not None and value < min_val:
            cls._reject(key, f"{key}={value} is below minimum {min_val}, using default {default}")
            return default

        if max_val is not None and value > max_val:
            cls._reject(key, f"{key}={value} exceeds maximum {max_val}, using default {default}")
            return default

        cls._metrics.record_env_load(key, True, default)
        return value

    @classmethod
    def _parse_bool(cls, key: str, raw_value: str, default: Any) -> Any:
        normalized = raw_value.lower().strip()
        if normalized in {"true", "yes", "1", "on"}:
            return True
        if normalized in {"false", "no", "0", "off"}:
            return False
        cls._reject(key, f"{key}='{raw_value}' is not a valid boolean, using default {default}")
        return default

    @classmethod
    def _safe_bool(cls, key: str, default: bool) -> bool:
        """
        Safely parse boolean from environment.

        Recognizes: true/false, yes/no, 1/0, on/off (case-insensitive).
        """
        cls._init_metrics()

        raw_value = os.getenv(key)
        if raw_value is None:
            cls._metrics.record_env_load(key, False, default)
            return default

        cls._metrics.record_env_load(key, True, default)
        return cls._parse_bool(key, raw_value, default)

    @classmethod
    def _safe_optional_bool(cls, key: str) -> Optional[bool]:
        cls._init_metrics()

        raw_value = os.getenv(key)
        cls._metrics.record_env_load(key, raw_value is not None, None)
        if raw_value is None:
            return None
        return cls._parse_bool(key, raw_value, None)

    @classmethod
    def _safe_str(cls, key: str, default: str) -> str:
        cls._init_metrics()

        value = os.getenv(key, default)
        cls._metrics.record_env_load(key, key in os.environ, default)
        return value

    # =========================================================================
    # Configuration Loading
    # =========================================================================

    @classmethod
    def load(cls) -> None:
        """
        Load all configuration from environment variables with validation.

        Called automatically on module import; call again to pick up
        environment changes at runtime.
        """
        cls._metrics = _ConfigLoadMetrics()

        cls.ENVIRONMENT = Environment.from_string(
            cls._safe_str("ENVIRONMENT", "development")
        ).value
        cls.LOG_LEVEL = cls._safe_str("LOG_LEVEL", "INFO")
        cls.LOG_JSON = cls._safe_optional_bool("LOG_JSON")
        cls.LOG_TO_FILE = cls._safe_bool("LOG_TO_FILE", False)
        cls.LOGS_DIR = Path(cls._safe_str("LOGS_DIR", str(cls.PROJECT_ROOT / "logs")))
        cls.CONFIG_DIR = Path(
            cls._safe_str("VOICETRACK_CONFIG_DIR", str(cls.PROJECT_ROOT / "config"))
        )

        cls.CACHE_ENABLED = cls._safe_bool("CACHE_ENABLED", True)
        cls.CACHE_TTL_MS = cls._safe_int("CACHE_TTL_MS", 300_000, min_val=1)
        cls.CACHE_MAX_SIZE = cls._safe_int("CACHE_MAX_SIZE", 1000, min_val=1)
        cls.CACHE_ENABLE_STATS = cls._safe_bool("CACHE_ENABLE_STATS", True)
        cls.CACHE_CLEANUP_INTERVAL_MS = cls._safe_int(
            "CACHE_CLEANUP_INTERVAL_MS", 60_000, min_val=100
        )

    @classmethod
    def is_production(cls) -> bool:
        return cls.ENVIRONMENT == Environment.PRODUCTION.value

    @classmethod
    def is_development(cls) -> bool:
        return cls.ENVIRONMENT == Environment.DEVELOPMENT.value

    @classmethod
    def get_config_summary(cls) -> Dict[str, Any]:
        """
        Get configuration summary for logging and diagnostics.

        Returns
        -------
        Dict[str, Any]
            Non-secret configuration values plus load metrics.
        """
        summary: Dict[str, Any] = {
            "environment": cls.ENVIRONMENT,
            "log_level": cls.LOG_LEVEL,
            "cache_enabled": cls.CACHE_ENABLED,
            "cache_ttl_ms": cls.CACHE_TTL_MS,
            "cache_max_size": cls.CACHE_MAX_SIZE,
            "cache_enable_stats": cls.CACHE_ENABLE_STATS,
            "cache_cleanup_interval_ms": cls.CACHE_CLEANUP_INTERVAL_MS,
        }
        if cls._metrics:
            summary["load_metrics"] = cls._metrics.get_summary()
        return summary


Config.load()
