"""
ConfigManager: dynamic, dot-notation access to tunable VoiceTrack settings.

Purpose
-------
- Provide hierarchical, dot-notation access to tunable values such as
  per-entity cache TTLs and the leaderboard invalidation fan-out shape.
- Back configuration with built-in defaults deep-merged with YAML files from
  the `config/` directory, plus in-process overrides.

Responsibilities
----------------
- Load and deep-merge YAML files from the configured directory.
- Serve reads with fallback: override -> YAML/built-in default -> caller default.
- Apply runtime overrides (`set`) without touching any file.

Key Design Decisions
--------------------
- Built-in defaults are the last resort; YAML wins over them; overrides win
  over YAML.
- Lazy initialization: the first `get` bootstraps from defaults if
  `initialize()` was never called.
- PyYAML is the only parser; a malformed file is logged and skipped.
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Dict, List, MutableMapping, Optional

import yaml

from voicetrack.core.config.config import Config
from voicetrack.core.logging.logger import get_logger

logger = get_logger(__name__)


_BUILTIN_DEFAULTS: Dict[str, Any] = {
    "cache": {
        "ttl": {
            "guild": 300_000,
            "user": 300_000,
            "leaderboard": 60_000,
        },
        "leaderboard": {
            "sort_fields": ["voice_time", "xp", "level"],
            "page_sizes": [10, 25, 50, 100],
            "offsets": [0],
        },
    },
    "leveling": {
        "multipliers": {
            "standard": 0.1,
            "fast": 0.15,
            "slow": 0.05,
        },
    },
}

_MISSING = object()


class ConfigManager:
    """
    Dynamic configuration with YAML defaults and runtime overrides.

    Examples
    --------
    >>> ConfigManager.get("cache.ttl.leaderboard")
    60000
    >>> ConfigManager.set("cache.ttl.user", 120_000)
    >>> ConfigManager.get("cache.ttl.user")
    120000
    """

    _defaults: Dict[str, Any] = {}
    _overrides: Dict[str, Any] = {}
    _initialized: bool = False

    _metrics: Dict[str, int] = {
        "gets": 0,
        "sets": 0,
        "fallback_to_defaults": 0,
        "yaml_files_loaded": 0,
        "errors": 0,
    }

    # =========================================================================
    # YAML LOADING & DEFAULTS
    # =========================================================================

    @staticmethod
    def _deep_merge_dict(
        target: MutableMapping[str, Any],
        source: MutableMapping[str, Any],
    ) -> None:
        """Recursively merge `source` into `target` (in-place)."""
        for key, value in source.items():
            if isinstance(value, dict) and isinstance(target.get(key), dict):
                ConfigManager._deep_merge_dict(target[key], value)
            else:
                target[key] = value

    @classmethod
    def _load_yaml_configs(cls, config_dir: Path) -> None:
        """Deep-merge every YAML mapping under `config_dir` into `_defaults`."""
        if not config_dir.exists():
            logger.debug(
                "Config directory not found; using built-in defaults only",
                extra={"config_dir": str(config_dir)},
            )
            return

        yaml_files = sorted(config_dir.rglob("*.yaml")) + sorted(config_dir.rglob("*.yml"))
        for yaml_file in yaml_files:
            try:
                with yaml_file.open("r", encoding="utf-8") as handle:
                    data = yaml.safe_load(handle)
            except (OSError, yaml.YAMLError) as exc:
                cls._metrics["errors"] += 1
                logger.warning(
                    "Failed to load YAML config",
                    extra={"file": str(yaml_file), "error": str(exc)},
                )
                continue

            if isinstance(data, dict):
                cls._deep_merge_dict(cls._defaults, data)
                cls._metrics["yaml_files_loaded"] += 1
                logger.debug("Loaded YAML config", extra={"file": str(yaml_file)})
            elif data is not None:
                logger.warning(
                    "Ignoring non-dict YAML root object",
                    extra={"file": str(yaml_file), "root_type": type(data).__name__},
                )

    @classmethod
    def initialize(cls, config_dir: Optional[Path] = None) -> None:
        """
        (Re)build defaults from built-ins and YAML files.

        Parameters
        ----------
        config_dir:
            Directory to scan for YAML files. Defaults to `Config.CONFIG_DIR`.
        """
        cls._defaults = copy.deepcopy(_BUILTIN_DEFAULTS)
        cls._load_yaml_configs(Path(config_dir) if config_dir else Config.CONFIG_DIR)
        cls._initialized = True
        logger.info(
            "ConfigManager initialized",
            extra={
                "yaml_files_loaded": cls._metrics["yaml_files_loaded"],
                "override_count": len(cls._overrides),
            },
        )

    @classmethod
    def reset(cls) -> None:
        """Drop overrides and loaded YAML; next read re-bootstraps."""
        cls._defaults = {}
        cls._overrides = {}
        cls._initialized = False
        for name in cls._metrics:
            cls._metrics[name] = 0

    # =========================================================================
    # READ / WRITE API
    # =========================================================================

    @staticmethod
    def _traverse(source: Dict[str, Any], key: str) -> Any:
        value: Any = source
        for part in key.split("."):
            if not isinstance(value, dict) or part not in value:
                return _MISSING
            value = value[part]
        return value

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        """
        Retrieve a configuration value by dot-notation path.

        Parameters
        ----------
        key:
            Dot-notation config path (e.g. `"cache.ttl.guild"`).
        default:
            Value to return if the key is found nowhere.
        """
        cls._metrics["gets"] += 1

        if not cls._initialized:
            cls.initialize()

        if key in cls._overrides:
            return cls._overrides[key]

        value = cls._traverse(cls._defaults, key)
        if value is _MISSING:
            cls._metrics["fallback_to_defaults"] += 1
            return default
        return value

    @classmethod
    def set(cls, key: str, value: Any) -> None:
        """Override a value for the life of the process."""
        cls._overrides[key] = value
        cls._metrics["sets"] += 1
        logger.info("Config override applied", extra={"config_key": key})

    @classmethod
    def get_all_keys(cls) -> List[str]:
        """Return top-level keys known from defaults and overrides."""
        keys = set(cls._defaults) | {k.split(".")[0] for k in cls._overrides}
        return sorted(keys)

    @classmethod
    def get_metrics(cls) -> Dict[str, int]:
        return dict(cls._metrics)
