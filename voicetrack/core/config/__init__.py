"""
Configuration management subsystem for VoiceTrack.

Architecture
------------
- **config.py**: Static configuration from environment variables (.env support)
- **manager.py**: Dynamic dot-notation configuration with YAML defaults

Static vs Dynamic Configuration
--------------------------------
**Static (Config):**
- Loaded from environment variables at import
- Includes: environment, logging, cache engine sizing and default TTL

**Dynamic (ConfigManager):**
- Built-in defaults deep-merged with YAML files from `config/`
- Includes: per-entity cache TTLs, leaderboard invalidation fan-out,
  level multiplier presets
- Runtime overrides via `ConfigManager.set`

Usage Examples
--------------
```python
from voicetrack.core.config import Config, ConfigManager

max_size = Config.CACHE_MAX_SIZE
leaderboard_ttl = ConfigManager.get("cache.ttl.leaderboard", 60_000)
```
"""

from voicetrack.core.config.config import Config, Environment
from voicetrack.core.config.manager import ConfigManager

__all__ = [
    "Config",
    "ConfigManager",
    "Environment",
]
