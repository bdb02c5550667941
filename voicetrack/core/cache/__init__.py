"""
Cache subsystem for VoiceTrack.

Purpose
-------
Keeps hot guild snapshots, user records and leaderboard pages in process so
repeated reads skip persistent storage, without ever serving data a completed
write has superseded.

Architecture
------------
- **types.py**: Adapter protocol, engine configuration, stats and entry shapes
- **memory.py**: In-memory TTL + LRU engine (`MemoryCache`)
- **codec.py**: JSON encoding of domain values for the engine
- **manager.py**: Domain coordinator (`CacheManager`): keys, TTL policy,
  invalidation

Usage
-----
```python
from voicetrack.core.cache import CacheConfig, CacheManager, MemoryCache

cache = CacheManager(MemoryCache(CacheConfig.from_config()))
await cache.init()
```
"""

from voicetrack.core.cache.manager import CacheManager
from voicetrack.core.cache.memory import MemoryCache, monotonic_ms
from voicetrack.core.cache.types import CacheAdapter, CacheConfig, CacheEntry, CacheStats

__all__ = [
    "CacheManager",
    "MemoryCache",
    "monotonic_ms",
    "CacheAdapter",
    "CacheConfig",
    "CacheEntry",
    "CacheStats",
]
