"""
VoiceTrack: voice activity tracking data layer.

Caches guild snapshots, user records and leaderboard pages in front of a
pluggable storage backend and keeps them coherent with every write.
"""

__version__ = "0.1.0"
