"""Persistent storage contract consumed by the voice services."""

from voicetrack.storage.base import StorageAdapter

__all__ = ["StorageAdapter"]
