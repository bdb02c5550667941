"""Shared building blocks for domain services."""

from voicetrack.modules.shared.base_service import BaseService

__all__ = ["BaseService"]
