"""
Base Service Foundation

Purpose
-------
Common plumbing for VoiceTrack domain services: structured operation
logging and input validation that raises `ValidationError`.

What this class does NOT do:
- Talk to storage or the cache (subclasses own those collaborators)
- Swallow errors; validation failures and storage faults propagate

Usage
-----
    class VoiceDataService(BaseService):
        def __init__(self, storage, cache=None):
            super().__init__(get_logger(__name__))
            self._storage = storage
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from voicetrack.core.exceptions import ValidationError

if TYPE_CHECKING:
    from logging import Logger


class BaseService:
    """
    Base class for domain services.

    Args:
        logger: Structured logger instance
    """

    def __init__(self, logger: Logger) -> None:
        self.log = logger

    def log_operation(self, operation: str, **context: Any) -> None:
        self.log.debug(
            f"Service operation: {operation}",
            extra={"operation": operation, **context},
        )

    def log_error(self, operation: str, error: Exception, **context: Any) -> None:
        self.log.error(
            f"Service error during {operation}: {str(error)}",
            extra={
                "operation": operation,
                "error_type": type(error).__name__,
                "error_message": str(error),
                **context,
            },
        )

    def validate_non_negative_int(self, value: int, name: str) -> None:
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValidationError(
                name, f"{name} must be a non-negative integer, got {value}"
            )

    def validate_non_empty_str(self, value: str, name: str) -> None:
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(name, f"{name} must be a non-empty string")
