"""
VoiceTrack Logging Subsystem

Purpose
-------
Structured, queue-backed logging for the cache and voice services.

Every record can carry the guild and user it concerns. Services scope a block
of work with `LogContext(guild_id=..., user_id=...)` and all records emitted
inside it, including ones from the cache coordinator, are stamped with those
ids plus a short correlation id.

Output
------
- Console: one JSON object per line when `LOG_JSON` is set (default in
  production), otherwise a plain line with a `[guild/user]` prefix.
- File: a daily rotating JSON log under `LOGS_DIR` when `LOG_TO_FILE` is set.

Records are handed to a bounded queue and written by a listener thread, so a
slow sink never blocks the event loop. When the queue is full the record is
dropped and counted; `get_logging_health()` reports the counters.

Library modules only call `get_logger(__name__)`. Nothing here runs on import;
the embedding application calls `setup_logging()` once.
"""

from __future__ import annotations

import json
import logging
import queue
import sys
import uuid
from contextvars import ContextVar, Token
from dataclasses import dataclass
from datetime import datetime, timezone
from logging import Logger
from logging.handlers import QueueHandler, QueueListener, TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional

_CONTEXT_FIELDS = ("guild_id", "user_id", "operation", "correlation_id")
_UNSET = "-"

_log_context: ContextVar[Dict[str, str]] = ContextVar("voicetrack_log_context", default={})

# Attributes every LogRecord has; anything else on a record came from `extra=`
_RECORD_ATTRS = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", (), None).__dict__
) | {"message", "asctime"}


# ============================================================================
# Configuration
# ============================================================================


@dataclass(frozen=True)
class LoggerConfig:
    """Snapshot of the logging settings taken from `Config` at setup time."""

    level: int = logging.INFO
    json_output: bool = False
    log_to_file: bool = False
    logs_dir: Path = Path("logs")
    queue_max_size: int = 10_000
    file_basename: str = "voicetrack.json.log"
    file_backup_count: int = 7

    @classmethod
    def from_config(cls) -> "LoggerConfig":
        # Deferred: the config package logs through this module
        from voicetrack.core.config.config import Config

        level = getattr(logging, str(Config.LOG_LEVEL).upper(), None)
        json_flag = Config.LOG_JSON
        return cls(
            level=level if isinstance(level, int) else logging.INFO,
            json_output=Config.is_production() if json_flag is None else bool(json_flag),
            log_to_file=bool(Config.LOG_TO_FILE),
            logs_dir=Path(Config.LOGS_DIR).resolve(),
        )


@dataclass(frozen=True)
class LoggingHealth:
    initialized: bool
    queue_size: int
    queue_max_size: int
    records_enqueued: int
    records_dropped: int
    listener_errors: int


class _Counters:
    enqueued = 0
    dropped = 0
    listener_errors = 0

    @classmethod
    def reset(cls) -> None:
        cls.enqueued = cls.dropped = cls.listener_errors = 0


# ============================================================================
# Filter & Formatters
# ============================================================================


class ContextFilter(logging.Filter):
    """Stamps the current guild/user/operation context onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        context = _log_context.get()
        for name in _CONTEXT_FIELDS:
            # An explicit `extra={"operation": ...}` beats the ambient scope
            if getattr(record, name, None) is None:
                setattr(record, name, context.get(name, _UNSET))
        return True


class PlainFormatter(logging.Formatter):
    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s | [%(guild_id)s/%(user_id)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        # Records logged before setup_logging() never passed the filter
        for name in _CONTEXT_FIELDS:
            if not hasattr(record, name):
                setattr(record, name, _UNSET)
        return super().format(record)


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "line": f"{record.module}:{record.funcName}:{record.lineno}",
        }

        for name in _CONTEXT_FIELDS:
            value = getattr(record, name, _UNSET)
            if value != _UNSET:
                payload[name] = value

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRS and key not in _CONTEXT_FIELDS and not key.startswith("_")
        }
        if extra:
            payload["extra"] = extra

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


# ============================================================================
# Queue Plumbing
# ============================================================================


class _DroppingQueueHandler(QueueHandler):
    def enqueue(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        _Counters.enqueued += 1
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            _Counters.dropped += 1


class _CountingQueueListener(QueueListener):
    def handleError(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        _Counters.listener_errors += 1
        sys.stderr.write(f"voicetrack: failed to write log record from {record.name}\n")


_listener: Optional[QueueListener] = None
_queue_handler: Optional[QueueHandler] = None


def _build_handlers(config: LoggerConfig) -> List[logging.Handler]:
    formatter: logging.Formatter = JSONFormatter() if config.json_output else PlainFormatter()
    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    handlers: List[logging.Handler] = [console]

    if config.log_to_file:
        config.logs_dir.mkdir(parents=True, exist_ok=True)
        file_handler = TimedRotatingFileHandler(
            filename=str(config.logs_dir / config.file_basename),
            when="midnight",
            backupCount=config.file_backup_count,
            encoding="utf-8",
            utc=True,
        )
        file_handler.setFormatter(JSONFormatter())
        handlers.append(file_handler)

    for handler in handlers:
        handler.setLevel(config.level)
    return handlers


def setup_logging(config: Optional[LoggerConfig] = None) -> None:
    """
    Route the root logger through the bounded queue. Idempotent.

    Args:
        config: Explicit settings; read from `Config` when omitted
    """
    global _listener, _queue_handler

    if _queue_handler is not None:
        return

    config = config or LoggerConfig.from_config()
    _Counters.reset()

    log_queue: "queue.Queue[logging.LogRecord]" = queue.Queue(config.queue_max_size)
    _listener = _CountingQueueListener(
        log_queue, *_build_handlers(config), respect_handler_level=True
    )
    _listener.start()

    _queue_handler = _DroppingQueueHandler(log_queue)
    _queue_handler.setLevel(config.level)
    # Context is read on the producing task, before the record crosses threads
    _queue_handler.addFilter(ContextFilter())

    root = logging.getLogger()
    root.setLevel(config.level)
    root.addHandler(_queue_handler)

    logging.getLogger(__name__).info(
        "Logging initialized",
        extra={
            "log_level": logging.getLevelName(config.level),
            "json_output": config.json_output,
            "log_to_file": config.log_to_file,
        },
    )


def shutdown_logging() -> None:
    """Flush the queue and detach the handlers installed by `setup_logging`."""
    global _listener, _queue_handler

    if _queue_handler is None:
        return

    logging.getLogger().removeHandler(_queue_handler)
    if _listener is not None:
        _listener.stop()
        for handler in _listener.handlers:
            handler.close()

    _listener = None
    _queue_handler = None


def get_logging_health() -> LoggingHealth:
    log_queue = _queue_handler.queue if _queue_handler is not None else None
    return LoggingHealth(
        initialized=_queue_handler is not None,
        queue_size=log_queue.qsize() if log_queue is not None else 0,
        queue_max_size=log_queue.maxsize if log_queue is not None else 0,
        records_enqueued=_Counters.enqueued,
        records_dropped=_Counters.dropped,
        listener_errors=_Counters.listener_errors,
    )


# ============================================================================
# Public API
# ============================================================================


def get_logger(name: str) -> Logger:
    return logging.getLogger(name)


def _merged_context(
    guild_id: Optional[Any],
    user_id: Optional[Any],
    operation: Optional[str],
    correlation_id: Optional[str],
) -> Dict[str, str]:
    context = dict(_log_context.get())
    for name, value in (
        ("guild_id", guild_id),
        ("user_id", user_id),
        ("operation", operation),
        ("correlation_id", correlation_id),
    ):
        if value is not None:
            context[name] = str(value)
    return context


class LogContext:
    """
    Scope log records to a guild/user for the duration of a block.

    Nested scopes inherit fields they do not set. A fresh correlation id is
    generated unless one is inherited or given.

    Example:
        >>> async with LogContext(guild_id=guild_id, user_id=user_id):
        ...     await service.record_activity(guild_id, user_id, 60_000, 10)
    """

    def __init__(
        self,
        guild_id: Optional[Any] = None,
        user_id: Optional[Any] = None,
        operation: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ) -> None:
        self._fields = (guild_id, user_id, operation, correlation_id)
        self._token: Optional[Token[Dict[str, str]]] = None

    def __enter__(self) -> "LogContext":
        context = _merged_context(*self._fields)
        context.setdefault("correlation_id", uuid.uuid4().hex[:8])
        self._token = _log_context.set(context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _log_context.reset(self._token)
            self._token = None

    async def __aenter__(self) -> "LogContext":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)


def set_log_context(
    guild_id: Optional[Any] = None,
    user_id: Optional[Any] = None,
    operation: Optional[str] = None,
    correlation_id: Optional[str] = None,
) -> None:
    """Merge fields into the current context without a scope to undo them."""
    _log_context.set(_merged_context(guild_id, user_id, operation, correlation_id))


def clear_log_context() -> None:
    _log_context.set({})


def get_log_context() -> Dict[str, str]:
    return dict(_log_context.get())
