"""
roadmap-verifier: structured run logging

File: src/roadmap_verifier/observability/logging.py
Last updated: 2026-10-19

Purpose
- One JSON object per log line for every verification run, written off the event loop
  through a queue listener.
- Bind run/week/item/check correlation fields with ``contextvars`` so concurrent checks
  each log under their own identifiers.

Functional requirements
- Sinks: optional per-run file ``<log_dir>/<run_id>/roadmap-verifier.jsonl`` and an
  optional stream sink (stderr); with neither configured records are discarded.
- Secret-looking keys, ``key=value`` assignments and bearer tokens are redacted unless
  redaction is disabled.
- A full queue drops records instead of blocking a check.

Non-functional requirements
- Deterministic key order in every emitted line.
"""

from __future__ import annotations

import atexit
import contextvars
import json
import logging
import logging.handlers
import math
import queue
import re
import threading
import time
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from types import MappingProxyType
from typing import Final

from roadmap_verifier.domain.models import JSONValue

LogRedactor = Callable[[JSONValue], JSONValue]

REDACTED: Final[str] = "***REDACTED***"
DEFAULT_LOGGER_NAME: Final[str] = "roadmap_verifier"
DEFAULT_LOG_FILENAME: Final[str] = "roadmap-verifier.jsonl"
DEFAULT_QUEUE_SIZE: Final[int] = 4096

CORRELATION_FIELDS: Final[tuple[str, ...]] = ("run_id", "week_id", "item_id", "check_type")

_SECRET_KEY_FRAGMENTS: Final[tuple[str, ...]] = (
    "authorization",
    "api_key",
    "api-key",
    "apikey",
    "cookie",
    "credential",
    "passphrase",
    "password",
    "private_key",
    "secret",
    "token",
)
_BEARER: Final[re.Pattern[str]] = re.compile(r"(?i)\bbearer\s+[A-Za-z0-9._~+/-]+=*")
_ASSIGNMENT: Final[re.Pattern[str]] = re.compile(
    r"(?i)\b(api[_-]?key|token|password|secret|authorization)\b\s*([:=])\s*([^\s,;]+)"
)

# Attributes every LogRecord carries; anything else arrived through ``extra=``.
_RECORD_ATTRIBUTES: Final[frozenset[str]] = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "taskName", "correlation"}

_correlation: contextvars.ContextVar[Mapping[str, str]] = contextvars.ContextVar(
    "roadmap_verifier_correlation", default=MappingProxyType({})
)

_active_lock = threading.Lock()
_active: StructuredLoggingHandle | None = None
_atexit_hooked = False


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Settings for one run's logging; ``base_log_dir=None`` disables the file sink."""

    run_id: str
    base_log_dir: Path | str | None = None
    logger_name: str = DEFAULT_LOGGER_NAME
    level: int | str = "INFO"
    queue_size: int = DEFAULT_QUEUE_SIZE
    log_filename: str = DEFAULT_LOG_FILENAME
    log_to_stdout: bool = True
    redactor: LogRedactor | None = None


# ---------------------------------------------------------------------------
# Correlation
# ---------------------------------------------------------------------------


def get_correlation_context() -> dict[str, str]:
    return dict(_correlation.get())


@contextmanager
def correlation_scope(**fields: str | None) -> Iterator[None]:
    """Bind correlation fields for the enclosed block; ``None`` unbinds a field."""

    bound = get_correlation_context()
    for key, value in fields.items():
        if value is None or not value.strip():
            bound.pop(key, None)
        else:
            bound[key] = value.strip()
    token = _correlation.set(MappingProxyType(bound))
    try:
        yield
    finally:
        _correlation.reset(token)


# ---------------------------------------------------------------------------
# Redaction
# ---------------------------------------------------------------------------


def default_log_redactor(value: JSONValue) -> JSONValue:
    """Recursively mask secret-looking keys, bearer tokens and ``key=value`` secrets."""

    if isinstance(value, str):
        masked = _BEARER.sub(f"Bearer {REDACTED}", value)
        return _ASSIGNMENT.sub(lambda match: f"{match[1]}{match[2]}{REDACTED}", masked)
    if isinstance(value, list):
        return [default_log_redactor(item) for item in value]
    if isinstance(value, dict):
        return {
            key: REDACTED if _is_secret_key(key) else default_log_redactor(item)
            for key, item in value.items()
        }
    return value


def _is_secret_key(key: str) -> bool:
    lowered = key.lower()
    return any(fragment in lowered for fragment in _SECRET_KEY_FRAGMENTS)


def _no_redaction(value: JSONValue) -> JSONValue:
    return value


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------


class JsonLinesFormatter(logging.Formatter):
    """Render a record as one sorted-key JSON object."""

    def __init__(self, *, run_id: str, redactor: LogRedactor) -> None:
        super().__init__()
        self._run_id = run_id
        self._redactor = redactor

    def format(self, record: logging.LogRecord) -> str:
        line: dict[str, JSONValue] = {
            "timestamp": _utc_timestamp(record.created),
            "level": record.levelname,
            "logger": record.name,
            "message": str(self._redactor(record.getMessage())),
            "run_id": self._run_id,
        }
        correlation = getattr(record, "correlation", None)
        if isinstance(correlation, Mapping):
            line.update({str(key): str(value) for key, value in correlation.items()})

        extras = {
            key: _jsonable(value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRIBUTES and not key.startswith("_")
        }
        if extras:
            line["fields"] = self._redactor(extras)
        if record.exc_info:
            line["exception"] = str(self._redactor(self.formatException(record.exc_info)))
        return json.dumps(line, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _utc_timestamp(epoch_seconds: float) -> str:
    moment = datetime.fromtimestamp(epoch_seconds, tz=UTC)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _jsonable(value: object) -> JSONValue:
    if value is None or isinstance(value, str | bool | int):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else str(value)
    if isinstance(value, Mapping):
        return {str(key): _jsonable(item) for key, item in value.items()}
    if isinstance(value, list | tuple | set | frozenset):
        items = [_jsonable(item) for item in value]
        return sorted(items, key=repr) if isinstance(value, set | frozenset) else items
    if isinstance(value, Path):
        return value.as_posix()
    return str(value)


# ---------------------------------------------------------------------------
# Queue plumbing
# ---------------------------------------------------------------------------


class _CorrelatingQueueHandler(logging.handlers.QueueHandler):
    """Snapshot correlation in the emitting task; drop records when the queue is full."""

    def __init__(self, log_queue: queue.Queue[logging.LogRecord]) -> None:
        super().__init__(log_queue)
        self._drop_lock = threading.Lock()
        self.dropped = 0

    def prepare(self, record: logging.LogRecord) -> logging.LogRecord:
        context = get_correlation_context()
        if context:
            record.correlation = context
        return super().prepare(record)

    def enqueue(self, record: logging.LogRecord) -> None:
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            with self._drop_lock:
                self.dropped += 1


class StructuredLoggingHandle:
    """Owns the listener thread and sinks of an active logging setup."""

    def __init__(
        self,
        *,
        logger: logging.Logger,
        run_id: str,
        log_path: Path | None,
        queue_handler: _CorrelatingQueueHandler,
        listener: logging.handlers.QueueListener,
        sinks: tuple[logging.Handler, ...],
    ) -> None:
        self.logger = logger
        self.run_id = run_id
        self.log_path = log_path
        self._queue_handler = queue_handler
        self._listener = listener
        self._sinks = sinks
        self._lock = threading.Lock()
        self._closed = False

    @property
    def dropped_records(self) -> int:
        return self._queue_handler.dropped

    @property
    def is_shutdown(self) -> bool:
        return self._closed

    def flush(self, *, timeout_seconds: float = 2.0) -> None:
        pending = self._queue_handler.queue
        deadline = time.monotonic() + max(timeout_seconds, 0.0)
        while isinstance(pending, queue.Queue) and pending.unfinished_tasks:
            if time.monotonic() >= deadline:
                break
            time.sleep(0.01)
        for sink in self._sinks:
            sink.flush()

    def shutdown(self, *, timeout_seconds: float = 2.0) -> None:
        with self._lock:
            if self._closed:
                return
            self.flush(timeout_seconds=timeout_seconds)
            self._listener.stop()
            self.logger.removeHandler(self._queue_handler)
            self._queue_handler.close()
            for sink in self._sinks:
                sink.close()
            self._closed = True


# ---------------------------------------------------------------------------
# Setup / teardown
# ---------------------------------------------------------------------------


def setup_logging(
    observability_config: Mapping[str, object] | None = None,
    *,
    run_id: str,
    log_dir: Path | str | None = None,
    logger_name: str = DEFAULT_LOGGER_NAME,
) -> StructuredLoggingHandle:
    """Configure run logging from an ``[observability]`` config section.

    An empty ``log_dir`` (the default) keeps the file sink off.
    """

    section = dict(observability_config or {})
    configured_dir = log_dir if log_dir is not None else section.get("log_dir")
    base_log_dir = configured_dir if isinstance(configured_dir, Path) else None
    if isinstance(configured_dir, str) and configured_dir.strip():
        base_log_dir = Path(configured_dir)

    level = section.get("log_level", "INFO")
    log_to_stdout = section.get("log_to_stdout", True)
    return setup_structured_logging(
        LoggingConfig(
            run_id=run_id,
            base_log_dir=base_log_dir,
            logger_name=logger_name,
            level=level if isinstance(level, int | str) else "INFO",
            log_to_stdout=log_to_stdout if isinstance(log_to_stdout, bool) else True,
            redactor=None if section.get("redact_secrets", True) else _no_redaction,
        )
    )


def setup_structured_logging(config: LoggingConfig) -> StructuredLoggingHandle:
    """Replace any active setup with queue-backed JSON logging for ``config.run_id``."""

    shutdown_logging()

    run_id = _require_text(config.run_id, "run_id")
    logger_name = _require_text(config.logger_name, "logger_name")
    level = _resolve_level(config.level)
    if isinstance(config.queue_size, bool) or config.queue_size <= 0:
        raise ValueError("queue_size must be a positive integer")

    formatter = JsonLinesFormatter(
        run_id=run_id,
        redactor=config.redactor or default_log_redactor,
    )
    sinks: list[logging.Handler] = []
    log_path: Path | None = None
    if config.base_log_dir is not None:
        filename = _require_text(config.log_filename, "log_filename")
        if Path(filename).name != filename:
            raise ValueError("log_filename must be a bare file name")
        log_path = Path(config.base_log_dir) / run_id / filename
        log_path.parent.mkdir(parents=True, exist_ok=True)
        sinks.append(logging.FileHandler(log_path, encoding="utf-8"))
    if config.log_to_stdout:
        sinks.append(logging.StreamHandler())
    if not sinks:
        sinks.append(logging.NullHandler())
    for sink in sinks:
        sink.setLevel(level)
        sink.setFormatter(formatter)

    logger = logging.getLogger(logger_name)
    logger.setLevel(level)
    logger.propagate = False
    for stale in list(logger.handlers):
        logger.removeHandler(stale)
        stale.close()

    log_queue: queue.Queue[logging.LogRecord] = queue.Queue(maxsize=config.queue_size)
    queue_handler = _CorrelatingQueueHandler(log_queue)
    queue_handler.setLevel(level)
    listener = logging.handlers.QueueListener(log_queue, *sinks, respect_handler_level=True)
    listener.start()
    logger.addHandler(queue_handler)

    handle = StructuredLoggingHandle(
        logger=logger,
        run_id=run_id,
        log_path=log_path,
        queue_handler=queue_handler,
        listener=listener,
        sinks=tuple(sinks),
    )
    global _active, _atexit_hooked
    with _active_lock:
        _active = handle
        if not _atexit_hooked:
            atexit.register(shutdown_logging)
            _atexit_hooked = True
    return handle


def shutdown_logging(
    handle: StructuredLoggingHandle | None = None,
    *,
    timeout_seconds: float = 2.0,
) -> None:
    """Drain and close ``handle`` (default: the active one)."""

    global _active
    with _active_lock:
        target = handle if handle is not None else _active
        if target is _active:
            _active = None
    if target is not None:
        target.shutdown(timeout_seconds=timeout_seconds)


def get_active_logging_handle() -> StructuredLoggingHandle | None:
    with _active_lock:
        return _active


def _require_text(value: object, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{name} must be a non-empty string")
    return value.strip()


def _resolve_level(value: int | str) -> int:
    if isinstance(value, int):
        return value
    resolved = logging.getLevelName(str(value).strip().upper())
    if not isinstance(resolved, int):
        raise ValueError(f"unsupported logging level {value!r}")
    return resolved


__all__ = [
    "CORRELATION_FIELDS",
    "DEFAULT_LOGGER_NAME",
    "JsonLinesFormatter",
    "LogRedactor",
    "LoggingConfig",
    "StructuredLoggingHandle",
    "correlation_scope",
    "default_log_redactor",
    "get_active_logging_handle",
    "get_correlation_context",
    "setup_logging",
    "setup_structured_logging",
    "shutdown_logging",
]
