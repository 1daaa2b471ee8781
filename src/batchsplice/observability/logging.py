"""Structured logging setup with JSON-lines or text output and redaction."""

from __future__ import annotations

import contextvars
import json
import logging
import math
import re
import sys
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import IO, Final, Literal

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]
LogFormat = Literal["json", "text"]

_REDACTED_VALUE: Final[str] = "***REDACTED***"
_ROOT_LOGGER_NAME: Final[str] = "batchsplice"
_TEXT_FORMAT: Final[str] = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_SENSITIVE_KEY_TERMS: Final[tuple[str, ...]] = (
    "secret",
    "token",
    "password",
    "authorization",
    "credential",
    "cookie",
)

_URL_CREDENTIALS_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"(?P<scheme>[a-zA-Z][a-zA-Z0-9+.-]*://)[^/@\s:]+(?::[^/@\s]*)?@"
)
_BEARER_TOKEN_PATTERN: Final[re.Pattern[str]] = re.compile(r"(?i)\bbearer\s+[A-Za-z0-9._~+/-]+=*")

_STANDARD_LOG_RECORD_FIELDS: Final[frozenset[str]] = frozenset(
    {
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "thread",
        "threadName",
        "taskName",
    }
)

_CorrelationState = tuple[tuple[str, str], ...]
_CORRELATION_CONTEXT: contextvars.ContextVar[_CorrelationState] = contextvars.ContextVar(
    "batchsplice_correlation", default=()
)

_ACTIVE_HANDLER_LOCK = threading.Lock()
_ACTIVE_HANDLER: logging.Handler | None = None


class _CorrelationFilter(logging.Filter):
    """Attach the active correlation fields to every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation = get_correlation_context()
        return True


class JsonLineFormatter(logging.Formatter):
    """Formatter that emits one canonical JSON object per log line."""

    def format(self, record: logging.LogRecord) -> str:
        event: dict[str, JSONValue] = {
            "timestamp": _iso8601z_from_epoch(record.created),
            "level": record.levelname,
            "logger": record.name,
            "message": redact_text(record.getMessage()),
        }

        correlation = getattr(record, "correlation", None)
        if isinstance(correlation, Mapping):
            for key, value in sorted(correlation.items()):
                event[str(key)] = str(value)

        extras = _extract_extra_fields(record)
        if extras:
            event["fields"] = redact_value(extras)

        if record.exc_info is not None:
            event["exception"] = redact_text(self.formatException(record.exc_info))

        return json.dumps(event, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """Human-readable formatter; correlation and extra fields trail the message."""

    def __init__(self) -> None:
        super().__init__(_TEXT_FORMAT)

    def format(self, record: logging.LogRecord) -> str:
        rendered = redact_text(super().format(record))
        trailer: dict[str, JSONValue] = {}
        correlation = getattr(record, "correlation", None)
        if isinstance(correlation, Mapping):
            trailer.update({str(key): str(value) for key, value in correlation.items()})
        extras = _extract_extra_fields(record)
        if extras:
            redacted = redact_value(extras)
            if isinstance(redacted, dict):
                trailer.update(redacted)
        if not trailer:
            return rendered
        pairs = " ".join(f"{key}={_coerce_text(value)}" for key, value in sorted(trailer.items()))
        return f"{rendered} [{pairs}]"


def setup_logging(
    *,
    level: int | str = "INFO",
    log_format: LogFormat = "text",
    stream: IO[str] | None = None,
    logger_name: str = _ROOT_LOGGER_NAME,
) -> logging.Logger:
    """Configure the ``batchsplice`` logger hierarchy and return its root logger.

    Calling this again replaces the previously installed handler.
    """

    parsed_level = _parse_log_level(level)
    if log_format not in ("json", "text"):
        raise ValueError(f"unsupported log format {log_format!r}")

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setLevel(parsed_level)
    handler.setFormatter(JsonLineFormatter() if log_format == "json" else TextFormatter())
    handler.addFilter(_CorrelationFilter())

    logger = logging.getLogger(logger_name)
    logger.setLevel(parsed_level)
    logger.propagate = False

    global _ACTIVE_HANDLER
    with _ACTIVE_HANDLER_LOCK:
        if _ACTIVE_HANDLER is not None:
            logger.removeHandler(_ACTIVE_HANDLER)
            _ACTIVE_HANDLER.close()
        logger.addHandler(handler)
        _ACTIVE_HANDLER = handler

    return logger


def shutdown_logging(logger_name: str = _ROOT_LOGGER_NAME) -> None:
    """Flush and detach the handler installed by ``setup_logging``."""

    global _ACTIVE_HANDLER
    with _ACTIVE_HANDLER_LOCK:
        handler = _ACTIVE_HANDLER
        _ACTIVE_HANDLER = None
    if handler is None:
        return
    handler.flush()
    logger = logging.getLogger(logger_name)
    logger.removeHandler(handler)
    logger.propagate = True
    handler.close()


def get_correlation_context() -> dict[str, str]:
    """Return the current correlation context as a plain dictionary."""
    return dict(_CORRELATION_CONTEXT.get())


@contextmanager
def correlation_scope(**fields: str | int | None) -> Iterator[None]:
    """Temporarily bind correlation fields for log records in scope."""
    state = get_correlation_context()
    for key, value in fields.items():
        if value is None:
            state.pop(key, None)
            continue
        text = str(value).strip()
        if not text:
            raise ValueError(f"correlation value for {key!r} must not be empty")
        state[key] = text
    token = _CORRELATION_CONTEXT.set(tuple(state.items()))
    try:
        yield
    finally:
        _CORRELATION_CONTEXT.reset(token)


def redact_text(text: str) -> str:
    """Mask credentials embedded in URLs and bearer tokens."""
    redacted = _URL_CREDENTIALS_PATTERN.sub(
        lambda match: f"{match.group('scheme')}{_REDACTED_VALUE}@", text
    )
    return _BEARER_TOKEN_PATTERN.sub(f"Bearer {_REDACTED_VALUE}", redacted)


def redact_value(value: JSONValue, *, key_context: str | None = None) -> JSONValue:
    if key_context is not None and any(
        term in key_context.lower() for term in _SENSITIVE_KEY_TERMS
    ):
        return _REDACTED_VALUE
    if isinstance(value, str):
        return redact_text(value)
    if isinstance(value, list):
        return [redact_value(item) for item in value]
    if isinstance(value, dict):
        return {key: redact_value(item, key_context=key) for key, item in value.items()}
    return value


def _parse_log_level(value: int | str) -> int:
    if isinstance(value, int):
        return value
    parsed = logging.getLevelName(value.strip().upper())
    if isinstance(parsed, int):
        return parsed
    raise ValueError(f"unsupported logging level {value!r}")


def _iso8601z_from_epoch(epoch_seconds: float) -> str:
    timestamp = datetime.fromtimestamp(epoch_seconds, tz=UTC)
    return timestamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _coerce_text(value: JSONValue) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _extract_extra_fields(record: logging.LogRecord) -> dict[str, JSONValue]:
    fields: dict[str, JSONValue] = {}
    for key, value in record.__dict__.items():
        if key in _STANDARD_LOG_RECORD_FIELDS or key == "correlation":
            continue
        if key.startswith("_"):
            continue
        fields[key] = _normalize_json_value(value)
    return fields


def _normalize_json_value(value: object) -> JSONValue:
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else str(value)
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, Mapping):
        return {str(key): _normalize_json_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize_json_value(item) for item in value]
    if isinstance(value, (set, frozenset)):
        return sorted((_normalize_json_value(item) for item in value), key=repr)
    return str(value)


__all__ = [
    "JSONValue",
    "JsonLineFormatter",
    "LogFormat",
    "TextFormatter",
    "correlation_scope",
    "get_correlation_context",
    "redact_text",
    "redact_value",
    "setup_logging",
    "shutdown_logging",
]
