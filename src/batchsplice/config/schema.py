"""
batchsplice — runtime configuration schema and validation.

Purpose
- Define authoritative configuration defaults and strict validation rules for
  the splice process (queue endpoint, repository, batch cadence, job backend,
  observability).

Functional requirements
- Validate config payloads and return structured errors (field path + message).
- Reject unknown keys so typos fail fast.
"""

from __future__ import annotations

import copy
import math
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, TypedDict

from batchsplice.constants import (
    DEFAULT_BASE_BRANCH,
    DEFAULT_COOLDOWN_TICKS,
    DEFAULT_JOB_BACKEND_URL,
    DEFAULT_JOB_CONFIG_PATH,
    DEFAULT_MAX_BATCH_SIZE,
    DEFAULT_ORG,
    DEFAULT_QUEUE_ENDPOINT,
    DEFAULT_REMOTE_URL,
    DEFAULT_REPO,
    DEFAULT_TICK_INTERVAL_SECONDS,
)
from batchsplice.observability.logging import redact_text

# Config paths that should be normalized relative to config file location.
PATH_FIELDS: Final[tuple[tuple[str, ...], ...]] = (("jobs", "config_path"),)


class QueueConfig(TypedDict):
    endpoint: str


class RepositoryConfig(TypedDict):
    remote_url: str
    org: str
    repo: str
    default_branch: str


class BatchConfig(TypedDict):
    max_size: int
    cooldown_ticks: int
    tick_interval_seconds: float


class JobsConfig(TypedDict):
    config_path: str
    backend_url: str


class ObservabilityConfig(TypedDict):
    log_level: str
    log_format: str


class SpliceConfig(TypedDict):
    queue: QueueConfig
    repository: RepositoryConfig
    batch: BatchConfig
    jobs: JobsConfig
    observability: ObservabilityConfig


DEFAULT_CONFIG: Final[SpliceConfig] = {
    "queue": {
        "endpoint": DEFAULT_QUEUE_ENDPOINT,
    },
    "repository": {
        "remote_url": DEFAULT_REMOTE_URL,
        "org": DEFAULT_ORG,
        "repo": DEFAULT_REPO,
        "default_branch": DEFAULT_BASE_BRANCH,
    },
    "batch": {
        "max_size": DEFAULT_MAX_BATCH_SIZE,
        "cooldown_ticks": DEFAULT_COOLDOWN_TICKS,
        "tick_interval_seconds": DEFAULT_TICK_INTERVAL_SECONDS,
    },
    "jobs": {
        "config_path": DEFAULT_JOB_CONFIG_PATH,
        "backend_url": DEFAULT_JOB_BACKEND_URL,
    },
    "observability": {
        "log_level": "INFO",
        "log_format": "text",
    },
}


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """Single structured validation failure."""

    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    """Validation result with normalized config when no issues were found."""

    config: dict[str, Any] | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class ConfigValidationError(ValueError):
    """Raised when strict config validation fails."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"invalid config:\n{rendered}")


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ConfigValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(ConfigValidationIssue(path=path, message=message))

    def items(self) -> tuple[ConfigValidationIssue, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)


def default_config() -> dict[str, Any]:
    """Return a deep copy of the built-in defaults."""

    return copy.deepcopy(dict(DEFAULT_CONFIG))


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deterministically deep-merge ``overlay`` onto ``base``."""

    merged = copy.deepcopy(dict(base))
    _merge_into(merged, overlay)
    return merged


def validate_config(config: Mapping[str, object] | object) -> ConfigValidationResult:
    """Validate config and return structured issues with deterministic paths."""

    issues = _IssueCollector()
    root = _as_object(config, "<root>", issues)
    if root is None:
        return ConfigValidationResult(config=None, issues=issues.items())

    _reject_unknown_keys(root, set(DEFAULT_CONFIG), "", issues)
    out: dict[str, Any] = {}
    _section(root, key="queue", issues=issues, validator=_validate_queue, out=out)
    _section(root, key="repository", issues=issues, validator=_validate_repository, out=out)
    _section(root, key="batch", issues=issues, validator=_validate_batch, out=out)
    _section(root, key="jobs", issues=issues, validator=_validate_jobs, out=out)
    _section(root, key="observability", issues=issues, validator=_validate_observability, out=out)

    if issues.has_issues:
        return ConfigValidationResult(config=None, issues=issues.items())
    return ConfigValidationResult(config=out, issues=())


def assert_valid_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Validate config and raise ``ConfigValidationError`` on failure."""

    result = validate_config(config)
    if not result.is_valid or result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def redact_config(config: Mapping[str, object]) -> dict[str, Any]:
    """Return a copy with credentials embedded in string values masked."""

    return {key: _redact_value(config[key]) for key in sorted(config)}


def _section(
    payload: Mapping[str, object],
    *,
    key: str,
    issues: _IssueCollector,
    validator: Callable[[dict[str, object], str, _IssueCollector], dict[str, Any]],
    out: dict[str, Any],
) -> None:
    raw = payload.get(key)
    if raw is None:
        issues.add(key, "missing required section")
        return
    section_obj = _as_object(raw, key, issues)
    if section_obj is None:
        return
    out[key] = validator(section_obj, key, issues)


def _validate_queue(
    payload: dict[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    _reject_unknown_keys(payload, {"endpoint"}, path, issues)
    _require_keys(payload, {"endpoint"}, path, issues)
    out: dict[str, Any] = {}
    if "endpoint" in payload:
        parsed = _as_url(payload["endpoint"], _join(path, "endpoint"), issues)
        if parsed is not None:
            out["endpoint"] = parsed
    return out


def _validate_repository(
    payload: dict[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {"remote_url", "org", "repo", "default_branch"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)
    out: dict[str, Any] = {}
    for key in sorted(allowed & set(payload)):
        parsed = _as_str(payload[key], _join(path, key), issues)
        if parsed is None:
            continue
        if key in {"org", "repo"} and "/" in parsed:
            issues.add(_join(path, key), "must not contain '/'")
            continue
        out[key] = parsed
    return out


def _validate_batch(
    payload: dict[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {"max_size", "cooldown_ticks", "tick_interval_seconds"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)
    out: dict[str, Any] = {}

    if "max_size" in payload:
        max_size = _as_int(payload["max_size"], _join(path, "max_size"), issues, minimum=1)
        if max_size is not None:
            out["max_size"] = max_size

    if "cooldown_ticks" in payload:
        cooldown = _as_int(
            payload["cooldown_ticks"], _join(path, "cooldown_ticks"), issues, minimum=0
        )
        if cooldown is not None:
            out["cooldown_ticks"] = cooldown

    if "tick_interval_seconds" in payload:
        interval = _as_float(
            payload["tick_interval_seconds"], _join(path, "tick_interval_seconds"), issues
        )
        if interval is not None:
            if interval <= 0:
                issues.add(_join(path, "tick_interval_seconds"), "must be > 0")
            else:
                out["tick_interval_seconds"] = interval

    return out


def _validate_jobs(
    payload: dict[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {"config_path", "backend_url"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)
    out: dict[str, Any] = {}
    if "config_path" in payload:
        parsed_path = _as_str(payload["config_path"], _join(path, "config_path"), issues)
        if parsed_path is not None:
            if "\x00" in parsed_path:
                issues.add(_join(path, "config_path"), "must not contain NUL bytes")
            else:
                out["config_path"] = parsed_path
    if "backend_url" in payload:
        parsed_url = _as_url(payload["backend_url"], _join(path, "backend_url"), issues)
        if parsed_url is not None:
            out["backend_url"] = parsed_url
    return out


def _validate_observability(
    payload: dict[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {"log_level", "log_format"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)
    out: dict[str, Any] = {}

    if "log_level" in payload:
        level = _as_enum(
            payload["log_level"],
            _join(path, "log_level"),
            issues,
            allowed_values=("DEBUG", "INFO", "WARNING", "ERROR"),
        )
        if level is not None:
            out["log_level"] = level

    if "log_format" in payload:
        log_format = _as_enum(
            payload["log_format"],
            _join(path, "log_format"),
            issues,
            allowed_values=("json", "text"),
        )
        if log_format is not None:
            out["log_format"] = log_format

    return out


def _as_object(value: object, path: str, issues: _IssueCollector) -> dict[str, object] | None:
    if not isinstance(value, Mapping):
        issues.add(path, f"expected object, got {type(value).__name__}")
        return None
    out: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            issues.add(path, f"object key must be string, got {type(key).__name__}")
            continue
        out[key] = item
    return out


def _as_str(value: object, path: str, issues: _IssueCollector) -> str | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    parsed = value.strip()
    if not parsed:
        issues.add(path, "must not be empty")
        return None
    return parsed


def _as_url(value: object, path: str, issues: _IssueCollector) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if not parsed.startswith(("http://", "https://")):
        issues.add(path, "must be an http:// or https:// URL")
        return None
    return parsed


def _as_int(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: int | None = None,
) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        issues.add(path, f"expected integer, got {type(value).__name__}")
        return None
    if minimum is not None and value < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    return value


def _as_float(value: object, path: str, issues: _IssueCollector) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        issues.add(path, f"expected number, got {type(value).__name__}")
        return None
    parsed = float(value)
    if not math.isfinite(parsed):
        issues.add(path, "must be finite")
        return None
    return parsed


def _as_enum(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    allowed_values: tuple[str, ...],
) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if parsed not in allowed_values:
        expected = ", ".join(sorted(allowed_values))
        issues.add(path, f"invalid value {parsed!r}; expected one of: {expected}")
        return None
    return parsed


def _reject_unknown_keys(
    payload: Mapping[str, object],
    allowed: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(payload):
        if key not in allowed:
            issues.add(_join(path, key), "unknown field")


def _require_keys(
    payload: Mapping[str, object],
    required: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(required):
        if key not in payload:
            issues.add(_join(path, key), "missing required field")


def _join(path: str, key: str) -> str:
    if not path:
        return key
    return f"{path}.{key}"


def _merge_into(target: dict[str, Any], overlay: Mapping[str, object]) -> None:
    for key in sorted(overlay):
        value = overlay[key]
        existing = target.get(key)
        if isinstance(value, Mapping) and isinstance(existing, dict):
            _merge_into(existing, value)
        elif isinstance(value, Mapping):
            nested: dict[str, Any] = {}
            _merge_into(nested, value)
            target[key] = nested
        else:
            target[key] = copy.deepcopy(value)


def _redact_value(value: object) -> object:
    if isinstance(value, Mapping):
        return {key: _redact_value(value[key]) for key in sorted(value)}
    if isinstance(value, (list, tuple)):
        return [_redact_value(item) for item in value]
    if isinstance(value, str):
        return redact_text(value)
    return value


__all__ = [
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DEFAULT_CONFIG",
    "PATH_FIELDS",
    "SpliceConfig",
    "assert_valid_config",
    "default_config",
    "merge_config",
    "redact_config",
    "validate_config",
]
