"""
batchsplice — runtime config loader.

Purpose
- Load effective runtime config from defaults, TOML file, env vars, and CLI
  overrides with precedence CLI > env (``SPLICE_``) > file > defaults.
- Normalize path fields relative to the config file location.
"""

from __future__ import annotations

import json
import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final, Literal

from batchsplice.config.schema import (
    PATH_FIELDS,
    assert_valid_config,
    default_config,
    merge_config,
    redact_config,
)

DEFAULT_CONFIG_FILE: Final[str] = "splice.toml"
ENV_PREFIX: Final[str] = "SPLICE_"

_BOOLEAN_TRUE: Final[frozenset[str]] = frozenset({"1", "true", "t", "yes", "y", "on"})
_BOOLEAN_FALSE: Final[frozenset[str]] = frozenset({"0", "false", "f", "no", "n", "off"})

ValueKind = Literal["str", "int", "float", "bool"]


@dataclass(frozen=True, slots=True)
class _Binding:
    path: tuple[str, ...]
    value_type: ValueKind


class ConfigLoadError(ValueError):
    """Raised when config cannot be loaded or overrides cannot be coerced."""


def load_config(
    config_path: str | Path | None = None,
    *,
    cli_overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Load effective config with deterministic precedence: CLI > env > file > defaults.

    An explicit ``config_path`` must exist; the implicit ``./splice.toml`` is optional.
    """

    resolved_path = _resolve_config_path(config_path)
    env_map = dict(os.environ if environ is None else environ)

    file_payload = _load_toml_file(resolved_path, required=config_path is not None)
    merged = merge_config(default_config(), file_payload)
    merged = assert_valid_config(merged)
    merged = normalize_paths(merged, base_dir=resolved_path.parent)

    merged = merge_config(merged, _collect_env_overrides(merged, env_map))
    merged = merge_config(merged, _materialize_cli_overrides(dict(cli_overrides or {})))
    return assert_valid_config(merged)


def normalize_paths(config: Mapping[str, object], *, base_dir: Path) -> dict[str, Any]:
    """Normalize configured path fields relative to ``base_dir``."""

    materialized = merge_config({}, config)
    for field_path in PATH_FIELDS:
        value = _get_nested(materialized, field_path)
        if isinstance(value, str):
            _set_nested(materialized, field_path, _normalize_one_path(value, base_dir))
    return materialized


def dump_effective_config(config: Mapping[str, object]) -> str:
    """Return a deterministic JSON dump of the redacted effective config."""

    return json.dumps(
        redact_config(config), sort_keys=True, indent=2, ensure_ascii=False
    )


def _resolve_config_path(config_path: str | Path | None) -> Path:
    if config_path is None:
        return (Path.cwd() / DEFAULT_CONFIG_FILE).resolve()
    return Path(config_path).expanduser().resolve()


def _load_toml_file(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise ConfigLoadError(f"config file not found: {path}")
        return {}

    try:
        with path.open("rb") as handle:
            parsed = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigLoadError(f"invalid TOML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigLoadError(f"unable to read config file {path}: {exc}") from exc

    return parsed


def _collect_env_overrides(
    config: Mapping[str, object], environ: Mapping[str, str]
) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for env_name, binding in sorted(_build_bindings(config).items()):
        raw = environ.get(env_name)
        if raw is None:
            continue
        value = _coerce_env(raw, binding.value_type, env_name, binding.path)
        _set_nested(overrides, binding.path, value)
    return overrides


def _build_bindings(config: Mapping[str, object]) -> dict[str, _Binding]:
    bindings: dict[str, _Binding] = {}
    for path, value in _iter_scalar_paths(config):
        kind = _kind_for_value(value)
        if kind is not None:
            bindings[_env_name_for_path(path)] = _Binding(path=path, value_type=kind)
    return bindings


def _iter_scalar_paths(
    payload: Mapping[str, object],
    prefix: tuple[str, ...] = (),
) -> list[tuple[tuple[str, ...], object]]:
    pairs: list[tuple[tuple[str, ...], object]] = []
    for key in sorted(payload):
        value = payload[key]
        path = (*prefix, key)
        if isinstance(value, Mapping):
            pairs.extend(_iter_scalar_paths(value, path))
        else:
            pairs.append((path, value))
    return pairs


def _kind_for_value(value: object) -> ValueKind | None:
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int):
        return "int"
    if isinstance(value, float):
        return "float"
    if isinstance(value, str):
        return "str"
    return None


def _coerce_env(raw: str, value_type: ValueKind, env_name: str, path: tuple[str, ...]) -> object:
    value = raw.strip()
    if value_type == "str":
        return value
    if value_type == "int":
        try:
            return int(value)
        except ValueError as exc:
            raise ConfigLoadError(f"{env_name} -> {'.'.join(path)} must be an integer") from exc
    if value_type == "float":
        try:
            return float(value)
        except ValueError as exc:
            raise ConfigLoadError(f"{env_name} -> {'.'.join(path)} must be a number") from exc

    lowered = value.lower()
    if lowered in _BOOLEAN_TRUE:
        return True
    if lowered in _BOOLEAN_FALSE:
        return False
    raise ConfigLoadError(
        f"{env_name} -> {'.'.join(path)} must be a boolean (true/false/1/0/yes/no/on/off)"
    )


def _materialize_cli_overrides(cli_overrides: Mapping[str, object]) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    for key in sorted(cli_overrides):
        value = cli_overrides[key]
        if value is None:
            continue
        path = tuple(part for part in key.split(".") if part)
        if len(path) < 2:
            raise ConfigLoadError(f"invalid CLI override key {key!r}; expected section.field")
        _set_nested(payload, path, value)
    return payload


def _set_nested(target: dict[str, Any], path: tuple[str, ...], value: object) -> None:
    cursor = target
    for part in path[:-1]:
        next_node = cursor.get(part)
        if not isinstance(next_node, dict):
            next_node = {}
            cursor[part] = next_node
        cursor = next_node
    cursor[path[-1]] = value


def _get_nested(payload: Mapping[str, object], path: tuple[str, ...]) -> object | None:
    cursor: object = payload
    for part in path:
        if not isinstance(cursor, Mapping) or part not in cursor:
            return None
        cursor = cursor[part]
    return cursor


def _normalize_one_path(raw: str, base_dir: Path) -> str:
    candidate = Path(os.path.expandvars(raw)).expanduser()
    if not candidate.is_absolute():
        candidate = base_dir / candidate
    return Path(os.path.normpath(str(candidate))).as_posix()


def _env_name_for_path(path: tuple[str, ...]) -> str:
    return ENV_PREFIX + "_".join(part.upper() for part in path)


__all__ = [
    "ConfigLoadError",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "dump_effective_config",
    "load_config",
    "normalize_paths",
]
