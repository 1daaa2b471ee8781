"""
batchsplice — verification job configuration.

Purpose
- Parse the YAML job configuration into ``VerificationJobSpec`` tuples keyed
  by ``org/repo``.
- Keep a hot-reloading view of the file for the reconciliation loop.

File layout::

    presubmits:
      kubernetes/kubernetes:
        - name: pull-kubernetes-unit
          always_run: true
        - name: pull-kubernetes-e2e
          context: e2e
          always_run: true
          skip_report: false
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from batchsplice.domain.models import VerificationJobSpec

logger = logging.getLogger(__name__)

_ALLOWED_JOB_KEYS = frozenset({"name", "context", "always_run", "skip_report"})


class JobConfigError(ValueError):
    """Raised when the job configuration cannot be read or is invalid."""


@dataclass(frozen=True, slots=True)
class JobConfig:
    presubmits: Mapping[str, tuple[VerificationJobSpec, ...]] = field(default_factory=dict)

    def presubmits_for(self, repo_key: str) -> tuple[VerificationJobSpec, ...]:
        """Configured specs for ``org/repo``; empty when the repo is unknown."""

        return self.presubmits.get(repo_key, ())


def load_job_config(path: str | Path) -> JobConfig:
    config_path = Path(path)
    try:
        text = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise JobConfigError(f"unable to read job config {config_path}: {exc}") from exc
    return parse_job_config(text, source=str(config_path))


def parse_job_config(text: str, *, source: str = "<string>") -> JobConfig:
    """Parse YAML text; an empty document yields an empty config."""

    try:
        payload = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise JobConfigError(f"invalid YAML in {source}: {exc}") from exc

    if payload is None:
        return JobConfig()
    if not isinstance(payload, Mapping):
        raise JobConfigError(f"{source}: top level must be a mapping")

    raw_presubmits = payload.get("presubmits")
    if raw_presubmits is None:
        return JobConfig()
    if not isinstance(raw_presubmits, Mapping):
        raise JobConfigError(f"{source}: presubmits must be a mapping of org/repo to job lists")

    presubmits: dict[str, tuple[VerificationJobSpec, ...]] = {}
    for repo_key, raw_jobs in raw_presubmits.items():
        if not isinstance(repo_key, str) or repo_key.count("/") != 1:
            raise JobConfigError(f"{source}: presubmits key {repo_key!r} must be org/repo")
        presubmits[repo_key] = _parse_jobs(raw_jobs, f"{source}: presubmits.{repo_key}")
    return JobConfig(presubmits=presubmits)


def _parse_jobs(raw_jobs: object, path: str) -> tuple[VerificationJobSpec, ...]:
    if raw_jobs is None:
        return ()
    if not isinstance(raw_jobs, list):
        raise JobConfigError(f"{path} must be a list")

    specs: list[VerificationJobSpec] = []
    seen: set[str] = set()
    for index, raw in enumerate(raw_jobs):
        spec = _parse_job(raw, f"{path}[{index}]")
        if spec.name in seen:
            raise JobConfigError(f"{path}[{index}]: duplicate job name {spec.name!r}")
        seen.add(spec.name)
        specs.append(spec)
    return tuple(specs)


def _parse_job(raw: object, path: str) -> VerificationJobSpec:
    if not isinstance(raw, Mapping):
        raise JobConfigError(f"{path} must be a mapping")

    unknown = sorted(str(key) for key in raw if key not in _ALLOWED_JOB_KEYS)
    if unknown:
        raise JobConfigError(f"{path}: unknown keys {', '.join(unknown)}")

    name = raw.get("name")
    if not isinstance(name, str) or not name.strip():
        raise JobConfigError(f"{path}.name must be a non-empty string")

    context = raw.get("context")
    if context is None or context == "":
        context = name
    elif not isinstance(context, str):
        raise JobConfigError(f"{path}.context must be a string")

    return VerificationJobSpec(
        name=name,
        context=context,
        always_run=_as_bool(raw.get("always_run", False), f"{path}.always_run"),
        skip_report=_as_bool(raw.get("skip_report", False), f"{path}.skip_report"),
    )


def _as_bool(value: Any, path: str) -> bool:
    if not isinstance(value, bool):
        raise JobConfigError(f"{path} must be a boolean")
    return value


class JobConfigAgent:
    """
    Serves the latest good job configuration from ``path``.

    ``start`` loads the file once and fails loudly. Afterwards ``config``
    re-reads the file whenever its modification time changes; a broken edit
    is logged and the previous configuration stays active.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()
        self._config: JobConfig | None = None
        self._mtime_ns: int | None = None

    @property
    def path(self) -> Path:
        return self._path

    def start(self) -> JobConfig:
        with self._lock:
            mtime_ns = self._stat_mtime()
            self._config = load_job_config(self._path)
            self._mtime_ns = mtime_ns
            logger.info(
                "loaded job config from %s (%d repos)",
                self._path,
                len(self._config.presubmits),
            )
            return self._config

    def config(self) -> JobConfig:
        with self._lock:
            if self._config is None:
                raise JobConfigError("job config agent has not been started")
            self._maybe_reload()
            return self._config

    def presubmits_for(self, repo_key: str) -> tuple[VerificationJobSpec, ...]:
        return self.config().presubmits_for(repo_key)

    def _maybe_reload(self) -> None:
        try:
            mtime_ns = self._stat_mtime()
        except JobConfigError as exc:
            logger.warning("keeping previous job config: %s", exc)
            return
        if mtime_ns == self._mtime_ns:
            return
        try:
            reloaded = load_job_config(self._path)
        except JobConfigError as exc:
            # Remember the broken revision so it is not re-parsed every tick.
            self._mtime_ns = mtime_ns
            logger.error("job config reload failed, keeping previous config: %s", exc)
            return
        self._config = reloaded
        self._mtime_ns = mtime_ns
        logger.info("reloaded job config from %s", self._path)

    def _stat_mtime(self) -> int:
        try:
            return self._path.stat().st_mtime_ns
        except OSError as exc:
            raise JobConfigError(f"unable to stat job config {self._path}: {exc}") from exc


__all__ = [
    "JobConfig",
    "JobConfigAgent",
    "JobConfigError",
    "load_job_config",
    "parse_job_config",
]
