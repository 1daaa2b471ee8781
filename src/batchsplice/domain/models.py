"""Dataclass domain models for batches, verification jobs and job records."""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, NoReturn, TypeVar

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]

TEnum = TypeVar("TEnum", bound=StrEnum)

_SLUG_RE = re.compile(r"^[A-Za-z0-9._-]+$")


class JobType(StrEnum):
    PRESUBMIT = "presubmit"
    POSTSUBMIT = "postsubmit"
    PERIODIC = "periodic"
    BATCH = "batch"
    OTHER = "other"


class JobState(StrEnum):
    TRIGGERED = "triggered"
    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"
    ABORTED = "aborted"
    ERROR = "error"
    UNKNOWN = "unknown"


def _fail(path: str, message: str) -> NoReturn:
    raise ValueError(f"{path}: {message}")


def _expect_str(value: object, path: str, *, allow_empty: bool = False) -> str:
    if not isinstance(value, str):
        _fail(path, f"expected string, got {type(value).__name__}")
    if not allow_empty and not value.strip():
        _fail(path, "must not be empty")
    return value


def _expect_int(value: object, path: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        _fail(path, f"expected integer, got {type(value).__name__}")
    return value


@dataclass(frozen=True, slots=True)
class CandidatePR:
    """One entry of the external candidate queue."""

    number: int
    base_ref: str = ""

    def __post_init__(self) -> None:
        _expect_int(self.number, "CandidatePR.number")
        if self.number <= 0:
            _fail("CandidatePR.number", "must be > 0")
        _expect_str(self.base_ref, "CandidatePR.base_ref", allow_empty=True)

    def is_eligible(self, default_branch: str) -> bool:
        return self.base_ref in ("", default_branch)


@dataclass(frozen=True, slots=True)
class PullRef:
    """A pull request number pinned to the head commit that was fetched."""

    number: int
    sha: str

    def __post_init__(self) -> None:
        _expect_int(self.number, "PullRef.number")
        _expect_str(self.sha, "PullRef.sha")

    def to_dict(self) -> dict[str, JSONValue]:
        return {"number": self.number, "sha": self.sha}


@dataclass(frozen=True, slots=True)
class BatchDescriptor:
    """
    Exactly which commits a downstream verification job must check out.

    Two descriptors describe the same batch only when their ``signature``
    strings are identical; ``pulls`` keeps queue order and is never sorted.
    """

    org: str
    repo: str
    base_ref: str
    base_sha: str
    pulls: tuple[PullRef, ...] = ()

    def __post_init__(self) -> None:
        for name in ("org", "repo"):
            value = _expect_str(getattr(self, name), f"BatchDescriptor.{name}")
            if not _SLUG_RE.fullmatch(value):
                _fail(f"BatchDescriptor.{name}", f"unsupported characters in {value!r}")
        _expect_str(self.base_ref, "BatchDescriptor.base_ref")
        _expect_str(self.base_sha, "BatchDescriptor.base_sha")
        object.__setattr__(self, "pulls", tuple(self.pulls))
        for index, pull in enumerate(self.pulls):
            if not isinstance(pull, PullRef):
                _fail(f"BatchDescriptor.pulls[{index}]", "expected PullRef")

    @property
    def repo_key(self) -> str:
        return f"{self.org}/{self.repo}"

    @property
    def pull_numbers(self) -> tuple[int, ...]:
        return tuple(pull.number for pull in self.pulls)

    @property
    def signature(self) -> str:
        parts = [f"{self.repo_key}@{self.base_ref}:{self.base_sha}"]
        parts.extend(f"{pull.number}:{pull.sha}" for pull in self.pulls)
        return ",".join(parts)

    def __str__(self) -> str:
        return self.signature

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "org": self.org,
            "repo": self.repo,
            "base_ref": self.base_ref,
            "base_sha": self.base_sha,
            "pulls": [pull.to_dict() for pull in self.pulls],
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> BatchDescriptor:
        raw_pulls = payload.get("pulls") or []
        if not isinstance(raw_pulls, Sequence) or isinstance(raw_pulls, str):
            _fail("BatchDescriptor.pulls", "expected a list")
        pulls: list[PullRef] = []
        for index, raw in enumerate(raw_pulls):
            if not isinstance(raw, Mapping):
                _fail(f"BatchDescriptor.pulls[{index}]", "expected object")
            pulls.append(
                PullRef(
                    number=_expect_int(raw.get("number"), f"BatchDescriptor.pulls[{index}].number"),
                    sha=_expect_str(raw.get("sha"), f"BatchDescriptor.pulls[{index}].sha"),
                )
            )
        return cls(
            org=_expect_str(payload.get("org"), "BatchDescriptor.org"),
            repo=_expect_str(payload.get("repo"), "BatchDescriptor.repo"),
            base_ref=_expect_str(payload.get("base_ref"), "BatchDescriptor.base_ref"),
            base_sha=_expect_str(payload.get("base_sha"), "BatchDescriptor.base_sha"),
            pulls=tuple(pulls),
        )


@dataclass(frozen=True, slots=True)
class VerificationJobSpec:
    """Configured verification job for one ``org/repo``."""

    name: str
    context: str
    always_run: bool = False
    skip_report: bool = False

    def __post_init__(self) -> None:
        _expect_str(self.name, "VerificationJobSpec.name")
        _expect_str(self.context, "VerificationJobSpec.context")

    @property
    def is_required(self) -> bool:
        # Manual and silent jobs never block a batch.
        return self.always_run and not self.skip_report


@dataclass(frozen=True, slots=True)
class JobRecord:
    """Read-only view of a job reported by the job backend."""

    name: str
    job_type: JobType
    context: str
    refs_signature: str
    complete: bool
    state: JobState

    @property
    def is_batch(self) -> bool:
        return self.job_type is JobType.BATCH

    @property
    def succeeded(self) -> bool:
        return self.complete and self.state is JobState.SUCCESS

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> JobRecord:
        """Build a record from a backend payload.

        ``refs_signature`` is taken verbatim when present, otherwise derived
        from the ``refs`` object. Only batch jobs must carry well-formed refs;
        other jobs with partial refs get an empty signature. Unknown types and
        states are kept as ``other``/``unknown`` rather than rejected.
        """

        name = payload.get("job") or payload.get("name") or ""
        if not isinstance(name, str):
            _fail("JobRecord.name", f"expected string, got {type(name).__name__}")

        context = payload.get("context") or ""
        if not isinstance(context, str):
            _fail("JobRecord.context", f"expected string, got {type(context).__name__}")

        job_type = _coerce_enum(JobType, payload.get("type"), JobType.OTHER)
        signature = payload.get("refs_signature")
        if signature is None:
            refs = payload.get("refs")
            signature = ""
            if isinstance(refs, Mapping):
                try:
                    signature = BatchDescriptor.from_dict(refs).signature
                except ValueError:
                    if job_type is JobType.BATCH:
                        raise
        if not isinstance(signature, str):
            _fail("JobRecord.refs_signature", f"expected string, got {type(signature).__name__}")

        complete_flag = payload.get("complete")
        complete = (
            bool(complete_flag)
            if complete_flag is not None
            else bool(payload.get("completion_time"))
        )

        return cls(
            name=name,
            job_type=job_type,
            context=context,
            refs_signature=signature,
            complete=complete,
            state=_coerce_enum(JobState, payload.get("state"), JobState.UNKNOWN),
        )


def _coerce_enum(enum_type: type[TEnum], raw: object, default: TEnum) -> TEnum:
    if isinstance(raw, enum_type):
        return raw
    if isinstance(raw, str):
        try:
            return enum_type(raw.strip().lower())
        except ValueError:
            return default
    return default


__all__ = [
    "BatchDescriptor",
    "CandidatePR",
    "JSONScalar",
    "JSONValue",
    "JobRecord",
    "JobState",
    "JobType",
    "PullRef",
    "VerificationJobSpec",
]
