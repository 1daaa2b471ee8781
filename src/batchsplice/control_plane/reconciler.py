"""Pure filters deciding which verification jobs a batch still needs."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from batchsplice.domain.models import JobState, JobType

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from batchsplice.domain.models import BatchDescriptor, JobRecord, VerificationJobSpec


def running_batch_jobs(jobs: Iterable[JobRecord]) -> list[JobRecord]:
    """Batch jobs that have not completed yet."""

    return [job for job in jobs if job.is_batch and not job.complete]


def completed_jobs(jobs: Iterable[JobRecord], descriptor: BatchDescriptor) -> list[JobRecord]:
    """Batch jobs that already passed for exactly this batch composition."""

    signature = descriptor.signature
    return [
        job
        for job in jobs
        if job.is_batch and job.succeeded and job.refs_signature == signature
    ]


def required_presubmits(specs: Iterable[VerificationJobSpec]) -> list[VerificationJobSpec]:
    """Specs that block a batch: always run and reported."""

    return [spec for spec in specs if spec.is_required]


def needed_presubmits(
    specs: Sequence[VerificationJobSpec],
    jobs: Sequence[JobRecord],
    descriptor: BatchDescriptor,
) -> list[VerificationJobSpec]:
    """Required specs whose context has not yet passed for ``descriptor``."""

    skippable = {job.context for job in completed_jobs(jobs, descriptor)}
    return [spec for spec in required_presubmits(specs) if spec.context not in skippable]


def build_batch_job(
    spec: VerificationJobSpec,
    descriptor: BatchDescriptor,
    *,
    now: datetime | None = None,
    job_id: str | None = None,
) -> dict[str, Any]:
    """Job payload submitted to the backend for one spec of one batch."""

    started = now if now is not None else datetime.now(tz=UTC)
    return {
        "id": job_id if job_id is not None else str(uuid.uuid4()),
        "type": JobType.BATCH.value,
        "job": spec.name,
        "context": spec.context,
        "refs": descriptor.to_dict(),
        "refs_signature": descriptor.signature,
        "state": JobState.TRIGGERED.value,
        "start_time": started.isoformat(timespec="seconds").replace("+00:00", "Z"),
    }


__all__ = [
    "build_batch_job",
    "completed_jobs",
    "needed_presubmits",
    "required_presubmits",
    "running_batch_jobs",
]
