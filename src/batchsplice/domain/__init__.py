"""
batchsplice domain types shared across planes.

Purpose
- Candidate pull requests, batch descriptors, verification job specs and job
  records. The domain layer is free of IO side effects.
"""

from batchsplice.domain.models import (
    BatchDescriptor,
    CandidatePR,
    JobRecord,
    JobState,
    JobType,
    PullRef,
    VerificationJobSpec,
)

__all__ = [
    "BatchDescriptor",
    "CandidatePR",
    "JobRecord",
    "JobState",
    "JobType",
    "PullRef",
    "VerificationJobSpec",
]
