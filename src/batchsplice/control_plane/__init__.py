"""Control-plane public API: job reconciliation filters.

The reconciliation loop lives in ``batchsplice.control_plane.loop`` and is not
re-exported here, so the HTTP clients can depend on the reconciler without an
import cycle.
"""

from batchsplice.control_plane.reconciler import (
    build_batch_job,
    completed_jobs,
    needed_presubmits,
    required_presubmits,
    running_batch_jobs,
)

__all__ = [
    "build_batch_job",
    "completed_jobs",
    "needed_presubmits",
    "required_presubmits",
    "running_batch_jobs",
]
