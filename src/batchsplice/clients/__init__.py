"""HTTP clients for the submit queue and the job backend."""

from batchsplice.clients.job_backend import HttpJobBackend, JobBackend, JobBackendError
from batchsplice.clients.submit_queue import (
    QueueFetchError,
    QueueSource,
    SubmitQueueClient,
    eligible_candidates,
    parse_queue,
)

__all__ = [
    "HttpJobBackend",
    "JobBackend",
    "JobBackendError",
    "QueueFetchError",
    "QueueSource",
    "SubmitQueueClient",
    "eligible_candidates",
    "parse_queue",
]
