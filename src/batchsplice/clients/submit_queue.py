"""HTTP client for the external submit queue."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Protocol

import httpx

from batchsplice.constants import DEFAULT_BASE_BRANCH
from batchsplice.domain.models import CandidatePR

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

_QUEUE_KEY = "E2EQueue"


class QueueFetchError(RuntimeError):
    """Raised when the candidate queue cannot be fetched or parsed."""


class QueueSource(Protocol):
    def fetch(self) -> list[int]: ...


def eligible_candidates(candidates: Iterable[CandidatePR], default_branch: str) -> list[int]:
    """PR numbers targeting the default branch, in queue order."""

    return [candidate.number for candidate in candidates if candidate.is_eligible(default_branch)]


def parse_queue(payload: object) -> list[CandidatePR]:
    """Parse a queue response body of the form ``{"E2EQueue": [{Number, BaseRef}]}``."""

    if not isinstance(payload, Mapping):
        raise QueueFetchError(f"queue response must be an object, got {type(payload).__name__}")
    entries = payload.get(_QUEUE_KEY) or []
    if not isinstance(entries, list):
        raise QueueFetchError(f"{_QUEUE_KEY} must be a list")

    candidates: list[CandidatePR] = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, Mapping):
            raise QueueFetchError(f"{_QUEUE_KEY}[{index}] must be an object")
        try:
            candidates.append(
                CandidatePR(number=entry.get("Number"), base_ref=entry.get("BaseRef") or "")
            )
        except ValueError as exc:
            raise QueueFetchError(f"{_QUEUE_KEY}[{index}]: {exc}") from exc
    return candidates


class SubmitQueueClient:
    """Reads the queued pull requests from the submit queue status endpoint."""

    def __init__(
        self,
        endpoint: str,
        *,
        default_branch: str = DEFAULT_BASE_BRANCH,
        client: httpx.Client | None = None,
    ) -> None:
        self._endpoint = endpoint
        self._default_branch = default_branch
        self._client = client if client is not None else httpx.Client()

    def fetch_candidates(self) -> list[CandidatePR]:
        try:
            response = self._client.get(self._endpoint)
            response.raise_for_status()
            payload: Any = response.json()
        except httpx.HTTPError as exc:
            raise QueueFetchError(f"unable to fetch queue from {self._endpoint}: {exc}") from exc
        except ValueError as exc:
            raise QueueFetchError(f"queue response is not valid JSON: {exc}") from exc
        return parse_queue(payload)

    def fetch(self) -> list[int]:
        """Eligible PR numbers in queue order."""

        return eligible_candidates(self.fetch_candidates(), self._default_branch)

    def close(self) -> None:
        self._client.close()


__all__ = [
    "QueueFetchError",
    "QueueSource",
    "SubmitQueueClient",
    "eligible_candidates",
    "parse_queue",
]
