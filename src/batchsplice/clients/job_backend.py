"""Job backend protocol and its HTTP client."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Protocol

import httpx

from batchsplice.control_plane.reconciler import build_batch_job
from batchsplice.domain.models import JobRecord

if TYPE_CHECKING:
    from batchsplice.domain.models import BatchDescriptor, VerificationJobSpec


class JobBackendError(RuntimeError):
    """Raised when the job backend cannot be reached or returns bad data."""


class JobBackend(Protocol):
    def list_jobs(self) -> list[JobRecord]: ...

    def create_job(
        self, spec: VerificationJobSpec, descriptor: BatchDescriptor
    ) -> dict[str, Any]: ...


class HttpJobBackend:
    """
    REST client for the job orchestration service.

    - ``GET {base_url}/jobs`` returns ``{"items": [job, ...]}``.
    - ``POST {base_url}/jobs`` creates one batch job and echoes it back.
    """

    def __init__(self, base_url: str, *, client: httpx.Client | None = None) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = client if client is not None else httpx.Client()

    def list_jobs(self) -> list[JobRecord]:
        payload = self._request("GET", "/jobs")
        items = payload.get("items") if isinstance(payload, Mapping) else None
        if items is None:
            items = []
        if not isinstance(items, list):
            raise JobBackendError("job listing 'items' must be a list")

        records: list[JobRecord] = []
        for index, item in enumerate(items):
            if not isinstance(item, Mapping):
                raise JobBackendError(f"job listing item {index} must be an object")
            try:
                records.append(JobRecord.from_payload(item))
            except ValueError as exc:
                raise JobBackendError(f"job listing item {index}: {exc}") from exc
        return records

    def create_job(
        self, spec: VerificationJobSpec, descriptor: BatchDescriptor
    ) -> dict[str, Any]:
        payload = self._request("POST", "/jobs", json=build_batch_job(spec, descriptor))
        if not isinstance(payload, dict):
            raise JobBackendError("job creation response must be an object")
        return payload

    def check_connection(self) -> None:
        """Fail fast when the backend is unreachable."""

        self.list_jobs()

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self._base_url}{path}"
        try:
            response = self._client.request(method, url, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as exc:
            raise JobBackendError(f"{method} {url} failed: {exc}") from exc
        except ValueError as exc:
            raise JobBackendError(f"{method} {url} returned invalid JSON: {exc}") from exc


__all__ = ["HttpJobBackend", "JobBackend", "JobBackendError"]
