"""Unit tests for the HTTP job backend client over ``httpx.MockTransport``."""

from __future__ import annotations

import json

import httpx
import pytest

from batchsplice.clients.job_backend import HttpJobBackend, JobBackendError
from batchsplice.domain.models import (
    BatchDescriptor,
    JobState,
    JobType,
    PullRef,
    VerificationJobSpec,
)

BASE_URL = "http://jobs.example:8080/"

DESCRIPTOR = BatchDescriptor(
    org="kubernetes",
    repo="kubernetes",
    base_ref="master",
    base_sha="base0",
    pulls=(PullRef(1, "sha1"), PullRef(2, "sha2")),
)


def _backend(handler: object) -> HttpJobBackend:
    transport = httpx.MockTransport(handler)  # type: ignore[arg-type]
    return HttpJobBackend(BASE_URL, client=httpx.Client(transport=transport))


def test_list_jobs_parses_items() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "GET"
        assert str(request.url) == "http://jobs.example:8080/jobs"
        return httpx.Response(
            200,
            json={
                "items": [
                    {
                        "job": "pull-a",
                        "type": "batch",
                        "context": "A",
                        "refs": DESCRIPTOR.to_dict(),
                        "state": "success",
                        "complete": True,
                    },
                    {"job": "ci-periodic", "type": "periodic", "state": "pending"},
                ]
            },
        )

    records = _backend(handler).list_jobs()

    assert [record.name for record in records] == ["pull-a", "ci-periodic"]
    assert records[0].refs_signature == DESCRIPTOR.signature
    assert records[0].succeeded
    assert records[1].job_type is JobType.PERIODIC
    assert records[1].state is JobState.PENDING


def test_list_jobs_without_items_is_empty() -> None:
    assert _backend(lambda request: httpx.Response(200, json={})).list_jobs() == []


@pytest.mark.parametrize(
    ("body", "message"),
    [
        ({"items": {}}, "must be a list"),
        ({"items": ["x"]}, "item 0 must be an object"),
        ({"items": [{"job": "a", "type": "batch", "refs": {"org": "o"}}]}, "item 0"),
    ],
)
def test_list_jobs_rejects_malformed_items(body: object, message: str) -> None:
    backend = _backend(lambda request: httpx.Response(200, json=body))

    with pytest.raises(JobBackendError, match=message):
        backend.list_jobs()


def test_create_job_posts_batch_payload() -> None:
    captured: list[dict[str, object]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        payload = json.loads(request.content)
        captured.append(payload)
        return httpx.Response(201, json=payload)

    spec = VerificationJobSpec("pull-b", "B", always_run=True)
    echoed = _backend(handler).create_job(spec, DESCRIPTOR)

    assert captured[0]["type"] == "batch"
    assert captured[0]["job"] == "pull-b"
    assert captured[0]["context"] == "B"
    assert captured[0]["refs"] == DESCRIPTOR.to_dict()
    assert captured[0]["refs_signature"] == DESCRIPTOR.signature
    assert captured[0]["state"] == "triggered"
    assert echoed == captured[0]


def test_error_status_raises_backend_error() -> None:
    backend = _backend(lambda request: httpx.Response(500, json={"error": "boom"}))

    with pytest.raises(JobBackendError, match="GET http://jobs.example:8080/jobs failed"):
        backend.check_connection()


def test_non_json_response_raises_backend_error() -> None:
    backend = _backend(lambda request: httpx.Response(200, content=b"not json"))

    with pytest.raises(JobBackendError, match="invalid JSON"):
        backend.list_jobs()


def test_create_job_requires_object_response() -> None:
    backend = _backend(lambda request: httpx.Response(200, json=[1]))
    spec = VerificationJobSpec("pull-b", "B", always_run=True)

    with pytest.raises(JobBackendError, match="must be an object"):
        backend.create_job(spec, DESCRIPTOR)


def test_partial_refs_on_non_batch_job_do_not_break_listing() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={
                "items": [
                    {
                        "job": "ci-nightly",
                        "type": "periodic",
                        "refs": {"org": "kubernetes", "repo": "kubernetes"},
                        "state": "pending",
                    },
                    {
                        "job": "pull-a",
                        "type": "batch",
                        "context": "A",
                        "refs": DESCRIPTOR.to_dict(),
                        "state": "pending",
                    },
                ]
            },
        )

    periodic, batch = _backend(handler).list_jobs()

    assert periodic.job_type is JobType.PERIODIC
    assert periodic.refs_signature == ""
    assert batch.is_batch
    assert batch.refs_signature == DESCRIPTOR.signature
