"""
Integration tests for batch composition against a real local git remote.

Coverage:
- workspace creation, reuse across cycles, and cleanup
- fetching ``refs/pull/N/head`` into ``pr/N`` branches
- greedy conflict exclusion with real merges
- descriptors pinned to fetched pull request heads
- one full reconciliation tick over the real workspace
"""

from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import pytest

from batchsplice.control_plane.loop import LoopPhase, LoopSettings, LoopState, ReconciliationLoop
from batchsplice.control_plane.reconciler import build_batch_job
from batchsplice.domain.models import VerificationJobSpec
from batchsplice.integration_plane.batch_refs import resolve_batch_descriptor
from batchsplice.integration_plane.feasibility import MergeFeasibilityEngine
from batchsplice.integration_plane.workspace_manager import WorkspaceManager

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

    from batchsplice.domain.models import BatchDescriptor, JobRecord

pytestmark = pytest.mark.integration


def _git(repo_root: Path, *args: str) -> str:
    env = os.environ.copy()
    env["GIT_TERMINAL_PROMPT"] = "0"
    env.setdefault("GIT_CONFIG_NOSYSTEM", "1")
    result = subprocess.run(
        ["git", *args],
        cwd=repo_root,
        env=env,
        check=False,
        text=True,
        capture_output=True,
    )
    if result.returncode != 0:
        cmd = "git " + " ".join(args)
        detail = result.stderr.strip() or result.stdout.strip()
        raise RuntimeError(f"git command failed: {cmd}: {detail}")
    return result.stdout.strip()


def _commit(repo_root: Path, rel_path: str, content: str, message: str) -> str:
    (repo_root / rel_path).write_text(content, encoding="utf-8")
    _git(repo_root, "add", "--all")
    _git(repo_root, "commit", "-q", "-m", message)
    return _git(repo_root, "rev-parse", "HEAD")


def _open_pull(remote: Path, number: int, rel_path: str, content: str) -> str:
    _git(remote, "checkout", "-q", "-b", f"topic-{number}", "master")
    sha = _commit(remote, rel_path, content, f"change for #{number}")
    _git(remote, "update-ref", f"refs/pull/{number}/head", sha)
    _git(remote, "checkout", "-q", "master")
    return sha


@dataclass(slots=True)
class Remote:
    path: Path
    heads: dict[int, str] = field(default_factory=dict)

    @property
    def url(self) -> str:
        return str(self.path)

    @property
    def master(self) -> str:
        return _git(self.path, "rev-parse", "master")


@pytest.fixture
def remote(tmp_path: Path) -> Remote:
    """Remote where #102 conflicts with #101 and #103 is independent."""

    path = tmp_path / "remote"
    path.mkdir()
    _git(path, "init", "-q")
    _git(path, "symbolic-ref", "HEAD", "refs/heads/master")
    _git(path, "config", "user.name", "Remote Author")
    _git(path, "config", "user.email", "author@example.com")
    _commit(path, "a.txt", "base\n", "base")

    result = Remote(path)
    result.heads[101] = _open_pull(path, 101, "a.txt", "from 101\n")
    result.heads[102] = _open_pull(path, 102, "a.txt", "from 102\n")
    result.heads[103] = _open_pull(path, 103, "b.txt", "from 103\n")
    return result


@pytest.fixture
def workspace(tmp_path: Path) -> Iterator[WorkspaceManager]:
    parent = tmp_path / "workspaces"
    parent.mkdir()
    manager = WorkspaceManager.create(parent_dir=parent)
    try:
        yield manager
    finally:
        manager.cleanup()


def test_conflicting_pull_is_excluded_and_descriptor_uses_heads(
    remote: Remote, workspace: WorkspaceManager
) -> None:
    engine = MergeFeasibilityEngine(workspace)

    result = engine.find_mergeable(remote.url, "master", [101, 102, 103])

    assert result.accepted == (101, 103)
    assert result.excluded == (102,)

    descriptor = resolve_batch_descriptor(
        workspace,
        org="kubernetes",
        repo="kubernetes",
        base_branch="master",
        accepted=result.accepted,
    )
    assert descriptor.base_sha == remote.master
    assert [pull.sha for pull in descriptor.pulls] == [remote.heads[101], remote.heads[103]]

    batch_head = _git(workspace.path, "rev-parse", "batch")
    assert batch_head not in {pull.sha for pull in descriptor.pulls}
    subjects = _git(workspace.path, "log", "--first-parent", "--format=%s", "batch").splitlines()
    assert subjects[:2] == ["merge #103", "merge #101"]
    assert (workspace.path / "b.txt").read_text(encoding="utf-8") == "from 103\n"


def test_order_decides_which_conflicting_pull_wins(
    remote: Remote, workspace: WorkspaceManager
) -> None:
    engine = MergeFeasibilityEngine(workspace)

    result = engine.find_mergeable(remote.url, "master", [102, 101, 103])

    assert result.accepted == (102, 103)
    assert (workspace.path / "a.txt").read_text(encoding="utf-8") == "from 102\n"


def test_workspace_is_reused_across_cycles_and_picks_up_new_heads(
    remote: Remote, workspace: WorkspaceManager
) -> None:
    engine = MergeFeasibilityEngine(workspace)
    engine.find_mergeable(remote.url, "master", [101, 103])
    (workspace.path / "stray.txt").write_text("left over\n", encoding="utf-8")

    _git(remote.path, "checkout", "-q", "topic-103")
    amended = _commit(remote.path, "b.txt", "amended 103\n", "amend #103")
    _git(remote.path, "update-ref", "refs/pull/103/head", amended)
    _git(remote.path, "checkout", "-q", "master")

    result = engine.find_mergeable(remote.url, "master", [101, 103])

    assert result.accepted == (101, 103)
    assert workspace.resolve_ref("pr/103") == amended
    assert not (workspace.path / "stray.txt").exists()


@dataclass(slots=True)
class _Backend:
    jobs: list[JobRecord] = field(default_factory=list)
    created: list[dict[str, Any]] = field(default_factory=list)

    def list_jobs(self) -> list[JobRecord]:
        return list(self.jobs)

    def create_job(self, spec: VerificationJobSpec, descriptor: BatchDescriptor) -> dict[str, Any]:
        payload = build_batch_job(spec, descriptor)
        self.created.append(payload)
        return payload


@dataclass(slots=True)
class _Queue:
    prs: list[int]

    def fetch(self) -> list[int]:
        return list(self.prs)


def test_full_tick_submits_jobs_for_real_batch(
    remote: Remote, workspace: WorkspaceManager
) -> None:
    backend = _Backend()
    loop = ReconciliationLoop(
        LoopSettings(remote_url=remote.url, org="kubernetes", repo="kubernetes"),
        queue=_Queue([101, 102, 103]),
        workspace=workspace,
        backend=backend,
        specs_provider=lambda repo_key: (
            VerificationJobSpec("pull-unit", "unit", always_run=True),
            VerificationJobSpec("pull-e2e", "e2e", always_run=True, skip_report=True),
        ),
    )

    outcome = loop.tick(LoopState())

    assert outcome.phase is LoopPhase.SUBMITTING
    assert outcome.batch == (101, 103)
    assert outcome.submitted == ("pull-unit",)
    refs = backend.created[0]["refs"]
    assert refs["base_sha"] == remote.master
    assert [pull["sha"] for pull in refs["pulls"]] == [remote.heads[101], remote.heads[103]]
