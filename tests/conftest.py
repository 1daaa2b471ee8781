"""
batchsplice — shared test fixtures.

Purpose
- Provide a deterministic in-memory ``VersionControl`` double so batch
  composition can be tested without a git binary.

Conflict model
- ``conflicts[n]`` lists earlier pull requests that ``n`` conflicts with once
  they are merged into the integration branch.
- ``broken`` pull requests conflict with the base branch itself.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import pytest

from batchsplice.integration_plane.git_engine import (
    GitCommandError,
    GitEngineError,
    MergeConflictError,
)
from batchsplice.integration_plane.workspace_manager import WorkspaceManager

if TYPE_CHECKING:
    from pathlib import Path

BASE_SHA = "b" * 40


def pr_sha(number: int) -> str:
    return f"{number:040d}"


@dataclass(slots=True)
class FakeVersionControl:
    base_sha: str = BASE_SHA
    pr_heads: dict[int, str] = field(default_factory=dict)
    conflicts: Mapping[int, Iterable[int]] = field(default_factory=dict)
    broken: frozenset[int] = frozenset()
    failures: dict[str, Exception] = field(default_factory=dict)

    branches: dict[str, str] = field(default_factory=dict)
    current: str | None = None
    merged: list[int] = field(default_factory=list)
    merge_in_progress: bool = False
    identity: tuple[str, str] | None = None
    initialized: bool = False
    calls: list[str] = field(default_factory=list)
    fetches: list[tuple[str, tuple[str, ...]]] = field(default_factory=list)
    merge_messages: list[str] = field(default_factory=list)

    def init_repository(self) -> None:
        self._record("init_repository")
        self.initialized = True

    def set_identity(self, name: str, email: str) -> None:
        self._record("set_identity")
        self.identity = (name, email)

    def reset_hard(self) -> None:
        self._record("reset_hard")
        self.merge_in_progress = False

    def checkout_orphan(self, name: str) -> None:
        self._record("checkout_orphan")
        self.current = name
        self.merged = []

    def clean(self) -> None:
        self._record("clean")

    def fetch(self, remote: str, *refspecs: str) -> None:
        self._record("fetch")
        self.fetches.append((remote, refspecs))
        for refspec in refspecs:
            source, _, destination = refspec.partition(":")
            if source.startswith("pull/"):
                number = int(source.split("/")[1])
                if number not in self.pr_heads:
                    raise GitCommandError(
                        command=("git", "fetch", remote, refspec),
                        returncode=128,
                        stdout="",
                        stderr=f"fatal: couldn't find remote ref {source}",
                    )
                self.branches[destination] = self.pr_heads[number]
            else:
                self.branches[destination] = self.base_sha

    def checkout_new_branch(self, name: str, start_point: str) -> None:
        self._record("checkout_new_branch")
        if start_point not in self.branches:
            raise GitCommandError(
                command=("git", "checkout", "-B", name, start_point),
                returncode=128,
                stdout="",
                stderr=f"fatal: '{start_point}' is not a commit",
            )
        self.branches[name] = self.branches[start_point]
        self.current = name
        self.merged = []

    def merge(self, branch: str, message: str) -> None:
        self._record("merge")
        number = int(branch.rsplit("/", 1)[1])
        blockers = set(self.conflicts.get(number, ()))
        if number in self.broken or blockers.intersection(self.merged):
            self.merge_in_progress = True
            raise MergeConflictError(
                command=("git", "merge", "--no-ff", "--no-stat", "-m", message, branch),
                returncode=1,
                stdout=f"CONFLICT (content): merge conflict in {branch}",
                stderr="",
            )
        self.merged.append(number)
        self.merge_messages.append(message)
        if self.current is not None:
            self.branches[self.current] = f"merge-{'-'.join(map(str, self.merged))}"

    def abort_merge(self) -> None:
        self._record("abort_merge")
        if not self.merge_in_progress:
            raise GitCommandError(
                command=("git", "merge", "--abort"),
                returncode=128,
                stdout="",
                stderr="fatal: There is no merge to abort (MERGE_HEAD missing).",
            )
        self.merge_in_progress = False

    def resolve_ref(self, name: str) -> str:
        self._record("resolve_ref")
        try:
            return self.branches[name]
        except KeyError:
            raise GitEngineError(f"ref does not resolve to a commit: {name}") from None

    def _record(self, operation: str) -> None:
        self.calls.append(operation)
        failure = self.failures.get(operation)
        if failure is not None:
            raise failure


FakeWorkspaceFactory = Callable[..., tuple[WorkspaceManager, FakeVersionControl]]


@pytest.fixture
def fake_workspace(tmp_path: Path) -> FakeWorkspaceFactory:
    """Build a ``WorkspaceManager`` over a ``FakeVersionControl``.

    Pull request heads default to ``pr_sha(n)`` for every number in ``prs``.
    """

    def factory(
        prs: Iterable[int] = (),
        **kwargs: object,
    ) -> tuple[WorkspaceManager, FakeVersionControl]:
        heads = {number: pr_sha(number) for number in prs}
        vcs = FakeVersionControl(pr_heads=heads, **kwargs)  # type: ignore[arg-type]
        path = tmp_path / "splice_workspace"
        path.mkdir(exist_ok=True)
        return WorkspaceManager(path, vcs), vcs

    return factory


@pytest.fixture(autouse=True)
def isolated_git_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    home = tmp_path / "home"
    xdg = tmp_path / "xdg"
    home.mkdir()
    xdg.mkdir()

    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(xdg))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_TERMINAL_PROMPT", "0")
    for name in [name for name in os.environ if name.startswith("SPLICE_")]:
        monkeypatch.delenv(name, raising=False)
