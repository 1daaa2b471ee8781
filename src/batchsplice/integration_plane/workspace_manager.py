"""Lifecycle of the single reusable splice checkout."""

from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from batchsplice.constants import (
    BLANK_BRANCH,
    PR_BRANCH_PREFIX,
    SPLICE_USER_EMAIL,
    SPLICE_USER_NAME,
    WORKSPACE_PREFIX,
)
from batchsplice.integration_plane.git_engine import GitEngine, GitEngineError

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from types import TracebackType

    from batchsplice.integration_plane.git_engine import VersionControl

logger = logging.getLogger(__name__)


def pr_branch(number: int) -> str:
    """Local branch name holding the fetched head of pull request ``number``."""

    return f"{PR_BRANCH_PREFIX}/{number}"


class WorkspaceManager:
    """
    Owns one ephemeral git tree for the whole process lifetime.

    The tree is mutated in place every cycle and deleted by ``cleanup``.
    It is never shared: callers must not run two compositions at once.
    """

    def __init__(self, path: Path | str, vcs: VersionControl) -> None:
        self._path = Path(path)
        self._vcs = vcs
        self._closed = False

    @classmethod
    def create(
        cls,
        *,
        parent_dir: Path | str | None = None,
        vcs_factory: Callable[[Path], VersionControl] = GitEngine,
    ) -> WorkspaceManager:
        """Create a temporary directory and initialize an empty repository in it."""

        path = Path(tempfile.mkdtemp(prefix=WORKSPACE_PREFIX, dir=parent_dir))
        manager = cls(path, vcs_factory(path))
        try:
            manager.vcs.init_repository()
            manager.vcs.set_identity(SPLICE_USER_NAME, SPLICE_USER_EMAIL)
        except Exception:
            manager.cleanup()
            raise
        logger.debug("splice workspace created in %s", path)
        return manager

    @property
    def path(self) -> Path:
        return self._path

    @property
    def vcs(self) -> VersionControl:
        return self._vcs

    def reset(self) -> None:
        """Discard changes and untracked files, leaving an empty history-less tree."""

        self._ensure_open()
        self._vcs.reset_hard()
        self._vcs.checkout_orphan(BLANK_BRANCH)
        self._vcs.reset_hard()
        self._vcs.clean()

    def fetch(self, remote: str, base_branch: str, candidates: Sequence[int]) -> None:
        """Fetch ``base_branch`` and every candidate head as a local ``pr/N`` branch."""

        self._ensure_open()
        refspecs = [f"{base_branch}:{base_branch}"]
        refspecs.extend(f"pull/{number}/head:{pr_branch(number)}" for number in candidates)
        self._vcs.fetch(remote, *refspecs)

    def resolve_ref(self, name: str) -> str:
        self._ensure_open()
        return self._vcs.resolve_ref(name)

    def cleanup(self) -> None:
        """Delete the workspace tree. Safe to call more than once."""

        self._closed = True
        shutil.rmtree(self._path, ignore_errors=True)

    def __enter__(self) -> WorkspaceManager:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.cleanup()

    def _ensure_open(self) -> None:
        if self._closed:
            raise GitEngineError(f"workspace has been cleaned up: {self._path}")


__all__ = ["WorkspaceManager", "pr_branch"]
