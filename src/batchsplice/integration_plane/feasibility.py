"""Greedy, order-preserving merge feasibility for a candidate batch."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from batchsplice.constants import INTEGRATION_BRANCH
from batchsplice.integration_plane.git_engine import MergeConflictError
from batchsplice.integration_plane.workspace_manager import pr_branch

if TYPE_CHECKING:
    from collections.abc import Sequence

    from batchsplice.integration_plane.workspace_manager import WorkspaceManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FeasibilityResult:
    """Accepted and excluded pull requests, both in queue order."""

    accepted: tuple[int, ...]
    excluded: tuple[int, ...]


class MergeFeasibilityEngine:
    """
    Find the pull requests that merge cleanly, one after another, onto the base.

    Candidates are merged in the given order into a fresh integration branch.
    An accepted merge stays in the tree seen by later candidates; a conflicting
    one is aborted and skipped. There is no backtracking or reordering, so the
    result depends on queue order and not only on pairwise compatibility.
    """

    def __init__(
        self,
        workspace: WorkspaceManager,
        *,
        integration_branch: str = INTEGRATION_BRANCH,
    ) -> None:
        self._workspace = workspace
        self._integration_branch = integration_branch

    def find_mergeable(
        self,
        remote: str,
        base_branch: str,
        prs: Sequence[int],
    ) -> FeasibilityResult:
        """Reset, fetch and merge ``prs`` in order.

        Raises ``GitEngineError`` for any failure other than a merge conflict,
        including a failed ``merge --abort``.
        """

        candidates = tuple(prs)
        self._workspace.reset()
        self._workspace.fetch(remote, base_branch, candidates)

        vcs = self._workspace.vcs
        vcs.checkout_new_branch(self._integration_branch, base_branch)

        accepted: list[int] = []
        excluded: list[int] = []
        for number in candidates:
            try:
                vcs.merge(pr_branch(number), f"merge #{number}")
            except MergeConflictError:
                vcs.abort_merge()
                logger.debug("excluding #%d: merge conflict", number)
                excluded.append(number)
                continue
            accepted.append(number)

        return FeasibilityResult(accepted=tuple(accepted), excluded=tuple(excluded))


__all__ = ["FeasibilityResult", "MergeFeasibilityEngine"]
