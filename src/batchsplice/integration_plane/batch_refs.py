"""Resolve an accepted pull request subset into a ``BatchDescriptor``."""

from __future__ import annotations

from typing import TYPE_CHECKING

from batchsplice.domain.models import BatchDescriptor, PullRef
from batchsplice.integration_plane.workspace_manager import pr_branch

if TYPE_CHECKING:
    from collections.abc import Sequence

    from batchsplice.integration_plane.workspace_manager import WorkspaceManager


def resolve_batch_descriptor(
    workspace: WorkspaceManager,
    *,
    org: str,
    repo: str,
    base_branch: str,
    accepted: Sequence[int],
) -> BatchDescriptor:
    """
    Pin the base branch and each accepted pull request to concrete commits.

    Pull requests resolve to the head fetched into ``pr/N``, never to the
    local merge commit: verification jobs redo the merge themselves.
    Resolution failures propagate as ``GitEngineError``.
    """

    base_sha = workspace.resolve_ref(base_branch)
    pulls = tuple(
        PullRef(number=number, sha=workspace.resolve_ref(pr_branch(number)))
        for number in accepted
    )
    return BatchDescriptor(
        org=org,
        repo=repo,
        base_ref=base_branch,
        base_sha=base_sha,
        pulls=pulls,
    )


__all__ = ["resolve_batch_descriptor"]
