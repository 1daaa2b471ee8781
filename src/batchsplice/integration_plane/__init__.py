"""
batchsplice integration plane.

Purpose
- Git operations, the splice workspace, merge feasibility and batch ref
  resolution.

Non-functional requirements
- Must be robust to conflicts and partial failures; any failure other than a
  merge conflict aborts the current composition attempt.
"""

from batchsplice.integration_plane.batch_refs import resolve_batch_descriptor
from batchsplice.integration_plane.feasibility import FeasibilityResult, MergeFeasibilityEngine
from batchsplice.integration_plane.git_engine import (
    CommandResult,
    GitCommandError,
    GitEngine,
    GitEngineError,
    MergeConflictError,
    VersionControl,
)
from batchsplice.integration_plane.workspace_manager import WorkspaceManager, pr_branch

__all__ = [
    "CommandResult",
    "FeasibilityResult",
    "GitCommandError",
    "GitEngine",
    "GitEngineError",
    "MergeConflictError",
    "MergeFeasibilityEngine",
    "VersionControl",
    "WorkspaceManager",
    "pr_branch",
    "resolve_batch_descriptor",
]
