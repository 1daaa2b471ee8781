"""Stable constants shared across batchsplice planes."""

from __future__ import annotations

from typing import Final

# Git branch names used inside the splice workspace.
DEFAULT_BASE_BRANCH: Final[str] = "master"
INTEGRATION_BRANCH: Final[str] = "batch"
BLANK_BRANCH: Final[str] = "blank"
PR_BRANCH_PREFIX: Final[str] = "pr"

# Workspace identity and location.
WORKSPACE_PREFIX: Final[str] = "splice_"
SPLICE_USER_NAME: Final[str] = "Batch Splice"
SPLICE_USER_EMAIL: Final[str] = "splice@localhost"

# Loop cadence defaults.
DEFAULT_MAX_BATCH_SIZE: Final[int] = 5
DEFAULT_COOLDOWN_TICKS: Final[int] = 5
DEFAULT_TICK_INTERVAL_SECONDS: Final[float] = 60.0

# External endpoint defaults.
DEFAULT_QUEUE_ENDPOINT: Final[str] = "http://submit-queue.k8s.io/github-e2e-queue"
DEFAULT_REMOTE_URL: Final[str] = "https://github.com/kubernetes/kubernetes"
DEFAULT_ORG: Final[str] = "kubernetes"
DEFAULT_REPO: Final[str] = "kubernetes"
DEFAULT_JOB_CONFIG_PATH: Final[str] = "/etc/config/config"
DEFAULT_JOB_BACKEND_URL: Final[str] = "http://localhost:8080"

__all__ = [
    "BLANK_BRANCH",
    "DEFAULT_BASE_BRANCH",
    "DEFAULT_COOLDOWN_TICKS",
    "DEFAULT_JOB_BACKEND_URL",
    "DEFAULT_JOB_CONFIG_PATH",
    "DEFAULT_MAX_BATCH_SIZE",
    "DEFAULT_ORG",
    "DEFAULT_QUEUE_ENDPOINT",
    "DEFAULT_REMOTE_URL",
    "DEFAULT_REPO",
    "DEFAULT_TICK_INTERVAL_SECONDS",
    "INTEGRATION_BRANCH",
    "PR_BRANCH_PREFIX",
    "SPLICE_USER_EMAIL",
    "SPLICE_USER_NAME",
    "WORKSPACE_PREFIX",
]
