"""Version-control capability and its git subprocess implementation."""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

logger = logging.getLogger(__name__)


class GitEngineError(RuntimeError):
    """Base error for version-control failures."""


class GitCommandError(GitEngineError):
    """Raised when a git subprocess command exits non-zero."""

    def __init__(
        self,
        *,
        command: Sequence[str],
        returncode: int,
        stdout: str,
        stderr: str,
    ) -> None:
        self.command = tuple(command)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        message = f"git command failed ({returncode}): {' '.join(command)}"
        detail = stderr.strip() or stdout.strip()
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class MergeConflictError(GitCommandError):
    """Raised when a merge cannot be completed cleanly."""


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Normalized subprocess result; output is kept for diagnostics only."""

    command: tuple[str, ...]
    cwd: str
    returncode: int
    stdout: str
    stderr: str


class VersionControl(Protocol):
    """Operations the splice workspace needs from a version-control tool.

    Every operation either completes or raises ``GitEngineError``. ``merge``
    raises ``MergeConflictError`` when the branch does not merge cleanly.
    """

    def init_repository(self) -> None: ...

    def set_identity(self, name: str, email: str) -> None: ...

    def reset_hard(self) -> None: ...

    def checkout_orphan(self, name: str) -> None: ...

    def clean(self) -> None: ...

    def fetch(self, remote: str, *refspecs: str) -> None: ...

    def checkout_new_branch(self, name: str, start_point: str) -> None: ...

    def merge(self, branch: str, message: str) -> None: ...

    def abort_merge(self) -> None: ...

    def resolve_ref(self, name: str) -> str: ...


class GitEngine:
    """``VersionControl`` backed by ``git -C <repo_path>`` subprocesses."""

    def __init__(
        self,
        repo_path: Path | str,
        *,
        env_overrides: Mapping[str, str] | None = None,
    ) -> None:
        self.repo_path = Path(repo_path).resolve()
        self._env_overrides = dict(env_overrides or {})

    def init_repository(self) -> None:
        self.repo_path.mkdir(parents=True, exist_ok=True)
        self._run_git(["init"])

    def set_identity(self, name: str, email: str) -> None:
        self._run_git(["config", "--local", "user.name", name])
        self._run_git(["config", "--local", "user.email", email])

    def reset_hard(self) -> None:
        self._run_git(["reset", "--hard"])

    def checkout_orphan(self, name: str) -> None:
        self._run_git(["checkout", "--orphan", name])

    def clean(self) -> None:
        self._run_git(["clean", "-fdx"])

    def fetch(self, remote: str, *refspecs: str) -> None:
        if not refspecs:
            raise GitEngineError("fetch requires at least one refspec")
        self._run_git(["fetch", "-f", remote, *refspecs])

    def checkout_new_branch(self, name: str, start_point: str) -> None:
        self._run_git(["checkout", "-B", name, start_point])

    def merge(self, branch: str, message: str) -> None:
        result = self._run_git(
            ["merge", "--no-ff", "--no-stat", "-m", message, branch],
            check=False,
        )
        if result.returncode != 0:
            raise MergeConflictError(
                command=result.command,
                returncode=result.returncode,
                stdout=result.stdout,
                stderr=result.stderr,
            )

    def abort_merge(self) -> None:
        self._run_git(["merge", "--abort"])

    def resolve_ref(self, name: str) -> str:
        sha = self._run_git(["rev-parse", "--verify", "--quiet", f"{name}^{{commit}}"]).stdout
        sha = sha.strip()
        if not sha:
            raise GitEngineError(f"ref does not resolve to a commit: {name}")
        return sha

    def _run_git(
        self,
        args: Sequence[str],
        *,
        check: bool = True,
    ) -> CommandResult:
        command = ("git", "-C", str(self.repo_path), *args)
        env = os.environ.copy()
        env["GIT_TERMINAL_PROMPT"] = "0"
        env.setdefault("GIT_CONFIG_NOSYSTEM", "1")
        env.update(self._env_overrides)

        logger.debug("+ %s", " ".join(command))
        try:
            completed = subprocess.run(
                command,
                env=env,
                text=True,
                capture_output=True,
                check=False,
            )
        except OSError as exc:
            raise GitEngineError(f"unable to run git in {self.repo_path}: {exc}") from exc
        output = (completed.stdout + completed.stderr).strip()
        if output:
            logger.debug(output)

        result = CommandResult(
            command=command,
            cwd=self.repo_path.as_posix(),
            returncode=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
        )

        if check and result.returncode != 0:
            raise GitCommandError(
                command=result.command,
                returncode=result.returncode,
                stdout=result.stdout,
                stderr=result.stderr,
            )

        return result


__all__ = [
    "CommandResult",
    "GitCommandError",
    "GitEngine",
    "GitEngineError",
    "MergeConflictError",
    "VersionControl",
]
