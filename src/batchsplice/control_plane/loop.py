"""
batchsplice reconciliation loop.

Purpose
- Drive one composition/reconciliation cycle per tick: list jobs, honor
  single-flight and cooldown, fetch the queue, compose a batch, and submit the
  verification jobs that have not already passed for that exact batch.

Functional requirements
- Loop state is an explicit immutable value threaded from tick to tick.
- Every recoverable failure abandons the current tick and is logged; nothing
  is persisted between ticks or across restarts.
- The tick source is injectable so tests can drive a finite number of ticks.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Generic, TypeVar

from batchsplice.clients.job_backend import JobBackendError
from batchsplice.clients.submit_queue import QueueFetchError
from batchsplice.constants import (
    DEFAULT_BASE_BRANCH,
    DEFAULT_COOLDOWN_TICKS,
    DEFAULT_MAX_BATCH_SIZE,
)
from batchsplice.control_plane.reconciler import needed_presubmits, running_batch_jobs
from batchsplice.integration_plane.batch_refs import resolve_batch_descriptor
from batchsplice.integration_plane.feasibility import MergeFeasibilityEngine
from batchsplice.integration_plane.git_engine import GitEngineError
from batchsplice.observability.logging import correlation_scope

if TYPE_CHECKING:
    from batchsplice.clients.job_backend import JobBackend
    from batchsplice.clients.submit_queue import QueueSource
    from batchsplice.domain.models import BatchDescriptor, JobRecord, VerificationJobSpec
    from batchsplice.integration_plane.feasibility import FeasibilityResult
    from batchsplice.integration_plane.workspace_manager import WorkspaceManager

logger = logging.getLogger(__name__)

T = TypeVar("T")

SpecsProvider = Callable[[str], Sequence["VerificationJobSpec"]]


class LoopPhase(StrEnum):
    IDLE = "idle"
    FETCHING_QUEUE = "fetching_queue"
    COMPOSING_BATCH = "composing_batch"
    RECONCILING = "reconciling"
    SUBMITTING = "submitting"
    COOLDOWN = "cooldown"


@dataclass(frozen=True, slots=True)
class LoopState:
    """State carried from one tick to the next."""

    cooldown: int = 0
    ticks: int = 0

    def __post_init__(self) -> None:
        if self.cooldown < 0:
            raise ValueError("cooldown must be >= 0")
        if self.ticks < 0:
            raise ValueError("ticks must be >= 0")


@dataclass(frozen=True, slots=True)
class StepResult(Generic[T]):
    """Value-or-error result of one loop stage."""

    value: T | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> StepResult[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: str) -> StepResult[T]:
        return cls(error=error)


@dataclass(frozen=True, slots=True)
class TickOutcome:
    """
    What one tick did.

    ``phase`` is the last stage the tick reached and ``reason`` says why it
    stopped there. A tick that submits reports ``SUBMITTING`` even though its
    ``state`` already carries the new cooldown; the following ticks report
    ``COOLDOWN`` until it runs out. ``submitted`` and ``failed`` list job names.
    """

    state: LoopState
    phase: LoopPhase
    reason: str
    batch: tuple[int, ...] = ()
    descriptor: BatchDescriptor | None = None
    submitted: tuple[str, ...] = ()
    failed: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class LoopSettings:
    remote_url: str
    org: str
    repo: str
    default_branch: str = DEFAULT_BASE_BRANCH
    max_batch_size: int = DEFAULT_MAX_BATCH_SIZE
    cooldown_ticks: int = DEFAULT_COOLDOWN_TICKS

    def __post_init__(self) -> None:
        if self.max_batch_size < 1:
            raise ValueError("max_batch_size must be >= 1")
        if self.cooldown_ticks < 0:
            raise ValueError("cooldown_ticks must be >= 0")

    @property
    def repo_key(self) -> str:
        return f"{self.org}/{self.repo}"


class ReconciliationLoop:
    """
    Periodic driver for batch composition and job reconciliation.

    The loop exclusively owns ``workspace``; ticks run one at a time on the
    calling thread.
    """

    def __init__(
        self,
        settings: LoopSettings,
        *,
        queue: QueueSource,
        workspace: WorkspaceManager,
        backend: JobBackend,
        specs_provider: SpecsProvider,
        feasibility: MergeFeasibilityEngine | None = None,
    ) -> None:
        self._settings = settings
        self._queue = queue
        self._workspace = workspace
        self._backend = backend
        self._specs_provider = specs_provider
        self._feasibility = (
            feasibility if feasibility is not None else MergeFeasibilityEngine(workspace)
        )

    @property
    def settings(self) -> LoopSettings:
        return self._settings

    def run(self, ticker: Iterable[object], state: LoopState | None = None) -> LoopState:
        """Run one tick per item yielded by ``ticker`` and return the final state."""

        current = state if state is not None else LoopState()
        for _ in ticker:
            current = self.tick(current).state
        return current

    def tick(self, state: LoopState) -> TickOutcome:
        tick_number = state.ticks + 1
        with correlation_scope(tick=tick_number):
            return self._tick(state, tick_number)

    def _tick(self, state: LoopState, tick_number: int) -> TickOutcome:
        def idle(phase: LoopPhase, reason: str, *, cooldown: int = state.cooldown) -> TickOutcome:
            return TickOutcome(
                state=LoopState(cooldown=cooldown, ticks=tick_number),
                phase=phase,
                reason=reason,
            )

        listed = self._list_jobs()
        if not listed.ok or listed.value is None:
            logger.error("error listing jobs: %s", listed.error)
            return idle(LoopPhase.IDLE, f"job listing failed: {listed.error}")
        jobs = listed.value

        running = running_batch_jobs(jobs)
        if running:
            logger.info(
                "waiting on %d jobs: %s",
                len(running),
                ", ".join(job.name for job in running),
            )
            return idle(LoopPhase.IDLE, f"waiting on {len(running)} batch jobs")

        if state.cooldown > 0:
            logger.debug("cooling down, %d ticks left", state.cooldown - 1)
            return idle(LoopPhase.COOLDOWN, "cooldown", cooldown=state.cooldown - 1)

        queued = self._fetch_queue()
        if not queued.ok or queued.value is None:
            logger.warning("failed to get queue: %s", queued.error)
            return idle(LoopPhase.FETCHING_QUEUE, f"queue fetch failed: {queued.error}")
        if not queued.value:
            return idle(LoopPhase.FETCHING_QUEUE, "queue is empty")
        prs = queued.value

        composed = self._compose(prs)
        if not composed.ok or composed.value is None:
            logger.error("error finding mergeable PRs: %s", composed.error)
            return idle(LoopPhase.COMPOSING_BATCH, f"composition failed: {composed.error}")
        accepted = composed.value.accepted
        logger.info(
            "mergeable PRs: %s",
            " ".join(f"#{number}" for number in accepted) or "none",
            extra={"excluded": list(composed.value.excluded)},
        )
        if len(accepted) <= 1:
            return idle(LoopPhase.COMPOSING_BATCH, "not enough mergeable PRs for a batch")

        batch = tuple(accepted[: self._settings.max_batch_size])

        described = self._describe(batch)
        if not described.ok or described.value is None:
            logger.error("error resolving batch refs: %s", described.error)
            return idle(LoopPhase.RECONCILING, f"ref resolution failed: {described.error}")
        descriptor = described.value

        specs = self._specs_provider(self._settings.repo_key)
        needed = needed_presubmits(specs, jobs, descriptor)
        submitted, failed = self._submit(needed, descriptor)

        reason = "no jobs needed" if not needed else f"submitted {len(submitted)} jobs"
        return TickOutcome(
            state=LoopState(cooldown=self._settings.cooldown_ticks, ticks=tick_number),
            phase=LoopPhase.SUBMITTING,
            reason=reason,
            batch=batch,
            descriptor=descriptor,
            submitted=submitted,
            failed=failed,
        )

    def _list_jobs(self) -> StepResult[list[JobRecord]]:
        try:
            return StepResult.success(self._backend.list_jobs())
        except JobBackendError as exc:
            return StepResult.failure(str(exc))

    def _fetch_queue(self) -> StepResult[list[int]]:
        try:
            return StepResult.success(self._queue.fetch())
        except QueueFetchError as exc:
            return StepResult.failure(str(exc))

    def _compose(self, prs: Sequence[int]) -> StepResult[FeasibilityResult]:
        settings = self._settings
        try:
            return StepResult.success(
                self._feasibility.find_mergeable(settings.remote_url, settings.default_branch, prs)
            )
        except GitEngineError as exc:
            return StepResult.failure(str(exc))

    def _describe(self, batch: Sequence[int]) -> StepResult[BatchDescriptor]:
        settings = self._settings
        try:
            return StepResult.success(
                resolve_batch_descriptor(
                    self._workspace,
                    org=settings.org,
                    repo=settings.repo,
                    base_branch=settings.default_branch,
                    accepted=batch,
                )
            )
        except GitEngineError as exc:
            return StepResult.failure(str(exc))

    def _submit(
        self,
        specs: Sequence[VerificationJobSpec],
        descriptor: BatchDescriptor,
    ) -> tuple[tuple[str, ...], tuple[str, ...]]:
        submitted: list[str] = []
        failed: list[str] = []
        for spec in specs:
            try:
                self._backend.create_job(spec, descriptor)
            except JobBackendError as exc:
                logger.error("error creating job %s: %s", spec.name, exc)
                failed.append(spec.name)
                continue
            logger.info("submitted %s for %s", spec.name, descriptor.signature)
            submitted.append(spec.name)
        return tuple(submitted), tuple(failed)


@dataclass(slots=True)
class IntervalTicker:
    """
    Yields a running tick count every ``interval`` seconds until stopped.

    The first tick is yielded immediately. Ticks that fall behind the
    schedule are not replayed.
    """

    interval: float
    clock: Callable[[], float] = time.monotonic
    sleep: Callable[[float], None] = time.sleep
    _stopped: bool = field(default=False, init=False)

    def __post_init__(self) -> None:
        if self.interval <= 0:
            raise ValueError("interval must be > 0")

    def stop(self) -> None:
        self._stopped = True

    @property
    def stopped(self) -> bool:
        return self._stopped

    def __iter__(self) -> Iterator[int]:
        count = 0
        deadline = self.clock()
        while not self._stopped:
            yield count
            count += 1
            if self._stopped:
                return
            deadline += self.interval
            remaining = deadline - self.clock()
            if remaining > 0:
                self.sleep(remaining)
            else:
                deadline = self.clock()


__all__ = [
    "IntervalTicker",
    "LoopPhase",
    "LoopSettings",
    "LoopState",
    "ReconciliationLoop",
    "SpecsProvider",
    "StepResult",
    "TickOutcome",
]
