"""Command-line interface router for batchsplice."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, NoReturn

from batchsplice.clients.job_backend import HttpJobBackend, JobBackendError
from batchsplice.clients.submit_queue import SubmitQueueClient
from batchsplice.config import (
    ConfigLoadError,
    ConfigValidationError,
    JobConfigAgent,
    JobConfigError,
    dump_effective_config,
    load_config,
)
from batchsplice.control_plane.loop import (
    IntervalTicker,
    LoopSettings,
    LoopState,
    ReconciliationLoop,
)
from batchsplice.integration_plane.git_engine import GitEngineError
from batchsplice.integration_plane.workspace_manager import WorkspaceManager
from batchsplice.main import ExitCode
from batchsplice.observability.logging import setup_logging, shutdown_logging

if TYPE_CHECKING:
    from types import FrameType

logger = logging.getLogger(__name__)

# CLI flag destination -> dotted config path.
_OVERRIDE_FIELDS: dict[str, str] = {
    "submit_queue_endpoint": "queue.endpoint",
    "remote_url": "repository.remote_url",
    "org": "repository.org",
    "repo": "repository.repo",
    "batch_size": "batch.max_size",
    "job_config": "jobs.config_path",
    "job_backend_url": "jobs.backend_url",
    "log_level": "observability.log_level",
}


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = int(ExitCode.INTERNAL_ERROR)

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="batchsplice",
        description=(
            "Merge queued pull requests into a batch branch and start the\n"
            "verification jobs that have not already passed for that batch.\n\n"
            "Common workflows:\n"
            "  batchsplice run --config splice.toml     Run the reconciliation loop\n"
            "  batchsplice run --once                   Run a single tick and exit\n"
            "  batchsplice config                       Show the effective config\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to splice TOML config (default: ./splice.toml if present).",
    )
    common.add_argument(
        "--submit-queue-endpoint",
        default=None,
        help="URL of the submit queue e2e status endpoint.",
    )
    common.add_argument("--remote-url", default=None, help="Remote git repository URL.")
    common.add_argument("--org", default=None, help="Repository owner.")
    common.add_argument("--repo", default=None, help="Repository name.")
    common.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Maximum number of pull requests in one batch.",
    )
    common.add_argument("--job-config", default=None, help="Path to the YAML job config.")
    common.add_argument("--job-backend-url", default=None, help="Base URL of the job backend.")
    common.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR.")
    common.add_argument(
        "--log-json",
        action="store_true",
        default=False,
        help="Emit logs as JSON lines.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser(
        "run",
        parents=[common],
        help="Run the batch reconciliation loop",
        description="Compose batches and submit verification jobs once per tick.",
    )
    run_parser.add_argument(
        "--once",
        action="store_true",
        default=False,
        help="Run a single tick and exit.",
    )
    run_parser.set_defaults(handler=_cmd_run)

    config_parser = subparsers.add_parser(
        "config",
        parents=[common],
        help="Print the effective configuration as redacted JSON",
    )
    config_parser.set_defaults(handler=_cmd_config)

    return parser


# ---------------------------------------------------------------------------
# Entrypoints
# ---------------------------------------------------------------------------


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return int(ExitCode.CONFIG_ERROR)

    try:
        result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    return int(result)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_config(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    print(dump_effective_config(config))
    return int(ExitCode.SUCCESS)


def _cmd_run(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    observability = config["observability"]
    setup_logging(level=observability["log_level"], log_format=observability["log_format"])
    try:
        return _run_splice(config, once=bool(getattr(args, "once", False)))
    finally:
        shutdown_logging()


def _run_splice(config: Mapping[str, Any], *, once: bool) -> int:
    repository = config["repository"]
    batch = config["batch"]
    jobs = config["jobs"]

    agent = JobConfigAgent(jobs["config_path"])
    try:
        agent.start()
    except JobConfigError as exc:
        raise CLIError(str(exc), exit_code=int(ExitCode.CONFIG_ERROR)) from exc

    backend = HttpJobBackend(jobs["backend_url"])
    queue = SubmitQueueClient(
        config["queue"]["endpoint"], default_branch=repository["default_branch"]
    )
    try:
        try:
            backend.check_connection()
        except JobBackendError as exc:
            raise CLIError(f"job backend unavailable: {exc}", int(ExitCode.STARTUP_ERROR)) from exc

        try:
            workspace = WorkspaceManager.create()
        except (GitEngineError, OSError) as exc:
            raise CLIError(
                f"unable to create workspace: {exc}", int(ExitCode.STARTUP_ERROR)
            ) from exc

        with workspace:
            loop = ReconciliationLoop(
                LoopSettings(
                    remote_url=repository["remote_url"],
                    org=repository["org"],
                    repo=repository["repo"],
                    default_branch=repository["default_branch"],
                    max_batch_size=batch["max_size"],
                    cooldown_ticks=batch["cooldown_ticks"],
                ),
                queue=queue,
                workspace=workspace,
                backend=backend,
                specs_provider=agent.presubmits_for,
            )
            logger.info("splice workspace ready at %s", workspace.path)
            if once:
                outcome = loop.tick(LoopState())
                logger.info("tick finished in %s: %s", outcome.phase.value, outcome.reason)
                return int(ExitCode.SUCCESS)
            _run_forever(loop, IntervalTicker(batch["tick_interval_seconds"]))
    finally:
        queue.close()
        backend.close()
    return int(ExitCode.SUCCESS)


def _run_forever(loop: ReconciliationLoop, ticker: IntervalTicker) -> None:
    previous = signal.signal(signal.SIGTERM, _raise_interrupt)
    try:
        loop.run(ticker)
    except KeyboardInterrupt:
        logger.info("interrupted, shutting down")
    finally:
        ticker.stop()
        signal.signal(signal.SIGTERM, previous)


def _raise_interrupt(signum: int, frame: FrameType | None) -> NoReturn:
    raise KeyboardInterrupt


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_effective_config(args: argparse.Namespace) -> dict[str, Any]:
    config_path = getattr(args, "config_path", None)
    try:
        return load_config(config_path, cli_overrides=_cli_overrides(args))
    except (ConfigLoadError, ConfigValidationError) as exc:
        raise CLIError(str(exc), exit_code=int(ExitCode.CONFIG_ERROR)) from exc


def _cli_overrides(args: argparse.Namespace) -> dict[str, object]:
    overrides: dict[str, object] = {}
    for dest, dotted in _OVERRIDE_FIELDS.items():
        value = getattr(args, dest, None)
        if value is not None:
            overrides[dotted] = value
    if getattr(args, "log_json", False):
        overrides["observability.log_format"] = "json"
    return overrides


__all__ = ["CLIError", "build_parser", "run_cli"]
