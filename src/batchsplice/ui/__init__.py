"""UI package exports for the command-line interface."""

from batchsplice.ui.cli import CLIError, build_parser, run_cli

__all__ = ["CLIError", "build_parser", "run_cli"]
