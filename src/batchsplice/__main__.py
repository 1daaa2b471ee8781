"""Module entrypoint for ``python -m batchsplice``."""

from __future__ import annotations

from batchsplice.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
