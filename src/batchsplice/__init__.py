"""
batchsplice — batch composer for queued pull requests.

File: src/batchsplice/__init__.py

Purpose
- Package root. Assembles batches of queued pull requests into one integration
  branch and launches the verification jobs still needed for that batch.

Functional requirements
- Must not have side effects at import time (no config loading, no logging init).
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
