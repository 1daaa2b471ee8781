"""Public observability primitives: structured logging and redaction."""

from batchsplice.observability.logging import (
    JsonLineFormatter,
    TextFormatter,
    correlation_scope,
    get_correlation_context,
    redact_text,
    redact_value,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    "JsonLineFormatter",
    "TextFormatter",
    "correlation_scope",
    "get_correlation_context",
    "redact_text",
    "redact_value",
    "setup_logging",
    "shutdown_logging",
]
