"""Observability helpers."""

from scriptlink.observability.otel import (
    initialize,
    shutdown,
    start_span,
    record_reconcile,
    record_header_failure,
)

__all__ = [
    "initialize",
    "shutdown",
    "start_span",
    "record_reconcile",
    "record_header_failure",
]
