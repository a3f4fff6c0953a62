"""Observability helpers."""

from featureforest.observability.otel import (
    initialize,
    shutdown,
    start_span,
    record_assembly,
    record_parse_failure,
)

__all__ = [
    "initialize",
    "shutdown",
    "start_span",
    "record_assembly",
    "record_parse_failure",
]
