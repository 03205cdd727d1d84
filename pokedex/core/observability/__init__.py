"""
Observability Module

Delivery spans, outbox metrics and JSON logging on OpenTelemetry.
"""

from .logging import StructuredFormatter, configure_logging
from .metrics import init_metrics, record_counter, record_histogram
from .tracing import create_span, current_span_ids, init_tracing, inject_trace_context

__all__ = [
    "configure_logging",
    "StructuredFormatter",
    "init_metrics",
    "record_counter",
    "record_histogram",
    "init_tracing",
    "create_span",
    "current_span_ids",
    "inject_trace_context",
]
