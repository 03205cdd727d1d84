"""
Delivery Tracing

One producer span per outbox publish attempt, and W3C traceparent
headers on outbound channel requests so a consumer can join the trace.

Until init_tracing() installs a provider, spans are non-recording and
header injection adds nothing.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional, Tuple

from opentelemetry import propagate, trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

logger = logging.getLogger(__name__)

TRACER_NAME = "pokedex.outbox"


def init_tracing(
    otlp_endpoint: str,
    service_name: str = "pokedex-catalog",
    service_version: str = "1.0.0",
) -> TracerProvider:
    """Install a tracer provider that ships spans to an OTLP collector."""
    provider = TracerProvider(
        resource=Resource.create({SERVICE_NAME: service_name, SERVICE_VERSION: service_version})
    )
    provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint, insecure=True))
    )
    trace.set_tracer_provider(provider)
    logger.info(f"Delivery spans exported to {otlp_endpoint}")
    return provider


def current_span_ids() -> Tuple[Optional[str], Optional[str]]:
    """Hex trace and span ids of the active span, or (None, None) outside one."""
    context = trace.get_current_span().get_span_context()
    if not context.is_valid:
        return None, None
    return format(context.trace_id, "032x"), format(context.span_id, "016x")


@contextmanager
def create_span(name: str, attributes: Optional[Dict[str, Any]] = None) -> Iterator[trace.Span]:
    """
    Run a block inside a producer span.

    An exception escaping the block is recorded on the span, marks it
    as failed, and propagates.

    Usage:
        with create_span("outbox.publish", {"outbox.id": str(record.id)}) as span:
            receipt = await channel.publish(...)
            span.set_attribute("outbox.duplicate", receipt.duplicate)
    """
    tracer = trace.get_tracer(TRACER_NAME)
    with tracer.start_as_current_span(
        name, kind=trace.SpanKind.PRODUCER, attributes=attributes
    ) as span:
        yield span


def inject_trace_context(headers: Dict[str, str]) -> Dict[str, str]:
    """Add the active trace context to outbound headers, in place."""
    propagate.inject(headers)
    return headers
