"""
Tests for structured logging, spans and metric helpers.
"""

import json
import logging

import pytest
from opentelemetry.sdk.trace import TracerProvider

from pokedex.core.observability import (
    StructuredFormatter,
    configure_logging,
    create_span,
    current_span_ids,
    inject_trace_context,
    record_counter,
    record_histogram,
)


def make_record(message: str, **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="pokedex.core.outbox.dispatcher",
        level=logging.WARNING,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture
def sdk_tracer():
    return TracerProvider().get_tracer("tests")


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


class TestStructuredFormatter:
    """JSON log lines."""

    def test_basic_fields(self):
        line = StructuredFormatter().format(make_record("Outbox record failed"))
        entry = json.loads(line)

        assert entry["level"] == "WARNING"
        assert entry["logger"] == "pokedex.core.outbox.dispatcher"
        assert entry["message"] == "Outbox record failed"
        assert entry["timestamp"].endswith("Z")
        assert "trace_id" not in entry

    def test_extra_fields_included(self):
        entry = json.loads(
            StructuredFormatter().format(make_record("delivered", outbox_id="abc", attempts=2))
        )

        assert entry["outbox_id"] == "abc"
        assert entry["attempts"] == 2

    def test_unserializable_extra_stringified(self):
        entry = json.loads(StructuredFormatter().format(make_record("x", payload=object())))
        assert entry["payload"].startswith("<object object")

    def test_ids_of_active_span(self, sdk_tracer):
        with sdk_tracer.start_as_current_span("outbox.publish") as span:
            entry = json.loads(StructuredFormatter().format(make_record("publishing")))
            context = span.get_span_context()

        assert entry["trace_id"] == format(context.trace_id, "032x")
        assert entry["span_id"] == format(context.span_id, "016x")


class TestConfigureLogging:
    """Root logger setup."""

    def test_structured_replaces_handlers(self, restore_root_logger):
        configure_logging(level="debug")

        assert len(restore_root_logger.handlers) == 1
        assert isinstance(restore_root_logger.handlers[0].formatter, StructuredFormatter)
        assert restore_root_logger.level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_plain_text(self, restore_root_logger):
        configure_logging(level="WARNING", structured=False)

        formatter = restore_root_logger.handlers[0].formatter
        assert not isinstance(formatter, StructuredFormatter)
        assert "trace_id" not in formatter._fmt


class TestTracing:
    """Spans and header propagation without an exporter."""

    def test_create_span_without_provider(self):
        with create_span("outbox.publish", {"outbox.id": "1"}) as span:
            span.set_attribute("outbox.delivered", True)

    def test_create_span_propagates_errors(self):
        with pytest.raises(RuntimeError):
            with create_span("outbox.publish"):
                raise RuntimeError("channel down")

    def test_no_ids_outside_span(self):
        assert current_span_ids() == (None, None)

    def test_inject_adds_traceparent_inside_span(self, sdk_tracer):
        with sdk_tracer.start_as_current_span("outbox.publish"):
            trace_id, _ = current_span_ids()
            headers = inject_trace_context({"Content-Type": "application/json"})

        assert headers["Content-Type"] == "application/json"
        assert trace_id in headers["traceparent"]

    def test_inject_outside_span_adds_nothing(self):
        assert inject_trace_context({}) == {}


class TestMetricsHelpers:
    """Metric helpers before init_metrics()."""

    def test_recording_is_noop_without_init(self):
        record_counter("outbox_delivered_total", attributes={"event_kind": "AccountCreated"})
        record_histogram("outbox_publish_duration_seconds", 0.01)
