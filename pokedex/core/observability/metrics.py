"""
Outbox Metrics

Counters for staged, delivered and failed records and a histogram of
publish latency. Recording is a no-op until init_metrics() runs.
"""

import logging
from typing import Any, Dict, Optional, Union

from opentelemetry import metrics
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import SERVICE_NAME, Resource

logger = logging.getLogger(__name__)

COUNTERS = {
    "outbox_recorded_total": "Outbox records staged",
    "outbox_delivered_total": "Outbox records delivered to the channel",
    "outbox_failed_attempts_total": "Failed publish attempts (record stays pending)",
}
HISTOGRAMS = {
    "outbox_publish_duration_seconds": "Channel publish duration",
}

_instruments: Dict[str, Union[metrics.Counter, metrics.Histogram]] = {}


def init_metrics(
    otlp_endpoint: str,
    service_name: str = "pokedex-catalog",
    export_interval_ms: int = 60000,
) -> MeterProvider:
    """Install a meter provider exporting the outbox instruments over OTLP."""
    reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=otlp_endpoint, insecure=True),
        export_interval_millis=export_interval_ms,
    )
    provider = MeterProvider(
        resource=Resource.create({SERVICE_NAME: service_name}),
        metric_readers=[reader],
    )
    metrics.set_meter_provider(provider)

    meter = provider.get_meter("pokedex.outbox")
    for name, description in COUNTERS.items():
        _instruments[name] = meter.create_counter(name, unit="1", description=description)
    for name, description in HISTOGRAMS.items():
        _instruments[name] = meter.create_histogram(name, unit="s", description=description)

    logger.info(f"Outbox metrics exported to {otlp_endpoint} every {export_interval_ms} ms")
    return provider


def record_counter(name: str, value: int = 1, attributes: Optional[Dict[str, Any]] = None):
    counter = _instruments.get(name)
    if counter is not None:
        counter.add(value, attributes or {})


def record_histogram(name: str, value: float, attributes: Optional[Dict[str, Any]] = None):
    histogram = _instruments.get(name)
    if histogram is not None:
        histogram.record(value, attributes or {})
