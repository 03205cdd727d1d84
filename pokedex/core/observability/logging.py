"""
Logging Setup

JSON lines for the outbox worker. Lines written inside a delivery span
carry its trace_id and span_id.
"""

import json
import logging
import sys
from datetime import datetime, timezone

from .tracing import current_span_ids

# Set on every LogRecord; anything else came in through extra=
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}

QUIET_LOGGERS = ("httpx", "httpcore", "aiosqlite", "asyncpg", "opentelemetry")


class StructuredFormatter(logging.Formatter):
    """One JSON object per record. Extras that json cannot encode are stringified."""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, timezone.utc)
        entry = {
            "timestamp": created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        trace_id, span_id = current_span_ids()
        if trace_id:
            entry["trace_id"] = trace_id
            entry["span_id"] = span_id
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        entry.update(
            (key, value) for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and not key.startswith("_")
        )
        return json.dumps(entry, default=str)


def configure_logging(level: str = "INFO", structured: bool = True) -> None:
    """
    Send all logging to stdout, replacing any handlers already installed.

    Args:
        level: DEBUG, INFO, WARNING or ERROR
        structured: JSON lines when True, plain text otherwise
    """
    handler = logging.StreamHandler(sys.stdout)
    if structured:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)-8s %(name)s: %(message)s"))

    logging.basicConfig(level=level.upper(), handlers=[handler], force=True)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
