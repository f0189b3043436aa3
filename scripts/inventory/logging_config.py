"""JSON-lines logging for inventory runs.

Workers and resolvers log from many threads at once, so every line carries
the thread name and, where known, the partition and resource it concerns.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import IO, Any, Optional, Union

# Context passed via ``extra=`` by the engine modules.
EXTRA_FIELDS = (
    "partition", "resource_id", "attempt", "delay_s",
    "records", "failures", "duration_s",
)


class JsonFormatter(logging.Formatter):
    """One JSON object per record, keyed by when the record was created."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        entry.update(_context(record))
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        # Event times and error objects are not JSON-native
        return json.dumps(entry, default=str)


def _context(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: getattr(record, key)
        for key in EXTRA_FIELDS
        if getattr(record, key, None) is not None
    }


def _level(level: Union[str, int]) -> int:
    if isinstance(level, int):
        return level
    return getattr(logging, level.upper(), logging.WARNING)


def configure_logging(level: Union[str, int] = "WARNING", stream: Optional[IO[str]] = None) -> None:
    """Route the ``inventory`` logger hierarchy to ``stream`` (stderr) as JSON.

    stdout stays reserved for the report itself.
    """
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JsonFormatter())
    inventory = logging.getLogger("inventory")
    inventory.setLevel(_level(level))
    inventory.handlers.clear()
    inventory.addHandler(handler)
    inventory.propagate = False
