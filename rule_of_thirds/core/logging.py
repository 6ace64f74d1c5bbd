from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

SILENT_LOGGER_NAME = "rule_of_thirds.silent"


class JsonFormatter(logging.Formatter):
    """Format logs as structured JSON for production observability."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "module": record.name,
            "message": record.getMessage(),
        }
        for field in ("path", "collector", "source"):
            if hasattr(record, field):
                payload[field] = getattr(record, field)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def silent_logger() -> logging.Logger:
    """Return a logger that drops every record, for silent contexts."""
    logger = logging.getLogger(SILENT_LOGGER_NAME)
    logger.disabled = True
    logger.propagate = False
    return logger


def configure_logging(level: str = "INFO", *, silent: bool = False) -> None:
    """
    Install a single JSON handler on the root logger.

    Records go to stderr so that stdout stays free for command output.
    With ``silent`` set, the root logger is muted instead.
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    if silent:
        root.addHandler(logging.NullHandler())
        root.setLevel(logging.CRITICAL + 1)
        return

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter())
    root.addHandler(handler)
    root.setLevel(level.upper())
