"""
Logging configuration.

``LOG_FORMAT=text`` keeps the plain ``basicConfig`` line format;
``LOG_FORMAT=json`` emits one JSON object per line with timestamp, level,
logger, message, request_id and, when present, duration_ms and the
organization being rated.
"""

import json
import logging
from datetime import datetime, timezone

from employer_ratings.middleware.request_context import get_request_id

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class JSONFormatter(logging.Formatter):
    """Emit each log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": get_request_id(),
        }

        for attr in ("duration_ms", "organization_id"):
            if hasattr(record, attr):
                log_entry[attr] = getattr(record, attr)

        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def configure_json_logging(log_level: str = "INFO"):
    """Replace the root logger's formatter with JSON output."""
    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def configure_logging(log_level: str = "INFO", log_format: str = "text"):
    if log_format == "json":
        configure_json_logging(log_level)
        return
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format=TEXT_FORMAT,
    )
