"""Logging setup for the Outreach CRM backend.

Log records are emitted as single-line JSON so sweep counts and request
failures can be grepped and shipped without extra parsing.
"""

import json
import logging
import sys
import traceback
from datetime import datetime, timezone

from backend.app.core.settings import get_settings

SERVICE_NAME = "outreach-crm"


class JsonFormatter(logging.Formatter):
    RESERVED_FIELDS = {
        "name", "msg", "args", "created", "filename", "funcName",
        "levelname", "levelno", "lineno", "module", "msecs",
        "pathname", "process", "processName", "relativeCreated",
        "stack_info", "exc_info", "exc_text", "thread", "threadName",
        "message", "asctime", "taskName",
    }

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": SERVICE_NAME,
        }
        if record.exc_info:
            entry["exception"] = "".join(traceback.format_exception(*record.exc_info))

        for key, value in record.__dict__.items():
            if key in self.RESERVED_FIELDS or key.startswith("_"):
                continue
            try:
                json.dumps(value)
                entry[key] = value
            except (TypeError, ValueError):
                entry[key] = str(value)
        return json.dumps(entry)


_configured = False


def configure_logging(level: str | None = None) -> None:
    """Install a JSON stream handler on the ``backend`` logger once per process."""
    global _configured
    if _configured:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())

    root = logging.getLogger("backend")
    root.handlers = [handler]
    root.setLevel((level or get_settings().log_level).upper())
    root.propagate = False
    _configured = True
