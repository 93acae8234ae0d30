# src/gateway_dashboard/logging_setup.py

import json
import logging
import sys
import time
from typing import Optional

from .config import settings

# Passed through `extra=` by the proxy; copied to the top level of each line.
CONTEXT_FIELDS = ("gateway_ip", "path")


class JsonFormatter(logging.Formatter):
    """One JSON object per log line, timestamps in UTC."""

    converter = time.gmtime

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%SZ"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update({field: getattr(record, field) for field in CONTEXT_FIELDS if hasattr(record, field)})
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def setup_logging(level: Optional[str] = None) -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    logging.basicConfig(level=(level or settings.LOG_LEVEL).upper(), handlers=[handler], force=True)
    # httpx logs every request at INFO, which duplicates the proxy's own lines.
    logging.getLogger("httpx").setLevel(logging.WARNING)
