"""Structured logging configuration for the retrofit estimator."""
import logging
import json
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional

SERVICE_NAME = "retrofit-estimator"

# Bound by RequestTimingMiddleware for the lifetime of one request
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
project_id_var: ContextVar[Optional[str]] = ContextVar("project_id", default=None)

# Optional ``extra=`` fields copied into the JSON line when present
EXTRA_FIELDS = (
    "project_id",
    "request_id",
    "duration_ms",
    "row_count",
    "error_count",
    "estimation_mode",
    "http_method",
    "http_path",
    "http_status",
)


class RequestContextFilter(logging.Filter):
    """Stamps the current request and project ids onto engine log records."""

    def filter(self, record):
        for field, var in (("request_id", request_id_var), ("project_id", project_id_var)):
            value = var.get()
            if value is not None and getattr(record, field, None) is None:
                setattr(record, field, value)
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line: core record fields plus any import/request context."""
    def format(self, record):
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "service": SERVICE_NAME,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
        }
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        for field in EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_entry[field] = value
        return json.dumps(log_entry, default=str)


def setup_logging(level: str = "INFO", json_output: bool = True):
    """Route every logger through one stdout handler carrying request context."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestContextFilter())
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
        ))

    root.handlers = [handler]

    # Spreadsheet readers and the access log are noisy at INFO
    for name in ["uvicorn.access", "openpyxl", "multipart"]:
        logging.getLogger(name).setLevel(logging.WARNING)
