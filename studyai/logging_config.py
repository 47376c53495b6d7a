"""
Logging setup for the study assistant service.

Development output is plain text; production output is one JSON object per
line. Both carry the request id of the HTTP request being served.
"""
import json
import logging
import logging.config
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from studyai.config import Settings, settings as default_settings

# Set by RequestLoggingMiddleware. Tasks spawned while serving a request
# (parallel sub-batches) inherit it.
request_id_context: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

# Structured fields copied from ``extra=`` into JSON log entries
_EXTRA_FIELDS = (
    "method",
    "path",
    "status_code",
    "duration_ms",
    "provider",
    "operation",
    "batch_index",
)

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s"


class RequestIdFilter(logging.Filter):
    """Stamp each record with the current request id ("-" outside requests)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_context.get() or "-"
        return True


class JSONFormatter(logging.Formatter):
    """
    Render log records as single-line JSON for log aggregation.

    Provider and operation fields passed through ``extra=`` are kept so
    fallback chains can be followed per request.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = request_id_context.get()
        if request_id:
            entry["request_id"] = request_id

        entry.update(
            {name: getattr(record, name) for name in _EXTRA_FIELDS if hasattr(record, name)}
        )

        if record.levelno >= logging.ERROR:
            entry["source"] = f"{record.pathname}:{record.lineno}"
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        # Arabic option labels stay readable
        return json.dumps(entry, default=str, ensure_ascii=False)


def setup_logging(config: Optional[Settings] = None) -> None:
    """
    Apply the logging configuration.

    Args:
        config: Settings providing ``env``, ``log_level`` and ``debug``
            (the global settings when omitted)
    """
    config = config or default_settings
    level = getattr(logging, config.log_level.upper(), logging.INFO)
    formatter = "json" if config.env == "production" else "text"

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {"request_id": {"()": RequestIdFilter}},
            "formatters": {
                "text": {"format": TEXT_FORMAT, "datefmt": "%Y-%m-%d %H:%M:%S"},
                "json": {"()": JSONFormatter},
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "level": level,
                    "formatter": formatter,
                    "filters": ["request_id"],
                    "stream": sys.stdout,
                },
            },
            "root": {"level": level, "handlers": ["console"]},
            "loggers": {
                # Propagates to root so one handler serves the whole package
                "studyai": {"level": level},
                "uvicorn.access": {
                    "level": logging.WARNING if config.debug else logging.INFO,
                    "handlers": ["console"],
                    "propagate": False,
                },
                # The SDKs log every HTTP call through httpx at INFO
                "httpx": {
                    "level": logging.WARNING,
                    "handlers": ["console"],
                    "propagate": False,
                },
            },
        }
    )
