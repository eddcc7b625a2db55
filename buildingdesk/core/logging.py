import logging
from logging.config import dictConfig
from typing import Literal

from .request_context import current_request_id

LogLevel = Literal["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"]

JSON_FORMATTER_CLASS = "pythonjsonlogger.json.JsonFormatter"
TEXT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(request_id)s | %(message)s"
JSON_FORMAT = "%(asctime)s %(levelname)s %(name)s %(request_id)s %(message)s"


class RequestIdFilter(logging.Filter):
    """Stamp each record with the current request id ("-" outside a request)."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = current_request_id() or "-"
        return True


def configure_logging(level: LogLevel = "INFO", json_logs: bool = False) -> None:
    """Configure structured logging across the app.

    Plain text by default; ``json_logs`` switches the console handler to
    python-json-logger so each line is one JSON object.
    """
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {"request_id": {"()": RequestIdFilter}},
            "formatters": {
                "default": {"format": TEXT_FORMAT},
                "json": {
                    "class": JSON_FORMATTER_CLASS,
                    "format": JSON_FORMAT,
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "json" if json_logs else "default",
                    "filters": ["request_id"],
                }
            },
            "root": {"handlers": ["console"], "level": level.upper()},
        }
    )

    # uvicorn installs its own handlers; route everything through the root logger instead.
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).handlers = []
