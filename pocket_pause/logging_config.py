"""Structured logging configuration."""

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

from pythonjsonlogger.json import JsonFormatter

from pocket_pause.config import settings

SERVICE_NAME = "pocket-pause"

# Keys that get_logger binds; grouped under "context" in JSON records
CONTEXT_FIELDS = ("url", "site_type", "strategy", "user_id", "item_id", "notification_ids", "job")


class CustomJsonFormatter(JsonFormatter):
    """JSON formatter for parse and delivery events.

    Bound context (the URL being parsed, the user being notified...) is
    nested under ``context`` so log queries can filter on it.
    """

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["service"] = SERVICE_NAME
        log_record["source"] = f"{record.filename}:{record.lineno}"

        context = {key: log_record.pop(key) for key in CONTEXT_FIELDS if key in log_record}
        if context:
            log_record["context"] = context


class ContextConsoleFormatter(logging.Formatter):
    """Plain-text formatter that appends bound context as key=value pairs."""

    def format(self, record):
        line = super().format(record)
        pairs = [f"{key}={getattr(record, key)}" for key in CONTEXT_FIELDS if hasattr(record, key)]
        return f"{line} [{' '.join(pairs)}]" if pairs else line


def setup_logging(base_dir: str | Path | None = None):
    """Configure logging for the application.

    Args:
        base_dir: Directory for app.log and error.log. Defaults to
                  ``settings.log_dir``, then ./logs.
    """
    if base_dir is None:
        base_dir = settings.log_dir or Path.cwd() / "logs"
    logs_dir = Path(base_dir)
    logs_dir.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.log_level.upper()))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG)
    console_handler.setFormatter(
        ContextConsoleFormatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    root_logger.addHandler(console_handler)

    json_formatter = CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")

    json_handler = logging.FileHandler(logs_dir / "app.log")
    json_handler.setLevel(logging.DEBUG)
    json_handler.setFormatter(json_formatter)
    root_logger.addHandler(json_handler)

    # Failed sends and pipeline crashes
    error_handler = logging.FileHandler(logs_dir / "error.log")
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(json_formatter)
    root_logger.addHandler(error_handler)

    # httpx logs every backend and gateway request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)

    return root_logger


class LoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that merges bound context into every record."""

    def process(self, msg, kwargs):
        extra = kwargs.get("extra", {})
        extra.update(self.extra)
        kwargs["extra"] = extra
        return msg, kwargs


def get_logger(name: str, **context) -> LoggerAdapter:
    """Get a logger with bound context fields (see CONTEXT_FIELDS)."""
    return LoggerAdapter(logging.getLogger(name), context)
