"""Structured logging configuration for tracescope.

Components pass trace context as ``extra={"context": {...}}``. The fields
that identify where an event came from (process ref, module, event id) are
lifted to top-level JSON keys so log lines can be joined with stored events;
anything else stays under ``context``.
"""

import json
import logging
import logging.config
from datetime import datetime, timezone
from pathlib import Path

from .config import EngineConfig

TRACE_FIELDS = ("process_ref", "module", "event_id")


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        context = dict(getattr(record, "context", None) or {})
        for field in TRACE_FIELDS:
            if field in context:
                log_data[field] = context.pop(field)
        if context:
            log_data["context"] = context

        return json.dumps(log_data, default=str)


def setup_logging(config: EngineConfig | None = None) -> None:
    """
    Setup structured logging for the trace engine.

    Args:
        config: Engine settings; log_level and log_file are used.
                Defaults to EngineConfig.from_env().
    """
    config = config or EngineConfig.from_env()

    log_path = Path(config.log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": "tracescope.logging_config.JSONFormatter",
            },
        },
        "handlers": {
            "file": {
                "class": "logging.handlers.RotatingFileHandler",
                "filename": str(log_path),
                "maxBytes": 10 * 1024 * 1024,  # 10 MB
                "backupCount": 5,
                "formatter": "json",
                "encoding": "utf-8",
            },
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "json",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            "tracescope": {"level": config.log_level.upper()},
        },
        "root": {
            "level": "WARNING",
            "handlers": ["file", "console"],
        },
    }

    logging.config.dictConfig(logging_config)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance (typically for __name__)."""
    return logging.getLogger(name)
