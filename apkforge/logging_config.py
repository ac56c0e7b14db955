"""Structured JSON logging tagged with the current job id."""

import contextvars
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict

# Set by the pipeline driver for the lifetime of one job's run
job_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("job_id", default="")


class JSONFormatter(logging.Formatter):
    """One JSON object per log record."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "job_id": job_id_var.get(""),
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = f"{type(record.exc_info[1]).__name__}: {record.exc_info[1]}"
        return json.dumps(entry)


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Route all ``apkforge`` loggers to a single JSON stream handler.

    Args:
        level: Log level name, e.g. "INFO" or "DEBUG".

    Returns:
        The configured package logger.
    """
    logger = logging.getLogger("apkforge")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.handlers.clear()

    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())
    logger.addHandler(handler)
    logger.propagate = False
    return logger
