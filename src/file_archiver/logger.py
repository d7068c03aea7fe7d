from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime
from typing import Any

from rich.logging import RichHandler

_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"


class JSONFormatter(logging.Formatter):
    """One JSON object per record, extra fields merged in."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.hostname = os.getenv("HOSTNAME", "localhost")

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "hostname": self.hostname,
            "pid": record.process,
        }

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        # Archive entry, window bounds, plugin names...
        if hasattr(record, "extra_fields"):
            payload.update(record.extra_fields)

        return json.dumps(payload, default=str)


def configure_logging(
    level: str | None = None,
    json_output: bool = False,
    log_file: str | None = None,
) -> None:
    """Configure root logging.

    Console output goes through RichHandler unless JSON output is requested
    (argument or ``FILE_ARCHIVER_LOG_FORMAT=json``). ``log_file`` adds a plain
    text file handler next to the console one.
    """
    lvl_str = (level or os.getenv("FILE_ARCHIVER_LOG_LEVEL") or "INFO").upper()
    lvl = getattr(logging, lvl_str, logging.INFO)

    handlers: list[logging.Handler] = []
    if json_output or os.getenv("FILE_ARCHIVER_LOG_FORMAT") == "json":
        handler: logging.Handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
        handlers.append(handler)
        fmt = None
    else:
        handlers.append(RichHandler(
            rich_tracebacks=True,
            markup=False,
            show_time=True,
            show_level=True,
            show_path=False,
        ))
        fmt = "%(message)s"

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
        handlers.append(file_handler)

    logging.basicConfig(
        level=lvl,
        format=fmt or _FILE_FORMAT,
        datefmt="[%X]",
        handlers=handlers,
        force=True,
    )


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance."""
    return logging.getLogger(name)


def log_extra(**kwargs: Any) -> dict[str, Any]:
    """Helper to create extra fields for structured logging."""
    return {"extra_fields": kwargs}
