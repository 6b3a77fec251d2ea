# src/logging/logger.py - v2
"""Logging setup for the codexplain logger tree.

A ContextFilter stamps every record with the request context
(fingerprint, request id, stage, backend) at emit time; the formatters
only read what the filter attached. The console and the optional log
file can use different formats.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Literal

from codexplain.logging.context import get_context

ROOT_LOGGER_NAME = "codexplain"

LogFormat = Literal["json", "text"]


class ContextFilter(logging.Filter):
    """Attach the current request context to records as ``record.ctx``."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.ctx = get_context().as_dict()
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        ctx = getattr(record, "ctx", None)
        if ctx:
            entry["context"] = ctx
        # logger.warning(..., extra={"data": {...}})
        data = getattr(record, "data", None)
        if data:
            entry["data"] = data
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """``time [LEVEL] logger <fingerprint> [stage] (backend) - message``."""

    def __init__(self) -> None:
        super().__init__("%(asctime)s [%(levelname)-8s] %(name)s%(tags)s - %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        ctx = getattr(record, "ctx", None) or {}
        tags = ""
        if "fingerprint" in ctx:
            tags += f" <{ctx['fingerprint'][:12]}>"
        if "stage" in ctx:
            tags += f" [{ctx['stage']}]"
        if "backend" in ctx:
            tags += f" ({ctx['backend']})"
        record.tags = tags
        return super().format(record)


def _formatter(log_format: LogFormat) -> logging.Formatter:
    return JsonFormatter() if log_format == "json" else TextFormatter()


def setup_logging(
    level: str = "INFO",
    console_format: LogFormat = "text",
    log_file: str | Path | None = None,
    file_format: LogFormat = "json",
    max_bytes: int = 10 * 1024**2,
    backup_count: int = 30,
) -> None:
    """Configure the codexplain logger. Safe to call repeatedly.

    Args:
        level: DEBUG, INFO, WARNING or ERROR.
        console_format: Format of the stderr handler.
        log_file: Rotating log file; None logs to stderr only.
        file_format: Format of the file handler.
        max_bytes: Size at which the log file rotates.
        backup_count: Rotated files kept.
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    context = ContextFilter()
    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(_formatter(console_format))
    console.addFilter(context)
    root.addHandler(console)

    if log_file is not None:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
        file_handler.setFormatter(_formatter(file_format))
        file_handler.addFilter(context)
        root.addHandler(file_handler)
