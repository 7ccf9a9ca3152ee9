from __future__ import annotations

import json
import logging
import os
import sys
from typing import Any, Dict

# Attributes that ingest and query code attach through `extra=`.
CONTEXT_FIELDS = ("folder", "path", "status", "reason", "sources", "elapsed_ms")

NOISY_LOGGERS = ("urllib3", "httpx", "chromadb", "watchdog")


def _context(record: logging.LogRecord) -> Dict[str, Any]:
    return {k: getattr(record, k) for k in CONTEXT_FIELDS if hasattr(record, k)}


class _ConsoleFormatter(logging.Formatter):
    """One line per record; context fields are appended as key=value pairs."""

    def __init__(self, debug: bool = False) -> None:
        fmt = "%(levelname)-7s %(name)s: %(message)s"
        if debug:
            fmt = "%(asctime)s " + fmt + " (%(filename)s:%(lineno)d)"
        super().__init__(fmt=fmt, datefmt="%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        ctx = _context(record)
        if ctx:
            line += " [" + " ".join(f"{k}={v}" for k, v in ctx.items()) + "]"
        return line


class _JsonLinesFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        payload.update(_context(record))
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def resolve_level(level: str | int | None) -> int:
    """Map a level name or number to a logging level; anything unknown is INFO."""
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        name = level.strip().upper()
        if name.isdigit():
            return int(name)
        value = logging.getLevelName(name)
        if isinstance(value, int):
            return value
    return logging.INFO


def setup_logging(level: str | int | None = None, json_logs: bool = False) -> None:
    """
    Route all records to stderr, plain or as JSON lines.

    `level` falls back to the LOG_LEVEL env var, then INFO. Calling this again
    replaces the previous handler.
    """
    final_level = resolve_level(level or os.getenv("LOG_LEVEL"))

    root = logging.getLogger()
    root.setLevel(final_level)
    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler(stream=sys.stderr)
    if json_logs:
        handler.setFormatter(_JsonLinesFormatter())
    else:
        handler.setFormatter(_ConsoleFormatter(debug=final_level <= logging.DEBUG))
    root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(final_level, logging.WARNING))
