"""
Structured logging configuration for llmbridge.

Plain ``logging`` everywhere; every module logs event names with
structured fields passed through ``extra``. This module only decides
how those records are rendered.

Environments:
- production: JSON to stdout (machine-readable)
- development/staging/test: Colored text to stderr (human-readable)

Usage:
    from llmbridge.observability.logging_config import configure_logging

    configure_logging()  # auto-detects from LLMBRIDGE_ENV

    logger = logging.getLogger(__name__)
    logger.info("stream_completed", extra={
        "provider": "openai",
        "chunks": 42,
        "skipped": 0,
    })
"""

from __future__ import annotations

import contextvars
import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Optional

# ─── Request Context ──────────────────────────────────────────────────

# A ContextVar follows the current asyncio task, so concurrent streams
# keep their own request id.
_request_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "llmbridge_request_id", default=None
)


def set_request_id(request_id: str) -> None:
    """Tag every log record emitted in the current context with ``request_id``."""
    _request_id.set(request_id)


def get_request_id() -> Optional[str]:
    return _request_id.get()


def clear_request_id() -> None:
    _request_id.set(None)


# ─── Context Filter ───────────────────────────────────────────────────


class ContextFilter(logging.Filter):
    """Copies the current request id onto each log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        request_id = get_request_id()
        if request_id:
            record.request_id = request_id  # type: ignore[attr-defined]
        return True


# ─── Record Fields ────────────────────────────────────────────────────


# Attributes every LogRecord carries; anything else came in via ``extra``
# or from ContextFilter.
_STANDARD_FIELDS = frozenset({
    "name", "msg", "args", "levelname", "levelno", "pathname",
    "filename", "module", "exc_info", "exc_text", "stack_info",
    "lineno", "funcName", "created", "msecs", "relativeCreated",
    "thread", "threadName", "processName", "process", "message",
    "taskName",
})


def record_fields(record: logging.LogRecord) -> dict[str, Any]:
    """
    Return the structured fields attached to ``record``.

    ``request_id`` comes first when present; values that json cannot
    encode are replaced by their ``str()``.
    """
    fields: dict[str, Any] = {}
    request_id = getattr(record, "request_id", None)
    if request_id:
        fields["request_id"] = request_id

    for key, value in record.__dict__.items():
        if key in _STANDARD_FIELDS or key.startswith("_") or key in fields:
            continue
        try:
            json.dumps(value)
        except (TypeError, ValueError):
            value = str(value)
        fields[key] = value
    return fields


# ─── Formatters ───────────────────────────────────────────────────────


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line, for production.

        {"timestamp": "...", "level": "INFO", "logger": "llmbridge.llm.streaming",
         "message": "stream_completed", "provider": "openai", "chunks": 42, ...}
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **record_fields(record),
        }
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class DevFormatter(logging.Formatter):
    """
    Single-line text for a terminal:

        12:00:01 INFO     llmbridge.llm.driver llm_call_completed provider=openai model=gpt-4
    """

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[41m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, "")
        parts = [
            self.formatTime(record, "%H:%M:%S"),
            f"{color}{record.levelname:<8}{self.RESET}",
            record.name,
            record.getMessage(),
        ]
        parts.extend(f"{key}={value}" for key, value in record_fields(record).items())

        line = " ".join(parts)
        if record.exc_info and record.exc_info[1]:
            line += "\n" + self.formatException(record.exc_info)
        return line


# ─── Configuration ────────────────────────────────────────────────────

_QUIET_LOGGERS = ("httpx", "httpcore", "supabase", "hpack")


def configure_logging(
    env: Optional[str] = None,
    level: int = logging.INFO,
) -> None:
    """
    Install a single handler on the root logger.

    ``production`` (from ``env`` or LLMBRIDGE_ENV) writes JSON to stdout;
    any other value writes DevFormatter text to stderr. Calling this again
    replaces the previous handler.
    """
    env = (env or os.environ.get("LLMBRIDGE_ENV", "development")).lower().strip()

    if env == "production":
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(DevFormatter())
    handler.addFilter(ContextFilter())

    root_logger = logging.getLogger()
    root_logger.handlers[:] = [handler]
    root_logger.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
