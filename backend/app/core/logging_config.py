"""
Structured logging configuration.

Provides:
    • JSON-formatted logs for production (machine-parseable)
    • Pretty console logs for development (human-readable)
    • Request-scoped context (request_id, client_ip, endpoint)

Usage:
    from backend.app.core.logging_config import init_default_logger, get_logger

    init_default_logger("DEBUG")
    logger = get_logger(__name__)
    logger.info("Data resources ready", extra={"store": "redis"})
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import IO, Any, Dict, Optional, Union

from backend.app.core.jsonutil import stringify_json

# ── Context variable for request-scoped data ──
_request_context: ContextVar[Dict[str, Any]] = ContextVar(
    "request_context", default={}
)

# Extra fields copied onto JSON log entries
EXTRA_FIELDS = ("store", "service", "version", "instance_id",
                "duration_ms", "status_code", "endpoint")


def set_request_context(**kwargs: Any) -> None:
    """Set request-scoped log context (call from middleware)."""
    _request_context.set(kwargs)


def get_request_context() -> Dict[str, Any]:
    """Get current request context."""
    return _request_context.get()


# ── JSON Formatter (Production) ──

class JSONFormatter(logging.Formatter):
    """Machine-parseable JSON log output for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "t": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": record.getMessage(),
            "caller": f"{record.pathname}:{record.lineno}",
        }

        ctx = get_request_context()
        if ctx:
            log_entry["context"] = ctx

        for key in EXTRA_FIELDS:
            if hasattr(record, key):
                log_entry[key] = getattr(record, key)

        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = {
                "type": type(record.exc_info[1]).__name__,
                "message": str(record.exc_info[1]),
            }
            if record.levelno >= logging.ERROR:
                log_entry["stack"] = self.formatException(record.exc_info)

        return stringify_json(log_entry)


# ── Pretty Formatter (Development) ──

class PrettyFormatter(logging.Formatter):
    """Coloured human-readable format for local development."""

    COLORS = {
        "DEBUG": "\033[36m",    # Cyan
        "INFO": "\033[32m",     # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",    # Red
        "CRITICAL": "\033[35m", # Magenta
    }
    RESET = "\033[0m"

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        color, reset = "", ""
        if self.use_color:
            color = self.COLORS.get(record.levelname, self.RESET)
            reset = self.RESET
        ts = self.formatTime(record, "%Y-%m-%dT%H:%M:%S")
        msg = record.getMessage()

        ctx = get_request_context()
        ctx_str = ""
        if ctx.get("request_id"):
            ctx_str = f" [{ctx['request_id'][:8]}]"

        formatted = (
            f"{color}{ts} {record.levelname:8s}{reset}"
            f"{ctx_str} {record.name}: {msg}"
        )

        if record.exc_info and record.exc_info[1]:
            formatted += f"\n  {type(record.exc_info[1]).__name__}: {record.exc_info[1]}"

        return formatted


# ── Setup ──

def _resolve_level(level: Union[str, int]) -> int:
    if isinstance(level, int):
        return level
    return getattr(logging, level.upper(), logging.INFO)


def setup_logging(
    level: Union[str, int] = "INFO",
    fmt: str = "console",
    stream: Optional[IO[str]] = None,
) -> logging.Logger:
    """Configure the root logger with a console or JSON handler."""
    root = logging.getLogger()
    root.setLevel(_resolve_level(level))

    # Remove existing handlers
    root.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stdout)

    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(PrettyFormatter(use_color=stream is None))

    root.addHandler(handler)

    # Quieten noisy libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    return root


def init_default_logger(level: Union[str, int] = "DEBUG", stream: Optional[IO[str]] = None) -> logging.Logger:
    """Console logger for local runs."""
    return setup_logging(level, "console", stream)


def init_json_logger(level: Union[str, int] = "INFO", stream: Optional[IO[str]] = None) -> logging.Logger:
    """JSON logger for deployed environments."""
    return setup_logging(level, "json", stream)


def get_logger(name: str) -> logging.Logger:
    """Get a named logger — call once per module."""
    return logging.getLogger(name)
