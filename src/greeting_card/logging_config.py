"""
Structured JSON logging configuration for greeting-card.

Usage:
    from greeting_card.logging_config import setup_logging

    setup_logging()          # uses GREETING_CARD_LOG_LEVEL env var (default: INFO)
    setup_logging("DEBUG")   # explicit level
    setup_logging(debug=True)# force DEBUG (e.g. from GREETING_CARD_DEBUG=true)
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

_STANDARD_FIELDS = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "message",
        "taskName",
    }
)


class _JSONFormatter(logging.Formatter):
    """Format log records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }

        if record.levelno >= logging.WARNING:
            payload["where"] = f"{record.module}:{record.lineno}"

        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)

        if record.stack_info:
            payload["stack"] = self.formatStack(record.stack_info)

        # Fields passed through ``extra=`` end up as record attributes
        for key, value in record.__dict__.items():
            if key not in _STANDARD_FIELDS and not key.startswith("_"):
                payload[key] = value

        return json.dumps(payload, default=str, ensure_ascii=False)


def resolve_level(level: str | None = None, *, debug: bool | None = None) -> int:
    """Resolve the effective log level.

    Priority:
      1. ``debug=True`` kwarg → DEBUG
      2. ``level`` argument
      3. ``GREETING_CARD_DEBUG=true`` env var → DEBUG
      4. ``GREETING_CARD_LOG_LEVEL`` env var
      5. INFO
    """
    if debug is True:
        return logging.DEBUG
    if level is not None:
        return getattr(logging, level.upper(), logging.INFO)
    if os.environ.get("GREETING_CARD_DEBUG", "").lower() in ("1", "true", "yes"):
        return logging.DEBUG
    env_level = os.environ.get("GREETING_CARD_LOG_LEVEL", "INFO").upper()
    return getattr(logging, env_level, logging.INFO)


def setup_logging(
    level: str | None = None,
    *,
    debug: bool | None = None,
) -> None:
    """Configure structured JSON logging for the greeting_card package."""
    effective_level = resolve_level(level, debug=debug)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_JSONFormatter())

    pkg_logger = logging.getLogger("greeting_card")
    pkg_logger.setLevel(effective_level)
    # Avoid duplicate handlers if called multiple times
    if not pkg_logger.handlers:
        pkg_logger.addHandler(handler)
    else:
        pkg_logger.handlers[0] = handler

    if effective_level > logging.DEBUG:
        for noisy in ("httpx", "httpcore"):
            logging.getLogger(noisy).setLevel(logging.WARNING)

    pkg_logger.debug(
        "Logging initialised",
        extra={"log_level": logging.getLevelName(effective_level)},
    )
