"""Structured logging configuration with pass and request context.

This module provides:
- JSON structured logging for deployed environments
- Context variables tying log lines to a request, a pass and a position
- A context manager to scope those fields
"""
from __future__ import annotations

import json
import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Optional

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
pass_id_var: ContextVar[Optional[str]] = ContextVar("pass_id", default=None)
position_id_var: ContextVar[Optional[int]] = ContextVar("position_id", default=None)

_CONTEXT_FIELDS = ("request_id", "pass_id", "position_id")

# LogRecord attributes that are not user-supplied extras
_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime", *_CONTEXT_FIELDS}


class KeeperContextFilter(logging.Filter):
    """Logging filter that adds pass/request context to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()
        record.pass_id = pass_id_var.get()
        record.position_id = position_id_var.get()
        return True


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for name in _CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                log_data[name] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = value

        return json.dumps(log_data, default=str)


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
) -> None:
    """
    Configure logging for the keeper process.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON structured logging (True) or simple format (False)
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if json_format:
        formatter: logging.Formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - "
            "[pass=%(pass_id)s position=%(position_id)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(KeeperContextFilter())
    root_logger.addHandler(console_handler)


def generate_pass_id() -> str:
    return f"pass_{uuid.uuid4().hex[:16]}"


def generate_request_id() -> str:
    return f"req_{uuid.uuid4().hex[:16]}"


class LogContext:
    """Context manager for temporary logging context."""

    def __init__(
        self,
        pass_id: Optional[str] = None,
        position_id: Optional[int] = None,
        request_id: Optional[str] = None,
    ):
        self._values = {
            pass_id_var: pass_id,
            position_id_var: position_id,
            request_id_var: request_id,
        }
        self._tokens: list = []

    def __enter__(self) -> "LogContext":
        for var, value in self._values.items():
            if value is not None:
                self._tokens.append((var, var.set(value)))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()
