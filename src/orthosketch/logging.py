"""Structured logging for OrthoSketch.

Events are key/value records rendered by structlog. A correlation id ties
together the diagnostics of one editor action (a drag, a dimension edit, an
extrusion). Output goes to stderr because the stdio transport owns stdout.
"""

import logging
import sys
import uuid
from contextvars import ContextVar, Token
from typing import Any, Dict, Mapping, Optional

import structlog

from .config import get_config


correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

# Coordinates come out of trigonometry; six decimals is far below any tolerance.
FLOAT_DIGITS = 6


def _short_id(prefix: Optional[str] = None) -> str:
    token = uuid.uuid4().hex[:8]
    return f"{prefix}-{token}" if prefix else token


def get_correlation_id() -> str:
    """Return the current correlation id, creating one if needed."""
    cid = correlation_id_var.get()
    if cid is None:
        cid = _short_id()
        correlation_id_var.set(cid)
    return cid


def set_correlation_id(correlation_id: str) -> None:
    correlation_id_var.set(correlation_id)


def new_correlation_id(prefix: Optional[str] = None) -> str:
    """Start a new action, e.g. ``new_correlation_id("drag")`` -> ``drag-1f3a9c0e``."""
    cid = _short_id(prefix)
    correlation_id_var.set(cid)
    return cid


def clear_correlation_id() -> None:
    correlation_id_var.set(None)


def add_correlation_id(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    event_dict["correlation_id"] = get_correlation_id()
    return event_dict


def round_floats(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Trim float noise from top-level fields such as ``x=23.999999999``."""
    for key, value in event_dict.items():
        if isinstance(value, float):
            event_dict[key] = round(value, FLOAT_DIGITS)
    return event_dict


def setup_logging() -> None:
    """Configure structlog and the stdlib root logger from SketchConfig."""
    config = get_config()
    json_output = config.log_format == "json"

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        add_correlation_id,
        round_floats,
        structlog.processors.StackInfoRenderer(),
    ]
    if json_output:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        force=True,
    )


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


class LogContext:
    """Scope a correlation id and extra fields to a block.

    Example:
        with LogContext(dimension_id="d1"):
            engine.apply(...)
    """

    def __init__(self, correlation_id: Optional[str] = None, **fields: Any):
        self.correlation_id = correlation_id
        self.fields = fields
        self._id_token: Optional[Token] = None
        self._field_tokens: Mapping[str, Token] = {}

    def __enter__(self) -> "LogContext":
        cid = self.correlation_id or correlation_id_var.get() or _short_id()
        self._id_token = correlation_id_var.set(cid)
        self._field_tokens = structlog.contextvars.bind_contextvars(**self.fields)
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        structlog.contextvars.reset_contextvars(**self._field_tokens)
        if self._id_token is not None:
            correlation_id_var.reset(self._id_token)
