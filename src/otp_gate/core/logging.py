"""Structured JSON logging for the service.

Modules log through ``logging.getLogger(__name__)`` as usual; records are
rendered by structlog's ``ProcessorFormatter`` as one JSON object per line.
Structured fields are passed with ``extra={"context": {...}}``.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.typing import EventDict, WrappedLogger

from otp_gate.core.settings import settings

HANDLER_NAME = "otp_gate.json"
_RESERVED_KEYS = frozenset({"event", "timestamp", "level", "logger", "message"})


def merge_record_context(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Lift ``extra={"context": {...}}`` from the stdlib record into the event."""
    record = event_dict.get("_record")
    context = getattr(record, "context", None)
    if isinstance(context, dict):
        for key, value in context.items():
            if key not in _RESERVED_KEYS:
                event_dict.setdefault(key, value)
    return event_dict


def build_formatter() -> structlog.stdlib.ProcessorFormatter:
    """Return the formatter that renders stdlib records as JSON lines."""
    pre_chain: list[Any] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        merge_record_context,
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
        structlog.processors.format_exc_info,
    ]
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.EventRenamer("message"),
            structlog.processors.JSONRenderer(default=str),
        ],
    )


def configure_logging(level: str | None = None) -> None:
    """Install the JSON handler on the root logger, replacing a previous one.

    Args:
        level: Log level name; defaults to ``LOG_LEVEL``
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(build_formatter())

    root = logging.getLogger()
    for existing in list(root.handlers):
        if existing.get_name() == HANDLER_NAME:
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel((level or settings.log_level).upper())
