"""Tests for the JSON log output."""

import json
import logging
import sys
from datetime import UTC, datetime

from otp_gate.core.logging import HANDLER_NAME, build_formatter, configure_logging


def _record(message="Challenge started", exc_info=None, **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        "otp_gate.test", logging.INFO, __file__, 1, message, None, exc_info
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def _render(record: logging.LogRecord) -> dict:
    return json.loads(build_formatter().format(record))


class TestJsonOutput:
    """One JSON object per record with structured context."""

    def test_standard_fields(self):
        entry = _render(_record())
        assert entry["level"] == "info"
        assert entry["logger"] == "otp_gate.test"
        assert entry["message"] == "Challenge started"
        assert entry["timestamp"].endswith("Z")
        assert "event" not in entry

    def test_context_is_merged(self):
        entry = _render(_record(context={"subject_id": "cart-1", "request_id": "abc"}))
        assert entry["subject_id"] == "cart-1"
        assert entry["request_id"] == "abc"

    def test_context_cannot_override_standard_fields(self):
        entry = _render(_record(context={"message": "spoofed", "level": "critical"}))
        assert entry["message"] == "Challenge started"
        assert entry["level"] == "info"

    def test_non_serializable_values_are_stringified(self):
        entry = _render(_record(context={"locked_until": datetime(2026, 1, 1, tzinfo=UTC)}))
        assert entry["locked_until"].startswith("2026-01-01")

    def test_exception_is_rendered(self):
        try:
            raise ValueError("boom")
        except ValueError:
            entry = _render(_record(exc_info=sys.exc_info()))
        assert "ValueError: boom" in entry["exception"]


class TestConfigureLogging:
    """Root logger wiring."""

    def test_configure_logging_is_idempotent(self):
        root = logging.getLogger()
        configure_logging("debug")
        configure_logging("info")
        handlers = [h for h in root.handlers if h.get_name() == HANDLER_NAME]
        assert len(handlers) == 1
        assert root.level == logging.INFO
