"""Tests for the structured logging system (budget_kernel/logging_config.py)."""

import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from budget_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_log(stream: StringIO) -> dict:
    """Parse the first JSON log line from a stream."""
    line = stream.getvalue().strip().split("\n")[0]
    return json.loads(line)


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


# ---------------------------------------------------------------------------
# StructuredFormatter tests
# ---------------------------------------------------------------------------


class TestStructuredFormatter:
    """Tests for JSON log output format."""

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "budget_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("budget_item_updated", extra={"version": 2, "fields": ["actual_amount"]})

        record = _parse_log(stream)
        assert record["version"] == 2
        assert record["fields"] == ["actual_amount"]

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        LogContext.set(correlation_id="abc-123", item_id="budget-fy-2025-OP001")
        logger.info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["item_id"] == "budget-fy-2025-OP001"

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        try:
            raise ValueError("boom")
        except ValueError:
            logger.error("failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "traceback" in record

    def test_budget_exception_code_extracted(self):
        """Budget kernel exceptions carry .code attribute."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        from budget_kernel.exceptions import PeriodLockedError

        try:
            raise PeriodLockedError("fy-2025", "update budget item")
        except PeriodLockedError:
            logger.error("period_error", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "PERIOD_LOCKED"
        assert record["exc_type"] == "PeriodLockedError"
        assert record["exc_period_id"] == "fy-2025"
        assert record["exc_operation"] == "update budget item"

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("bare_message")

        record = _parse_log(stream)
        assert "correlation_id" not in record
        assert "item_id" not in record

    def test_decimal_uuid_and_datetime_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        uid = uuid4()
        logger.info("with_values", extra={
            "request_id": uid,
            "amount": Decimal("850000.50"),
            "start_date": datetime(2025, 1, 1, tzinfo=timezone.utc),
        })

        record = _parse_log(stream)
        assert record["request_id"] == str(uid)
        assert record["amount"] == "850000.50"
        assert record["start_date"] == "2025-01-01T00:00:00+00:00"

    def test_unknown_objects_fall_back_to_str(self):
        class Branch:
            def __str__(self):
                return "branch-kampala"

        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("with_object", extra={"branch": Branch()})

        record = _parse_log(stream)
        assert record["branch"] == "branch-kampala"

    def test_valid_json_every_line(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        # default level is INFO, so the debug line is dropped
        assert len(logs) == 2
        for record in logs:
            assert "ts" in record
            assert "level" in record
            assert "logger" in record
            assert "message" in record

    def test_configure_is_idempotent(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        configure_logging(handler=handler)

        get_logger("test").info("once")

        assert len(_parse_all_logs(stream)) == 1


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:
    """Tests for context propagation."""

    def test_set_and_get(self):
        LogContext.set(correlation_id="x", period_id="fy-2025")
        ctx = LogContext.get_all()
        assert ctx == {"correlation_id": "x", "period_id": "fy-2025"}

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_context_manager(self):
        LogContext.set(actor_id="outer")
        with LogContext.bind(actor_id="inner"):
            assert LogContext.get_all()["actor_id"] == "inner"
        assert LogContext.get_all()["actor_id"] == "outer"

    def test_bind_restores_none(self):
        """bind() restores to None if there was no previous value."""
        assert "item_id" not in LogContext.get_all()
        with LogContext.bind(item_id="temp"):
            assert LogContext.get_all()["item_id"] == "temp"
        assert "item_id" not in LogContext.get_all()

    def test_bind_ignores_unknown_fields(self):
        with LogContext.bind(item_id="i", unknown="u"):
            assert LogContext.get_all() == {"item_id": "i"}

    def test_all_fields(self):
        LogContext.set(
            correlation_id="c",
            actor_id="a",
            period_id="p",
            item_id="i",
        )
        assert LogContext.get_all() == {
            "correlation_id": "c",
            "actor_id": "a",
            "period_id": "p",
            "item_id": "i",
        }
