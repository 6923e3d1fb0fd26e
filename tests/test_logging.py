"""Tests for the structured logging system (hours_kernel/logging_config.py)."""

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from contextvars import copy_context
from datetime import date
from decimal import Decimal
from io import StringIO

import pytest

from hours_kernel.logging_config import (
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
        assert record["logger"] == "hours_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("fifo_consumption_completed", extra={"package_count": 3, "status": "ok"})

        record = _parse_log(stream)
        assert record["package_count"] == 3
        assert record["status"] == "ok"

    def test_dates_serialized_as_iso(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("window", extra={"as_of": date(2024, 6, 15)})

        assert _parse_log(stream)["as_of"] == "2024-06-15"

    def test_decimal_hours_serialized_as_strings(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hours", extra={"remaining_hours": Decimal("4.50")})

        record = _parse_log(stream)
        assert record["remaining_hours"] == "4.50"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        LogContext.set(correlation_id="abc-123", client_id="client-a")
        logger.info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["client_id"] == "client-a"

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

    def test_kernel_exception_code_extracted(self):
        """Kernel exceptions carry a .code attribute and structured fields."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        from hours_kernel.exceptions import InvalidTrancheError

        try:
            raise InvalidTrancheError(5, 4)
        except InvalidTrancheError:
            logger.error("tranche_error", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "INVALID_TRANCHE"
        assert record["exc_type"] == "InvalidTrancheError"
        assert record["exc_tranche_number"] == 5
        assert record["exc_total_tranches"] == 4

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("bare_message")

        record = _parse_log(stream)
        assert "correlation_id" not in record
        assert "computation_id" not in record

    def test_valid_json_every_line(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        # Default level is INFO, so the debug line is dropped
        assert len(logs) == 2
        for record in logs:
            assert {"ts", "level", "logger", "message"} <= set(record)


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:
    """Tests for context propagation."""

    def test_set_and_get(self):
        LogContext.set(correlation_id="x", computation_id="y")
        assert LogContext.get_all() == {"correlation_id": "x", "computation_id": "y"}

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_context_manager(self):
        LogContext.set(client_id="outer")
        with LogContext.bind(client_id="inner"):
            assert LogContext.get_all()["client_id"] == "inner"
        assert LogContext.get_all()["client_id"] == "outer"

    def test_bind_restores_none(self):
        assert "computation_id" not in LogContext.get_all()
        with LogContext.bind(computation_id="temp"):
            assert LogContext.get_all()["computation_id"] == "temp"
        assert "computation_id" not in LogContext.get_all()

    def test_all_fields(self):
        LogContext.set(
            correlation_id="c",
            client_id="cl",
            computation_id="co",
            config_id="default",
        )
        ctx = LogContext.get_all()
        assert len(ctx) == 4
        assert ctx["client_id"] == "cl"
        assert ctx["config_id"] == "default"

    @pytest.mark.parametrize("call", [LogContext.set, LogContext.bind])
    def test_unknown_field_rejected(self, call):
        with pytest.raises(TypeError, match="invoice_no"):
            call(invoice_no="F-1")

    def test_worker_thread_sees_copied_context(self):
        with LogContext.bind(computation_id="run-1"):
            context = copy_context()
        with ThreadPoolExecutor(max_workers=1) as pool:
            copied = pool.submit(context.run, LogContext.get_all).result()

        assert copied == {"computation_id": "run-1"}


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    """Tests for initialization."""

    def test_second_call_keeps_first_handler(self):
        first, _ = _make_handler()
        configure_logging(handler=first)
        second, _ = _make_handler()
        configure_logging(handler=second)

        # Other handlers (e.g. the runner's own capture) may also be attached
        handlers = logging.getLogger("hours_kernel").handlers
        assert first in handlers
        assert second not in handlers

    def test_second_call_keeps_first_level(self):
        configure_logging(handler=_make_handler()[0], level=logging.INFO)
        configure_logging(handler=_make_handler()[0], level=logging.DEBUG)

        assert logging.getLogger("hours_kernel").level == logging.INFO

    def test_reset_allows_reconfiguration(self):
        first, _ = _make_handler()
        configure_logging(handler=first)
        reset_logging()
        second, _ = _make_handler()
        configure_logging(handler=second)

        handlers = logging.getLogger("hours_kernel").handlers
        assert second in handlers
        assert first not in handlers

    def test_get_logger_returns_child(self):
        logger = get_logger("services.ledger")
        assert logger.name == "hours_kernel.services.ledger"

    def test_logger_hierarchy(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        get_logger("engines.fifo").debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["message"] == "hierarchy_test"
        assert record["logger"] == "hours_kernel.engines.fifo"
