"""
Pytest fixtures for the flight-hour ledger test suite.

Provides:
- Structured logging configuration and capture
- The default configuration and engines built from it
- A deterministic clock
- In-memory SQLite sessions for selector and source tests

DTO factories live in tests/factories.py.
"""

import json
import logging
from datetime import datetime, timezone
from io import StringIO
from typing import Generator

import pytest
from sqlalchemy.orm import Session

from hours_config import get_active_config
from hours_config.bridges import build_ledger_engines
from hours_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from hours_kernel.domain.clock import DeterministicClock
from hours_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)

# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture hours_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            ...
            logs = captured_logs()
            assert any(r["message"] == "fifo_consumption_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("hours_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Configuration and engines
# =============================================================================


@pytest.fixture(scope="session")
def ledger_config():
    return get_active_config()


@pytest.fixture
def engines(ledger_config):
    return build_ledger_engines(ledger_config)


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock(datetime(2024, 6, 15, 12, 0, 0, tzinfo=timezone.utc))


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def session() -> Generator[Session, None, None]:
    """Fresh in-memory SQLite database per test."""
    init_engine_from_url("sqlite://")
    create_tables()
    db = get_session()
    try:
        yield db
    finally:
        db.close()
        drop_tables()
        reset_engine()
