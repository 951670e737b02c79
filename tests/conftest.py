"""
Pytest fixtures for the recurrence engine test suite.

Provides:
- Structured log capture
- An in-memory SQLite database created once per suite, with per-test
  isolation through an outer transaction that is rolled back at teardown
- Deterministic clock, test actor and owner ids
- Template and record factories that write through the kernel services
"""

import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from io import StringIO
from typing import Generator
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm import Session

from recurrence_kernel.db.engine import build_engine, create_tables, drop_tables
from recurrence_kernel.domain.calendar_date import CalendarDate
from recurrence_kernel.domain.clock import DeterministicClock
from recurrence_kernel.domain.dtos import RecurrenceTemplateInfo
from recurrence_kernel.domain.recurrence import IntervalUnit, TemplateKind
from recurrence_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from recurrence_kernel.services.record_service import RecordService
from recurrence_kernel.services.template_service import TemplateService

# Test actor ID for all test operations
TEST_ACTOR_ID = uuid4()
SYSTEM_ACTOR_ID = UUID("00000000-0000-0000-0000-000000000001")


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
    Capture recurrence_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, calendar):
            calendar.enter_period(owner_id, window)
            logs = captured_logs()
            assert any(r["message"] == "materialization_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("recurrence_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Session-scoped DB infrastructure (create engine + tables ONCE per suite)
# =============================================================================


@pytest.fixture(scope="session")
def db_engine():
    """Single in-memory SQLite engine for the entire test session."""
    eng = build_engine("sqlite://")
    yield eng
    eng.dispose()


@pytest.fixture(scope="session")
def db_tables(db_engine):
    """Create all tables once per session, drop once at end."""
    create_tables(db_engine)
    yield
    drop_tables(db_engine)


@pytest.fixture(scope="function")
def session(db_tables, db_engine) -> Generator[Session, None, None]:
    """Provide a database session for testing.

    - Opens a dedicated connection with an outer transaction
    - Creates a session that *joins* the outer transaction through a
      SAVEPOINT, so ``session.commit()`` inside a test commits nothing
    - At teardown the outer transaction is rolled back, undoing ALL data
      changes made during the test
    """
    conn = db_engine.connect()
    trans = conn.begin()
    sess = Session(bind=conn, join_transaction_mode="create_savepoint", expire_on_commit=False)
    yield sess
    try:
        sess.close()
    finally:
        try:
            trans.rollback()
        finally:
            conn.close()


# =============================================================================
# Identity / clock fixtures
# =============================================================================


@pytest.fixture
def test_actor_id() -> UUID:
    """Provide a consistent test actor ID."""
    return TEST_ACTOR_ID


@pytest.fixture
def system_actor_id() -> UUID:
    return SYSTEM_ACTOR_ID


@pytest.fixture
def owner_id() -> UUID:
    return uuid4()


@pytest.fixture
def deterministic_clock():
    """Deterministic clock fixed at 2025-03-10 09:00 UTC."""
    return DeterministicClock(datetime(2025, 3, 10, 9, 0, 0, tzinfo=timezone.utc))


# =============================================================================
# Factories
# =============================================================================


def make_template(**overrides) -> RecurrenceTemplateInfo:
    """Build a template DTO without touching the database."""
    values = dict(
        id=uuid4(),
        owner_id=uuid4(),
        kind=TemplateKind.TASK,
        description="Water the plants",
        anchor_date=CalendarDate(2025, 1, 1),
        interval_unit=IntervalUnit.WEEKLY,
        max_occurrences=None,
        completed_occurrences=0,
        active=True,
        series_key=uuid4().hex,
    )
    values.update(overrides)
    return RecurrenceTemplateInfo(**values)


@pytest.fixture
def template_factory():
    """Factory for in-memory template DTOs."""
    return make_template


@pytest.fixture
def template_service(session, deterministic_clock) -> TemplateService:
    return TemplateService(session, clock=deterministic_clock)


@pytest.fixture
def record_service(session) -> RecordService:
    return RecordService(session)


@pytest.fixture
def create_bill(template_service, owner_id, test_actor_id):
    """
    Persist a monthly transaction template (a recurring bill).

    Defaults: "Rent" paid to "Landlord", category "Housing", by "pix",
    -1500.00 on day 31, anchored 2025-01-31, unbounded.
    """

    def _create(**overrides) -> RecurrenceTemplateInfo:
        kwargs = dict(
            owner_id=owner_id,
            kind=TemplateKind.TRANSACTION,
            description="Rent",
            actor_id=test_actor_id,
            anchor_date=CalendarDate(2025, 1, 31),
            interval_unit=IntervalUnit.MONTHLY,
            day_of_month=31,
            counterparty="Landlord",
            category="Housing",
            payment_method="pix",
            amount=Decimal("-1500.00"),
        )
        kwargs.update(overrides)
        return template_service.create_template(**kwargs)

    return _create
