"""Tests for recurrence_kernel.logging_config: JSON lines, context, setup."""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from recurrence_kernel.exceptions import DuplicateMaterializationError
from recurrence_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)

log = get_logger("test")


@pytest.fixture(autouse=True)
def _fresh_logging():
    """Each test configures from scratch; the suite's DEBUG setup comes back after."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


@pytest.fixture
def emitted():
    """
    Configure kernel logging into a buffer.

    Returns a callable taking an optional level; calling the *result*
    yields every JSON record written so far.
    """
    buffer = StringIO()

    def _configure(level=logging.INFO):
        configure_logging(level=level, stream=buffer)
        return lambda: [json.loads(line) for line in buffer.getvalue().splitlines() if line]

    return _configure


class TestStructuredFormatter:

    def test_core_fields(self, emitted):
        records = emitted()
        log.info("hello")

        (record,) = records()
        assert record["message"] == "hello"
        assert record["level"] == "INFO"
        assert record["logger"] == "recurrence_kernel.test"
        assert record["ts"].endswith("+00:00")

    def test_extra_values_rendered_as_strings(self, emitted):
        records = emitted()
        template_id = uuid4()
        log.info(
            "materialized",
            extra={"template_id": template_id, "day": date(2025, 3, 31), "amount": Decimal("-1.50")},
        )

        (record,) = records()
        assert record["template_id"] == str(template_id)
        assert record["day"] == "2025-03-31"
        assert record["amount"] == "-1.50"

    def test_bound_fields_merged(self, emitted):
        records = emitted()
        LogContext.set(correlation_id="req-7", period_key="2025-03")
        log.info("entered")

        (record,) = records()
        assert record["correlation_id"] == "req-7"
        assert record["period_key"] == "2025-03"

    def test_kernel_error_attributes_extracted(self, emitted):
        records = emitted()
        try:
            raise DuplicateMaterializationError("2025-03", "UNIQUE constraint failed")
        except DuplicateMaterializationError:
            log.error("period_error", exc_info=True)

        (record,) = records()
        assert record["exc_type"] == "DuplicateMaterializationError"
        assert record["exc_code"] == "DUPLICATE_MATERIALIZATION"
        assert record["exc_period_key"] == "2025-03"
        assert "Traceback" in record["traceback"]

    def test_formatter_usable_on_its_own(self):
        buffer = StringIO()
        handler = logging.StreamHandler(buffer)
        handler.setFormatter(StructuredFormatter())
        plain = logging.getLogger("standalone.formatter.check")
        plain.addHandler(handler)
        try:
            plain.warning("standalone")
        finally:
            plain.removeHandler(handler)

        assert json.loads(buffer.getvalue())["message"] == "standalone"


class TestLogContext:

    def test_bind_restores_on_exit(self, emitted):
        records = emitted()
        LogContext.set(owner_id="outer")
        with LogContext.bind(owner_id="inner", period_key="2025-03"):
            log.info("inside")
        log.info("outside")

        inside, outside = records()
        assert (inside["owner_id"], inside["period_key"]) == ("inner", "2025-03")
        assert outside["owner_id"] == "outer"
        assert "period_key" not in outside

    def test_none_and_unknown_fields_skipped(self):
        with LogContext.bind(owner_id=None, actor_id=uuid4(), colour="blue"):
            fields = LogContext.get_all()
        assert set(fields) == {"actor_id"}

    def test_clear_empties_everything(self):
        LogContext.set(correlation_id="x", template_id="t")
        LogContext.clear()
        assert LogContext.get_all() == {}


class TestConfigureLogging:

    def test_second_call_is_noop(self, emitted):
        emitted()
        configure_logging(level=logging.DEBUG)

        kernel = logging.getLogger("recurrence_kernel")
        assert len(kernel.handlers) == 1
        assert kernel.level == logging.INFO

    def test_level_filters_records(self, emitted):
        records = emitted(logging.WARNING)
        log.info("quiet")
        log.warning("loud")

        assert [r["message"] for r in records()] == ["loud"]

    def test_reset_restores_propagation(self, emitted):
        emitted()
        reset_logging()

        kernel = logging.getLogger("recurrence_kernel")
        assert kernel.handlers == []
        assert kernel.propagate is True
