"""
CalendarAggregator -- merges stored records with projected occurrences.

Responsibility:
    Build the per-day view of a query window: concrete records on their
    record date, plus virtual instances of every active template for the
    days whose period has not been materialized.  Also resolves a
    calendar drag/drop into the write it implies, and totals a view for
    the dashboard summary.

Architecture position:
    Engines -- pure calculation layer, zero I/O apart from logging.

Invariants enforced:
    - One bucket per day of the window, in date order.
    - A concrete record and a virtual instance of the same template on the
      same day never both appear: the concrete record wins.  "Same
      template" means the record's template_id is the instance's source,
      or their series keys match, or they belong to the same owner and
      share a natural key.
    - Dropping a virtual instance never targets a store row; it becomes a
      ReanchorTemplate on the source template.

Failure modes:
    - A template whose projection raises is logged (``projection_failed``)
      and left out of the view; for_window itself does not raise.
    - resolve_drop raises InvalidInstanceRefError for an unparseable id
      and ValueError when a virtual drop has no known current date.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from recurrence_kernel.domain.calendar_date import CalendarDate, iter_days
from recurrence_kernel.domain.dtos import (
    ConcreteRecordInfo,
    ConcreteRef,
    DayBucket,
    DropAction,
    InstanceRef,
    ReanchorTemplate,
    RecurrenceTemplateInfo,
    RescheduleRecord,
    VirtualInstance,
    parse_instance_ref,
)
from recurrence_kernel.domain.recurrence import TemplateKind
from recurrence_kernel.logging_config import get_logger

from recurrence_engines.projector import DEFAULT_HORIZON_MONTHS, as_template, project
from recurrence_engines.tracer import traced_engine

logger = get_logger("engines.aggregator")


def _shadowed_by(instance: VirtualInstance, record: ConcreteRecordInfo) -> bool:
    if record.template_id is not None and record.template_id == instance.source_template_id:
        return True
    if record.series_key and record.series_key == instance.series_key:
        return True
    return (
        record.owner_id == instance.owner_id
        and record.natural_key == instance.natural_key
    )


def _project_safely(
    template: RecurrenceTemplateInfo,
    window_start: CalendarDate,
    window_end: CalendarDate,
    horizon_months: int,
) -> tuple[VirtualInstance, ...]:
    try:
        return project(
            template,
            window_start,
            window_end,
            horizon_months=horizon_months,
        )
    except Exception:
        logger.warning(
            "projection_failed",
            extra={"template_id": str(template.id)},
            exc_info=True,
        )
        return ()


@traced_engine(
    "calendar_aggregator",
    "1.0",
    fingerprint_fields=("window_start", "window_end", "materialized_period"),
)
def for_window(
    window_start: CalendarDate,
    window_end: CalendarDate,
    concrete_records: Iterable[ConcreteRecordInfo],
    templates: Iterable[RecurrenceTemplateInfo | Mapping[str, Any]],
    *,
    materialized_period: str | None = None,
    horizon_months: int = DEFAULT_HORIZON_MONTHS,
) -> list[DayBucket]:
    """
    Day buckets for [window_start, window_end].

    Args:
        window_start: First day (inclusive).
        window_end: Last day (inclusive).
        concrete_records: Stored records; those outside the window are
            ignored.  Input order is kept within a day.
        templates: Templates to project; inactive and exhausted ones
            contribute nothing.
        materialized_period: ``YYYY-MM`` of the period whose records are
            already concrete; no virtual instances are added for its days.
        horizon_months: Passed to the projector for unbounded templates.

    Returns:
        One DayBucket per day, empty buckets included.
    """
    if window_start > window_end:
        return []

    concrete_by_day: dict[CalendarDate, list[ConcreteRecordInfo]] = defaultdict(list)
    for record in concrete_records:
        if window_start <= record.record_date <= window_end:
            concrete_by_day[record.record_date].append(record)

    virtual_by_day: dict[CalendarDate, list[VirtualInstance]] = defaultdict(list)
    for raw in templates:
        template = as_template(raw)
        if template is None or not template.active or template.is_exhausted:
            continue
        for instance in _project_safely(template, window_start, window_end, horizon_months):
            day = instance.due_date
            if materialized_period is not None and day.period_key == materialized_period:
                continue
            if any(_shadowed_by(instance, r) for r in concrete_by_day.get(day, ())):
                continue
            virtual_by_day[day].append(instance)

    return [
        DayBucket(
            day=day,
            concrete=tuple(concrete_by_day.get(day, ())),
            virtual=tuple(virtual_by_day.get(day, ())),
        )
        for day in iter_days(window_start, window_end)
    ]


def resolve_drop(
    ref: InstanceRef | str,
    new_date: CalendarDate,
    current_due_date: CalendarDate | None = None,
    template: RecurrenceTemplateInfo | None = None,
) -> DropAction:
    """
    Turn a calendar drop into the write it implies.

    A concrete entry is rescheduled.  A virtual entry shifts its whole
    series by the number of days it was dragged; the current due date is
    taken from ``current_due_date`` or, failing that, recomputed from
    ``template`` and the reference's sequence index.

    Raises:
        InvalidInstanceRefError: ``ref`` is an unparseable id.
        ValueError: Virtual drop without a way to know its current date.
    """
    parsed = parse_instance_ref(ref)
    if isinstance(parsed, ConcreteRef):
        return RescheduleRecord(parsed.record_id, new_date)

    current = current_due_date
    if current is None and template is not None:
        current = template.occurrence_date(parsed.sequence_index + 1)
    if current is None:
        raise ValueError(
            f"Cannot move projected entry {parsed.legacy_id}: current due date unknown"
        )
    return ReanchorTemplate(parsed.template_id, current.days_until(new_date))


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WindowSummary:
    """
    Dashboard totals of a calendar view.

    Amounts follow the stored sign: positive amounts are income, negative
    ones expenses (reported as a positive number).  Only transactions
    count towards money totals; tasks only count towards ``pending``.
    """

    income: Decimal = Decimal("0")
    expenses: Decimal = Decimal("0")
    projected_income: Decimal = Decimal("0")
    projected_expenses: Decimal = Decimal("0")
    pending: int = 0
    settled: int = 0

    @property
    def balance(self) -> Decimal:
        return self.income - self.expenses

    @property
    def projected_balance(self) -> Decimal:
        return self.balance + self.projected_income - self.projected_expenses


def summarize(buckets: Sequence[DayBucket]) -> WindowSummary:
    """Total the concrete and projected entries of a view."""
    income = expenses = Decimal("0")
    projected_income = projected_expenses = Decimal("0")
    pending = settled = 0

    for bucket in buckets:
        for record in bucket.concrete:
            if record.settled:
                settled += 1
            else:
                pending += 1
            if record.kind is not TemplateKind.TRANSACTION or record.amount is None:
                continue
            if record.amount >= 0:
                income += record.amount
            else:
                expenses += -record.amount
        for instance in bucket.virtual:
            pending += 1
            if instance.kind is not TemplateKind.TRANSACTION or instance.amount is None:
                continue
            if instance.amount >= 0:
                projected_income += instance.amount
            else:
                projected_expenses += -instance.amount

    return WindowSummary(
        income=income,
        expenses=expenses,
        projected_income=projected_income,
        projected_expenses=projected_expenses,
        pending=pending,
        settled=settled,
    )
