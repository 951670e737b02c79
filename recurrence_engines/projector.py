"""
InstanceProjector -- expands a recurrence template into virtual instances.

Responsibility:
    Given one template and a query window, return the occurrences of the
    template that fall inside the window, in ascending date order, without
    touching the store.  These virtual instances are what the calendar
    shows for periods that have not been materialized.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import recurrence_kernel.domain and sibling engine modules.

Invariants enforced:
    - The anchor date is the seed record and is never projected; the first
      candidate is anchor + 1 interval.
    - Occurrence k is computed from the anchor, never by stepping from the
      previous occurrence.
    - Expansion terminates: bounded templates stop after their remaining
      quota or at anchor + max_occurrences intervals, unbounded ones at
      window_end + horizon_months months; either way nothing past
      window_end is computed, and a date beyond the supported calendar
      range ends the expansion.
    - Monthly occurrences fall on the template's nominal day (explicit
      day_of_month, else the anchor's day), the same day materialization
      uses.
    - sequence_index of an occurrence is its position after the anchor
      (0 for anchor + 1 interval), independent of the window.

Failure modes:
    - None.  Inactive, exhausted or malformed templates (no anchor, an id
      that is not a UUID in a raw mapping) and inverted windows yield an
      empty tuple.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any

from recurrence_kernel.domain.calendar_date import CalendarDate
from recurrence_kernel.domain.dtos import (
    RecurrenceTemplateInfo,
    VirtualInstance,
    template_from_mapping,
)
from recurrence_kernel.domain.recurrence import IntervalUnit

from recurrence_engines.tracer import traced_engine

DEFAULT_HORIZON_MONTHS = 6


def as_template(template: RecurrenceTemplateInfo | Mapping[str, Any]) -> RecurrenceTemplateInfo | None:
    """Accept a DTO or a raw store row; None when the row cannot be read."""
    if isinstance(template, RecurrenceTemplateInfo):
        return template
    try:
        return template_from_mapping(template)
    except (KeyError, TypeError, ValueError):
        return None


def _first_index(
    anchor: CalendarDate,
    unit: IntervalUnit,
    window_start: CalendarDate,
) -> int:
    """Smallest index >= 1 worth examining; earlier occurrences lie before the window."""
    if unit is IntervalUnit.MONTHLY:
        return max(1, anchor.months_until(window_start) - 1)
    return max(1, math.floor(anchor.days_until(window_start) / unit.days))


def _horizon_end(window_end: CalendarDate, horizon_months: int) -> CalendarDate:
    """window_end + horizon_months, or window_end when that is past the calendar's end."""
    try:
        return window_end.plus_months(max(horizon_months, 0))
    except (OverflowError, ValueError):
        return window_end


@traced_engine("projector", "1.0", fingerprint_fields=("template", "window_start", "window_end"))
def project(
    template: RecurrenceTemplateInfo | Mapping[str, Any],
    window_start: CalendarDate,
    window_end: CalendarDate,
    *,
    horizon_months: int = DEFAULT_HORIZON_MONTHS,
) -> tuple[VirtualInstance, ...]:
    """
    Project a template into the virtual instances inside a window.

    Args:
        template: Template snapshot (or raw row, coerced leniently).
        window_start: First day of the query window (inclusive).
        window_end: Last day of the query window (inclusive).
        horizon_months: How far past window_end an unbounded template may
            be expanded.

    Returns:
        Instances in ascending due_date order.
    """
    info = as_template(template)
    if info is None or not info.active or info.anchor_date is None:
        return ()
    if window_start > window_end:
        return ()

    remaining = info.remaining_occurrences
    if remaining is not None and remaining <= 0:
        return ()

    anchor = info.anchor_date
    # Occurrence max_occurrences is the last one a bounded series has
    last_index = info.max_occurrences
    stop = min(_horizon_end(window_end, horizon_months), window_end)

    instances: list[VirtualInstance] = []
    index = _first_index(anchor, info.interval_unit, window_start)
    while last_index is None or index <= last_index:
        count = index - 1
        if remaining is not None and count >= remaining:
            break
        cursor = info.occurrence_date(index)
        if cursor is None or cursor > stop:
            break
        if window_start <= cursor and cursor != anchor:
            instances.append(
                VirtualInstance(
                    source_template_id=info.id,
                    owner_id=info.owner_id,
                    sequence_index=count,
                    due_date=cursor,
                    kind=info.kind,
                    description=info.description,
                    counterparty=info.counterparty,
                    category=info.category,
                    payment_method=info.payment_method,
                    amount=info.amount,
                    series_key=info.series_key,
                )
            )
        index += 1

    return tuple(instances)
