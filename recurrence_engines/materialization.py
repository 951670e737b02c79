"""
MaterializationPlanner -- the pure half of period materialization.

Responsibility:
    Decide, for a set of templates and one target period, which concrete
    records must be created: which templates participate, on which day of
    the period each one lands, and which are already represented in the
    period (by natural key or by series key) and must be skipped.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    The effectful half (reading existing records, inserting the plan)
    lives in recurrence_services.materialization_service.

Invariants enforced:
    - At most one planned record per template per period, and at most one
      per (owner, natural key) and per (owner, series key) within a plan.
    - The target day is the template's nominal day clamped to the last
      valid day of the period's month (31 -> Feb 28/29, Apr 30).
    - Templates are read, never mutated.

Failure modes:
    - None.  Malformed templates are reported as ineligible.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from uuid import UUID

from recurrence_kernel.domain.calendar_date import CalendarDate, MaterializationWindow
from recurrence_kernel.domain.dtos import (
    ConcreteRecordInfo,
    PlannedRecord,
    RecurrenceTemplateInfo,
)
from recurrence_kernel.domain.recurrence import IntervalUnit, NaturalKey

from recurrence_engines.tracer import traced_engine


def target_date(
    template: RecurrenceTemplateInfo,
    window: MaterializationWindow,
) -> CalendarDate | None:
    """
    Day of the period on which the template's record is created.

    Returns None when the template has no usable nominal day.
    """
    day = template.nominal_day
    if day is None or not 1 <= day <= 31:
        return None
    return CalendarDate.clamped(window.year, window.month, day)


def is_eligible(
    template: RecurrenceTemplateInfo,
    window: MaterializationWindow,
) -> bool:
    """
    Whether the template takes part in materializing ``window``.

    A template participates when it is active, has an anchor, recurs on a
    day of the month (monthly unit or explicit day_of_month), is already
    running in the target period, has quota left, and, for bounded monthly
    templates, the period is no more than max_occurrences months after
    the anchor period.
    """
    if not template.active or template.anchor_date is None:
        return False
    if (
        template.interval_unit is not IntervalUnit.MONTHLY
        and template.day_of_month is None
    ):
        return False
    if target_date(template, window) is None:
        return False

    months_since_anchor = template.anchor_date.months_until(window.period_start)
    if months_since_anchor < 0:
        return False

    remaining = template.remaining_occurrences
    if remaining is not None and remaining <= 0:
        return False

    if (
        template.max_occurrences is not None
        and template.interval_unit is IntervalUnit.MONTHLY
        and months_since_anchor > template.max_occurrences
    ):
        return False
    return True


@dataclass
class ExistingKeys:
    """
    Natural keys and series keys already present in a period, per owner.

    Mutable so the planner can register its own planned records and skip
    duplicates within one batch; ``copy()`` before mutating shared state.
    """

    natural: dict[UUID, set[NaturalKey]] = field(default_factory=dict)
    series: dict[UUID, set[str]] = field(default_factory=dict)

    @classmethod
    def from_records(cls, records: Iterable[ConcreteRecordInfo]) -> ExistingKeys:
        keys = cls()
        for record in records:
            keys.add(record.owner_id, record.natural_key, record.series_key)
        return keys

    def add(self, owner_id: UUID, key: NaturalKey, series_key: str | None) -> None:
        self.natural.setdefault(owner_id, set()).add(key)
        if series_key:
            self.series.setdefault(owner_id, set()).add(series_key)

    def contains(self, template: RecurrenceTemplateInfo) -> bool:
        if template.natural_key in self.natural.get(template.owner_id, ()):
            return True
        return bool(template.series_key) and template.series_key in self.series.get(
            template.owner_id, ()
        )

    def copy(self) -> ExistingKeys:
        return ExistingKeys(
            natural={owner: set(keys) for owner, keys in self.natural.items()},
            series={owner: set(keys) for owner, keys in self.series.items()},
        )


@dataclass(frozen=True)
class MaterializationPlan:
    """What a materialization run must insert, skip and ignore."""

    period_key: str
    to_create: tuple[PlannedRecord, ...] = ()
    skipped: tuple[NaturalKey, ...] = ()
    ineligible: tuple[UUID, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.to_create


@traced_engine("materialization_planner", "1.0", fingerprint_fields=("templates", "window"))
def plan_materialization(
    templates: Iterable[RecurrenceTemplateInfo],
    window: MaterializationWindow,
    existing: ExistingKeys,
) -> MaterializationPlan:
    """
    Plan the records to insert for one period.

    Args:
        templates: Candidate templates, in processing order.
        window: The target period.
        existing: Keys of records already stored in the period.  Not
            mutated.

    Returns:
        MaterializationPlan with one PlannedRecord per eligible template
        whose keys are absent, in template order.
    """
    seen = existing.copy()
    to_create: list[PlannedRecord] = []
    skipped: list[NaturalKey] = []
    ineligible: list[UUID] = []

    for template in templates:
        if not is_eligible(template, window):
            ineligible.append(template.id)
            continue
        if seen.contains(template):
            skipped.append(template.natural_key)
            continue

        day = target_date(template, window)
        planned = PlannedRecord(
            template_id=template.id,
            owner_id=template.owner_id,
            kind=template.kind,
            record_date=day,
            description=template.description,
            counterparty=template.counterparty,
            category=template.category,
            payment_method=template.payment_method,
            amount=template.amount,
            series_key=template.series_key,
        )
        seen.add(template.owner_id, planned.natural_key, planned.series_key)
        to_create.append(planned)

    return MaterializationPlan(
        period_key=window.period_key,
        to_create=tuple(to_create),
        skipped=tuple(skipped),
        ineligible=tuple(ineligible),
    )
