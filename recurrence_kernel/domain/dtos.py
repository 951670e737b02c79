"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable data structures that flow between the store,
    the pure engines and the calendar collaborator: template and record
    snapshots, virtual instances, tagged entry references, materialization
    results and calendar day buckets.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Free of ORM dependencies.  Selectors convert ORM rows into these
    DTOs; engines accept and return only these DTOs.

Invariants enforced:
    - A VirtualInstance always reports ``is_projected=True`` and a
      ConcreteRecordInfo always ``is_projected=False``; callers branch on
      ``ref`` (a tagged variant), never on id string parsing.
    - Templates are frozen: no engine or service can mutate a snapshot
      that a caller still holds.

Failure modes:
    - ``template_from_mapping`` never raises for malformed field values;
      they become None / defaults so projection degrades to an empty
      result.
    - ``parse_instance_ref`` raises InvalidInstanceRefError for ids that
      are neither UUIDs nor legacy ``<uuid>_instance_<n>`` strings.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any
from uuid import UUID

from recurrence_kernel.domain.calendar_date import CalendarDate
from recurrence_kernel.domain.recurrence import (
    IntervalUnit,
    NaturalKey,
    TemplateKind,
    natural_key,
)
from recurrence_kernel.exceptions import InvalidInstanceRefError

# Separator used by the legacy synthetic instance id encoding.
LEGACY_INSTANCE_SEPARATOR = "_instance_"


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RecurrenceTemplateInfo:
    """
    Snapshot of a recurring definition.

    Contract:
        ``anchor_date`` is the seed occurrence and is never projected.
        ``max_occurrences=None`` means unbounded.

    Guarantees:
        - Immutable (frozen dataclass).
        - ``remaining_occurrences`` is None for unbounded templates.
    """

    id: UUID
    owner_id: UUID
    kind: TemplateKind
    description: str
    anchor_date: CalendarDate | None
    interval_unit: IntervalUnit = IntervalUnit.WEEKLY
    max_occurrences: int | None = None
    completed_occurrences: int = 0
    active: bool = True
    day_of_month: int | None = None
    counterparty: str | None = None
    category: str | None = None
    payment_method: str | None = None
    amount: Decimal | None = None
    series_key: str | None = None

    @property
    def is_bounded(self) -> bool:
        return self.max_occurrences is not None

    @property
    def remaining_occurrences(self) -> int | None:
        if self.max_occurrences is None:
            return None
        return self.max_occurrences - self.completed_occurrences

    @property
    def is_exhausted(self) -> bool:
        remaining = self.remaining_occurrences
        return remaining is not None and remaining <= 0

    @property
    def natural_key(self) -> NaturalKey:
        return natural_key(self)

    @property
    def nominal_day(self) -> int | None:
        """Day of month the template recurs on; explicit day wins over anchor."""
        if self.day_of_month is not None:
            return self.day_of_month
        if self.anchor_date is not None:
            return self.anchor_date.day
        return None

    def occurrence_date(self, index: int) -> CalendarDate | None:
        """
        Due date of occurrence ``index`` counted from the anchor (index 1 is
        the first projected one).  Monthly series land on ``nominal_day``.

        None when there is no anchor or the date falls outside the
        supported calendar range.
        """
        if self.anchor_date is None:
            return None
        try:
            return self.interval_unit.occurrence(self.anchor_date, index, self.nominal_day)
        except (OverflowError, ValueError):
            return None


def _int_or_none(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


_TRUE_STRINGS = frozenset({"true", "t", "yes", "y", "1", "on"})
_FALSE_STRINGS = frozenset({"false", "f", "no", "n", "0", "off", ""})


def _active_flag(value: Any) -> bool:
    """Missing means active; an unreadable flag means inactive."""
    if value is None:
        return True
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
    return False


def _decimal_or_none(value: Any) -> Decimal | None:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


def template_from_mapping(data: Mapping[str, Any]) -> RecurrenceTemplateInfo:
    """
    Build a template snapshot from a raw store row.

    Malformed values (non-ISO anchor, non-numeric day of month, unknown
    interval) are mapped to None or the default, and an unreadable
    ``active`` flag to False, so that the template
    degrades to a silent no-op in projection and materialization.

    Raises:
        KeyError: if ``id`` or ``owner_id`` is missing.
        ValueError: if ``id`` or ``owner_id`` is not a UUID.
    """
    anchor = CalendarDate.coerce(
        data.get("anchor_date", data.get("due_date", data.get("date")))
    )
    kind_value = data.get("kind", TemplateKind.TASK.value)
    try:
        kind = TemplateKind(kind_value)
    except ValueError:
        kind = TemplateKind.TASK

    completed = _int_or_none(data.get("completed_occurrences")) or 0

    return RecurrenceTemplateInfo(
        id=UUID(str(data["id"])),
        owner_id=UUID(str(data["owner_id"])),
        kind=kind,
        description=str(data.get("description") or data.get("title") or ""),
        anchor_date=anchor,
        interval_unit=IntervalUnit.coerce(
            data.get("interval_unit"), IntervalUnit.WEEKLY
        ),
        max_occurrences=_int_or_none(data.get("max_occurrences")),
        completed_occurrences=completed,
        active=_active_flag(data.get("active")),
        day_of_month=_int_or_none(data.get("day_of_month")),
        counterparty=data.get("counterparty"),
        category=data.get("category"),
        payment_method=data.get("payment_method"),
        amount=_decimal_or_none(data.get("amount")),
        series_key=data.get("series_key"),
    )


# ---------------------------------------------------------------------------
# Entry references (tagged variant)
# ---------------------------------------------------------------------------


class RefKind(str, Enum):
    VIRTUAL = "virtual"
    CONCRETE = "concrete"


@dataclass(frozen=True)
class VirtualRef:
    """Reference to a projected occurrence; resolves back to its template."""

    template_id: UUID
    sequence_index: int
    kind: RefKind = field(default=RefKind.VIRTUAL, init=False)

    @property
    def legacy_id(self) -> str:
        return f"{self.template_id}{LEGACY_INSTANCE_SEPARATOR}{self.sequence_index}"


@dataclass(frozen=True)
class ConcreteRef:
    """Reference to a persisted record."""

    record_id: UUID
    kind: RefKind = field(default=RefKind.CONCRETE, init=False)


InstanceRef = VirtualRef | ConcreteRef

_LEGACY_ID_RE = re.compile(
    rf"^(?P<template>[0-9a-fA-F-]{{32,36}}){LEGACY_INSTANCE_SEPARATOR}(?P<index>\d+)$"
)


def parse_instance_ref(raw_id: str | UUID | InstanceRef) -> InstanceRef:
    """
    Resolve an entry identifier into a tagged reference.

    Accepts an existing reference, a record UUID, or the legacy synthetic
    ``<template uuid>_instance_<n>`` string, whose suffix is stripped to
    recover the source template id.

    Raises:
        InvalidInstanceRefError: if the id matches neither form.
    """
    if isinstance(raw_id, (VirtualRef, ConcreteRef)):
        return raw_id
    if isinstance(raw_id, UUID):
        return ConcreteRef(raw_id)

    text = str(raw_id).strip()
    match = _LEGACY_ID_RE.match(text)
    if match:
        try:
            return VirtualRef(UUID(match.group("template")), int(match.group("index")))
        except ValueError as exc:
            raise InvalidInstanceRefError(text) from exc
    try:
        return ConcreteRef(UUID(text))
    except ValueError as exc:
        raise InvalidInstanceRefError(text) from exc


# ---------------------------------------------------------------------------
# Calendar entries
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VirtualInstance:
    """
    A projected, never-persisted occurrence of a template.

    Contract:
        Display fields are copied from the template.  Interactions resolve
        through ``ref`` back to the template, never to a store row.
    """

    source_template_id: UUID
    owner_id: UUID
    sequence_index: int
    due_date: CalendarDate
    kind: TemplateKind
    description: str
    counterparty: str | None = None
    category: str | None = None
    payment_method: str | None = None
    amount: Decimal | None = None
    series_key: str | None = None

    @property
    def is_projected(self) -> bool:
        return True

    @property
    def ref(self) -> VirtualRef:
        return VirtualRef(self.source_template_id, self.sequence_index)

    @property
    def legacy_id(self) -> str:
        return self.ref.legacy_id

    @property
    def entry_date(self) -> CalendarDate:
        return self.due_date

    @property
    def natural_key(self) -> NaturalKey:
        return natural_key(self)


@dataclass(frozen=True)
class ConcreteRecordInfo:
    """Snapshot of a persisted record."""

    id: UUID
    owner_id: UUID
    kind: TemplateKind
    record_date: CalendarDate
    period_key: str
    description: str
    counterparty: str | None = None
    category: str | None = None
    payment_method: str | None = None
    amount: Decimal | None = None
    settled: bool = False
    recurring: bool = False
    template_id: UUID | None = None
    series_key: str | None = None

    @property
    def is_projected(self) -> bool:
        return False

    @property
    def ref(self) -> ConcreteRef:
        return ConcreteRef(self.id)

    @property
    def entry_date(self) -> CalendarDate:
        return self.record_date

    @property
    def natural_key(self) -> NaturalKey:
        return natural_key(self)


CalendarEntry = VirtualInstance | ConcreteRecordInfo


@dataclass(frozen=True)
class DayBucket:
    """All entries of one calendar day; concrete entries first."""

    day: CalendarDate
    concrete: tuple[ConcreteRecordInfo, ...] = ()
    virtual: tuple[VirtualInstance, ...] = ()

    @property
    def entries(self) -> tuple[CalendarEntry, ...]:
        return self.concrete + self.virtual

    @property
    def is_empty(self) -> bool:
        return not self.concrete and not self.virtual


# ---------------------------------------------------------------------------
# Materialization
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PlannedRecord:
    """A record the materialization planner wants inserted."""

    template_id: UUID
    owner_id: UUID
    kind: TemplateKind
    record_date: CalendarDate
    description: str
    counterparty: str | None
    category: str | None
    payment_method: str | None
    amount: Decimal | None
    series_key: str | None

    @property
    def period_key(self) -> str:
        return self.record_date.period_key

    @property
    def natural_key(self) -> NaturalKey:
        return natural_key(self)


@dataclass(frozen=True)
class MaterializationResult:
    """
    Outcome of one materialization run.

    ``skipped`` lists the natural keys of templates that already had a
    record in the period; ``ineligible`` lists template ids that did not
    participate (inactive, exhausted, not yet due, malformed).
    """

    period_key: str
    created: tuple[ConcreteRecordInfo, ...] = ()
    skipped: tuple[NaturalKey, ...] = ()
    ineligible: tuple[UUID, ...] = ()


# ---------------------------------------------------------------------------
# Drag/drop resolution
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReanchorTemplate:
    """Shift a template series so that one projected occurrence moves."""

    template_id: UUID
    delta_days: int


@dataclass(frozen=True)
class RescheduleRecord:
    """Move a persisted record to a new day."""

    record_id: UUID
    new_date: CalendarDate


DropAction = ReanchorTemplate | RescheduleRecord
