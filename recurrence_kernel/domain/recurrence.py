"""
Recurrence -- interval units, template kinds and natural-key identity.

Responsibility:
    Defines how a template steps from one occurrence to the next
    (``IntervalUnit.occurrence``) and how "the same recurring obligation"
    is recognised across periods independent of primary keys
    (``NaturalKey`` / ``natural_key``).

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Occurrence k is always computed from the anchor (anchor + k units),
      never by repeated stepping, so monthly series do not drift after a
      short month (Jan 31 -> Feb 28 -> Mar 31).
    - Natural keys compare display fields after whitespace stripping only;
      empty strings and None are the same value.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from recurrence_kernel.domain.calendar_date import CalendarDate


class IntervalUnit(str, Enum):
    """Step size between two consecutive occurrences."""

    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"

    @classmethod
    def coerce(cls, value: Any, default: IntervalUnit | None = None) -> IntervalUnit | None:
        """Map a stored value to a unit; unknown values yield ``default``."""
        if isinstance(value, IntervalUnit):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                return default
        return default

    @property
    def is_day_based(self) -> bool:
        return self is not IntervalUnit.MONTHLY

    @property
    def days(self) -> int | None:
        """Fixed length in days, None for calendar months."""
        return _UNIT_DAYS.get(self)

    def occurrence(self, anchor: CalendarDate, index: int, day: int | None = None) -> CalendarDate:
        """
        Date of the ``index``-th occurrence; index 0 is the anchor itself.

        For monthly steps ``day`` (when it is a valid day of month) replaces
        the anchor's day, clamped to the target month's end.
        """
        if index == 0:
            return anchor
        if self is IntervalUnit.MONTHLY:
            shifted = anchor.plus_months(index)
            if day is None or not 1 <= day <= 31:
                return shifted
            return CalendarDate.clamped(shifted.year, shifted.month, day)
        return anchor.plus_days(_UNIT_DAYS[self] * index)


_UNIT_DAYS: dict[IntervalUnit, int] = {
    IntervalUnit.DAILY: 1,
    IntervalUnit.WEEKLY: 7,
    IntervalUnit.BIWEEKLY: 14,
}


class TemplateKind(str, Enum):
    """What a template produces when materialized or displayed."""

    TASK = "task"
    TRANSACTION = "transaction"


def _norm(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True, slots=True)
class NaturalKey:
    """
    Descriptive identity of a recurring obligation.

    Contract:
        Two records belong to the same obligation when their
        (description, counterparty, category, payment_method) tuples are
        equal after normalisation.  This is the externally observed
        matching behaviour; the template-owned series key is the stable
        identity used for storage uniqueness.
    """

    description: str | None
    counterparty: str | None
    category: str | None
    payment_method: str | None

    @classmethod
    def of(
        cls,
        description: Any = None,
        counterparty: Any = None,
        category: Any = None,
        payment_method: Any = None,
    ) -> NaturalKey:
        return cls(
            _norm(description),
            _norm(counterparty),
            _norm(category),
            _norm(payment_method),
        )

    def as_tuple(self) -> tuple[str | None, str | None, str | None, str | None]:
        return (self.description, self.counterparty, self.category, self.payment_method)

    def __str__(self) -> str:
        return " | ".join(part or "-" for part in self.as_tuple())


def natural_key(source: Any) -> NaturalKey:
    """
    Derive the natural key of a template, record or mapping.

    Accepts any object exposing ``description``, ``counterparty``,
    ``category`` and ``payment_method`` attributes, or a mapping with the
    same keys.  Missing fields count as empty.
    """
    if isinstance(source, Mapping):
        getter = source.get
    else:
        def getter(name: str) -> Any:
            return getattr(source, name, None)

    return NaturalKey.of(
        getter("description"),
        getter("counterparty"),
        getter("category"),
        getter("payment_method"),
    )
