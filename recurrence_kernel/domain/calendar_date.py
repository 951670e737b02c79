"""
CalendarDate -- Day-granularity date value with no time component.

Responsibility:
    Provides the date type every comparison in the recurrence engine is made
    at: a (year, month, day) triple with no time-of-day and no timezone.
    Also provides month arithmetic with end-of-month clamping, period keys
    (``YYYY-MM``) and the one-month ``MaterializationWindow``.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by every other domain module, the engines and the services.

Invariants enforced:
    - A CalendarDate is always a valid Gregorian date (validated on
      construction).
    - ``datetime`` inputs are truncated to their own calendar day; no
      timezone conversion is ever applied.
    - Month arithmetic clamps to the last valid day of the target month
      (Jan 31 + 1 month = Feb 28/29).

Failure modes:
    - ValueError on construction with an impossible date.
    - ``coerce()`` never raises; it returns None for malformed input.
"""

from __future__ import annotations

import calendar
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any


def days_in_month(year: int, month: int) -> int:
    """Number of days in the given month."""
    return calendar.monthrange(year, month)[1]


@dataclass(frozen=True, slots=True, order=True)
class CalendarDate:
    """
    A calendar day.

    Contract:
        Immutable, hashable and totally ordered by (year, month, day).
        Interoperates with ``datetime.date`` via ``from_date``/``to_date``
        at the persistence boundary only.

    Guarantees:
        - Always a valid date.
        - ``str()`` is the ISO form ``YYYY-MM-DD``.

    Non-goals:
        - Does NOT model time-of-day, timezones or DST.
    """

    year: int
    month: int
    day: int

    def __post_init__(self) -> None:
        # Raises ValueError for impossible dates (e.g. 2025-02-30)
        date(self.year, self.month, self.day)

    # -- construction -------------------------------------------------------

    @classmethod
    def from_date(cls, value: date) -> CalendarDate:
        """Build from a ``date`` or ``datetime`` (time part is dropped)."""
        if isinstance(value, datetime):
            value = value.date()
        return cls(value.year, value.month, value.day)

    @classmethod
    def parse(cls, text: str) -> CalendarDate:
        """
        Parse ``YYYY-MM-DD``.

        ISO timestamps (``2025-01-08T00:00:00.000Z``) are accepted and
        truncated to their date part, which is how the original store
        serialized due dates.

        Raises:
            ValueError: If the text is not an ISO date.
        """
        stripped = text.strip()
        return cls.from_date(date.fromisoformat(stripped[:10]))

    @classmethod
    def coerce(cls, value: Any) -> CalendarDate | None:
        """Best-effort conversion; returns None instead of raising."""
        if value is None:
            return None
        if isinstance(value, CalendarDate):
            return value
        try:
            if isinstance(value, date):
                return cls.from_date(value)
            if isinstance(value, str) and value.strip():
                return cls.parse(value)
        except ValueError:
            return None
        return None

    @classmethod
    def clamped(cls, year: int, month: int, day: int) -> CalendarDate:
        """Build a date, clamping ``day`` to the last day of the month."""
        return cls(year, month, min(max(day, 1), days_in_month(year, month)))

    # -- conversion ---------------------------------------------------------

    def to_date(self) -> date:
        return date(self.year, self.month, self.day)

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}-{self.day:02d}"

    @property
    def period_key(self) -> str:
        """Year-month key of the period this day belongs to."""
        return f"{self.year:04d}-{self.month:02d}"

    @property
    def is_last_day_of_month(self) -> bool:
        return self.day == days_in_month(self.year, self.month)

    def weekday(self) -> int:
        """Monday is 0, Sunday is 6."""
        return self.to_date().weekday()

    # -- arithmetic ---------------------------------------------------------

    def plus_days(self, days: int) -> CalendarDate:
        return CalendarDate.from_date(self.to_date() + timedelta(days=days))

    def plus_weeks(self, weeks: int) -> CalendarDate:
        return self.plus_days(7 * weeks)

    def plus_months(self, months: int) -> CalendarDate:
        """Add calendar months, clamping the day to the target month's end."""
        index = self.month - 1 + months
        year = self.year + index // 12
        month = index % 12 + 1
        return CalendarDate.clamped(year, month, self.day)

    def days_until(self, other: CalendarDate) -> int:
        """Signed number of days from self to other."""
        return (other.to_date() - self.to_date()).days

    def months_until(self, other: CalendarDate) -> int:
        """Signed number of whole calendar months between the two periods."""
        return (other.year - self.year) * 12 + (other.month - self.month)


def iter_days(start: CalendarDate, end: CalendarDate) -> Iterator[CalendarDate]:
    """Yield every day from start to end, inclusive. Empty if start > end."""
    current = start
    while current <= end:
        yield current
        current = current.plus_days(1)


@dataclass(frozen=True, slots=True)
class MaterializationWindow:
    """
    The calendar period for which materialization is evaluated.

    Contract:
        Both boundaries are inclusive and lie in the same calendar month,
        so the window maps to exactly one ``period_key``.

    Raises:
        ValueError: If start > end or the boundaries span months.
    """

    period_start: CalendarDate
    period_end: CalendarDate

    def __post_init__(self) -> None:
        if self.period_start > self.period_end:
            raise ValueError(
                f"period_start ({self.period_start}) cannot be after "
                f"period_end ({self.period_end})"
            )
        if self.period_start.period_key != self.period_end.period_key:
            raise ValueError(
                f"Materialization window must lie within one month, got "
                f"{self.period_start}..{self.period_end}"
            )

    @classmethod
    def for_month(cls, year: int, month: int) -> MaterializationWindow:
        return cls(
            CalendarDate(year, month, 1),
            CalendarDate(year, month, days_in_month(year, month)),
        )

    @classmethod
    def from_period_key(cls, period_key: str) -> MaterializationWindow:
        """Build the full-month window for ``YYYY-MM``."""
        try:
            year_text, month_text = period_key.strip().split("-")
            return cls.for_month(int(year_text), int(month_text))
        except (AttributeError, ValueError) as exc:
            raise ValueError(f"Invalid period key: {period_key!r}") from exc

    @classmethod
    def containing(cls, day: CalendarDate) -> MaterializationWindow:
        return cls.for_month(day.year, day.month)

    @property
    def period_key(self) -> str:
        return self.period_start.period_key

    @property
    def year(self) -> int:
        return self.period_start.year

    @property
    def month(self) -> int:
        return self.period_start.month

    def contains(self, day: CalendarDate) -> bool:
        return self.period_start <= day <= self.period_end

    def next(self) -> MaterializationWindow:
        first = self.period_start.plus_months(1)
        return MaterializationWindow.for_month(first.year, first.month)

    def previous(self) -> MaterializationWindow:
        first = self.period_start.plus_months(-1)
        return MaterializationWindow.for_month(first.year, first.month)
