"""
Clock -- injectable source of "today".

Responsibility:
    Services that default an anchor date or pick the current period ask a
    Clock instead of calling ``date.today()``.  Engines never see a clock;
    they receive explicit dates.

Architecture position:
    Kernel > Domain.  SystemClock is the only place the engine reads the
    wall clock.
"""

from abc import ABC, abstractmethod
from datetime import datetime, time, timedelta, timezone

from recurrence_kernel.domain.calendar_date import CalendarDate


class Clock(ABC):
    """
    Contract:
        ``now()`` is timezone-aware; ``today()`` is the calendar day of
        ``now()`` in the clock's own timezone, with no conversion.
    """

    @abstractmethod
    def now(self) -> datetime:
        ...

    def today(self) -> CalendarDate:
        return CalendarDate.from_date(self.now())


class SystemClock(Clock):
    """Wall clock in the host's local timezone."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc).astimezone()


class DeterministicClock(Clock):
    """
    Test clock that only moves when told to.

    Defaults to 2025-01-01 12:00 UTC.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._current = fixed_time or datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    @classmethod
    def on(cls, day: CalendarDate) -> "DeterministicClock":
        """Clock standing at noon UTC of ``day``."""
        return cls(datetime.combine(day.to_date(), time(12, 0), tzinfo=timezone.utc))

    def now(self) -> datetime:
        return self._current

    def set_time(self, value: datetime) -> None:
        self._current = value

    def advance(self, seconds: int = 1) -> None:
        self._current += timedelta(seconds=seconds)

    def advance_days(self, days: int = 1) -> None:
        self._current += timedelta(days=days)
