"""
Pure domain layer of the recurrence kernel.

Everything here is free of I/O and ORM imports: calendar arithmetic,
interval units, natural keys, DTOs and the injectable clock.
"""

from recurrence_kernel.domain.calendar_date import (
    CalendarDate,
    MaterializationWindow,
    days_in_month,
    iter_days,
)
from recurrence_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from recurrence_kernel.domain.dtos import (
    CalendarEntry,
    ConcreteRecordInfo,
    ConcreteRef,
    DayBucket,
    DropAction,
    InstanceRef,
    MaterializationResult,
    PlannedRecord,
    ReanchorTemplate,
    RecurrenceTemplateInfo,
    RefKind,
    RescheduleRecord,
    VirtualInstance,
    VirtualRef,
    parse_instance_ref,
    template_from_mapping,
)
from recurrence_kernel.domain.recurrence import (
    IntervalUnit,
    NaturalKey,
    TemplateKind,
    natural_key,
)

__all__ = [
    "CalendarDate",
    "CalendarEntry",
    "Clock",
    "ConcreteRecordInfo",
    "ConcreteRef",
    "DayBucket",
    "DeterministicClock",
    "DropAction",
    "InstanceRef",
    "IntervalUnit",
    "MaterializationResult",
    "MaterializationWindow",
    "NaturalKey",
    "PlannedRecord",
    "ReanchorTemplate",
    "RecurrenceTemplateInfo",
    "RefKind",
    "RescheduleRecord",
    "SystemClock",
    "TemplateKind",
    "VirtualInstance",
    "VirtualRef",
    "days_in_month",
    "iter_days",
    "natural_key",
    "parse_instance_ref",
    "template_from_mapping",
]
