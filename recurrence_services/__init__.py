"""
recurrence_services -- orchestration over the kernel and the engines.

MaterializationService persists a period's recurring records once;
CalendarService serves the calendar and dashboard collaborators.
"""

from recurrence_services.calendar_service import (
    CalendarService,
    build_calendar_service,
    open_calendar,
)
from recurrence_services.materialization_service import MaterializationService

__all__ = [
    "CalendarService",
    "MaterializationService",
    "build_calendar_service",
    "open_calendar",
]
