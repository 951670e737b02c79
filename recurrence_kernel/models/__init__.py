"""Domain models for the recurrence kernel."""

from recurrence_kernel.models.concrete_record import ConcreteRecord
from recurrence_kernel.models.recurrence_template import RecurrenceTemplate

__all__ = [
    "ConcreteRecord",
    "RecurrenceTemplate",
]
