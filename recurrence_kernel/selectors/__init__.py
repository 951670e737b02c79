"""Read-only selectors returning domain DTOs."""

from recurrence_kernel.selectors.base import BaseSelector
from recurrence_kernel.selectors.record_selector import RecordSelector
from recurrence_kernel.selectors.template_selector import TemplateSelector

__all__ = [
    "BaseSelector",
    "RecordSelector",
    "TemplateSelector",
]
