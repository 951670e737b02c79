"""Flush-only write services of the recurrence kernel."""

from recurrence_kernel.services.base import BaseService
from recurrence_kernel.services.record_service import RecordService
from recurrence_kernel.services.template_service import TemplateService, new_series_key

__all__ = [
    "BaseService",
    "RecordService",
    "TemplateService",
    "new_series_key",
]
