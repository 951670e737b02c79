"""
Typed Exception Hierarchy for the Recurrence Kernel.

Every error has a typed exception class, a machine-readable ``code`` class
attribute, and structured attributes instead of a message that callers
would have to parse.

    RecurrenceKernelError (base)
    |
    +-- StoreError
    |   +-- StoreReadError
    |   +-- StoreWriteError
    |       +-- DuplicateMaterializationError
    |
    +-- TemplateError
    |   +-- TemplateNotFoundError
    |   +-- InvalidTemplateError
    |   +-- TemplateExhaustedError
    |
    +-- RecordError
    |   +-- RecordNotFoundError
    |   +-- RecordConflictError
    |
    +-- InstanceRefError
        +-- InvalidInstanceRefError

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Store           | STORE_READ_FAILED           | Templates/records could not be fetched
                | STORE_WRITE_FAILED          | Batch insert or update was rejected
                | DUPLICATE_MATERIALIZATION   | (owner, series, period) already stored
----------------|-----------------------------|-----------------------------------------
Template        | TEMPLATE_NOT_FOUND          | Template ID doesn't exist
                | INVALID_TEMPLATE            | Create/update input failed validation
                | TEMPLATE_EXHAUSTED          | Consume on inactive/exhausted template
----------------|-----------------------------|-----------------------------------------
Record          | RECORD_NOT_FOUND            | Record ID doesn't exist
                | RECORD_CONFLICT             | Reschedule collides with another period row
----------------|-----------------------------|-----------------------------------------
Instance ref    | INVALID_INSTANCE_REF        | Legacy instance id could not be parsed

Malformed templates are NOT errors on the projection and materialization
paths: they produce empty projections / ineligible results. The exceptions
below are raised on explicit CRUD input and on store failures only.

Handling pattern::

    try:
        result = calendar.enter_period(owner_id, window)
    except DuplicateMaterializationError:
        # Another session materialized the same period first; safe to ignore
        result = None
    except StoreError as e:
        notify_user(e.code)
"""

from uuid import UUID


class RecurrenceKernelError(Exception):
    """
    Base exception for all recurrence kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "RECURRENCE_KERNEL_ERROR"


# Store-related exceptions


class StoreError(RecurrenceKernelError):
    """Base exception for persistent store failures."""

    code: str = "STORE_ERROR"


class StoreReadError(StoreError):
    """Templates or records could not be read from the store."""

    code: str = "STORE_READ_FAILED"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Store read failed during {operation}: {reason}")


class StoreWriteError(StoreError):
    """A write (batch insert or update) was rejected by the store."""

    code: str = "STORE_WRITE_FAILED"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Store write failed during {operation}: {reason}")


class DuplicateMaterializationError(StoreWriteError):
    """The storage-level (owner, series key, period key) constraint rejected an insert.

    Raised when two materializations of the same period race and both pass
    the application-level "key absent" check.
    """

    code: str = "DUPLICATE_MATERIALIZATION"

    def __init__(self, period_key: str, reason: str):
        self.period_key = period_key
        super().__init__("materialize", reason)
        self.args = (
            f"Recurring record already materialized for period {period_key}: {reason}",
        )


# Template-related exceptions


class TemplateError(RecurrenceKernelError):
    """Base exception for recurrence template errors."""

    code: str = "TEMPLATE_ERROR"


class TemplateNotFoundError(TemplateError):
    """Template with given ID was not found."""

    code: str = "TEMPLATE_NOT_FOUND"

    def __init__(self, template_id: UUID | str):
        self.template_id = str(template_id)
        super().__init__(f"Recurrence template not found: {template_id}")


class InvalidTemplateError(TemplateError):
    """Template input failed validation on the create/update path."""

    code: str = "INVALID_TEMPLATE"

    def __init__(self, field: str, value: object, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid template {field}={value!r}: {reason}")


class TemplateExhaustedError(TemplateError):
    """Template is inactive or its occurrence quota is fully consumed."""

    code: str = "TEMPLATE_EXHAUSTED"

    def __init__(
        self,
        template_id: UUID | str,
        completed_occurrences: int,
        max_occurrences: int | None,
    ):
        self.template_id = str(template_id)
        self.completed_occurrences = completed_occurrences
        self.max_occurrences = max_occurrences
        super().__init__(
            f"Template {template_id} has no remaining occurrences "
            f"({completed_occurrences}/{max_occurrences})"
        )


# Record-related exceptions


class RecordError(RecurrenceKernelError):
    """Base exception for concrete record errors."""

    code: str = "RECORD_ERROR"


class RecordNotFoundError(RecordError):
    """Concrete record with given ID was not found."""

    code: str = "RECORD_NOT_FOUND"

    def __init__(self, record_id: UUID | str):
        self.record_id = str(record_id)
        super().__init__(f"Concrete record not found: {record_id}")


class RecordConflictError(RecordError):
    """Rescheduling a record would put two rows of one series in a period."""

    code: str = "RECORD_CONFLICT"

    def __init__(self, record_id: UUID | str, period_key: str):
        self.record_id = str(record_id)
        self.period_key = period_key
        super().__init__(
            f"Record {record_id} conflicts with an existing record in period {period_key}"
        )


# Instance reference exceptions


class InstanceRefError(RecurrenceKernelError):
    """Base exception for calendar entry reference errors."""

    code: str = "INSTANCE_REF_ERROR"


class InvalidInstanceRefError(InstanceRefError):
    """An entry identifier is neither a record UUID nor a legacy instance id."""

    code: str = "INVALID_INSTANCE_REF"

    def __init__(self, raw_id: str):
        self.raw_id = raw_id
        super().__init__(f"Cannot resolve calendar entry id: {raw_id!r}")
