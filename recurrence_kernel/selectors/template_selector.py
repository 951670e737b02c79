"""
Module: recurrence_kernel.selectors.template_selector
Responsibility: Read-only access to recurrence templates as
    RecurrenceTemplateInfo DTOs.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Stored values that the domain cannot interpret (unknown interval unit,
      unknown kind) are mapped to defaults here, so engines always receive
      well-typed DTOs and malformed rows degrade to no-ops downstream.
    - Results are ordered by (anchor_date, created_at, id) for deterministic
      materialization and projection order.
"""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import select

from recurrence_kernel.domain.calendar_date import CalendarDate
from recurrence_kernel.domain.dtos import RecurrenceTemplateInfo
from recurrence_kernel.domain.recurrence import IntervalUnit, TemplateKind
from recurrence_kernel.models.recurrence_template import RecurrenceTemplate
from recurrence_kernel.selectors.base import BaseSelector


def _kind(value: str) -> TemplateKind:
    try:
        return TemplateKind(value)
    except ValueError:
        return TemplateKind.TASK


def template_to_dto(template: RecurrenceTemplate) -> RecurrenceTemplateInfo:
    """Convert ORM model to DTO.  Shared with TemplateService."""
    return RecurrenceTemplateInfo(
        id=template.id,
        owner_id=template.owner_id,
        kind=_kind(template.kind),
        description=template.description,
        anchor_date=(
            CalendarDate.from_date(template.anchor_date)
            if template.anchor_date is not None
            else None
        ),
        interval_unit=IntervalUnit.coerce(template.interval_unit, IntervalUnit.WEEKLY),
        max_occurrences=template.max_occurrences,
        completed_occurrences=template.completed_occurrences or 0,
        active=template.active,
        day_of_month=template.day_of_month,
        counterparty=template.counterparty,
        category=template.category,
        payment_method=template.payment_method,
        amount=template.amount,
        series_key=template.series_key,
    )


class TemplateSelector(BaseSelector[RecurrenceTemplate]):
    """
    Selector for recurrence template queries.

    Guarantees:
        - Read-only.
        - Returns RecurrenceTemplateInfo snapshots; later changes to the
          row are not reflected in a snapshot already returned.
    """

    def _to_dto(self, template: RecurrenceTemplate) -> RecurrenceTemplateInfo:
        return template_to_dto(template)

    def _ordered(self, stmt):
        return stmt.order_by(
            RecurrenceTemplate.anchor_date,
            RecurrenceTemplate.created_at,
            RecurrenceTemplate.id,
        )

    def get(self, template_id: UUID) -> RecurrenceTemplateInfo | None:
        """
        Get a template by ID.

        Returns:
            RecurrenceTemplateInfo if found, None otherwise.
        """
        template = self.session.get(RecurrenceTemplate, template_id)
        if template is None:
            return None
        return self._to_dto(template)

    def for_owner(
        self,
        owner_id: UUID,
        active_only: bool = False,
    ) -> list[RecurrenceTemplateInfo]:
        """All templates of one owner, optionally restricted to active ones."""
        stmt = select(RecurrenceTemplate).where(
            RecurrenceTemplate.owner_id == owner_id
        )
        if active_only:
            stmt = stmt.where(RecurrenceTemplate.active == True)  # noqa: E712
        rows = self.session.execute(self._ordered(stmt)).scalars().all()
        return [self._to_dto(t) for t in rows]

    def active_for_owner(self, owner_id: UUID) -> list[RecurrenceTemplateInfo]:
        return self.for_owner(owner_id, active_only=True)

    def active_for_owners(
        self,
        owner_ids: Iterable[UUID],
    ) -> list[RecurrenceTemplateInfo]:
        """Active templates of several owners (batch materialization)."""
        ids = list(dict.fromkeys(owner_ids))
        if not ids:
            return []
        stmt = select(RecurrenceTemplate).where(
            RecurrenceTemplate.owner_id.in_(ids),
            RecurrenceTemplate.active == True,  # noqa: E712
        )
        rows = self.session.execute(self._ordered(stmt)).scalars().all()
        return [self._to_dto(t) for t in rows]
