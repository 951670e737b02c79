"""
Module: recurrence_kernel.selectors.record_selector
Responsibility: Read-only access to concrete records as ConcreteRecordInfo
    DTOs, by period (materialization dedup) and by date window (calendar
    views).
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Window queries are inclusive on both ends and ordered by
      (record_date, created_at, id), which is the order records appear in
      a calendar day bucket.

Failure modes:
    - Returns None or an empty list when nothing matches; never raises on
      absence of data.
"""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import select

from recurrence_kernel.domain.calendar_date import CalendarDate
from recurrence_kernel.domain.dtos import ConcreteRecordInfo
from recurrence_kernel.domain.recurrence import TemplateKind
from recurrence_kernel.models.concrete_record import ConcreteRecord
from recurrence_kernel.selectors.base import BaseSelector


def record_to_dto(record: ConcreteRecord) -> ConcreteRecordInfo:
    """Convert ORM model to DTO.  Shared with the record-writing services."""
    try:
        kind = TemplateKind(record.kind)
    except ValueError:
        kind = TemplateKind.TASK
    return ConcreteRecordInfo(
        id=record.id,
        owner_id=record.owner_id,
        kind=kind,
        record_date=CalendarDate.from_date(record.record_date),
        period_key=record.period_key,
        description=record.description,
        counterparty=record.counterparty,
        category=record.category,
        payment_method=record.payment_method,
        amount=record.amount,
        settled=record.settled,
        recurring=record.recurring,
        template_id=record.template_id,
        series_key=record.series_key,
    )


class RecordSelector(BaseSelector[ConcreteRecord]):
    """Selector for concrete record queries."""

    def _to_dto(self, record: ConcreteRecord) -> ConcreteRecordInfo:
        return record_to_dto(record)

    def _ordered(self, stmt):
        return stmt.order_by(
            ConcreteRecord.record_date,
            ConcreteRecord.created_at,
            ConcreteRecord.id,
        )

    def get(self, record_id: UUID) -> ConcreteRecordInfo | None:
        record = self.session.get(ConcreteRecord, record_id)
        if record is None:
            return None
        return self._to_dto(record)

    def for_period(
        self,
        period_key: str,
        owner_ids: Iterable[UUID],
    ) -> list[ConcreteRecordInfo]:
        """
        All records of the given owners whose period_key matches.

        Preconditions: period_key is ``YYYY-MM``.

        Returns:
            Records ordered by date; empty when owner_ids is empty.
        """
        ids = list(dict.fromkeys(owner_ids))
        if not ids:
            return []
        stmt = select(ConcreteRecord).where(
            ConcreteRecord.period_key == period_key,
            ConcreteRecord.owner_id.in_(ids),
        )
        rows = self.session.execute(self._ordered(stmt)).scalars().all()
        return [self._to_dto(r) for r in rows]

    def in_window(
        self,
        owner_id: UUID,
        window_start: CalendarDate,
        window_end: CalendarDate,
    ) -> list[ConcreteRecordInfo]:
        """Records of one owner dated within [window_start, window_end]."""
        stmt = select(ConcreteRecord).where(
            ConcreteRecord.owner_id == owner_id,
            ConcreteRecord.record_date >= window_start.to_date(),
            ConcreteRecord.record_date <= window_end.to_date(),
        )
        rows = self.session.execute(self._ordered(stmt)).scalars().all()
        return [self._to_dto(r) for r in rows]

    def for_template(self, template_id: UUID) -> list[ConcreteRecordInfo]:
        """Every record materialized from (or seeded by) one template."""
        stmt = select(ConcreteRecord).where(
            ConcreteRecord.template_id == template_id
        )
        rows = self.session.execute(self._ordered(stmt)).scalars().all()
        return [self._to_dto(r) for r in rows]
