"""
RecordService -- writes to individual concrete records.

Responsibility:
    Manual one-off record entry, rescheduling a record to another day
    (calendar drag/drop of a concrete entry) and toggling its settled
    (paid / done) flag.

Architecture position:
    Kernel > Services -- imperative shell, flush-only.

Invariants enforced:
    - period_key always follows record_date.
    - A reschedule that would put two records of one series in the same
      period is rejected by uq_record_series_period; the move is undone
      inside its own SAVEPOINT and surfaced as RecordConflictError.

Failure modes:
    - RecordNotFoundError for unknown record ids.
    - RecordConflictError on a colliding reschedule.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy.exc import IntegrityError

from recurrence_kernel.domain.calendar_date import CalendarDate
from recurrence_kernel.domain.dtos import ConcreteRecordInfo
from recurrence_kernel.domain.recurrence import TemplateKind
from recurrence_kernel.exceptions import RecordConflictError, RecordNotFoundError
from recurrence_kernel.logging_config import get_logger
from recurrence_kernel.models.concrete_record import ConcreteRecord
from recurrence_kernel.selectors.record_selector import record_to_dto
from recurrence_kernel.services.base import BaseService

logger = get_logger("services.record")


class RecordService(BaseService[ConcreteRecord]):
    """
    Service for concrete record writes.

    Contract:
        All public methods return ConcreteRecordInfo DTOs.  Changes are
        flushed, not committed.
    """

    def _get_by_id(self, record_id: UUID) -> ConcreteRecord:
        record = self.session.get(ConcreteRecord, record_id)
        if record is None:
            raise RecordNotFoundError(record_id)
        return record

    def get(self, record_id: UUID) -> ConcreteRecordInfo:
        """
        Raises:
            RecordNotFoundError: If the record doesn't exist.
        """
        return record_to_dto(self._get_by_id(record_id))

    def create_record(
        self,
        owner_id: UUID,
        kind: TemplateKind,
        description: str,
        record_date: CalendarDate,
        actor_id: UUID,
        counterparty: str | None = None,
        category: str | None = None,
        payment_method: str | None = None,
        amount: Decimal | None = None,
        settled: bool = False,
    ) -> ConcreteRecordInfo:
        """
        Enter a one-off record.

        Manual records carry no template and no series key, so they never
        take part in the per-period uniqueness constraint.
        """
        record = ConcreteRecord(
            owner_id=owner_id,
            kind=TemplateKind(kind).value,
            record_date=record_date.to_date(),
            period_key=record_date.period_key,
            description=description,
            counterparty=counterparty,
            category=category,
            payment_method=payment_method,
            amount=amount,
            settled=settled,
            recurring=False,
            created_by_id=actor_id,
        )
        self.session.add(record)
        self.session.flush()
        logger.info(
            "record_created",
            extra={
                "record_id": str(record.id),
                "owner_id": str(owner_id),
                "record_date": str(record_date),
            },
        )
        return record_to_dto(record)

    def reschedule(
        self,
        record_id: UUID,
        new_date: CalendarDate,
        actor_id: UUID,
    ) -> ConcreteRecordInfo:
        """
        Move a record to another day.

        Raises:
            RecordNotFoundError: Unknown record.
            RecordConflictError: The series already has a record in the
                target period.
        """
        record = self._get_by_id(record_id)
        previous = CalendarDate.from_date(record.record_date)

        savepoint = self.session.begin_nested()
        try:
            record.record_date = new_date.to_date()
            record.period_key = new_date.period_key
            self._stamp(record, actor_id)
            self.session.flush()
            savepoint.commit()
        except IntegrityError as e:
            savepoint.rollback()
            logger.warning(
                "record_reschedule_conflict",
                extra={
                    "record_id": str(record_id),
                    "period_key": new_date.period_key,
                },
            )
            raise RecordConflictError(record_id, new_date.period_key) from e

        logger.info(
            "record_rescheduled",
            extra={
                "record_id": str(record_id),
                "from_date": str(previous),
                "to_date": str(new_date),
            },
        )
        return record_to_dto(record)

    def set_settled(
        self,
        record_id: UUID,
        settled: bool,
        actor_id: UUID,
    ) -> ConcreteRecordInfo:
        """Mark a record paid/done (or undo it)."""
        record = self._get_by_id(record_id)
        if record.settled != settled:
            record.settled = settled
            self._stamp(record, actor_id)
            self.session.flush()
            logger.info(
                "record_settled_changed",
                extra={"record_id": str(record_id), "settled": settled},
            )
        return record_to_dto(record)

    def toggle_settled(self, record_id: UUID, actor_id: UUID) -> ConcreteRecordInfo:
        record = self._get_by_id(record_id)
        return self.set_settled(record_id, not record.settled, actor_id)
