"""
MaterializationService -- persists one concrete record per template per period.

Responsibility:
    Read the records already stored for the target period, ask the
    materialization planner what is missing, and insert the missing
    records in one batch.  Running it twice for the same period creates
    nothing the second time.

Architecture position:
    Services -- stateful orchestration over the kernel and the pure
    planner.  Flush-only: the caller owns the transaction.

Invariants enforced:
    - The existing-key read completes before any insert.
    - New records start unsettled and recurring, carry the template id
      and series key, and are dated at the clamped target day.
    - The batch is inserted inside a SAVEPOINT: a rejected batch leaves
      nothing of itself behind and the caller's earlier work intact.
    - Nothing is retried automatically.

Failure modes:
    - StoreReadError: existing records or templates could not be read.
    - DuplicateMaterializationError: another session stored a record for
      the same (owner, series key, period) between our read and our
      insert; uq_record_series_period rejected the batch.
    - StoreWriteError: any other rejected insert.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from recurrence_engines.materialization import ExistingKeys, plan_materialization
from recurrence_engines.projector import as_template
from recurrence_kernel.domain.calendar_date import MaterializationWindow
from recurrence_kernel.domain.dtos import (
    MaterializationResult,
    PlannedRecord,
    RecurrenceTemplateInfo,
)
from recurrence_kernel.exceptions import (
    DuplicateMaterializationError,
    StoreReadError,
    StoreWriteError,
)
from recurrence_kernel.logging_config import LogContext, get_logger
from recurrence_kernel.models.concrete_record import ConcreteRecord
from recurrence_kernel.selectors.record_selector import RecordSelector, record_to_dto
from recurrence_kernel.selectors.template_selector import TemplateSelector

logger = get_logger("services.materialization")

SERIES_PERIOD_CONSTRAINT = "uq_record_series_period"


def _is_series_period_violation(exc: IntegrityError) -> bool:
    """PostgreSQL names the constraint; SQLite lists its columns."""
    message = str(exc.orig)
    if SERIES_PERIOD_CONSTRAINT in message:
        return True
    return "UNIQUE" in message.upper() and "series_key" in message and "period_key" in message


class MaterializationService:
    """
    Materializes recurring templates into concrete records for one period.

    Contract:
        ``materialize(templates, window)`` returns a MaterializationResult
        whose ``created`` lists the records inserted by this call,
        ``skipped`` the natural keys already represented in the period and
        ``ineligible`` the ids of templates that do not participate.

    Guarantees:
        - Idempotent for a fixed store state.
        - Template DTOs are never mutated; quota is consumed only through
          TemplateService.consume_occurrence.

    Non-goals:
        - Does NOT commit.  Does NOT retry after a duplicate.
    """

    def __init__(
        self,
        session: Session,
        system_actor_id: UUID,
        record_selector: RecordSelector | None = None,
        template_selector: TemplateSelector | None = None,
    ):
        self.session = session
        self._system_actor_id = system_actor_id
        self._records = record_selector or RecordSelector(session)
        self._templates = template_selector or TemplateSelector(session)

    def _load_existing(self, window: MaterializationWindow, owner_ids: set[UUID]) -> ExistingKeys:
        try:
            records = self._records.for_period(window.period_key, owner_ids)
        except SQLAlchemyError as exc:
            logger.warning(
                "materialization_read_failed",
                extra={"owner_count": len(owner_ids)},
                exc_info=True,
            )
            raise StoreReadError("materialize", str(exc)) from exc
        return ExistingKeys.from_records(records)

    def _to_row(self, planned: PlannedRecord, actor_id: UUID) -> ConcreteRecord:
        return ConcreteRecord(
            owner_id=planned.owner_id,
            kind=planned.kind.value,
            record_date=planned.record_date.to_date(),
            period_key=planned.period_key,
            description=planned.description,
            counterparty=planned.counterparty,
            category=planned.category,
            payment_method=planned.payment_method,
            amount=planned.amount,
            settled=False,
            recurring=True,
            template_id=planned.template_id,
            series_key=planned.series_key,
            created_by_id=actor_id,
        )

    def _insert_batch(self, rows: list[ConcreteRecord], period_key: str) -> None:
        savepoint = self.session.begin_nested()
        try:
            self.session.add_all(rows)
            self.session.flush()
            savepoint.commit()
        except IntegrityError as exc:
            savepoint.rollback()
            logger.warning(
                "materialization_write_rejected",
                extra={"batch_size": len(rows)},
                exc_info=True,
            )
            if _is_series_period_violation(exc):
                raise DuplicateMaterializationError(period_key, str(exc.orig)) from exc
            raise StoreWriteError("materialize", str(exc.orig)) from exc
        except SQLAlchemyError as exc:
            savepoint.rollback()
            logger.warning(
                "materialization_write_failed",
                extra={"batch_size": len(rows)},
                exc_info=True,
            )
            raise StoreWriteError("materialize", str(exc)) from exc

    def materialize(
        self,
        templates: Iterable[RecurrenceTemplateInfo | Mapping[str, Any]],
        window: MaterializationWindow,
        *,
        actor_id: UUID | None = None,
    ) -> MaterializationResult:
        """
        Insert the missing records of ``window`` for ``templates``.

        Args:
            templates: Template snapshots.  Raw store rows are coerced
                (unreadable ones are dropped with a warning) and must name
                stored templates: a created record references its template,
                so a row for an unknown template id fails the batch with
                StoreWriteError.
            window: Target period.
            actor_id: Recorded as creator; defaults to the system actor.

        Returns:
            MaterializationResult for this call.

        Raises:
            StoreReadError, StoreWriteError, DuplicateMaterializationError.
        """
        infos: list[RecurrenceTemplateInfo] = []
        for raw in templates:
            info = as_template(raw)
            if info is None:
                logger.warning("template_unreadable", extra={"period_key": window.period_key})
                continue
            infos.append(info)

        with LogContext.bind(period_key=window.period_key):
            existing = self._load_existing(window, {t.owner_id for t in infos})
            plan = plan_materialization(infos, window, existing)

            rows = [self._to_row(p, actor_id or self._system_actor_id) for p in plan.to_create]
            if rows:
                self._insert_batch(rows, window.period_key)

            result = MaterializationResult(
                period_key=window.period_key,
                created=tuple(record_to_dto(r) for r in rows),
                skipped=plan.skipped,
                ineligible=plan.ineligible,
            )
            logger.info(
                "materialization_completed",
                extra={
                    "template_count": len(infos),
                    "created_count": len(result.created),
                    "skipped_count": len(result.skipped),
                    "ineligible_count": len(result.ineligible),
                },
            )
            return result

    def materialize_for_owner(
        self,
        owner_id: UUID,
        window: MaterializationWindow,
        *,
        actor_id: UUID | None = None,
    ) -> MaterializationResult:
        """Materialize every active template of one owner."""
        try:
            templates = self._templates.active_for_owner(owner_id)
        except SQLAlchemyError as exc:
            logger.warning(
                "materialization_read_failed",
                extra={"owner_id": str(owner_id), "period_key": window.period_key},
                exc_info=True,
            )
            raise StoreReadError("load_templates", str(exc)) from exc
        with LogContext.bind(owner_id=str(owner_id)):
            return self.materialize(templates, window, actor_id=actor_id)
