"""
Module: recurrence_kernel.models.concrete_record
Responsibility: ORM persistence for concrete (stored) task and transaction
    records, whether entered manually, written as a template's seed, or
    materialized for a period.
Architecture position: Kernel > Models.  May import from db/base.py and
    sibling models only.  MUST NOT import from services/, selectors/,
    domain/, or outer layers.

Invariants enforced:
    - At most one record per (owner_id, series_key, period_key)
      (uq_record_series_period).  This is the storage-level guard against
      two concurrent materializations of the same period.  Rows with a
      NULL series_key (manual one-off records) do not participate, since
      NULLs never compare equal in a UNIQUE constraint.
    - period_key is always the YYYY-MM of record_date (maintained by the
      writing services).

Failure modes:
    - IntegrityError on uq_record_series_period.  Services translate it
      into DuplicateMaterializationError or RecordConflictError.
    - IntegrityError if template_id references a missing template.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from recurrence_kernel.db.base import OwnedEntryBase, UUIDString


class ConcreteRecord(OwnedEntryBase):
    """
    A persisted task or transaction occurrence.

    Contract:
        Materialized rows carry template_id and series_key of their source
        template and start unsettled.  Manual rows carry neither.

    Guarantees:
        - uq_record_series_period holds for every non-NULL series_key.

    Non-goals:
        - Does NOT keep period_key in sync with record_date by itself;
          RecordService does that on reschedule.
    """

    __tablename__ = "concrete_records"

    __table_args__ = (
        UniqueConstraint(
            "owner_id",
            "series_key",
            "period_key",
            name="uq_record_series_period",
        ),
        Index("idx_record_owner_period", "owner_id", "period_key"),
        Index("idx_record_owner_date", "owner_id", "record_date"),
        Index("idx_record_template", "template_id"),
    )

    record_date: Mapped[date] = mapped_column(
        nullable=False,
    )

    # YYYY-MM of record_date
    period_key: Mapped[str] = mapped_column(
        String(7),
        nullable=False,
    )

    settled: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    recurring: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    template_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("recurrence_templates.id"),
        nullable=True,
    )

    series_key: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<ConcreteRecord {self.description!r} on {self.record_date}>"
