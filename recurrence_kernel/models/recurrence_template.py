"""
Module: recurrence_kernel.models.recurrence_template
Responsibility: ORM persistence for recurring definitions (tasks and
    transactions that repeat).  A template row is the single source from
    which virtual instances are projected and concrete records are
    materialized.
Architecture position: Kernel > Models.  May import from db/base.py only.
    MUST NOT import from services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - series_key is unique and never derived from display text; it is
      generated once at creation and survives renames.
    - max_occurrences NULL means unbounded; when set it is positive and
      completed_occurrences never exceeds it (enforced by TemplateService).
    - Templates are deactivated, never deleted, when recurrence ends.

Failure modes:
    - IntegrityError on duplicate series_key (uq_template_series_key).
"""

from datetime import date

from sqlalchemy import Boolean, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from recurrence_kernel.db.base import OwnedEntryBase


class RecurrenceTemplate(OwnedEntryBase):
    """
    A recurring task or transaction definition.

    Contract:
        anchor_date is the first (seed) occurrence.  interval_unit and
        day_of_month determine subsequent occurrences; the domain layer
        interprets them, this model only stores them.

    Guarantees:
        - series_key is globally unique (uq_template_series_key).
        - kind and interval_unit are stored as their enum string values.

    Non-goals:
        - Does NOT validate interval_unit or day_of_month ranges; malformed
          rows degrade to no-ops in projection and materialization.
    """

    __tablename__ = "recurrence_templates"

    __table_args__ = (
        UniqueConstraint("series_key", name="uq_template_series_key"),
        Index("idx_template_owner_active", "owner_id", "active"),
    )

    # Nullable so that legacy rows without a date can still be loaded
    anchor_date: Mapped[date | None] = mapped_column(
        nullable=True,
    )

    interval_unit: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="weekly",
    )

    day_of_month: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )

    max_occurrences: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )

    completed_occurrences: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    series_key: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )

    active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )

    def __repr__(self) -> str:
        return (
            f"<RecurrenceTemplate {self.description!r} "
            f"{self.interval_unit} from {self.anchor_date}>"
        )
