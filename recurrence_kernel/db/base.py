"""
Module: recurrence_kernel.db.base
Responsibility: Declarative base classes shared by the recurrence models:
    UUID keys stored as strings, audit columns, and the owner-scoped
    descriptive columns that templates and concrete records have in common
    (the natural-key fields plus kind and amount).
Architecture position: Kernel > DB.  Lowest import target of the kernel's
    persistence side; models import from here.  MUST NOT import from
    models/, services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - Every row has a uuid4 primary key and a NOT NULL creator.
    - Amounts are Numeric(18, 2); calendar days are Date with no time part.
    - Templates and records store the natural-key fields in identically
      typed columns, so a key computed from either side compares equal.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import Date, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """UUID persisted as its 36-character string form (SQLite and PostgreSQL alike)."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    """
    Declarative base for all recurrence models.

    Annotation map:
        Decimal -> Numeric(18, 2), date -> Date, datetime -> timezone-aware
        DateTime, UUID -> UUIDString.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(18, 2, asdecimal=True),
        date: Date(),
        datetime: DateTime(timezone=True),
        UUID: UUIDString(),
    }

    id: Mapped[UUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TrackedBase(Base):
    """
    Abstract base with audit columns.

    created_at/updated_at are filled by the database; created_by_id is
    required and updated_by_id is set by services on every change.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    created_by_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    updated_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )


class OwnedEntryBase(TrackedBase):
    """
    Abstract base for owner-scoped task/transaction rows.

    Carries the owner, the entry kind (``task`` or ``transaction``), the
    natural-key fields (description, counterparty, category,
    payment_method) and the optional transaction amount.
    """

    __abstract__ = True

    owner_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    kind: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    description: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    counterparty: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    category: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    payment_method: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )

    # Signed: negative for expenses
    amount: Mapped[Decimal | None] = mapped_column(
        nullable=True,
    )
