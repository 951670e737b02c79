"""
Read-side base for recurrence selectors.

A selector runs queries on the caller's session and hands back frozen
DTOs from ``recurrence_kernel.domain.dtos``; ORM rows never leave this
package.  Selectors do not add, delete, flush or commit.  Database errors
propagate as ``SQLAlchemyError``; services translate them into
``StoreReadError`` where a caller needs a typed failure.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from recurrence_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """Holds the borrowed session; subclasses define the queries."""

    def __init__(self, session: Session):
        self.session = session
