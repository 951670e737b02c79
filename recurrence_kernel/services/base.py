"""
Write-side base for recurrence kernel services.

Services mutate rows through the session they are given and stop at
``session.flush()``; the caller decides when to commit.  A write that can
collide with a unique constraint is wrapped in ``session.begin_nested()``
so a rejected row rolls back to the savepoint and leaves the rest of the
caller's transaction intact.
"""

from abc import ABC
from typing import Generic, TypeVar
from uuid import UUID

from sqlalchemy.orm import Session

from recurrence_kernel.db.base import Base, TrackedBase

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """Holds the borrowed session.  Reads belong in selectors."""

    def __init__(self, session: Session):
        self.session = session

    @staticmethod
    def _stamp(row: TrackedBase, actor_id: UUID | None) -> None:
        """Record who changed ``row`` last, when the caller named someone."""
        if actor_id is not None:
            row.updated_by_id = actor_id
