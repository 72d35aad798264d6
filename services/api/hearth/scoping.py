"""Household-scoped data access.

Routers and AI tools never query household-owned tables directly. They go
through a ``HouseholdScope``, which carries the caller's household id and adds
the ``household_id`` predicate to every query it builds.
"""

from __future__ import annotations

from typing import Optional, TypeVar

from sqlalchemy.orm import Query, Session

from .db import Base
from .models import List, ListShare

M = TypeVar("M", bound=Base)


class HouseholdScope:
    def __init__(self, db: Session, household_id: str):
        self.db = db
        self.household_id = household_id

    def query(self, model: type[M]) -> Query:
        return self.db.query(model).filter(model.household_id == self.household_id)

    def get(self, model: type[M], entity_id: Optional[str]) -> Optional[M]:
        if not entity_id:
            return None
        return self.query(model).filter(model.id == entity_id).first()

    def exists(self, model: type[M], entity_id: Optional[str]) -> bool:
        return self.get(model, entity_id) is not None

    def add(self, obj: M) -> M:
        obj.household_id = self.household_id
        self.db.add(obj)
        return obj

    def delete(self, model: type[M], entity_id: str) -> bool:
        obj = self.get(model, entity_id)
        if obj is None:
            return False
        self.db.delete(obj)
        return True

    def accessible_lists(self, user_id: str) -> Query:
        """Lists the user may see: own, shared with them, or legacy (no creator)."""
        shared = (
            self.db.query(ListShare.id)
            .filter(ListShare.list_id == List.id, ListShare.user_id == user_id)
            .exists()
        )
        return self.query(List).filter(
            (List.created_by_id.is_(None)) | (List.created_by_id == user_id) | shared
        )

    def get_accessible_list(self, list_id: str, user_id: str) -> Optional[List]:
        return self.accessible_lists(user_id).filter(List.id == list_id).first()
