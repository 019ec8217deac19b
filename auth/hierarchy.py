"""
auth/hierarchy.py -- Two-level company / employee ownership.

The hierarchy is a single optional parent_id on each Identity plus one guard:
a parent must exist and must not itself have a parent. That keeps depth <= 2
and rules out cycles without any graph traversal. Edges are created when a
child is registered and never re-parented.
"""

from __future__ import annotations

from auth.models import Identity
from auth.store import UserStore
from core.errors import ValidationError


class UserHierarchy:
    def __init__(self, store: UserStore) -> None:
        self._store = store

    def children_of(self, user_id: int) -> list[Identity]:
        return self._store.list_children_of(user_id)

    def parent_of(self, user_id: int) -> Identity | None:
        """Return the parent of user_id, or None if it is top-level or does not exist."""
        child = self._store.find_by_id(user_id)
        if child is None or child.parent_id is None:
            return None
        return self._store.find_by_id(child.parent_id)

    def is_parent_of(self, parent_id: int, child_id: int) -> bool:
        parent = self.parent_of(child_id)
        return parent is not None and parent.id == parent_id

    def validate_parent(self, parent_id: int | None) -> None:
        """Raise ValidationError unless parent_id may own a new child.

        None is always acceptable (top-level account).
        """
        if parent_id is None:
            return
        if isinstance(parent_id, bool) or not isinstance(parent_id, int) or parent_id <= 0:
            raise ValidationError("Invalid parent id.")
        parent = self._store.find_by_id(parent_id)
        if parent is None:
            raise ValidationError(f"Parent user {parent_id} does not exist.")
        if parent.parent_id is not None:
            raise ValidationError("A child account cannot own other accounts.")
