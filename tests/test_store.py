"""
tests/test_store.py -- Unit tests for auth/store.py (UserStore).

Uses an in-memory SQLite database per test (store fixture in conftest.py).
"""

from __future__ import annotations

import pytest
from sqlalchemy import text

from auth.models import Identity, Role
from core.errors import DuplicateError, StoreFailure


def _identity(name: str, role: Role = Role.USER, parent_id: int | None = None) -> Identity:
    return Identity(
        username=name,
        email=f"{name}@example.com",
        role=role,
        hashed_password="$2b$04$placeholderplaceholderplaceholderplaceholderpla",
        parent_id=parent_id,
    )


class TestInsertAndFind:
    def test_insert_assigns_increasing_ids(self, store):
        first = store.insert(_identity("a"))
        second = store.insert(_identity("b"))
        assert second > first

    def test_find_by_id_email_username(self, store):
        user_id = store.insert(_identity("alice", Role.ADMIN))
        by_id = store.find_by_id(user_id)
        assert by_id is not None
        assert by_id.role is Role.ADMIN
        assert by_id.is_active is False
        assert by_id.created_at
        assert store.find_by_email("alice@example.com").id == user_id
        assert store.find_by_username("alice").id == user_id

    def test_missing_lookups_return_none(self, store):
        assert store.find_by_id(999) is None
        assert store.find_by_email("nobody@example.com") is None
        assert store.find_by_username("nobody") is None

    def test_has_users(self, store):
        assert store.has_users() is False
        store.insert(_identity("a"))
        assert store.has_users() is True

    def test_list_all_is_ordered_by_id(self, store):
        for name in ("c", "a", "b"):
            store.insert(_identity(name))
        assert [u.username for u in store.list_all()] == ["c", "a", "b"]


class TestUniqueness:
    def test_duplicate_email(self, store):
        store.insert(_identity("alice"))
        clash = _identity("alice2")
        clash.email = "alice@example.com"
        with pytest.raises(DuplicateError):
            store.insert(clash)

    def test_duplicate_username(self, store):
        store.insert(_identity("alice"))
        clash = _identity("alice")
        clash.email = "other@example.com"
        with pytest.raises(DuplicateError):
            store.insert(clash)

    def test_update_into_existing_email(self, store):
        store.insert(_identity("alice"))
        bob = store.insert(_identity("bob"))
        with pytest.raises(DuplicateError):
            store.update(bob, email="alice@example.com")


class TestUpdate:
    def test_update_fields(self, store):
        user_id = store.insert(_identity("alice"))
        assert store.update(user_id, username="alicia", role=Role.SUPER, is_active=True) is True
        updated = store.find_by_id(user_id)
        assert updated.username == "alicia"
        assert updated.role is Role.SUPER
        assert updated.is_active is True

    def test_update_missing_user_returns_false(self, store):
        assert store.update(404, username="ghost") is False

    def test_no_fields_is_a_noop(self, store):
        user_id = store.insert(_identity("alice"))
        assert store.update(user_id) is False

    @pytest.mark.parametrize("field", ["id", "parent_id", "created_at", "nickname"])
    def test_immutable_or_unknown_field(self, store, field):
        user_id = store.insert(_identity("alice"))
        with pytest.raises(ValueError):
            store.update(user_id, **{field: 1})


class TestDeleteAndHierarchy:
    def test_delete(self, store):
        user_id = store.insert(_identity("alice"))
        assert store.delete(user_id) is True
        assert store.find_by_id(user_id) is None
        assert store.delete(user_id) is False

    def test_children_listed_by_parent(self, store):
        company = store.insert(_identity("acme", Role.ADMIN))
        store.insert(_identity("e1", parent_id=company))
        store.insert(_identity("e2", parent_id=company))
        store.insert(_identity("loner"))
        assert [u.username for u in store.list_children_of(company)] == ["e1", "e2"]

    def test_deleting_parent_removes_children(self, store):
        company = store.insert(_identity("acme", Role.ADMIN))
        employee = store.insert(_identity("e1", parent_id=company))
        store.delete(company)
        assert store.find_by_id(employee) is None


class TestFailures:
    def test_ping_healthy(self, store):
        assert store.ping() is True

    def test_driver_errors_become_store_failure(self, store):
        with store.engine.connect() as conn:
            conn.execute(text("DROP TABLE users"))
            conn.commit()
        with pytest.raises(StoreFailure) as excinfo:
            store.find_by_id(1)
        assert excinfo.value.__cause__ is not None
