"""
tests/test_policy.py -- Unit tests for auth/policy.py (AuthorizationPolicy).

Claims are built directly so the role gate and the ownership gate can be
exercised independently of token signing.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from auth.hierarchy import UserHierarchy
from auth.models import Identity, Role
from auth.policy import Action, AuthorizationPolicy, Rule, Scope
from auth.tokens import ClaimSet


def _claims(user_id: int, role: str) -> ClaimSet:
    now = datetime.now(timezone.utc)
    return ClaimSet(subject=f"u{user_id}", token_id="t", user_id=user_id, role=role, issued_at=now, expires_at=now)


@pytest.fixture
def ids(store) -> dict[str, int]:
    def add(name, role, parent_id=None):
        return store.insert(
            Identity(username=name, email=f"{name}@x.com", role=role, hashed_password="x", parent_id=parent_id)
        )

    ids = {"super": add("super", Role.SUPER), "company": add("company", Role.ADMIN)}
    ids["employee"] = add("employee", Role.USER, ids["company"])
    ids["rival"] = add("rival", Role.ADMIN)
    ids["stranger"] = add("stranger", Role.USER, ids["rival"])
    return ids


@pytest.fixture
def policy(store) -> AuthorizationPolicy:
    return AuthorizationPolicy(UserHierarchy(store))


class TestRoleGate:
    @pytest.mark.parametrize(
        "role, allowed",
        [("Super", True), ("Admin", True), ("User", False)],
    )
    def test_list_users(self, policy, role, allowed):
        assert policy.can_act(_claims(1, role), Action.LIST_USERS) is allowed

    @pytest.mark.parametrize("action", [Action.UPDATE_USER, Action.DELETE_USER, Action.CHANGE_ACTIVATION])
    def test_super_only_actions(self, policy, action):
        assert policy.can_act(_claims(1, "Super"), action, 5) is True
        assert policy.can_act(_claims(1, "Admin"), action, 5) is False
        assert policy.can_act(_claims(1, "User"), action, 5) is False

    @pytest.mark.parametrize("role", ["Super", "Admin", "User"])
    def test_any_role_may_view(self, policy, role):
        assert policy.can_act(_claims(1, role), Action.VIEW_USER, 2) is True

    @pytest.mark.parametrize("role", ["super", "ADMIN", "Root", ""])
    def test_role_match_is_exact(self, policy, role):
        """Claims roles are not normalized; a wrong-cased role authorizes nothing."""
        assert policy.can_act(_claims(1, role), Action.VIEW_USER, 2) is False


class TestSelfScope:
    def test_update_self(self, policy):
        assert policy.can_act(_claims(3, "User"), Action.UPDATE_SELF, 3) is True
        assert policy.can_act(_claims(3, "User"), Action.UPDATE_SELF, 4) is False
        assert policy.can_act(_claims(3, "User"), Action.UPDATE_SELF) is False

    def test_view_parent_is_for_users_only(self, policy):
        assert policy.can_act(_claims(3, "User"), Action.VIEW_PARENT, 3) is True
        assert policy.can_act(_claims(3, "Admin"), Action.VIEW_PARENT, 3) is False

    def test_register_employee_requires_admin(self, policy):
        assert policy.can_act(_claims(2, "Admin"), Action.REGISTER_EMPLOYEE, 2) is True
        assert policy.can_act(_claims(2, "User"), Action.REGISTER_EMPLOYEE, 2) is False
        assert policy.can_act(_claims(2, "Super"), Action.REGISTER_EMPLOYEE, 2) is False


class TestChildScope:
    def test_company_manages_own_employee(self, policy, ids):
        claims = _claims(ids["company"], "Admin")
        assert policy.can_act(claims, Action.MANAGE_EMPLOYEE, ids["employee"]) is True

    def test_company_cannot_manage_other_employee(self, policy, ids):
        claims = _claims(ids["company"], "Admin")
        assert policy.can_act(claims, Action.MANAGE_EMPLOYEE, ids["stranger"]) is False

    def test_company_cannot_manage_itself_or_peers(self, policy, ids):
        claims = _claims(ids["company"], "Admin")
        assert policy.can_act(claims, Action.MANAGE_EMPLOYEE, ids["company"]) is False
        assert policy.can_act(claims, Action.MANAGE_EMPLOYEE, ids["rival"]) is False

    def test_super_does_not_pass_the_child_gate(self, policy, ids):
        claims = _claims(ids["super"], "Super")
        assert policy.can_act(claims, Action.MANAGE_EMPLOYEE, ids["employee"]) is False

    def test_missing_target(self, policy, ids):
        assert policy.can_act(_claims(ids["company"], "Admin"), Action.MANAGE_EMPLOYEE) is False


def test_custom_rules_replace_defaults(store):
    rules = {Action.LIST_USERS: Rule(frozenset({Role.USER}), Scope.ANY)}
    policy = AuthorizationPolicy(UserHierarchy(store), rules)
    assert policy.can_act(_claims(1, "User"), Action.LIST_USERS) is True
    assert policy.can_act(_claims(1, "Super"), Action.LIST_USERS) is False
    assert policy.can_act(_claims(1, "Super"), Action.VIEW_USER, 1) is False
