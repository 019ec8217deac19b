"""
auth/policy.py -- Role and ownership based authorization.

Every action declares two things:
  roles -- the roles allowed to attempt it at all (the role gate).
  scope -- what the target id must be relative to the caller:
             ANY   -- no ownership check
             SELF  -- target must be the caller's own id
             CHILD -- target must be an employee whose parent is the caller

can_act() passes only if both gates pass. Role strings from claims are matched
case-sensitively against Role values; an unknown role authorizes nothing.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from auth.hierarchy import UserHierarchy
from auth.models import Role
from auth.tokens import ClaimSet

_ALL_ROLES = frozenset(Role)


class Scope(str, Enum):
    ANY = "any"
    SELF = "self"
    CHILD = "child"


@dataclass(frozen=True)
class Rule:
    roles: frozenset[Role]
    scope: Scope = Scope.ANY


class Action(str, Enum):
    LIST_USERS = "users.list"
    VIEW_USER = "users.view"
    UPDATE_USER = "users.update"
    DELETE_USER = "users.delete"
    CHANGE_ACTIVATION = "users.activation"
    UPDATE_SELF = "self.update"
    DELETE_SELF = "self.delete"
    VIEW_PARENT = "company.parent"
    REGISTER_EMPLOYEE = "company.register"
    LIST_EMPLOYEES = "company.employees"
    MANAGE_EMPLOYEE = "company.manage"


RULES: dict[Action, Rule] = {
    Action.LIST_USERS: Rule(frozenset({Role.ADMIN, Role.SUPER})),
    Action.VIEW_USER: Rule(_ALL_ROLES),
    Action.UPDATE_USER: Rule(frozenset({Role.SUPER})),
    Action.DELETE_USER: Rule(frozenset({Role.SUPER})),
    Action.CHANGE_ACTIVATION: Rule(frozenset({Role.SUPER})),
    Action.UPDATE_SELF: Rule(_ALL_ROLES, Scope.SELF),
    Action.DELETE_SELF: Rule(_ALL_ROLES, Scope.SELF),
    Action.VIEW_PARENT: Rule(frozenset({Role.USER}), Scope.SELF),
    Action.REGISTER_EMPLOYEE: Rule(frozenset({Role.ADMIN}), Scope.SELF),
    Action.LIST_EMPLOYEES: Rule(frozenset({Role.ADMIN, Role.SUPER}), Scope.SELF),
    Action.MANAGE_EMPLOYEE: Rule(frozenset({Role.ADMIN}), Scope.CHILD),
}


def _role_from_claim(value: str) -> Role | None:
    try:
        return Role(value)
    except ValueError:
        return None


class AuthorizationPolicy:
    def __init__(self, hierarchy: UserHierarchy, rules: dict[Action, Rule] | None = None) -> None:
        self._hierarchy = hierarchy
        self._rules = rules or RULES

    def can_act(self, claims: ClaimSet, action: Action, target_id: int | None = None) -> bool:
        rule = self._rules.get(action)
        if rule is None:
            return False
        role = _role_from_claim(claims.role)
        if role is None or role not in rule.roles:
            return False

        if rule.scope is Scope.SELF:
            return target_id is not None and claims.user_id == target_id
        if rule.scope is Scope.CHILD:
            return target_id is not None and self._hierarchy.is_parent_of(claims.user_id, target_id)
        return True
