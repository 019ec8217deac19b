"""
auth/models.py -- Domain dataclasses for identity entities.

Pattern: Data class (pure data container, near-zero logic). Stores and
services do the work; these classes own the domain shape.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from core.errors import ValidationError


class Role(str, Enum):
    """Closed set of account roles. Values are the exact strings carried in tokens."""

    USER = "User"
    ADMIN = "Admin"
    SUPER = "Super"

    @classmethod
    def parse(cls, value: str) -> Role:
        """Parse a role from user input, ignoring case.

        Only used on registration/update input. Claims are matched
        case-sensitively in auth/policy.py.
        """
        for role in cls:
            if role.value.lower() == (value or "").strip().lower():
                return role
        raise ValidationError(f"Invalid role value: {value!r}")


@dataclass
class Identity:
    """The durable account record.

    parent_id is None for top-level ("company") accounts and for standalone
    users. A child ("employee") account points at a parent that itself has no
    parent -- the hierarchy is never deeper than two levels (auth/hierarchy.py).

    is_active is False from registration until the verification token is
    consumed (auth/lifecycle.py).
    """

    username: str
    email: str
    role: Role
    id: int | None = None
    hashed_password: str | None = None
    parent_id: int | None = None
    is_active: bool = False
    created_at: str | None = None


@dataclass
class Registration:
    """Input to AccountLifecycle.register(). Values are raw strings from the caller."""

    email: str
    username: str
    password: str
    role: str
    parent_id: int | None = None


@dataclass
class IdentityUpdate:
    """Partial update. None or "" means "leave unchanged"."""

    username: str | None = None
    email: str | None = None
    password: str | None = None
    role: str | None = None


@dataclass
class RegistrationResult:
    identity: Identity
    delivered: bool  # False when the verification mail could not be sent
