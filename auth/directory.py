"""
auth/directory.py -- Read, update and delete operations on identities.

Authorization is NOT checked here. Callers (the API layer) decide with
AuthService.can_act() before calling in; this module only enforces data rules:
field validation, uniqueness, and re-hashing of changed passwords.
"""

from __future__ import annotations

import logging

from auth.models import Identity, IdentityUpdate, Role
from auth.passwords import check_email_format, check_password_policy, hash_password, verify_password
from auth.store import UserStore
from core.config import Settings
from core.errors import DuplicateError, NotFound, ValidationError

logger = logging.getLogger("coreid.auth.directory")


class UserDirectory:
    def __init__(self, store: UserStore, settings: Settings) -> None:
        self._store = store
        self._bcrypt_rounds = settings.bcrypt_rounds
        self._password_min_length = settings.password_min_length

    def get(self, user_id: int) -> Identity:
        identity = self._store.find_by_id(user_id)
        if identity is None:
            raise NotFound("User not found.")
        return identity

    def list_all(self) -> list[Identity]:
        return self._store.list_all()

    def update(self, user_id: int, changes: IdentityUpdate) -> Identity:
        """Apply each supplied field that differs from the stored value.

        Returns the updated identity. Nothing is written if nothing changed.
        """
        identity = self.get(user_id)
        fields: dict = {}

        if changes.email and changes.email.strip() != identity.email:
            email = changes.email.strip()
            check_email_format(email)
            existing = self._store.find_by_email(email)
            if existing is not None and existing.id != user_id:
                raise DuplicateError("A user with that email already exists.")
            fields["email"] = email

        if changes.username and changes.username.strip() != identity.username:
            username = changes.username.strip()
            if not username:
                raise ValidationError("Username cannot be empty.")
            existing = self._store.find_by_username(username)
            if existing is not None and existing.id != user_id:
                raise DuplicateError("A user with that username already exists.")
            fields["username"] = username

        if changes.password and not verify_password(changes.password, identity.hashed_password or ""):
            check_password_policy(changes.password, self._password_min_length)
            fields["hashed_password"] = hash_password(changes.password, self._bcrypt_rounds)

        if changes.role:
            role = Role.parse(changes.role)
            if role is not identity.role:
                fields["role"] = role

        if fields:
            self._store.update(user_id, **fields)
            logger.info("Updated user id=%s fields=%s", user_id, sorted(fields))
        return self.get(user_id)

    def delete(self, user_id: int) -> None:
        if not self._store.delete(user_id):
            raise NotFound("User not found.")
        logger.info("Deleted user id=%s", user_id)
