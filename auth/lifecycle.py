"""
auth/lifecycle.py -- Registration and the activation state machine.

States (stored as Identity.is_active):
  PendingVerification  is_active=False, set by register()
  Active               is_active=True, reached by verify(token)
  Deactivated          is_active=False, set administratively by set_activation()

register() creates the account and then asks the mailer to deliver a
verification link. Delivery is fire-and-forget: a failed send is logged and
reported in RegistrationResult.delivered, but the account stays.

verify() on an account that is already active is a no-op success.
"""

from __future__ import annotations

import html
import logging

from auth.hierarchy import UserHierarchy
from auth.mailer import EmailSender
from auth.models import Identity, Registration, RegistrationResult, Role
from auth.passwords import check_email_format, check_password_policy, hash_password
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import Settings
from core.errors import AlreadyActivated, DuplicateError, NotFound, Unauthenticated, ValidationError

logger = logging.getLogger("coreid.auth.lifecycle")

VERIFICATION_SUBJECT = "Account Verification"


class AccountLifecycle:
    def __init__(
        self,
        store: UserStore,
        tokens: TokenService,
        mailer: EmailSender,
        hierarchy: UserHierarchy,
        settings: Settings,
    ) -> None:
        self._store = store
        self._tokens = tokens
        self._mailer = mailer
        self._hierarchy = hierarchy
        self._bcrypt_rounds = settings.bcrypt_rounds
        self._password_min_length = settings.password_min_length
        self._verification_url = settings.verification_url

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, details: Registration) -> RegistrationResult:
        """Create a PendingVerification account and mail its verification link.

        Raises:
            ValidationError: a required field is empty, or the email, password,
                role or parent id is invalid.
            DuplicateError: email or username already exists.
        """
        fields = {
            "email": details.email,
            "username": details.username,
            "password": details.password,
            "role": details.role,
        }
        empty = [name for name, value in fields.items() if not value or not str(value).strip()]
        if empty:
            raise ValidationError(f"All fields are required (missing: {', '.join(empty)}).")

        email = details.email.strip()
        username = details.username.strip()
        check_email_format(email)
        check_password_policy(details.password, self._password_min_length)
        role = Role.parse(details.role)
        self._hierarchy.validate_parent(details.parent_id)

        if self._store.find_by_email(email) is not None or self._store.find_by_username(username) is not None:
            raise DuplicateError("User already exists.")

        identity = Identity(
            username=username,
            email=email,
            role=role,
            hashed_password=hash_password(details.password, self._bcrypt_rounds),
            parent_id=details.parent_id,
            is_active=False,
        )
        # The UNIQUE constraints still catch a concurrent registration that
        # slipped past the lookups above; the store raises DuplicateError.
        identity.id = self._store.insert(identity)
        logger.info("Registered user id=%s (parent=%s)", identity.id, identity.parent_id)

        delivered = self._send_verification(identity)
        if not delivered:
            logger.warning("Verification email for user id=%s was not delivered", identity.id)
        return RegistrationResult(identity=identity, delivered=delivered)

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def verify(self, token: str) -> Identity:
        """Consume a verification token and activate its account.

        Raises Unauthenticated for an invalid/expired token and NotFound if the
        account no longer exists.
        """
        claims = self._tokens.decode(token)
        if claims is None:
            raise Unauthenticated("Invalid or expired token.")

        identity = self._store.find_by_id(claims.user_id)
        if identity is None:
            raise NotFound("User not found.")
        if identity.is_active:
            return identity

        self._store.update(identity.id, is_active=True)
        identity.is_active = True
        logger.info("Activated user id=%s", identity.id)
        return identity

    def resend(self, user_id: int) -> bool:
        """Mint a fresh verification token and mail it. Returns the delivery outcome."""
        identity = self._store.find_by_id(user_id)
        if identity is None:
            raise NotFound("User not found.")
        if identity.is_active:
            raise AlreadyActivated("User already activated.")
        return self._send_verification(identity)

    def set_activation(self, user_id: int, active: bool) -> Identity:
        """Administrative activate / deactivate. Unchanged state is a no-op."""
        identity = self._store.find_by_id(user_id)
        if identity is None:
            raise NotFound("User not found.")
        if identity.is_active != active:
            self._store.update(user_id, is_active=active)
            identity.is_active = active
            logger.info("User id=%s %s", user_id, "activated" if active else "deactivated")
        return identity

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def verification_link(self, token: str) -> str:
        return f"{self._verification_url}?token={token}"

    def _send_verification(self, identity: Identity) -> bool:
        token = self._tokens.issue(identity)
        body = (
            f"<p>Hello {html.escape(identity.username)},</p>"
            f'<p>Please confirm your email address by opening <a href="{self.verification_link(token)}">this link</a>.</p>'
        )
        return self._mailer.send(identity.email, VERIFICATION_SUBJECT, body)
