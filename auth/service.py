"""
auth/service.py -- AuthService, the single entry point for callers.

AuthService composes the hasher, TokenService, AccountLifecycle,
UserHierarchy, AuthorizationPolicy and UserDirectory. The API layer talks to
this class only.

Security design decisions:
  [C1] login() always runs bcrypt, even when the email is unknown. A dummy
       hash with the same cost factor is computed once at construction, so
       response time does not reveal whether an account exists.

  login() failures all raise the same Unauthenticated("Invalid credentials.").
       The log line carries the reason; the caller never sees it.

  claims() verifies the token before returning anything. TokenService.claims()
       is the unverified extractor and is never exposed to callers.
"""

from __future__ import annotations

import logging

from auth.directory import UserDirectory
from auth.hierarchy import UserHierarchy
from auth.lifecycle import AccountLifecycle
from auth.mailer import EmailSender
from auth.models import Identity, IdentityUpdate, Registration, RegistrationResult, Role
from auth.passwords import hash_password, verify_password
from auth.policy import Action, AuthorizationPolicy
from auth.store import UserStore
from auth.tokens import ClaimSet, TokenService
from core.config import Settings
from core.errors import NotFound, Unauthenticated, ValidationError

logger = logging.getLogger("coreid.auth")


class AuthService:
    def __init__(
        self,
        store: UserStore,
        tokens: TokenService,
        lifecycle: AccountLifecycle,
        hierarchy: UserHierarchy,
        policy: AuthorizationPolicy,
        directory: UserDirectory,
        bcrypt_rounds: int = 12,
    ) -> None:
        self.store = store
        self.tokens = tokens
        self.lifecycle = lifecycle
        self.hierarchy = hierarchy
        self.policy = policy
        self.directory = directory
        # Timing equalization [C1]
        self._dummy_hash = hash_password("coreid_timing_dummy", bcrypt_rounds)

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    def authenticate(self, email: str, password: str) -> Identity:
        """Return the identity for a valid email/password pair, else raise Unauthenticated."""
        if not email or not password:
            logger.warning("Login attempt with missing credentials")
            raise Unauthenticated()

        identity = self.store.find_by_email(email.strip())
        if identity is None or not identity.hashed_password:
            # Equalize timing -- do NOT return before running bcrypt [C1]
            verify_password(password, self._dummy_hash)
            logger.warning("Failed login: unknown email")
            raise Unauthenticated()
        if not verify_password(password, identity.hashed_password):
            logger.warning("Failed login: bad password for user id=%s", identity.id)
            raise Unauthenticated()
        return identity

    def login(self, email: str, password: str) -> str:
        """Return a signed session token for valid credentials."""
        identity = self.authenticate(email, password)
        logger.info("User id=%s logged in", identity.id)
        return self.tokens.issue(identity)

    def claims(self, token: str) -> ClaimSet:
        """Return the verified claims carried by token, or raise Unauthenticated."""
        claims = self.tokens.decode(token)
        if claims is None:
            raise Unauthenticated("Invalid or expired token.")
        return claims

    # ------------------------------------------------------------------
    # Account lifecycle
    # ------------------------------------------------------------------

    def register(self, details: Registration) -> RegistrationResult:
        return self.lifecycle.register(details)

    def register_self(self, details: Registration) -> RegistrationResult:
        """Public sign-up. Only plain User accounts can be created this way."""
        _require_user_role(details, "Self-registration is limited to the User role.")
        details.parent_id = None
        return self.lifecycle.register(details)

    def register_employee(self, parent_id: int, details: Registration) -> RegistrationResult:
        """Register a User account owned by parent_id."""
        _require_user_role(details, "Employee accounts must have the User role.")
        details.parent_id = parent_id
        return self.lifecycle.register(details)

    def verify(self, token: str) -> Identity:
        return self.lifecycle.verify(token)

    def resend(self, user_id: int) -> bool:
        return self.lifecycle.resend(user_id)

    def set_activation(self, user_id: int, active: bool) -> Identity:
        return self.lifecycle.set_activation(user_id, active)

    # ------------------------------------------------------------------
    # Authorization and hierarchy
    # ------------------------------------------------------------------

    def can_act(self, claims: ClaimSet, action: Action, target_id: int | None = None) -> bool:
        return self.policy.can_act(claims, action, target_id)

    def children_of(self, user_id: int) -> list[Identity]:
        return self.hierarchy.children_of(user_id)

    def parent_of(self, user_id: int) -> Identity:
        parent = self.hierarchy.parent_of(user_id)
        if parent is None:
            raise NotFound("Parent user not found.")
        return parent

    # ------------------------------------------------------------------
    # Directory
    # ------------------------------------------------------------------

    def get_user(self, user_id: int) -> Identity:
        return self.directory.get(user_id)

    def list_users(self) -> list[Identity]:
        return self.directory.list_all()

    def update_user(self, user_id: int, changes: IdentityUpdate) -> Identity:
        return self.directory.update(user_id, changes)

    def delete_user(self, user_id: int) -> None:
        self.directory.delete(user_id)


def _require_user_role(details: Registration, message: str) -> None:
    # An empty role is left for the lifecycle's required-field check.
    if details.role and details.role.strip() and Role.parse(details.role) is not Role.USER:
        raise ValidationError(message)


def build_auth_service(settings: Settings, store: UserStore, mailer: EmailSender) -> AuthService:
    """Wire an AuthService from settings and its two external collaborators.

    Raises ConfigurationError if the token configuration is unusable.
    """
    tokens = TokenService(settings)
    hierarchy = UserHierarchy(store)
    return AuthService(
        store=store,
        tokens=tokens,
        lifecycle=AccountLifecycle(store, tokens, mailer, hierarchy, settings),
        hierarchy=hierarchy,
        policy=AuthorizationPolicy(hierarchy),
        directory=UserDirectory(store, settings),
        bcrypt_rounds=settings.bcrypt_rounds,
    )
