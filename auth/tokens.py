"""
auth/tokens.py -- JWT issuance, verification, and claim extraction.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       sub (username), jti (random token id), user_id, role, iat, exp, iss and
       aud. There is no server-side session table: expiry is the only way a
       token stops working.

  verify() returns False on any failure (bad signature, wrong algorithm,
       wrong issuer/audience, expired, malformed). It never raises -- an
       invalid token means "unauthenticated", not a system fault.

  claims() parses WITHOUT checking the signature. It exists for lightweight
       extraction only. Anything that authorizes must go through decode() or
       verify() first; AuthService.claims() does exactly that.

  Configuration is checked once, in TokenService.__init__. A missing key,
       issuer or audience, or a non-positive expiry, raises ConfigurationError
       at startup rather than on the first login.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from auth.models import Identity
from core.config import Settings
from core.errors import ConfigurationError, MalformedTokenError

logger = logging.getLogger("coreid.auth.tokens")

ALGORITHM = "HS256"

_REQUIRED_CLAIMS = ("sub", "jti", "user_id", "role", "iat", "exp")


@dataclass(frozen=True)
class ClaimSet:
    """Identity attributes carried inside a token. Never persisted."""

    subject: str
    token_id: str
    user_id: int
    role: str
    issued_at: datetime
    expires_at: datetime

    @classmethod
    def from_payload(cls, payload: dict) -> ClaimSet:
        missing = [name for name in _REQUIRED_CLAIMS if name not in payload]
        if missing:
            raise MalformedTokenError(f"Token is missing claims: {', '.join(missing)}")
        try:
            return cls(
                subject=str(payload["sub"]),
                token_id=str(payload["jti"]),
                user_id=int(payload["user_id"]),
                role=str(payload["role"]),
                issued_at=datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc),
                expires_at=datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc),
            )
        except (TypeError, ValueError, OverflowError, OSError) as exc:
            raise MalformedTokenError("Token claims have the wrong type or are out of range.") from exc


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    """Signs and checks session / verification tokens.

    Usage:
        tokens = TokenService(get_settings())
        token = tokens.issue(identity)
        if tokens.verify(token):
            claims = tokens.claims(token)

    clock is injectable so tests can mint tokens "in the past". Verification
    always uses the real wall clock (python-jose reads it internally).
    """

    def __init__(self, settings: Settings, clock: Callable[[], datetime] | None = None) -> None:
        if not settings.secret_key:
            raise ConfigurationError("JWT signing key is not configured.")
        if not settings.jwt_issuer or not settings.jwt_audience:
            raise ConfigurationError("JWT issuer and audience must both be configured.")
        expire = settings.token_expire_minutes
        if isinstance(expire, bool) or not isinstance(expire, int) or expire <= 0:
            raise ConfigurationError(f"Invalid JWT expiration time configuration: {expire!r}")

        self._key = settings.secret_key
        self._issuer = settings.jwt_issuer
        self._audience = settings.jwt_audience
        self._lifetime = timedelta(minutes=expire)
        self._clock = clock or _utcnow

    @property
    def lifetime_seconds(self) -> int:
        return int(self._lifetime.total_seconds())

    def issue(self, identity: Identity) -> str:
        """Encode a signed JWT for the identity. Each call gets a fresh jti."""
        if identity.id is None:
            raise ValueError("Cannot issue a token for an identity without an id.")
        now = self._clock()
        payload = {
            "sub": identity.username,
            "jti": uuid.uuid4().hex,
            "user_id": identity.id,
            "role": identity.role.value,
            "iat": now,
            "exp": now + self._lifetime,
            "iss": self._issuer,
            "aud": self._audience,
        }
        return jwt.encode(payload, self._key, algorithm=ALGORITHM)

    def decode(self, token: str) -> ClaimSet | None:
        """Verify signature, algorithm, issuer, audience and expiry, then build the ClaimSet.

        Returns None on any failure.
        """
        if not token:
            return None
        try:
            payload = jwt.decode(
                token,
                self._key,
                algorithms=[ALGORITHM],
                audience=self._audience,
                issuer=self._issuer,
                options={"require_exp": True, "require_iat": True, "require_jti": True, "require_sub": True},
            )
            return ClaimSet.from_payload(payload)
        except (JWTError, MalformedTokenError) as exc:
            logger.debug("Token rejected: %s", type(exc).__name__)
            return None

    def verify(self, token: str) -> bool:
        return self.decode(token) is not None

    def claims(self, token: str) -> ClaimSet:
        """Extract claims without verifying the signature.

        Raises MalformedTokenError if the token cannot be parsed at all.
        """
        if not token:
            raise MalformedTokenError("Token is empty.")
        try:
            payload = jwt.get_unverified_claims(token)
        except JWTError as exc:
            raise MalformedTokenError("Token could not be parsed.") from exc
        return ClaimSet.from_payload(payload)
