"""
API request and response models for CoreID REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Field-level checks here are transport hygiene only (lengths, types). The
business rules -- required fields, password policy, email format, role
values -- are enforced in auth/lifecycle.py and auth/directory.py so every
caller gets them, not only HTTP clients.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import Identity
from auth.tokens import ClaimSet

# Transport cap in characters. The 72-byte bcrypt limit is enforced in auth/passwords.py.
_PASSWORD_MAX = 72


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)


class MessageResponse(BaseModel):
    message: str


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(max_length=320)
    password: str = Field(max_length=_PASSWORD_MAX)


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class ResendRequest(BaseModel):
    user_id: int = Field(gt=0)


class ClaimsResponse(BaseModel):
    """Response for GET /api/v1/auth/me -- the verified token claims."""

    model_config = ConfigDict(frozen=True)

    user_id: int
    username: str
    role: str
    token_id: str
    issued_at: str
    expires_at: str

    @classmethod
    def from_claims(cls, claims: ClaimSet) -> "ClaimsResponse":
        return cls(
            user_id=claims.user_id,
            username=claims.subject,
            role=claims.role,
            token_id=claims.token_id,
            issued_at=claims.issued_at.isoformat(),
            expires_at=claims.expires_at.isoformat(),
        )


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserCreate(BaseModel):
    """Request body for POST /users and POST /users/company.

    All four fields default to "" so a missing field reaches the lifecycle
    and comes back as a ValidationError (400) with the same message as an
    empty one.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(default="", max_length=320)
    username: str = Field(default="", max_length=255)
    password: str = Field(default="", max_length=_PASSWORD_MAX)
    role: str = Field(default="", max_length=16)


class UserPatch(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: Optional[str] = Field(default=None, max_length=320)
    username: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = Field(default=None, max_length=_PASSWORD_MAX)
    role: Optional[str] = Field(default=None, max_length=16)


class ActivationPatch(BaseModel):
    is_active: bool


class UserSummary(BaseModel):
    """Row in GET /users. Deliberately minimal: id and username only."""

    id: int
    username: str


class UserResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    email: str
    role: str
    parent_id: Optional[int] = None
    is_active: bool
    created_at: str = ""

    @classmethod
    def from_identity(cls, identity: Identity) -> "UserResponse":
        return cls(
            id=identity.id,
            username=identity.username,
            email=identity.email,
            role=identity.role.value,
            parent_id=identity.parent_id,
            is_active=identity.is_active,
            created_at=identity.created_at or "",
        )


class RegistrationResponse(BaseModel):
    user: UserResponse
    verification_sent: bool
