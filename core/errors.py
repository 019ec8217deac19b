"""
core/errors.py -- Exception taxonomy shared by auth/ and api/.

Domain errors (ValidationError, DuplicateError, Unauthenticated, NotFound,
AlreadyActivated) are expected outcomes. The core raises them and the API layer
maps each class to a precise HTTP status in api/main.py. ConfigurationError is
a startup-time failure. StoreFailure wraps an unexpected persistence fault and
always surfaces as an opaque 500.

Layer rule: core/ is the kernel. No imports from api/ or auth/.
"""

from __future__ import annotations


class CoreIDError(Exception):
    """Base class for every error raised by CoreID."""

    code = "error"


class ValidationError(CoreIDError):
    """Malformed or missing input -- the caller's fault."""

    code = "validation_error"


class DuplicateError(CoreIDError):
    """Username or email already taken."""

    code = "conflict"


class Unauthenticated(CoreIDError):
    """Bad credentials or an invalid / expired token.

    The message is always generic. It must never reveal whether the account
    exists or which check failed.
    """

    code = "unauthenticated"

    def __init__(self, message: str = "Invalid credentials.") -> None:
        super().__init__(message)


class NotFound(CoreIDError):
    code = "not_found"


class AlreadyActivated(CoreIDError):
    code = "already_activated"


class ConfigurationError(CoreIDError):
    """Missing or malformed startup configuration (signing key, issuer, ...)."""

    code = "configuration_error"


class MalformedTokenError(CoreIDError):
    """Token could not be parsed at all (not a JWT, missing claims)."""

    code = "malformed_token"


class StoreFailure(CoreIDError):
    """Opaque persistence fault. The original exception is chained as __cause__."""

    code = "store_failure"
