"""
auth/passwords.py -- Password hashing, verification, and policy checks.

Passwords: bcrypt, used directly rather than through passlib. passlib's
internal wrap-bug detection creates a password longer than 72 bytes, which
bcrypt 4.x rejects with an explicit error. bcrypt.gensalt() produces a fresh
random salt on every call, so two hashes of the same password never match.

Passwords are limited to 72 UTF-8 bytes, the most bcrypt will take. Both
check_password_policy() and hash_password() reject longer input with a
ValidationError.

verify_password() never raises. Empty input, a malformed digest, an over-long
password or a mismatch all return False -- the caller turns that into Unauthenticated.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import re

import bcrypt

from core.errors import ValidationError

DEFAULT_ROUNDS = 12
MAX_PASSWORD_BYTES = 72

# One uppercase letter, one digit, one special character from this set.
_SPECIAL_CHARS = "@$!%*?&#"
_UPPER_RE = re.compile(r"[A-Z]")
_DIGIT_RE = re.compile(r"\d")
_SPECIAL_RE = re.compile(f"[{re.escape(_SPECIAL_CHARS)}]")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def hash_password(plain: str, rounds: int = DEFAULT_ROUNDS) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    bcrypt only accepts up to 72 bytes of input (bcrypt 5 raises ValueError
    beyond that), so longer passwords are refused here as a ValidationError.
    The limit is in UTF-8 bytes, not characters.
    """
    if not plain:
        raise ValidationError("Password cannot be empty.")
    encoded = plain.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"Password cannot be longer than {MAX_PASSWORD_BYTES} bytes.")
    return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    if not plain or not hashed:
        return False
    try:
        encoded = plain.encode("utf-8")
        if len(encoded) > MAX_PASSWORD_BYTES:
            return False
        return bcrypt.checkpw(encoded, hashed.encode("utf-8"))
    except (ValueError, TypeError, AttributeError):
        # Malformed digest ("Invalid salt") or non-str input
        return False


def check_password_policy(plain: str, min_length: int = 8) -> None:
    """Raise ValidationError if the password does not meet the policy."""
    if not plain or not plain.strip():
        raise ValidationError("Password cannot be empty.")
    if len(plain.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"Password cannot be longer than {MAX_PASSWORD_BYTES} bytes.")
    if (
        len(plain) < min_length
        or not _UPPER_RE.search(plain)
        or not _DIGIT_RE.search(plain)
        or not _SPECIAL_RE.search(plain)
    ):
        raise ValidationError(
            f"Password must be at least {min_length} characters long, contain one uppercase letter, "
            f"one number, and one special character ({_SPECIAL_CHARS})."
        )


def check_email_format(email: str) -> None:
    if not email or not _EMAIL_RE.match(email):
        raise ValidationError("Invalid email format.")
