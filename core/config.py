"""
core/config.py -- CoreID settings, read once from the environment.

Every knob CoreID has lives on Settings: the token signing key and lifetime,
bcrypt cost, password policy, SMTP delivery, the verification link target and
the login rate limit. Nothing else in the project reads os.environ. Services
receive a Settings instance by injection (see auth/service.build_auth_service);
only entry points (api/main.py, main.py) call get_settings().

Env var names are the upper-cased field names (secret_key -> SECRET_KEY,
token_expire_minutes -> TOKEN_EXPIRE_MINUTES). A .env file in the working
directory is read too.

Signing key policy:
  [M7] DEBUG=true with no SECRET_KEY: a random key is generated and a warning
       logged. Tokens die with the process.
       DEBUG unset/false with no SECRET_KEY: Settings() raises.
  [M6] Any key shorter than 32 characters is rejected.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("coreid.config")

_MIN_KEY_LENGTH = 32


class Settings(BaseSettings):
    """CoreID configuration. Every field has a default except the production signing key."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # "" means unset; validate_secret_key() replaces it or fails,
    # so no caller ever sees an empty key.
    secret_key: str = ""
    database_url: str = "sqlite:///coreid.db"

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    jwt_issuer: str = "coreid"
    jwt_audience: str = "coreid-clients"
    token_expire_minutes: int = 60
    secure_cookies: bool = False

    # ------------------------------------------------------------------
    # Password policy
    # ------------------------------------------------------------------

    # 12 is the bcrypt library default. Tests lower this to keep suites fast.
    bcrypt_rounds: int = 12
    password_min_length: int = 8

    # ------------------------------------------------------------------
    # Account verification mail (SMTP). Empty host disables delivery.
    # ------------------------------------------------------------------

    verification_url: str = "http://localhost:8000/api/v1/auth/verify"
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_use_tls: bool = True
    smtp_sender_email: str = "noreply@coreid.local"
    smtp_sender_name: str = "CoreID"

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Fill in or reject SECRET_KEY according to DEBUG [M6][M7]."""
        if not self.secret_key:
            if not self.debug:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set it in the environment or .env, or set DEBUG=true for local development."
                )
            self.secret_key = secrets.token_hex(_MIN_KEY_LENGTH)
            logger.warning("No SECRET_KEY set; generated a throwaway key (DEBUG mode). Tokens will not survive a restart.")
        if len(self.secret_key) < _MIN_KEY_LENGTH:
            raise ValueError(f"SECRET_KEY must be at least {_MIN_KEY_LENGTH} characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Process-wide Settings, built on first call.

    Tests that change the environment must call get_settings.cache_clear().
    """
    return Settings()
