"""
tests/conftest.py -- Shared test fixtures for CoreID.

This module provides:
  - settings / store / mailer / service: isolated unit-test wiring over an
    in-memory SQLite store and a MagicMock email sender
  - api: a TestClient over the real FastAPI app with a patched lifespan and a
    seeded directory (SuperAdmin, Admin, Guest, Company1 -> Employee1)

Design: the API fixture uses a named shared-memory SQLite URI (not plain
:memory:) because TestClient runs sync route handlers in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread.

Environment variables must be set before any project import so get_settings()
sees them: DEBUG auto-generates SECRET_KEY, BCRYPT_ROUNDS keeps hashing fast,
LOGIN_RATE_LIMIT keeps the limiter out of the way.
"""

from __future__ import annotations

import os
import re
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from unittest.mock import MagicMock

# CRITICAL: Set before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import Identity, Registration
from auth.service import AuthService, build_auth_service
from auth.store import UserStore
from core.config import Settings
from main import seed

TEST_SECRET = "test-secret-key-0123456789-abcdefghijkl"
SEED_PASSWORD = "Admin123!"

_TOKEN_RE = re.compile(r"token=([A-Za-z0-9_\-.]+)")


def make_settings(**overrides) -> Settings:
    values = {
        "debug": True,
        "secret_key": TEST_SECRET,
        "bcrypt_rounds": 4,
        "jwt_issuer": "coreid-test",
        "jwt_audience": "coreid-test-clients",
        "token_expire_minutes": 60,
        "verification_url": "http://localhost/api/v1/auth/verify",
        "smtp_host": "",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_mailer(delivered: bool = True) -> MagicMock:
    mailer = MagicMock()
    mailer.send.return_value = delivered
    return mailer


def mailed_token(mailer: MagicMock) -> str:
    """Pull the verification token out of the most recent email body."""
    body = mailer.send.call_args.args[2]
    match = _TOKEN_RE.search(body)
    assert match, f"No verification link in email body: {body!r}"
    return match.group(1)


def registration(name: str, role: str = "User", parent_id: int | None = None) -> Registration:
    return Registration(
        email=f"{name}@example.com",
        username=name,
        password="Abcdef1!",
        role=role,
        parent_id=parent_id,
    )


# ---------------------------------------------------------------------------
# Unit-test fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    s = UserStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def mailer() -> MagicMock:
    return make_mailer()


@pytest.fixture
def service(settings: Settings, store: UserStore, mailer: MagicMock) -> AuthService:
    return build_auth_service(settings, store, mailer)


# ---------------------------------------------------------------------------
# API fixture -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@dataclass
class ApiContext:
    client: TestClient
    service: AuthService
    mailer: MagicMock
    users: dict[str, Identity]

    def token_for(self, username: str) -> str:
        return self.service.tokens.issue(self.users[username])

    def headers_for(self, username: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token_for(username)}"}


def _patch_lifespan(settings: Settings, store: UserStore, service: AuthService):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = settings
        app.state.user_store = store
        app.state.auth_service = service
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api(request) -> Generator[ApiContext, None, None]:
    """Yield an ApiContext over a freshly seeded, module-private database."""
    test_settings = make_settings()
    db_name = re.sub(r"\W", "_", request.module.__name__)
    user_store = UserStore(db_url=f"sqlite:///file:{db_name}?mode=memory&cache=shared&uri=true")
    seed(user_store, test_settings, SEED_PASSWORD)
    test_mailer = make_mailer()
    auth_service = build_auth_service(test_settings, user_store, test_mailer)
    users = {u.username: u for u in user_store.list_all()}

    app.router.lifespan_context = _patch_lifespan(test_settings, user_store, auth_service)

    with TestClient(app, base_url="http://localhost", raise_server_exceptions=True) as client:
        yield ApiContext(client=client, service=auth_service, mailer=test_mailer, users=users)

    user_store.close()
