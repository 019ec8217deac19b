"""
auth/store.py -- SQLAlchemy Core persistence layer for identities.

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_identity is the mapper. Services never
touch SQL directly.

Error translation:
  IntegrityError (UNIQUE username / email) -> DuplicateError. Two concurrent
      registrations racing on the same email both pass the service-level
      lookup; the UNIQUE constraint serializes them and the loser sees this.
  Any other SQLAlchemyError -> StoreFailure, with the original chained.
  "Not found" is a normal outcome: lookups return None, updates/deletes False.

Security:
  All queries use bound parameters. No f-strings in SQL.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import Column, ForeignKey, Integer, MetaData, String, Table, Text, create_engine, event, select, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.models import Identity, Role
from core.errors import DuplicateError, StoreFailure

logger = logging.getLogger("coreid.auth.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("email", String(320), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("role", String(16), nullable=False, server_default=Role.USER.value),
    Column("parent_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True),
    Column("is_active", Integer, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
)

# Columns a caller may change through update(). id, parent_id and created_at
# are immutable once assigned.
_MUTABLE_FIELDS = frozenset({"username", "email", "hashed_password", "role", "is_active"})


# ---------------------------------------------------------------------------
# SQLite pragmas
# ---------------------------------------------------------------------------


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable foreign keys and WAL journal mode.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool. Foreign keys make deleting a company cascade
    to its employees.
    """
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for Identity records.

    Usage:
        store = UserStore("sqlite:///:memory:")
        user_id = store.insert(Identity(username="a", email="a@x.com", role=Role.USER, hashed_password=h))
        identity = store.find_by_email("a@x.com")
        store.close()
    """

    def __init__(self, db_url: str = "sqlite:///coreid.db") -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_sqlite_pragmas)
        _metadata.create_all(self.engine)

    @contextmanager
    def _connect(self) -> Iterator[Connection]:
        """Yield a connection, translating driver errors into CoreID errors."""
        try:
            with self.engine.connect() as conn:
                yield conn
        except IntegrityError as exc:
            raise DuplicateError("A user with that username or email already exists.") from exc
        except SQLAlchemyError as exc:
            logger.error("Store operation failed: %s", type(exc).__name__)
            raise StoreFailure("The user store is unavailable.") from exc

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def ping(self) -> bool:
        """Return True if the database answers a trivial query. Used by /health."""
        try:
            with self._connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except StoreFailure:
            return False

    def has_users(self) -> bool:
        with self._connect() as conn:
            result = conn.execute(text("SELECT COUNT(*) FROM users")).scalar()
        return (result or 0) > 0

    def find_by_id(self, user_id: int) -> Identity | None:
        with self._connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_identity(row) if row is not None else None

    def find_by_email(self, email: str) -> Identity | None:
        """Exact match. Emails are stored as given; callers normalize case if needed."""
        with self._connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_identity(row) if row is not None else None

    def find_by_username(self, username: str) -> Identity | None:
        with self._connect() as conn:
            row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
        return _row_to_identity(row) if row is not None else None

    def list_all(self) -> list[Identity]:
        with self._connect() as conn:
            rows = conn.execute(_users.select().order_by(_users.c.id)).fetchall()
        return [_row_to_identity(r) for r in rows]

    def list_children_of(self, parent_id: int) -> list[Identity]:
        with self._connect() as conn:
            rows = conn.execute(
                select(_users).where(_users.c.parent_id == parent_id).order_by(_users.c.id)
            ).fetchall()
        return [_row_to_identity(r) for r in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, identity: Identity) -> int:
        """Insert a new identity and return its assigned id.

        Raises DuplicateError if the username or email is already taken.
        """
        with self._connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    username=identity.username,
                    email=identity.email,
                    hashed_password=identity.hashed_password,
                    role=identity.role.value,
                    parent_id=identity.parent_id,
                    is_active=1 if identity.is_active else 0,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def update(self, user_id: int, **fields) -> bool:
        """Update mutable fields on an existing identity.

        Accepted fields: username, email, hashed_password, role, is_active.
        role may be a Role or its string value; is_active is stored as 0/1.

        Returns True if a row was updated, False if user_id was not found.
        """
        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown or immutable identity fields: {sorted(unknown)!r}")
        if not fields:
            return False
        if "is_active" in fields:
            fields["is_active"] = 1 if fields["is_active"] else 0
        if isinstance(fields.get("role"), Role):
            fields["role"] = fields["role"].value
        with self._connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def delete(self, user_id: int) -> bool:
        """Permanently delete an identity. Employees of a deleted company go with it."""
        with self._connect() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_identity(row) -> Identity:
    return Identity(
        id=row.id,
        username=row.username,
        email=row.email,
        hashed_password=row.hashed_password,
        role=Role(row.role),
        parent_id=row.parent_id,
        is_active=bool(row.is_active),
        created_at=row.created_at,
    )
