"""
auth/store.py -- SQLAlchemy Core persistence layer for users and sessions.

Pattern: Repository + Data Mapper.
AuthStore is the repository; _row_to_user / _row_to_session are the mappers.
Route and service code never touches SQL directly.

IdentityStore and SessionStore are the contracts the service depends on.
AuthStore satisfies both against one database; tests may substitute any
object with the same methods.

Security:
  All queries use bound parameters. No f-strings in SQL.

  users.email is UNIQUE. The service still checks for an existing account
  before inserting, but the constraint is what decides a concurrent sign-up:
  the losing insert raises IntegrityError, which the service reports as
  "already exists".

Timestamps are stored as ISO 8601 UTC strings and mapped back to aware
datetimes, so the same code works on SQLite and Postgres.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import Column, ForeignKey, MetaData, String, Table, Text, create_engine, event, select, text
from sqlalchemy.engine import Engine

from auth.models import Session, User

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("name", Text, nullable=False),
    Column("email", String(320), nullable=False, unique=True),  # lower-cased by the service
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_sessions = Table(
    "sessions",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("token", String(64), nullable=False, unique=True),  # secrets.token_hex(32)
    Column("user_id", String(36), ForeignKey("users.id"), nullable=False, index=True),
    Column("expires_at", String(32), nullable=False),
    Column("ip_address", String(64)),
    Column("user_agent", Text),
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Contracts
# ---------------------------------------------------------------------------


class IdentityStore(Protocol):
    def find_user_by_email(self, email: str) -> User | None: ...

    def find_user_by_id(self, user_id: str) -> User | None: ...

    def insert_user(self, user: User) -> User: ...


class SessionStore(Protocol):
    def insert_session(self, session: Session) -> Session | None: ...

    def find_session_with_user_by_token(self, token: str) -> tuple[Session, User] | None: ...


# ---------------------------------------------------------------------------
# SQLite connection setup
# ---------------------------------------------------------------------------


def _configure_sqlite(dbapi_conn, connection_record) -> None:
    """Enable WAL mode and foreign key enforcement on every new connection.

    SQLite PRAGMAs are per-connection and not inherited from the pool.
    foreign_keys is off by default in SQLite, so without it a session could
    reference a user id that does not exist.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _to_iso(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat()


def _from_iso(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AuthStore:
    """Repository for User and Session entities.

    Usage:
        store = AuthStore("sqlite:///:memory:")
        user = store.insert_user(User(name="Jane Doe", email="jane@example.com"))
        store.find_user_by_email("jane@example.com")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _configure_sqlite)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def find_user_by_email(self, email: str) -> User | None:
        """Exact match. Callers pass the normalized (lower-cased) email."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_user_by_id(self, user_id: str) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def insert_user(self, user: User) -> User:
        """Insert a new user and return it with id and timestamps filled in.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        """
        now = datetime.now(timezone.utc)
        created = User(
            id=user.id or str(uuid.uuid4()),
            name=user.name,
            email=user.email,
            created_at=now,
            updated_at=now,
        )
        with self.engine.connect() as conn:
            conn.execute(
                _users.insert().values(
                    id=created.id,
                    name=created.name,
                    email=created.email,
                    created_at=_to_iso(now),
                    updated_at=_to_iso(now),
                )
            )
            conn.commit()
        return created

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def insert_session(self, session: Session) -> Session | None:
        """Insert a session and return the row as written.

        Returns None if the database reports no row back. Raises
        sqlalchemy.exc.IntegrityError on a token collision or an unknown user_id.
        """
        with self.engine.connect() as conn:
            row = conn.execute(
                _sessions.insert()
                .values(
                    id=session.id,
                    token=session.token,
                    user_id=session.user_id,
                    expires_at=_to_iso(session.expires_at),
                    ip_address=session.ip_address,
                    user_agent=session.user_agent,
                    created_at=_to_iso(session.created_at),
                )
                .returning(*_sessions.c)
            ).fetchone()
            conn.commit()
        return _row_to_session(row) if row is not None else None

    def find_session_with_user_by_token(self, token: str) -> tuple[Session, User] | None:
        """Look up a session and its owner in one inner join.

        A session whose user row is gone yields None, same as an unknown token.
        Expiry is NOT checked here; that is the service's decision.
        """
        user_cols = [c.label(f"owner_{c.name}") for c in _users.c]
        query = (
            select(*_sessions.c, *user_cols)
            .select_from(_sessions.join(_users, _sessions.c.user_id == _users.c.id))
            .where(_sessions.c.token == token)
            .limit(1)
        )
        with self.engine.connect() as conn:
            row = conn.execute(query).fetchone()
        if row is None:
            return None
        user = User(
            id=row.owner_id,
            name=row.owner_name,
            email=row.owner_email,
            created_at=_from_iso(row.owner_created_at),
            updated_at=_from_iso(row.owner_updated_at),
        )
        return _row_to_session(row), user

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            return conn.execute(text("SELECT 1")).scalar() == 1

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        created_at=_from_iso(row.created_at),
        updated_at=_from_iso(row.updated_at),
    )


def _row_to_session(row) -> Session:
    return Session(
        id=row.id,
        token=row.token,
        user_id=row.user_id,
        expires_at=_from_iso(row.expires_at),
        created_at=_from_iso(row.created_at),
        ip_address=row.ip_address,
        user_agent=row.user_agent,
    )
