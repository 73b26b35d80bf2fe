"""
auth/store.py -- SQLAlchemy Core persistence for users and sessions.

Pattern: Repository + Data Mapper. UserStore (the credential store) and
SessionStore are the repositories; _row_to_user / _row_to_session are the
mappers. AuthService never touches SQL directly.

Both stores share one Engine built by create_store_engine(). The engine is
injected at construction -- there is no module-level connection.

Security:
  All queries use bound parameters. No f-strings in SQL.
  The raw password only exists inside UserStore.create() long enough to be
  hashed; it is never persisted or logged.

Invariants enforced by the database, not by check-then-act in Python:
  users.email is UNIQUE. create() still pre-checks for a fast, friendly
  error, but a concurrent registration that slips past the check fails on
  the constraint and is reported as DuplicateEmail.
  sessions.token is UNIQUE and indexed; sessions.expires_at is indexed.
  find_active_by_token() is the hot path on every authenticated request.

Timestamps are stored as fixed-width ISO 8601 UTC strings
(YYYY-MM-DDTHH:MM:SS.ffffff+00:00), so string comparison in SQL is
chronological comparison on every backend.

Deadlines:
  Every method takes an optional `deadline` (a time.monotonic() value).
  _connect() refuses to start work past it and arms the connection so an
  in-flight statement is interrupted: SQLite via set_progress_handler,
  PostgreSQL via a transaction-local statement_timeout. Either way the
  caller sees StoreTimeout.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    event,
    func,
    select,
    text,
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import DuplicateEmail, StoreError, StoreTimeout, UserNotFound
from auth.inputs import normalize_email
from auth.models import Session, User
from auth.passwords import hash_password, verify_password

logger = logging.getLogger("berestaid.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("name", String(255)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_sessions = Table(
    "sessions",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.id"), nullable=False),
    Column("token", String(1024), nullable=False),
    Column("expires_at", String(32), nullable=False),
    Column("created_at", String(32), nullable=False),
)

Index("ix_sessions_token", _sessions.c.token, unique=True)
Index("ix_sessions_expires_at", _sessions.c.expires_at)
Index("ix_sessions_user_id", _sessions.c.user_id)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    WAL (Write-Ahead Logging) allows readers to proceed without blocking
    during writes. Set per-connection because SQLite PRAGMAs are not
    inherited by new connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def create_store_engine(db_url: str) -> Engine:
    """Create the shared Engine and make sure the schema exists.

    Usage:
        engine = create_store_engine("sqlite:///berestaid.db")
        users, sessions = UserStore(engine), SessionStore(engine)
        ...
        engine.dispose()
    """
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    metadata.create_all(engine)
    return engine


def database_ok(engine: Engine) -> bool:
    """Return True if a trivial query succeeds. Used by GET /health."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError:
        logger.exception("Database health check failed")
        return False


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _to_iso(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _from_iso(value: str) -> datetime:
    return datetime.fromisoformat(value)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _deadline_passed(deadline: float | None) -> bool:
    return deadline is not None and time.monotonic() >= deadline


def _arm_deadline(conn: Connection, deadline: float | None) -> Callable[[], None]:
    """Make the connection abort a statement still running at `deadline`.

    Returns a callable that disarms the connection. It must run before the
    connection goes back to the pool.
    """
    if deadline is None:
        return lambda: None

    if conn.dialect.name == "sqlite" and conn.dialect.driver == "pysqlite":
        raw = conn.connection.dbapi_connection
        # Non-zero return value makes SQLite abort with "interrupted".
        raw.set_progress_handler(lambda: int(time.monotonic() >= deadline), 1000)
        return lambda: raw.set_progress_handler(None, 0)

    if conn.dialect.name == "postgresql":
        remaining_ms = max(1, int((deadline - time.monotonic()) * 1000))
        # is_local=true: reverts when the surrounding transaction ends.
        conn.execute(text("SELECT set_config('statement_timeout', :ms, true)"), {"ms": str(remaining_ms)})

    return lambda: None


class _BaseStore:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    @contextmanager
    def _connect(self, deadline: float | None = None) -> Iterator[Connection]:
        """Yield a connection with the caller's deadline armed.

        SQLAlchemy errors are translated into StoreError/StoreTimeout.
        IntegrityError is re-raised untouched: each caller decides what a
        constraint violation means in its own domain.
        """
        if _deadline_passed(deadline):
            raise StoreTimeout()
        try:
            with self.engine.connect() as conn:
                disarm = _arm_deadline(conn, deadline)
                try:
                    yield conn
                finally:
                    disarm()
        except IntegrityError:
            raise
        except SQLAlchemyError as exc:
            if _deadline_passed(deadline):
                raise StoreTimeout() from exc
            raise StoreError() from exc


# ---------------------------------------------------------------------------
# Credential store
# ---------------------------------------------------------------------------


class UserStore(_BaseStore):
    """Durable user records with email uniqueness and lookup.

    Usage:
        users = UserStore(engine)
        user = users.create("alice@example.com", "secret1", name="Alice")
        users.verify_password(user, "secret1")   # True
    """

    def __init__(self, engine: Engine, bcrypt_rounds: int | None = None) -> None:
        super().__init__(engine)
        self._bcrypt_rounds = bcrypt_rounds

    def create(
        self,
        email: str,
        raw_password: str,
        name: str | None = None,
        *,
        deadline: float | None = None,
    ) -> User:
        """Hash the password and insert a new user.

        Raises DuplicateEmail if the normalized email is taken, whether
        detected by the pre-check or by the UNIQUE constraint.
        """
        email = normalize_email(email)
        if self.find_by_email(email, deadline=deadline) is not None:
            raise DuplicateEmail()

        password_hash = hash_password(raw_password, self._bcrypt_rounds)
        now = _now()
        try:
            with self._connect(deadline) as conn:
                result = conn.execute(
                    _users.insert().values(
                        email=email,
                        password_hash=password_hash,
                        name=name,
                        created_at=_to_iso(now),
                        updated_at=_to_iso(now),
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            logger.info("Concurrent registration for %s rejected by unique constraint", email)
            raise DuplicateEmail() from exc

        return User(
            id=result.inserted_primary_key[0],
            email=email,
            password_hash=password_hash,
            name=name,
            created_at=now,
            updated_at=now,
        )

    def find_by_email(self, email: str, *, deadline: float | None = None) -> User | None:
        """Look up a user by email (normalized before lookup)."""
        with self._connect(deadline) as conn:
            row = conn.execute(_users.select().where(_users.c.email == normalize_email(email))).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int, *, deadline: float | None = None) -> User | None:
        with self._connect(deadline) as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def update_name(self, user_id: int, name: str | None, *, deadline: float | None = None) -> User:
        """Set the display name and bump updated_at. Raises UserNotFound."""
        with self._connect(deadline) as conn:
            result = conn.execute(
                _users.update().where(_users.c.id == user_id).values(name=name, updated_at=_to_iso(_now()))
            )
            if result.rowcount == 0:
                raise UserNotFound()
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
            conn.commit()
        return _row_to_user(row)

    def verify_password(self, user: User, raw_password: str) -> bool:
        """Compare via bcrypt.checkpw -- never string equality on the hash."""
        return verify_password(raw_password, user.password_hash)

    def count(self, *, deadline: float | None = None) -> int:
        with self._connect(deadline) as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return result or 0

    def recent(self, limit: int = 10, *, deadline: float | None = None) -> list[User]:
        """Most recently created users, newest first (id breaks ties)."""
        with self._connect(deadline) as conn:
            rows = conn.execute(
                _users.select().order_by(_users.c.created_at.desc(), _users.c.id.desc()).limit(limit)
            ).fetchall()
        return [_row_to_user(r) for r in rows]


# ---------------------------------------------------------------------------
# Session store
# ---------------------------------------------------------------------------


class SessionStore(_BaseStore):
    """Durable, queryable session records.

    Usage:
        sessions = SessionStore(engine)
        sessions.create(user.id, token, expires_at)
        found = sessions.find_active_by_token(token, now)   # (Session, User) or None
        sessions.delete_by_token(token)
    """

    def create(
        self,
        user_id: int,
        token: str,
        expires_at: datetime,
        *,
        deadline: float | None = None,
    ) -> Session:
        """Persist a session row. A duplicate token is a StoreError."""
        created_at = _now()
        try:
            with self._connect(deadline) as conn:
                result = conn.execute(
                    _sessions.insert().values(
                        user_id=user_id,
                        token=token,
                        expires_at=_to_iso(expires_at),
                        created_at=_to_iso(created_at),
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            raise StoreError("Session token already exists.") from exc
        return Session(
            id=result.inserted_primary_key[0],
            user_id=user_id,
            token=token,
            expires_at=expires_at.astimezone(timezone.utc),
            created_at=created_at,
        )

    def find_active_by_token(
        self,
        token: str,
        now: datetime,
        *,
        deadline: float | None = None,
    ) -> tuple[Session, User] | None:
        """Single joined lookup of a live session and its user.

        Rows whose expires_at is not strictly after `now` are invisible here.
        """
        stmt = (
            select(
                _sessions,
                _users.c.email.label("user_email"),
                _users.c.password_hash.label("user_password_hash"),
                _users.c.name.label("user_name"),
                _users.c.created_at.label("user_created_at"),
                _users.c.updated_at.label("user_updated_at"),
            )
            .join(_users, _users.c.id == _sessions.c.user_id)
            .where(_sessions.c.token == token)
            .where(_sessions.c.expires_at > _to_iso(now))
        )
        with self._connect(deadline) as conn:
            row = conn.execute(stmt).fetchone()
        if row is None:
            return None
        user = User(
            id=row.user_id,
            email=row.user_email,
            password_hash=row.user_password_hash,
            name=row.user_name,
            created_at=_from_iso(row.user_created_at),
            updated_at=_from_iso(row.user_updated_at),
        )
        return _row_to_session(row), user

    def delete_by_token(self, token: str, *, deadline: float | None = None) -> None:
        """Delete the session for `token`. Deleting a missing row is a no-op."""
        with self._connect(deadline) as conn:
            conn.execute(_sessions.delete().where(_sessions.c.token == token))
            conn.commit()

    def count_active(self, now: datetime, *, deadline: float | None = None) -> int:
        with self._connect(deadline) as conn:
            result = conn.execute(
                select(func.count()).select_from(_sessions).where(_sessions.c.expires_at > _to_iso(now))
            ).scalar()
        return result or 0

    def purge_expired(self, now: datetime, *, deadline: float | None = None) -> int:
        """Delete sessions whose expiry is at or before `now`. Returns rows removed."""
        with self._connect(deadline) as conn:
            result = conn.execute(_sessions.delete().where(_sessions.c.expires_at <= _to_iso(now)))
            conn.commit()
        return result.rowcount


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        password_hash=row.password_hash,
        name=row.name,
        created_at=_from_iso(row.created_at),
        updated_at=_from_iso(row.updated_at),
    )


def _row_to_session(row) -> Session:
    return Session(
        id=row.id,
        user_id=row.user_id,
        token=row.token,
        expires_at=_from_iso(row.expires_at),
        created_at=_from_iso(row.created_at),
    )
