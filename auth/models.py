"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and the
AuthService do the work; these only carry shape.

All datetimes are timezone-aware UTC.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class User:
    """A registered account.

    email is always stored normalized (trimmed, lowercased). password_hash is a
    bcrypt hash and must never leave the auth package -- callers outside it
    receive an Identity instead.
    """

    id: int
    email: str
    password_hash: str
    created_at: datetime
    updated_at: datetime
    name: str | None = None


@dataclass
class Session:
    """One persisted login. Repeated logins accumulate rows.

    A session is usable only while a row exists AND expires_at is in the
    future. Expired rows linger until purge_expired() removes them.
    """

    id: int
    user_id: int
    token: str
    expires_at: datetime
    created_at: datetime


@dataclass(frozen=True)
class Identity:
    """Public view of a user: what the HTTP layer may return."""

    id: int
    email: str
    name: str | None = None


@dataclass(frozen=True)
class TokenClaims:
    """Verified contents of a session token."""

    user_id: int
    email: str
    expires_at: datetime


@dataclass(frozen=True)
class LoginResult:
    token: str
    expires_at: datetime
    user: Identity


@dataclass(frozen=True)
class RecentUser:
    email: str
    name: str | None
    created_at: datetime


@dataclass(frozen=True)
class AdminStats:
    user_count: int
    active_session_count: int
    recent_users: list[RecentUser] = field(default_factory=list)
