"""
auth/service.py -- AuthService: registration, login, logout, and request
authentication.

This is the orchestration layer between callers (api/, the CLI) and the
three collaborators it is constructed with: UserStore, SessionStore, and
TokenCodec. It owns no state of its own beyond those handles and a clock.

Authentication rule:
  A token authenticates a request only if ALL of the following hold:
    1. it verifies under SECRET_KEY (signature and exp),
    2. a session row exists with that exact token string,
    3. that row's expires_at is still in the future.
  Logout deletes the row, so a token that still verifies stops working
  immediately. The returned Identity comes from the joined user row, not
  from the token, so profile edits show up on the next request.

Enumeration resistance [C1]:
  Unknown email and wrong password both raise InvalidCredentials, and both
  paths spend one bcrypt comparison (against a dummy hash for unknown
  emails) so response time does not reveal which failed.

Deadlines:
  Every public method takes a keyword `deadline` (time.monotonic() cutoff)
  and passes it to each storage call. Nothing is retried.

Admin access:
  admin_stats() performs no authorization of its own. Any authenticated
  caller may read it; there is no role model.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from auth.errors import InvalidCredentials, InvalidOrExpiredToken, MissingToken, VerificationError
from auth.inputs import ProfileInput, RegisterInput, is_utf8, parse_input
from auth.models import AdminStats, Identity, LoginResult, RecentUser, User
from auth.passwords import dummy_hash, verify_password
from auth.store import SessionStore, UserStore, create_store_engine
from auth.tokens import TokenCodec
from core.config import Settings

logger = logging.getLogger("berestaid.auth")

RECENT_USERS_LIMIT = 10


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _identity(user: User) -> Identity:
    return Identity(id=user.id, email=user.email, name=user.name)


class AuthService:
    """Identity core operations.

    Usage:
        service = AuthService(UserStore(engine), SessionStore(engine), TokenCodec(secret))
        service.register("alice@example.com", "secret1", name="Alice")
        result = service.login("alice@example.com", "secret1")
        identity = service.authenticate(result.token)
        service.logout(result.token)
    """

    def __init__(
        self,
        users: UserStore,
        sessions: SessionStore,
        codec: TokenCodec,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.users = users
        self.sessions = sessions
        self.codec = codec
        self._clock = clock

    # ------------------------------------------------------------------
    # Registration and login
    # ------------------------------------------------------------------

    def register(
        self,
        email: str,
        password: str,
        name: str | None = None,
        *,
        deadline: float | None = None,
    ) -> Identity:
        """Validate input, then create the user.

        Raises ValidationFailed before any storage call if the input is bad,
        DuplicateEmail if the normalized email is already registered.
        """
        data = parse_input(RegisterInput, email=email, password=password, name=name)
        user = self.users.create(data.email, data.password, data.name, deadline=deadline)
        logger.info("Registered user_id=%s email=%s", user.id, user.email)
        return _identity(user)

    def login(self, email: str, password: str, *, deadline: float | None = None) -> LoginResult:
        """Check credentials, issue a token, and persist its session.

        The session row is written before the token is returned. If that
        write fails the StoreError propagates and no token leaves this method.
        """
        # An email the driver cannot encode cannot be registered either.
        user = self.users.find_by_email(email, deadline=deadline) if is_utf8(email) else None
        if user is None:
            # Equalize timing -- do NOT return before running bcrypt [C1]
            verify_password(password, dummy_hash())
            logger.warning("Login failed: unknown email")
            raise InvalidCredentials()
        if not self.users.verify_password(user, password):
            logger.warning("Login failed: bad password for user_id=%s", user.id)
            raise InvalidCredentials()

        token, expires_at = self.codec.issue(user.id, user.email, now=self._clock())
        self.sessions.create(user.id, token, expires_at, deadline=deadline)
        logger.info("Login succeeded for user_id=%s", user.id)
        return LoginResult(token=token, expires_at=expires_at, user=_identity(user))

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def logout(self, token: str | None, *, deadline: float | None = None) -> None:
        """Delete the session for `token`. Idempotent once a token is supplied."""
        if not token:
            raise MissingToken()
        self.sessions.delete_by_token(token, deadline=deadline)

    def authenticate(self, token: str | None, *, deadline: float | None = None) -> Identity:
        """Resolve a bearer token to the current Identity.

        Every failure other than a missing token surfaces as
        InvalidOrExpiredToken so the caller cannot tell which check failed.
        """
        if not token:
            raise MissingToken()
        try:
            claims = self.codec.verify(token)
        except VerificationError as exc:
            logger.debug("Token rejected by codec: %s", type(exc).__name__)
            raise InvalidOrExpiredToken() from exc

        found = self.sessions.find_active_by_token(token, self._clock(), deadline=deadline)
        if found is None:
            logger.debug("Token rejected: no active session")
            raise InvalidOrExpiredToken()
        session, user = found
        if session.user_id != claims.user_id:
            logger.warning("Session user_id=%s does not match token claim", session.user_id)
            raise InvalidOrExpiredToken()
        return _identity(user)

    def purge_expired_sessions(self, *, deadline: float | None = None) -> int:
        """Delete expired session rows. Liveness checks never depend on this."""
        removed = self.sessions.purge_expired(self._clock(), deadline=deadline)
        if removed:
            logger.info("Purged %d expired session(s)", removed)
        return removed

    # ------------------------------------------------------------------
    # Profile and admin
    # ------------------------------------------------------------------

    def update_profile(self, user_id: int, name: str | None, *, deadline: float | None = None) -> Identity:
        data = parse_input(ProfileInput, name=name)
        user = self.users.update_name(user_id, data.name, deadline=deadline)
        return _identity(user)

    def admin_stats(self, *, deadline: float | None = None) -> AdminStats:
        """User count, live session count, and the newest registrations."""
        return AdminStats(
            user_count=self.users.count(deadline=deadline),
            active_session_count=self.sessions.count_active(self._clock(), deadline=deadline),
            recent_users=[
                RecentUser(email=u.email, name=u.name, created_at=u.created_at)
                for u in self.users.recent(RECENT_USERS_LIMIT, deadline=deadline)
            ],
        )


def create_auth_service(settings: Settings) -> AuthService:
    """Build an AuthService and its collaborators from configuration.

    The caller owns the engine's lifetime: dispose it via
    service.users.engine.dispose() on shutdown.
    """
    engine = create_store_engine(settings.database_url)
    return AuthService(
        users=UserStore(engine, bcrypt_rounds=settings.bcrypt_rounds),
        sessions=SessionStore(engine),
        codec=TokenCodec(settings.secret_key, ttl_seconds=settings.token_expire_seconds),
    )
