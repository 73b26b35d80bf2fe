"""
auth/tokens.py -- Signed session tokens (JWT, HS256).

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       user_id, email, a random jti, and expiry. A verified token is necessary
       but NOT sufficient to authenticate: AuthService also requires a live
       session row holding the exact token string, so logout and expiry
       revoke access even though the token itself still verifies.

  jti: two logins by the same user within one second would otherwise produce
       byte-identical tokens (exp has one-second resolution) and collide on
       the UNIQUE sessions.token column. Pass token_id explicitly to get a
       deterministic token for a given (payload, time, secret).

  Failure modes are distinct exceptions (TokenMalformed, SignatureInvalid,
       TokenExpired) so callers and tests can tell them apart; AuthService
       collapses all three into InvalidOrExpiredToken before they reach a
       client.

  Rotating SECRET_KEY invalidates every outstanding token. That is accepted
       and not handled specially.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt
from jose.exceptions import JWTClaimsError

from auth.errors import SignatureInvalid, TokenExpired, TokenMalformed
from auth.models import TokenClaims
from core.config import SEVEN_DAYS_SECONDS

_ALGORITHM = "HS256"


class TokenCodec:
    """Issue and verify signed bearer tokens.

    Stateless and safe to share between threads: the only state is the
    read-only secret and default lifetime.

    Usage:
        codec = TokenCodec(settings.secret_key)
        token, expires_at = codec.issue(user.id, user.email)
        claims = codec.verify(token)   # raises VerificationError subclasses
    """

    def __init__(self, secret_key: str, ttl_seconds: int = SEVEN_DAYS_SECONDS) -> None:
        if not secret_key:
            raise ValueError("TokenCodec requires a non-empty secret key.")
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive.")
        self._secret_key = secret_key
        self.ttl_seconds = ttl_seconds

    def issue(
        self,
        user_id: int,
        email: str,
        ttl: int | None = None,
        now: datetime | None = None,
        token_id: str | None = None,
    ) -> tuple[str, datetime]:
        """Encode a signed token and return it with its expiry.

        Args:
            user_id:  Numeric user ID.
            email:    Normalized email, carried for clients that read the token.
            ttl:      Lifetime in seconds. Defaults to the codec's ttl (7 days).
            now:      Issue time (aware UTC). Defaults to the current time.
            token_id: jti claim. Defaults to 128 random bits.

        The returned expires_at equals the embedded exp claim exactly (whole
        seconds), so a session row persisted with it expires with the token.
        """
        issued_at = (now or datetime.now(timezone.utc)).astimezone(timezone.utc).replace(microsecond=0)
        expires_at = issued_at + timedelta(seconds=ttl if ttl is not None else self.ttl_seconds)
        payload = {
            "sub": str(user_id),
            "user_id": user_id,
            "email": email,
            "jti": token_id or secrets.token_hex(16),
            "exp": int(expires_at.timestamp()),
        }
        return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM), expires_at

    def verify(self, token: str) -> TokenClaims:
        """Verify signature and expiry, then return the identity claims.

        Raises:
            TokenMalformed:   not a JWT, or required claims missing/mistyped.
            SignatureInvalid: MAC mismatch or an algorithm other than HS256.
            TokenExpired:     signature valid but exp is in the past.
        """
        try:
            jwt.get_unverified_claims(token)
        except JWTError as exc:
            raise TokenMalformed("Token structure could not be parsed.") from exc

        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[_ALGORITHM],
                options={"require_exp": True},
            )
        except ExpiredSignatureError as exc:
            raise TokenExpired("Token has expired.") from exc
        except JWTClaimsError as exc:
            raise TokenMalformed(str(exc)) from exc
        except JWTError as exc:
            raise SignatureInvalid("Token signature verification failed.") from exc

        user_id = payload.get("user_id")
        email = payload.get("email")
        if not isinstance(user_id, int) or isinstance(user_id, bool) or not isinstance(email, str):
            raise TokenMalformed("Token is missing identity claims.")
        return TokenClaims(
            user_id=user_id,
            email=email,
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )
