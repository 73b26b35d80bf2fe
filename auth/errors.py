"""
auth/errors.py -- Error taxonomy for the identity core.

Every error the AuthService can raise derives from AuthError and carries a
stable machine-readable `code`. The HTTP layer maps classes to status codes in
one place (api/main.py) so routes never build error responses by hand.

Deliberately generic errors:
  InvalidCredentials covers both "no such email" and "wrong password" so a
  caller cannot enumerate registered accounts.
  InvalidOrExpiredToken covers a bad signature, an expired token, and a
  deleted or expired session row.

Token-level errors (VerificationError and subclasses) are raised by the
TokenCodec only. The AuthService collapses them into InvalidOrExpiredToken.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for all identity-core errors."""

    code = "auth_error"
    message = "Authentication error."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        if message:
            self.message = message


class ValidationFailed(AuthError):
    """Input failed shape checks. `errors` lists field-level problems."""

    code = "validation_failed"
    message = "Input validation failed."

    def __init__(self, errors: list[dict[str, str]], message: str | None = None) -> None:
        super().__init__(message)
        self.errors = errors


class DuplicateEmail(AuthError):
    code = "duplicate_email"
    message = "A user with this email already exists."


class InvalidCredentials(AuthError):
    code = "invalid_credentials"
    message = "Invalid email or password."


class MissingToken(AuthError):
    code = "missing_token"
    message = "Authentication token is missing."


class InvalidOrExpiredToken(AuthError):
    code = "invalid_token"
    message = "Invalid or expired token."


class UserNotFound(AuthError):
    code = "user_not_found"
    message = "User not found."


class StoreError(AuthError):
    """Backing-store failure. Server-side fault, never user-correctable."""

    code = "internal_error"
    message = "Storage operation failed."


class StoreTimeout(StoreError):
    """The caller's deadline passed before or during a storage call."""

    message = "Storage operation exceeded its deadline."


# ---------------------------------------------------------------------------
# Token codec errors
# ---------------------------------------------------------------------------


class VerificationError(Exception):
    """Base class for TokenCodec.verify() failures."""


class TokenMalformed(VerificationError):
    pass


class SignatureInvalid(VerificationError):
    pass


class TokenExpired(VerificationError):
    pass
