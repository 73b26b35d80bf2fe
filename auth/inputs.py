"""
auth/inputs.py -- Strict input structs for AuthService operations.

Every operation that accepts user-supplied fields parses them into one of
these Pydantic models before any storage call. parse_input() converts a
pydantic.ValidationError into the domain ValidationFailed error with a flat
list of {field, message} problems, so the HTTP layer never sees Pydantic types.

Rules:
  email    -- trimmed and lowercased first, then checked by email-validator
              (syntax only; no DNS lookups).
  password -- at least 6 characters; at most 72 UTF-8 bytes, bcrypt's input
              limit (longer inputs are rejected, not silently truncated).
  name     -- optional; trimmed, then 2..255 characters when supplied.

Text that cannot be encoded as UTF-8 (lone surrogates, e.g. from argv bytes
decoded with surrogateescape) fails validation here rather than in the
database driver.
"""

from __future__ import annotations

from typing import TypeVar

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from auth.errors import ValidationFailed

MAX_EMAIL_LENGTH = 255
MIN_PASSWORD_LENGTH = 6
MAX_PASSWORD_BYTES = 72
MIN_NAME_LENGTH = 2
MAX_NAME_LENGTH = 255

_M = TypeVar("_M", bound=BaseModel)


def normalize_email(email: str) -> str:
    """Canonical form used for storage, uniqueness, and lookup."""
    return email.strip().lower()


def is_utf8(value: str) -> bool:
    try:
        value.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


def _check_name(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    if not is_utf8(value):
        raise ValueError("must be valid UTF-8 text")
    if not MIN_NAME_LENGTH <= len(value) <= MAX_NAME_LENGTH:
        raise ValueError(f"must be between {MIN_NAME_LENGTH} and {MAX_NAME_LENGTH} characters")
    return value


class RegisterInput(BaseModel):
    """Fields accepted by AuthService.register()."""

    model_config = ConfigDict(frozen=True)

    email: str
    password: str
    name: str | None = None

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        value = normalize_email(value)
        if len(value) > MAX_EMAIL_LENGTH or not is_utf8(value):
            raise ValueError("must be a valid email address")
        try:
            validate_email(value, check_deliverability=False)
        except EmailNotValidError:
            raise ValueError("must be a valid email address") from None
        return value

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        if len(value) < MIN_PASSWORD_LENGTH:
            raise ValueError(f"must be at least {MIN_PASSWORD_LENGTH} characters")
        if not is_utf8(value):
            raise ValueError("must be valid UTF-8 text")
        if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"must be at most {MAX_PASSWORD_BYTES} bytes")
        return value

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str | None) -> str | None:
        return _check_name(value)


class ProfileInput(BaseModel):
    """Fields accepted by AuthService.update_profile(). None clears the name."""

    model_config = ConfigDict(frozen=True)

    name: str | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str | None) -> str | None:
        return _check_name(value)


def parse_input(model: type[_M], **values) -> _M:
    """Build `model` from `values` or raise ValidationFailed with field detail."""
    try:
        return model(**values)
    except ValidationError as exc:
        errors = [
            {
                "field": ".".join(str(part) for part in err["loc"]) or "__root__",
                "message": err["msg"].removeprefix("Value error, "),
            }
            for err in exc.errors()
        ]
        raise ValidationFailed(errors) from exc
