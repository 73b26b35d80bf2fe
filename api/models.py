"""
API request and response models for Beresta ID REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Request models only check transport shape (field presence and types).
Field rules -- email format, password length, name length -- belong to
auth/inputs.py so the CLI and the API enforce the same policy.

Some response fields are camelCase on the wire (expiresAt, activeSessions,
recentUsers) because existing browser clients read them that way. They are
declared with aliases; FastAPI serializes response models by alias.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import AdminStats, Identity, LoginResult

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /auth/register."""

    email: str
    password: str
    name: Optional[str] = None


class LoginRequest(BaseModel):
    """Request body for POST /auth/login."""

    email: str
    password: str


class ProfileUpdate(BaseModel):
    """Request body for PUT /api/profile. Null clears the display name."""

    name: Optional[str] = None


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public view of a user. Never carries the password hash."""

    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    name: Optional[str]

    @classmethod
    def from_identity(cls, identity: Identity) -> "UserResponse":
        return cls(id=identity.id, email=identity.email, name=identity.name)


class RegisterResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    user: UserResponse


class LoginResponse(BaseModel):
    """Response for POST /auth/login."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    token: str
    expires_at: datetime = Field(alias="expiresAt")
    user: UserResponse

    @classmethod
    def from_result(cls, result: LoginResult) -> "LoginResponse":
        return cls(
            token=result.token,
            expires_at=result.expires_at,
            user=UserResponse.from_identity(result.user),
        )


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class VerifyResponse(BaseModel):
    """Response for GET /auth/verify."""

    model_config = ConfigDict(frozen=True)

    valid: bool = True
    user: UserResponse


class ProfileResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    user: UserResponse


class ProfileUpdateResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    user: UserResponse


class RecentUserRow(BaseModel):
    """One row of AdminStatsResponse.recent_users."""

    model_config = ConfigDict(frozen=True)

    email: str
    name: Optional[str]
    created_at: datetime


class AdminStatsResponse(BaseModel):
    """Response for GET /admin/stats."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    users: int
    active_sessions: int = Field(alias="activeSessions")
    recent_users: list[RecentUserRow] = Field(alias="recentUsers")

    @classmethod
    def from_stats(cls, stats: AdminStats) -> "AdminStatsResponse":
        return cls(
            users=stats.user_count,
            active_sessions=stats.active_session_count,
            recent_users=[
                RecentUserRow(email=u.email, name=u.name, created_at=u.created_at) for u in stats.recent_users
            ],
        )


class FieldError(BaseModel):
    model_config = ConfigDict(frozen=True)

    field: str
    message: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None
    fields: Optional[list[FieldError]] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
