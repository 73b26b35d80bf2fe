"""
api/routes/auth.py -- Registration, login, logout, and token verification.

Routes:
  POST /auth/register  -- create an account; 201
  POST /auth/login     -- password login; returns a bearer token
  POST /auth/logout    -- delete the session behind the bearer token
  GET  /auth/verify    -- confirm the bearer token is live; returns the user

Security:
  [H2] register and login are rate-limited per client IP (AUTH_RATE_LIMIT).
  [C1] Login errors are one generic invalid_credentials response for both
       unknown email and wrong password; AuthService.login() also equalizes
       timing. Do NOT add a pre-lookup here.
  [M5] Cache-Control: no-store on login responses.

Every failure is raised by AuthService as an AuthError and mapped to a
response by the exception handler in api/main.py.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.limiter import AUTH_RATE_LIMIT, limiter
from api.models import (
    LoginRequest,
    LoginResponse,
    MessageResponse,
    RegisterRequest,
    RegisterResponse,
    UserResponse,
    VerifyResponse,
)
from auth.dependencies import extract_bearer_token, get_auth_service, get_current_identity, request_deadline
from auth.models import Identity
from auth.service import AuthService

# Auth policy:
# - POST /auth/register: public, rate limited
# - POST /auth/login:    public, rate limited
# - POST /auth/logout:   bearer token must be present; it need not be live (idempotent)
# - GET  /auth/verify:   requires a live session (get_current_identity)
router = APIRouter()


@limiter.limit(AUTH_RATE_LIMIT)  # [H2] must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/register", response_model=RegisterResponse, status_code=201)
def register(
    request: Request,
    body: RegisterRequest,
    service: AuthService = Depends(get_auth_service),
) -> RegisterResponse:
    """Create an account. Duplicate emails are a 400, not a 409."""
    identity = service.register(body.email, body.password, body.name, deadline=request_deadline())
    return RegisterResponse(message="User created.", user=UserResponse.from_identity(identity))


@limiter.limit(AUTH_RATE_LIMIT)  # [H2]
@router.post("/auth/login", response_model=LoginResponse)
def login(
    request: Request,
    response: Response,
    body: LoginRequest,
    service: AuthService = Depends(get_auth_service),
) -> LoginResponse:
    """Authenticate with email and password; return a 7-day bearer token."""
    result = service.login(body.email, body.password, deadline=request_deadline())
    response.headers["Cache-Control"] = "no-store"  # [M5]
    return LoginResponse.from_result(result)


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request, service: AuthService = Depends(get_auth_service)) -> MessageResponse:
    """Delete the session for the bearer token. Repeating it is harmless."""
    service.logout(extract_bearer_token(request), deadline=request_deadline())
    return MessageResponse(message="Logged out.")


@router.get("/auth/verify", response_model=VerifyResponse)
def verify(identity: Identity = Depends(get_current_identity)) -> VerifyResponse:
    return VerifyResponse(valid=True, user=UserResponse.from_identity(identity))
