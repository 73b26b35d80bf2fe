"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Tokens arrive only as `Authorization: Bearer <token>`. Every helper
converges on AuthService.authenticate(), which checks the token signature
AND the session row; errors propagate as AuthError subclasses and the
exception handler in api/main.py turns them into 401/403 responses.

get_current_identity() -- require a live session, return the Identity.
require_admin()        -- same check; there is no role model, so any
                          authenticated caller is treated as an admin.

Layer rule: no imports from api/. This module may import from fastapi
because it is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

import time

from fastapi import Depends, Request

from auth.models import Identity
from auth.service import AuthService
from core.config import get_settings


def get_auth_service(request: Request) -> AuthService:
    """Return the AuthService wired into app.state by the lifespan."""
    return request.app.state.auth_service


def request_deadline() -> float | None:
    """Monotonic cutoff for storage calls made on behalf of this request."""
    timeout = get_settings().request_timeout_seconds
    return time.monotonic() + timeout if timeout > 0 else None


def extract_bearer_token(request: Request) -> str | None:
    """Return the token from `Authorization: Bearer <token>`, or None."""
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


def get_current_identity(
    request: Request,
    service: AuthService = Depends(get_auth_service),
) -> Identity:
    """Require authentication. Raises MissingToken or InvalidOrExpiredToken.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(identity: Identity = Depends(get_current_identity)): ...
    """
    return service.authenticate(extract_bearer_token(request), deadline=request_deadline())


def require_admin(identity: Identity = Depends(get_current_identity)) -> Identity:
    """Gate for /admin routes.

    No role check: any authenticated caller passes. Adding one needs a role
    column on users first.
    """
    return identity
