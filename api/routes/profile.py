"""
api/routes/profile.py -- The caller's own profile.

Routes:
  GET /api/profile -- current identity (requires auth)
  PUT /api/profile -- change display name (requires auth)

The identity always comes from the users table via the session join, so a
name change is visible on the very next request with the same token.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from api.models import ProfileResponse, ProfileUpdate, ProfileUpdateResponse, UserResponse
from auth.dependencies import get_auth_service, get_current_identity, request_deadline
from auth.models import Identity
from auth.service import AuthService

router = APIRouter()


@router.get("/api/profile", response_model=ProfileResponse)
def get_profile(identity: Identity = Depends(get_current_identity)) -> ProfileResponse:
    return ProfileResponse(user=UserResponse.from_identity(identity))


@router.put("/api/profile", response_model=ProfileUpdateResponse)
def update_profile(
    body: ProfileUpdate,
    identity: Identity = Depends(get_current_identity),
    service: AuthService = Depends(get_auth_service),
) -> ProfileUpdateResponse:
    """Update the display name. Only the name is mutable."""
    updated = service.update_profile(identity.id, body.name, deadline=request_deadline())
    return ProfileUpdateResponse(message="Profile updated.", user=UserResponse.from_identity(updated))
