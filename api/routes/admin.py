"""
api/routes/admin.py -- Admin dashboard data.

Routes:
  GET /admin/stats -- user count, active session count, 10 newest users

Auth policy: require_admin() accepts ANY authenticated caller. There is no
role model yet, so every logged-in user can read these stats.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from api.models import AdminStatsResponse
from auth.dependencies import get_auth_service, request_deadline, require_admin
from auth.models import Identity
from auth.service import AuthService

router = APIRouter()


@router.get("/admin/stats", response_model=AdminStatsResponse)
def admin_stats(
    identity: Identity = Depends(require_admin),
    service: AuthService = Depends(get_auth_service),
) -> AdminStatsResponse:
    return AdminStatsResponse.from_stats(service.admin_stats(deadline=request_deadline()))
