"""
api/routes/v1/admin.py -- Role-gated administrative endpoint.

GET /api/v1/admin requires a valid session token whose user holds the
"admin" role. 401 without a usable token, 403 for any other role.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from api.models import AdminResponse
from auth.dependencies import require_admin
from auth.models import UserRecord

router = APIRouter()


@router.get("/admin", response_model=AdminResponse)
def admin_area(current_user: UserRecord = Depends(require_admin)) -> AdminResponse:
    return AdminResponse(message="Admin access granted.", username=current_user.username)
