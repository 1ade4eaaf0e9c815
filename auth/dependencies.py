"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

The session token is read from, in priority order:
  1. Authorization: Bearer <token> header.
  2. The configured alternate header (X-Auth-Token by default).

try_get_current_user() is the soft variant (returns None on failure).
get_current_user() wraps it and raises HTTP 401 if unauthenticated.
require_role() builds a dependency that also raises HTTP 403 when
AuthService.authorize() says no; require_admin is the "admin" instance.

Layer rule: no imports from api/.
  auth/dependencies.py may import from fastapi (for HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.models import UserRecord
from auth.service import AuthService
from core.config import get_settings


def get_request_token(request: Request) -> str | None:
    """Return the raw session token presented with the request, if any."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
        if token:
            return token
    return request.headers.get(get_settings().token_header) or None


def try_get_current_user(request: Request) -> UserRecord | None:
    """Resolve the request's token to a UserRecord. Never raises for a bad token."""
    auth_service: AuthService = request.app.state.auth_service
    return auth_service.user_for_token(get_request_token(request))


def get_current_user(request: Request) -> UserRecord:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: UserRecord = Depends(get_current_user)): ...
    """
    user = try_get_current_user(request)
    if user is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return user


def require_role(role: str):
    """Return a dependency that requires the given role (flat, case-insensitive)."""

    def dependency(request: Request) -> UserRecord:
        user = get_current_user(request)
        if not AuthService.authorize(user, role):
            raise HTTPException(
                status_code=403,
                detail={"code": "forbidden", "message": f"{role.capitalize()} access required."},
            )
        return user

    return dependency


require_admin = require_role("admin")
