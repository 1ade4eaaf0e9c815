"""
api/routes/v1/auth.py -- Registration, login and session REST endpoints.

Routes:
  POST /api/v1/auth/register   -- create a local user (public)
  POST /api/v1/auth/login      -- password login; returns an opaque session token
  POST /api/v1/auth/logout     -- revoke the presented token (requires auth)
  GET  /api/v1/auth/me         -- current user info (requires auth)

Security:
  login uses AuthService.login(), which runs bcrypt even for unknown
  usernames. Do NOT inline get_user_by_username() + verify() here.
  Wrong username and wrong password return the same 401 body.
  Cache-Control: no-store on login responses so tokens are not cached.

register and login are plain `def` routes: bcrypt is CPU-bound and FastAPI
runs sync routes in its thread pool, keeping the event loop free.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from api.models import LoginRequest, LoginResponse, MeResponse, MessageResponse, RegisterRequest, RegisterResponse
from auth.dependencies import get_current_user, get_request_token
from auth.errors import DuplicateUsername, InvalidInput
from auth.models import DEFAULT_ROLE, UserRecord
from auth.sanitizer import sanitize_username
from auth.service import AuthService

# Auth policy:
# - POST /api/v1/auth/register:  public -- self-registration
# - POST /api/v1/auth/login:     public -- login endpoint must be unauthenticated
# - POST /api/v1/auth/logout:    requires auth (get_current_user)
# - GET  /api/v1/auth/me:        requires auth (get_current_user)
router = APIRouter()


@router.post("/auth/register", response_model=RegisterResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> RegisterResponse:
    """Register a new user.

    400 names the rejected field but never echoes its value. 409 when the
    (sanitized) username is already taken. StorageUnavailable propagates to
    the app-level handler, which returns 503.
    """
    auth_service: AuthService = request.app.state.auth_service
    role = (body.role or "").strip() or DEFAULT_ROLE
    try:
        auth_service.register(body.username, body.email, body.password, role)
    except InvalidInput as exc:
        raise HTTPException(
            status_code=400,
            detail={"code": "invalid_input", "message": f"Invalid {exc.field}.", "detail": exc.field},
        ) from exc
    except DuplicateUsername as exc:
        raise HTTPException(
            status_code=409,
            detail={"code": "conflict", "message": "A user with that username already exists."},
        ) from exc
    return RegisterResponse(username=sanitize_username(body.username), role=role)


@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with username and password and return a session token."""
    auth_service: AuthService = request.app.state.auth_service
    result = auth_service.login(body.username, body.password)
    if result is None:
        resp = JSONResponse(
            status_code=401,
            content={"error": {"code": "bad_credentials", "message": "Invalid username or password."}},
        )
        resp.headers["Cache-Control"] = "no-store"
        return resp

    user, token = result
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(token=token, username=user.username, role=user.role).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request, current_user: UserRecord = Depends(get_current_user)) -> MessageResponse:
    """Revoke the token used for this request."""
    auth_service: AuthService = request.app.state.auth_service
    auth_service.logout(get_request_token(request))
    return MessageResponse(message="Logged out.")


@router.get("/auth/me", response_model=MeResponse)
def me(current_user: UserRecord = Depends(get_current_user)) -> MeResponse:
    """Return identity information for the currently authenticated user."""
    return MeResponse.from_record(current_user)
