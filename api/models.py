"""
API request and response models for SafeVault REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclass in auth/models.py, which
owns the internal domain representation. Route handlers map between the two.

Request models only bound sizes. Field rules (username character class, email
shape, non-blank password) live in auth/sanitizer.py and AuthService so the
HTTP layer and the CLI reject the same inputs.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import UserRecord

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register."""

    username: str = Field(max_length=255)
    email: str = Field(max_length=1024)
    # Bounds request size only; the hasher accepts any length.
    password: str = Field(max_length=255)
    role: Optional[str] = Field(default=None, max_length=30)


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    username: str = Field(max_length=255)
    password: str = Field(max_length=255)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class RegisterResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    username: str
    role: str


class LoginResponse(BaseModel):
    """Response for a successful login. token is opaque; present it as a Bearer token."""

    model_config = ConfigDict(frozen=True)

    token: str
    token_type: str = "bearer"
    username: str
    role: str


class MeResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    email: str
    role: str

    @classmethod
    def from_record(cls, user: UserRecord) -> "MeResponse":
        """Build a MeResponse from a UserRecord. password_hash is never copied."""
        return cls(id=user.id, username=user.username, email=user.email, role=user.role)


class AdminResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    username: str


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
