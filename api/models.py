"""
API request and response models for AuthGate REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py, which own the
internal domain representation (including the password hash, which no model
here has a field for). Route handlers map between the two.

CredentialsRequest accepts any JSON value for email and password, with no
length or type constraint: every shape rule lives in auth/validation.py, so
a bad registration comes back as one 400 that lists every field, not as a
framework 422.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.errors import FieldError
from auth.models import User

# ---------------------------------------------------------------------------
# Error envelope
# ---------------------------------------------------------------------------


class FieldErrorModel(BaseModel):
    field: str
    message: str

    @classmethod
    def from_field_error(cls, err: FieldError) -> "FieldErrorModel":
        return cls(field=err.field, message=err.message)


class ErrorDetail(BaseModel):
    code: str
    message: str
    detail: Optional[str] = None
    errors: Optional[list[FieldErrorModel]] = None
    retry_after: Optional[int] = None


class ErrorResponse(BaseModel):
    """Uniform error body: {"error": {...}}. Optional keys are omitted when unset."""

    error: ErrorDetail


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class CredentialsRequest(BaseModel):
    """Body for POST /auth/register and POST /auth/login."""

    email: Any = None
    password: Any = None


class RefreshRequest(BaseModel):
    """Optional body for POST /auth/refresh when the refresh cookie is not used."""

    refresh_token: Optional[str] = Field(default=None, max_length=4096)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    created_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(id=user.id, email=user.email, created_at=user.created_at or "")


class TokenFields(BaseModel):
    """Token material in the body. Populated only under the bearer transport."""

    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    token_type: Optional[str] = None
    expires_in: Optional[int] = None
    refresh_expires_in: Optional[int] = None


class RegisterResponse(BaseModel):
    message: str
    user: UserResponse


class LoginResponse(TokenFields):
    message: str
    user: UserResponse


class RefreshResponse(TokenFields):
    message: str


class MeResponse(BaseModel):
    user: UserResponse


class VerifyResponse(BaseModel):
    valid: bool
    user: UserResponse


class SessionResponse(BaseModel):
    authenticated: bool
    user: Optional[UserResponse] = None


class MessageResponse(BaseModel):
    message: str


class UserListResponse(BaseModel):
    users: list[UserResponse]
    total: int
    limit: int
    offset: int


class HealthResponse(BaseModel):
    status: str = "ok"
    environment: str
    version: str
    timestamp: str
    components: dict[str, str] = Field(default_factory=dict)
