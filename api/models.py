"""
API request and response models for authgate REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py, which own the
internal domain representation. Route handlers map between the two.

Each operation gets its own request shape -- register, login, email-only
requests (forgot-password, verify-email) and reset-password -- rather than one
permissive body with every field optional.

Required-ness of username/password is checked by AuthService (MISSING_FIELD ->
400), not here, so a missing field produces the documented 400 rather than a
generic 422. Length caps stay here.

Passwords are never stripped or otherwise normalized: the bytes the user
typed at registration or reset are the bytes bcrypt sees at login. Only the
identifiers (username, email) are trimmed.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register."""

    username: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = Field(default=None, max_length=255)
    email: Optional[EmailStr] = None

    @field_validator("username", "email", mode="before")
    @classmethod
    def strip_identifiers(cls, value):
        return value.strip() if isinstance(value, str) else value


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login. Supply username OR email."""

    username: Optional[str] = Field(default=None, max_length=255)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(default=None, max_length=255)

    @field_validator("username", "email", mode="before")
    @classmethod
    def strip_identifiers(cls, value):
        return value.strip() if isinstance(value, str) else value


class EmailRequest(BaseModel):
    """Request body for POST /auth/forgot-password and POST /auth/verify-email."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: EmailStr


class ResetPasswordRequest(BaseModel):
    """Request body for POST /api/v1/auth/reset-password?token=...

    Accepts the frontend's camelCase "newPassword" as well as "new_password".
    """

    model_config = ConfigDict(populate_by_name=True)

    new_password: str = Field(alias="newPassword", min_length=1, max_length=255)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class LoginResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str = "Login successfully"
    token: str
    token_type: str = "bearer"


class TokenResponse(BaseModel):
    """Response for the OAuth callback."""

    model_config = ConfigDict(frozen=True)

    token: str
    token_type: str = "bearer"


class MeResponse(BaseModel):
    """Public identity of the bearer of a session token."""

    model_config = ConfigDict(frozen=True)

    id: int
    username: Optional[str]
    email: Optional[str]
    display_name: Optional[str]
    verified: bool


class OAuthProviderInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    label: str


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
