"""
API request and response models for sessiongate REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
The Principal model itself lives in auth/models.py because it is validated at
the validator boundary too; responses here only wrap it.

No response model ever has a field for a secret. Tokens travel in
Set-Cookie headers only.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import Principal

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login.

    Fields are not length-checked for emptiness here: the issuer rejects
    empty credentials with the same invalid_credentials error a wrong
    password produces, before any remote call.
    """

    username: str = Field(default="", max_length=255)
    password: str = Field(default="", max_length=255)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class LoginResponse(BaseModel):
    """Response for POST /api/v1/auth/login -- profile only, never tokens."""

    model_config = ConfigDict(frozen=True)

    user: Principal
    success: bool = True


class MeResponse(BaseModel):
    """Response for GET /api/v1/auth/me."""

    model_config = ConfigDict(frozen=True)

    user: Principal


class SuccessResponse(BaseModel):
    """Response for POST /logout and POST /refresh."""

    model_config = ConfigDict(frozen=True)

    success: bool = True


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

    status: str = "ok"
    version: str
