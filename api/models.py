"""
API request and response models for mentorauth REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Registration fields are NOT validated here beyond type and length caps:
auth.validation owns the rules and their exact messages, so a weak password
produces "Password must contain at least one number." rather than a generic
422. The fields accept null for the same reason: a missing or null email
still gets "Email is required.".
"""

from typing import Optional

from pydantic import BaseModel, Field

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register."""

    full_name: Optional[str] = Field(default=None, max_length=255)
    username: Optional[str] = Field(default=None, max_length=255)
    email: Optional[str] = Field(default=None, max_length=320)
    password: Optional[str] = Field(default=None, max_length=255)


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login.

    identifier is a username, or an email when it contains "@".
    """

    identifier: str = Field(min_length=1, max_length=320)
    password: str = Field(min_length=1, max_length=255)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class MeResponse(BaseModel):
    user_id: int
    username: str
    email: str
    full_name: str


class MessageResponse(BaseModel):
    message: str


class HealthResponse(BaseModel):
    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Error envelope
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    code: str
    message: str
    detail: Optional[str] = None
    field: Optional[str] = None


class ErrorResponse(BaseModel):
    error: ErrorDetail
