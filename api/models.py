"""
API request and response models for tokengate REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py and
posts/models.py, which own the internal domain representation. Route handlers
map between the two.

None of the response models has a field for a password hash or a stored
refresh token digest -- there is nothing to leak by accident.
"""

from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Errors / health
# ---------------------------------------------------------------------------


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
    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]


# ---------------------------------------------------------------------------
# Auth -- requests
# ---------------------------------------------------------------------------


class CredentialsRequest(BaseModel):
    """Body for POST /auth/register and POST /auth/login.

    The handle may be sent as "handle", "username" or "email". Emptiness and
    length rules are enforced by AuthService so both routes share them.
    """

    handle: str = Field(default="", validation_alias=AliasChoices("handle", "username", "email"))
    password: str = ""


class RefreshRequest(BaseModel):
    refresh_token: str = ""


# ---------------------------------------------------------------------------
# Auth -- responses
# ---------------------------------------------------------------------------


class PrincipalResponse(BaseModel):
    """Body for 201 /auth/register and 200 /auth/me."""

    id: str
    handle: str
    created_at: datetime


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"  # noqa: S105 # nosec B105 -- OAuth token type, not a password
    expires_in: int


class MessageResponse(BaseModel):
    message: str


# ---------------------------------------------------------------------------
# Posts
# ---------------------------------------------------------------------------


class PostWrite(BaseModel):
    """Body for POST /posts and PUT /posts/{id}. Blank title/content is a 400."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(default="", max_length=300)
    content: str = Field(default="", max_length=50_000)


class PostResponse(BaseModel):
    id: int
    title: str
    content: str
    author_id: str
    author_handle: str
    created_at: datetime
    updated_at: Optional[datetime] = None
