"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and the service
layer do the work; these only own the shape.

Principal ids are opaque strings. The SQL backend renders its autoincrement
integer as text, the memory backend uses uuid4 hex -- callers must never parse
them.

Layer rule: no imports from api/, posts/, or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class Principal:
    """The public view of an account. Safe to serialize."""

    id: str
    handle: str  # username or email, unique across all records
    created_at: datetime


@dataclass(frozen=True)
class CredentialRecord:
    """A stored account including its bcrypt hash.

    password_hash is never logged and never returned from an API route.
    Use as_principal() whenever the record leaves the auth package.
    """

    id: str
    handle: str
    password_hash: str
    created_at: datetime

    def as_principal(self) -> Principal:
        return Principal(id=self.id, handle=self.handle, created_at=self.created_at)

    def __repr__(self) -> str:
        return f"CredentialRecord(id={self.id!r}, handle={self.handle!r}, created_at={self.created_at!r})"


@dataclass(frozen=True)
class RefreshTokenRecord:
    """Server-side half of a refresh token.

    token_hash is HMAC-SHA256(SECRET_KEY, raw_token). The raw value is returned
    to the client once and never persisted, so reading this table does not
    hand out usable tokens.
    """

    principal_id: str
    token_hash: str
    expires_at: datetime
    created_at: datetime


@dataclass(frozen=True)
class IssuedAccessToken:
    token: str
    expires_at: datetime


@dataclass(frozen=True)
class VerifiedPrincipal:
    """Result of a successful access token check.

    Downstream handlers receive this by parameter; it is the only source of
    caller identity they are allowed to trust.
    """

    principal_id: str
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int  # access token lifetime in seconds
    token_type: str = "bearer"  # noqa: S105 # nosec B105 -- OAuth token type, not a password
