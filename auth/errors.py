"""
auth/errors.py -- Error taxonomy for credential and token handling.

Every class carries the HTTP status, the public error code and the public
message the API layer sends back. The class name itself is what gets logged,
so token failures that look identical to the client ("invalid_token") are
still distinguishable in server logs.

Nothing here may ever contain a password hash, a raw refresh token, or store
error text -- messages are fixed strings.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class. Subclasses override the three class attributes."""

    status_code: int = 500
    code: str = "internal_error"
    message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ValidationError(AuthError):
    """Missing or malformed input (empty handle, short password, ...)."""

    status_code = 400
    code = "validation_error"
    message = "Request validation failed."


class DuplicateCredential(AuthError):
    status_code = 409
    code = "conflict"
    message = "A user with that handle already exists."


class InvalidCredential(AuthError):
    """Unified login failure.

    Raised for both unknown handle and wrong password. Never pass a custom
    message that would tell the two apart.
    """

    status_code = 401
    code = "bad_credentials"
    message = "Invalid username or password."


# ---------------------------------------------------------------------------
# Token failures -- all 401, all share one public message
# ---------------------------------------------------------------------------


class TokenError(AuthError):
    status_code = 401
    code = "invalid_token"
    message = "Invalid or expired token."


class MissingCredential(TokenError):
    code = "unauthorized"
    message = "Authentication required."


class MalformedToken(TokenError):
    """Authorization header or token string that cannot be parsed at all."""


class AlgorithmMismatch(TokenError):
    """Token header declares an algorithm other than the one we sign with."""


class InvalidSignature(TokenError):
    pass


class Expired(TokenError):
    """Access token past its exp claim."""


class TokenNotFound(TokenError):
    """Refresh token has no record -- never issued, revoked, or already rotated."""


class TokenExpired(TokenError):
    """Refresh token record exists but is past expires_at."""


class PrincipalNotFound(TokenError):
    """Token verified but its principal no longer exists."""


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class StoreUnavailable(AuthError):
    """Backing store failed. The only retryable class."""

    status_code = 500
    code = "internal_error"
    message = "An unexpected error occurred."
