"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Only one method is accepted: ``Authorization: Bearer <access_token>``.
Identity comes exclusively from the verified token; client-supplied identity
headers are never consulted.

get_current_principal() yields a VerifiedPrincipal for handlers that only
need the caller's id (ownership checks). get_current_user() additionally
resolves the account, for handlers that need the handle.

Failures raise auth.errors.TokenError subclasses; api/main.py maps them to
401 with a uniform body and logs the concrete class name.

Layer rule: no imports from api/ or posts/. May import from fastapi because
this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Depends, Request

from auth.gate import parse_bearer
from auth.models import Principal, VerifiedPrincipal
from auth.service import AuthService


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth


def get_current_principal(
    request: Request,
    service: AuthService = Depends(get_auth_service),
) -> VerifiedPrincipal:
    """Require a valid access token.

    Use as a FastAPI dependency:
        @router.post("/protected")
        def route(caller: VerifiedPrincipal = Depends(get_current_principal)): ...
    """
    token = parse_bearer(request.headers.get("Authorization"))
    return service.authenticate(token)


def get_current_user(
    verified: VerifiedPrincipal = Depends(get_current_principal),
    service: AuthService = Depends(get_auth_service),
) -> Principal:
    """Require a valid access token whose principal still exists."""
    return service.current_principal(verified)
