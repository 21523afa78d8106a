"""
api/routes/auth.py -- Registration, login, token refresh and identity endpoints.

Routes:
  POST /auth/register  -- create account; 201 + principal
  POST /auth/login     -- password login; 200 + access/refresh pair
  POST /auth/refresh   -- rotate refresh token; 200 + new pair
  POST /auth/logout    -- revoke refresh token; 200 (idempotent)
  GET  /auth/me        -- current principal (requires Bearer access token)

Security:
  Login returns the same 401 body for unknown handle and wrong password;
  AuthService.login() also equalizes timing -- never inline the lookup here.
  Cache-Control: no-store on every response that carries a token.
  Domain errors (auth.errors) propagate to the handlers in api/main.py.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from api.models import CredentialsRequest, MessageResponse, PrincipalResponse, RefreshRequest, TokenResponse
from auth.dependencies import get_auth_service, get_current_user
from auth.models import Principal, TokenPair
from auth.service import AuthService

# Auth policy:
# - POST /auth/register: public
# - POST /auth/login:    public
# - POST /auth/refresh:  public -- the refresh token in the body is the credential
# - POST /auth/logout:   public -- revoking a token only requires holding it
# - GET  /auth/me:       requires auth (get_current_user)
router = APIRouter()


@router.post("/auth/register", response_model=PrincipalResponse, status_code=201)
def register(body: CredentialsRequest, service: AuthService = Depends(get_auth_service)) -> PrincipalResponse:
    """Create an account. 400 on invalid input, 409 if the handle is taken."""
    principal = service.register(body.handle, body.password)
    return _principal_to_response(principal)


@router.post("/auth/login", response_model=TokenResponse)
def login(
    body: CredentialsRequest,
    response: Response,
    service: AuthService = Depends(get_auth_service),
) -> TokenResponse:
    """Exchange handle + password for an access token and a refresh token."""
    pair = service.login(body.handle, body.password)
    response.headers["Cache-Control"] = "no-store"
    return _pair_to_response(pair)


@router.post("/auth/refresh", response_model=TokenResponse)
def refresh(
    body: RefreshRequest,
    response: Response,
    service: AuthService = Depends(get_auth_service),
) -> TokenResponse:
    """Rotate the presented refresh token. The old value stops working immediately."""
    pair = service.refresh(body.refresh_token)
    response.headers["Cache-Control"] = "no-store"
    return _pair_to_response(pair)


@router.post("/auth/logout", response_model=MessageResponse)
def logout(body: RefreshRequest, service: AuthService = Depends(get_auth_service)) -> MessageResponse:
    service.logout(body.refresh_token)
    return MessageResponse(message="Logged out.")


@router.get("/auth/me", response_model=PrincipalResponse)
def me(current_user: Principal = Depends(get_current_user)) -> PrincipalResponse:
    """Return identity information for the authenticated caller."""
    return _principal_to_response(current_user)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _principal_to_response(principal: Principal) -> PrincipalResponse:
    return PrincipalResponse(id=principal.id, handle=principal.handle, created_at=principal.created_at)


def _pair_to_response(pair: TokenPair) -> TokenResponse:
    return TokenResponse(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        token_type=pair.token_type,
        expires_in=pair.expires_in,
    )
