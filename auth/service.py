"""
auth/service.py -- Registration, login, refresh and logout orchestration.

AuthService is glue over the four components: PasswordHasher, TokenIssuer,
RefreshTokenRegistry and AuthenticationGate. It owns no state of its own;
everything shared lives in the stores passed in.

build_auth_service() is the composition root: it turns a Settings object and
a pair of stores into a wired service. api/main.py calls it once in lifespan
and keeps the result on app.state.

Login failure policy:
  Unknown handle and wrong password raise the same InvalidCredential with the
  same message. An unknown handle still pays for a full bcrypt verify against
  the hasher's dummy hash, so response time does not reveal which factor was
  wrong either.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from auth.errors import DuplicateCredential, InvalidCredential, PrincipalNotFound, ValidationError
from auth.gate import AuthenticationGate
from auth.models import Principal, TokenPair, VerifiedPrincipal
from auth.passwords import MAX_PASSWORD_BYTES, PasswordHasher
from auth.ports import CredentialStore, RefreshTokenStore
from auth.registry import RefreshTokenRegistry
from auth.tokens import Clock, TokenIssuer, utcnow
from core.config import Settings

logger = logging.getLogger("tokengate.auth")

MAX_HANDLE_LENGTH = 255


class AuthService:
    def __init__(
        self,
        credentials: CredentialStore,
        hasher: PasswordHasher,
        issuer: TokenIssuer,
        registry: RefreshTokenRegistry,
        gate: AuthenticationGate,
        password_min_length: int = 8,
    ) -> None:
        self.credentials = credentials
        self.hasher = hasher
        self.issuer = issuer
        self.registry = registry
        self.gate = gate
        self.password_min_length = password_min_length

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, handle: str, password: str) -> Principal:
        """Create an account and return its public view.

        Raises ValidationError for empty/oversized input or a short password,
        DuplicateCredential if the handle is taken.
        """
        handle = _normalize_handle(handle)
        if not handle or not password:
            raise ValidationError("Handle and password are required.")
        if len(handle) > MAX_HANDLE_LENGTH:
            raise ValidationError(f"Handle must be at most {MAX_HANDLE_LENGTH} characters.")
        if len(password) < self.password_min_length:
            raise ValidationError(f"Password must be at least {self.password_min_length} characters long.")
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes.")

        if self.credentials.exists(handle):
            logger.info("Registration rejected: handle already taken")
            raise DuplicateCredential()

        principal_id = self.credentials.insert_credential(handle, self.hasher.hash(password))
        principal = self.credentials.get_principal(principal_id)
        if principal is None:
            raise PrincipalNotFound()
        logger.info("Registered principal %s", principal_id)
        return principal

    # ------------------------------------------------------------------
    # Login / refresh / logout
    # ------------------------------------------------------------------

    def login(self, handle: str, password: str) -> TokenPair:
        handle = _normalize_handle(handle)
        if not handle or not password:
            raise ValidationError("Handle and password are required.")

        record = self.credentials.find_credential(handle)
        if record is None:
            self.hasher.verify_dummy(password)
            logger.info("Login failed: InvalidCredential")
            raise InvalidCredential()
        if not self.hasher.verify(record.password_hash, password):
            logger.info("Login failed: InvalidCredential")
            raise InvalidCredential()

        pair = self._issue_pair(record.id, self.registry.issue(record.id))
        logger.info("Login succeeded for principal %s", record.id)
        return pair

    def refresh(self, raw_refresh_token: str) -> TokenPair:
        """Rotate a refresh token and mint a new access token.

        Raises ValidationError if no token was given, TokenNotFound /
        TokenExpired from the registry otherwise.
        """
        if not raw_refresh_token:
            raise ValidationError("Refresh token is required.")
        principal_id, new_raw = self.registry.validate_and_rotate(raw_refresh_token)
        logger.info("Refresh token rotated for principal %s", principal_id)
        return self._issue_pair(principal_id, new_raw)

    def logout(self, raw_refresh_token: str) -> None:
        if not raw_refresh_token:
            raise ValidationError("Refresh token is required.")
        self.registry.revoke(raw_refresh_token)
        logger.info("Refresh token revoked")

    # ------------------------------------------------------------------
    # Protected requests
    # ------------------------------------------------------------------

    def authenticate(self, presented_token: str | None) -> VerifiedPrincipal:
        return self.gate.authenticate(presented_token)

    def current_principal(self, verified: VerifiedPrincipal) -> Principal:
        """Resolve a verified token to the account it names.

        A token can outlive its account; that case is a 401, not a 404.
        """
        principal = self.credentials.get_principal(verified.principal_id)
        if principal is None:
            raise PrincipalNotFound()
        return principal

    def _issue_pair(self, principal_id: str, raw_refresh_token: str) -> TokenPair:
        access = self.issuer.issue_access(principal_id)
        return TokenPair(
            access_token=access.token,
            refresh_token=raw_refresh_token,
            expires_in=int(self.issuer.access_ttl.total_seconds()),
        )


def _normalize_handle(handle: str | None) -> str:
    return (handle or "").strip()


def build_auth_service(
    settings: Settings,
    credentials: CredentialStore,
    refresh_tokens: RefreshTokenStore,
    clock: Clock = utcnow,
) -> AuthService:
    """Wire the auth components from settings. Called once per process."""
    issuer = TokenIssuer(
        settings.secret_key,
        access_ttl=timedelta(seconds=settings.access_token_expire_seconds),
        clock=clock,
    )
    registry = RefreshTokenRegistry(
        refresh_tokens,
        issuer,
        ttl=timedelta(days=settings.refresh_token_expire_days),
        clock=clock,
    )
    return AuthService(
        credentials=credentials,
        hasher=PasswordHasher(rounds=settings.bcrypt_rounds),
        issuer=issuer,
        registry=registry,
        gate=AuthenticationGate(settings.secret_key, clock=clock),
        password_min_length=settings.password_min_length,
    )
