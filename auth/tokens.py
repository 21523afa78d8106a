"""
auth/tokens.py -- Access token minting and refresh token generation.

Security design decisions:
  Access tokens: python-jose with HS256. Claims are sub (principal id),
       type ("access"), iat and exp. Stateless -- nothing is recorded server
       side, so an access token lives exactly until exp and cannot be revoked
       early. Verification lives in auth/gate.py.

  Refresh tokens: secrets.token_urlsafe(32) gives 256 bits of entropy and is
       opaque to the client. We store HMAC-SHA256(SECRET_KEY, raw) so lookup
       is O(1) and a database dump alone does not yield usable tokens. bcrypt's
       intentional slowness is unnecessary for high-entropy secrets.

  SECRET_KEY: passed in at construction from Settings (see api/main.py
       lifespan). The issuer holds it read-only for the process lifetime.

Layer rule: no imports from api/ or posts/.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from jose import jwt

from auth.models import IssuedAccessToken

ALGORITHM = "HS256"
ACCESS_TOKEN_TYPE = "access"  # noqa: S105 # nosec B105 -- claim value, not a password
REFRESH_TOKEN_BYTES = 32

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def hash_refresh_token(secret_key: str, raw_token: str) -> str:
    """Return HMAC-SHA256(secret_key, raw_token) as a hex string.

    Deterministic, so the registry can look a token up by its digest instead
    of scanning records.
    """
    return hmac.new(secret_key.encode(), raw_token.encode(), hashlib.sha256).hexdigest()


class TokenIssuer:
    """Mints signed access tokens and opaque refresh tokens.

    Usage:
        issuer = TokenIssuer(settings.secret_key, timedelta(minutes=15))
        issued = issuer.issue_access(principal.id)
        raw_refresh = issuer.issue_refresh()
    """

    def __init__(self, secret_key: str, access_ttl: timedelta, clock: Clock = utcnow) -> None:
        self._secret_key = secret_key
        self.access_ttl = access_ttl
        self._clock = clock

    def issue_access(self, principal_id: str) -> IssuedAccessToken:
        """Encode a signed JWT for principal_id, valid for access_ttl.

        iat is truncated to whole seconds so the exp claim (integer seconds)
        and the returned expires_at describe the same instant.
        """
        issued_at = self._clock().replace(microsecond=0)
        expires_at = issued_at + self.access_ttl
        claims = {
            "sub": principal_id,
            "type": ACCESS_TOKEN_TYPE,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        token = jwt.encode(claims, self._secret_key, algorithm=ALGORITHM)
        return IssuedAccessToken(token=token, expires_at=expires_at)

    def issue_refresh(self) -> str:
        """Return a new URL-safe refresh token. The caller must not persist it."""
        return secrets.token_urlsafe(REFRESH_TOKEN_BYTES)

    def digest(self, raw_token: str) -> str:
        return hash_refresh_token(self._secret_key, raw_token)
