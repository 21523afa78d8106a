"""
auth/gate.py -- Request-time access token verification.

Check order matters and each step has its own failure class:
  1. no token                      -> MissingCredential
  2. header unparseable            -> MalformedToken
  3. header alg != HS256           -> AlgorithmMismatch (blocks alg=none and
                                      downgrade/confusion attacks before any
                                      key material is touched)
  4. signature does not verify     -> InvalidSignature
  5. wrong "type" / no subject     -> InvalidSignature
  6. now > exp                     -> Expired

Expiry is checked here against the injected clock rather than inside
jose.jwt.decode(), so "valid until its expiry instant" is exact and testable.

All failures are 401 to the client with the same body; the class name is
logged so operators can tell them apart.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from jose import jwt
from jose.exceptions import JWTClaimsError, JWTError

from auth.errors import AlgorithmMismatch, Expired, InvalidSignature, MalformedToken, MissingCredential
from auth.models import VerifiedPrincipal
from auth.tokens import ACCESS_TOKEN_TYPE, ALGORITHM, Clock, utcnow

logger = logging.getLogger("tokengate.auth")

_BEARER_PREFIX = "Bearer "


def parse_bearer(header: str | None) -> str:
    """Extract the token from an ``Authorization: Bearer <token>`` header.

    Missing or empty header -> MissingCredential. Anything that is not exactly
    two space-separated parts with the Bearer scheme -> MalformedToken.
    """
    if not header:
        raise MissingCredential()
    if not header.startswith(_BEARER_PREFIX):
        raise MalformedToken()
    token = header[len(_BEARER_PREFIX) :]
    if not token or " " in token:
        raise MalformedToken()
    return token


class AuthenticationGate:
    def __init__(self, secret_key: str, clock: Clock = utcnow) -> None:
        self._secret_key = secret_key
        self._clock = clock

    def authenticate(self, presented_token: str | None) -> VerifiedPrincipal:
        """Verify an access token and return the principal it was issued to."""
        if not presented_token:
            raise MissingCredential()

        try:
            header = jwt.get_unverified_header(presented_token)
        except JWTError as exc:
            raise MalformedToken() from exc
        if header.get("alg") != ALGORITHM:
            raise AlgorithmMismatch()

        try:
            claims = jwt.decode(
                presented_token,
                self._secret_key,
                algorithms=[ALGORITHM],
                options={"verify_exp": False},
            )
        except JWTClaimsError as exc:
            raise MalformedToken() from exc
        except JWTError as exc:
            raise InvalidSignature() from exc

        subject = claims.get("sub")
        if claims.get("type") != ACCESS_TOKEN_TYPE or not isinstance(subject, str) or not subject:
            raise InvalidSignature()

        exp = claims.get("exp")
        iat = claims.get("iat")
        if not isinstance(exp, int) or not isinstance(iat, int):
            raise MalformedToken()
        expires_at = datetime.fromtimestamp(exp, tz=timezone.utc)
        if self._clock() > expires_at:
            raise Expired()

        return VerifiedPrincipal(
            principal_id=subject,
            issued_at=datetime.fromtimestamp(iat, tz=timezone.utc),
            expires_at=expires_at,
        )
