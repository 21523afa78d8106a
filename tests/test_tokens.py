"""Unit tests for auth/tokens.py (issuer) and auth/gate.py (verification).

Covers:
- access token claims: sub, type, iat, exp = iat + ttl
- refresh tokens: URL-safe, high entropy, unique
- refresh token digest: deterministic, keyed, never equal to the raw value
- gate: valid until the expiry instant, Expired one second later
- gate: alg mismatch (HS512, none), bad signature, tampered payload,
  malformed strings, wrong token type, missing token
- parse_bearer header handling
"""

from __future__ import annotations

import base64
import json
import re
from datetime import timedelta

import pytest
from jose import jwt

from auth.errors import AlgorithmMismatch, Expired, InvalidSignature, MalformedToken, MissingCredential
from auth.gate import AuthenticationGate, parse_bearer
from auth.tokens import ALGORITHM, TokenIssuer, hash_refresh_token

SECRET = "unit-test-secret-0123456789abcdef012345"
TTL = timedelta(minutes=15)


@pytest.fixture
def issuer(clock) -> TokenIssuer:
    return TokenIssuer(SECRET, TTL, clock=clock)


@pytest.fixture
def gate(clock) -> AuthenticationGate:
    return AuthenticationGate(SECRET, clock=clock)


def _b64(data: dict) -> str:
    return base64.urlsafe_b64encode(json.dumps(data).encode()).rstrip(b"=").decode()


class TestTokenIssuer:
    def test_access_token_claims(self, issuer: TokenIssuer, clock) -> None:
        issued = issuer.issue_access("42")
        claims = jwt.get_unverified_claims(issued.token)
        assert claims["sub"] == "42"
        assert claims["type"] == "access"
        assert claims["iat"] == int(clock.now.timestamp())
        assert claims["exp"] - claims["iat"] == int(TTL.total_seconds())
        assert issued.expires_at == clock.now + TTL

    def test_access_token_header_uses_hs256(self, issuer: TokenIssuer) -> None:
        assert jwt.get_unverified_header(issuer.issue_access("42").token)["alg"] == ALGORITHM

    def test_refresh_token_is_url_safe_and_long(self, issuer: TokenIssuer) -> None:
        raw = issuer.issue_refresh()
        assert re.fullmatch(r"[A-Za-z0-9_-]+", raw)
        assert len(raw) >= 43  # 32 bytes base64url-encoded

    def test_refresh_tokens_are_unique(self, issuer: TokenIssuer) -> None:
        assert len({issuer.issue_refresh() for _ in range(100)}) == 100

    def test_digest_is_deterministic_and_keyed(self, issuer: TokenIssuer) -> None:
        raw = issuer.issue_refresh()
        assert issuer.digest(raw) == issuer.digest(raw)
        assert issuer.digest(raw) != raw
        assert hash_refresh_token("another-secret-0123456789abcdef0123", raw) != issuer.digest(raw)
        assert len(issuer.digest(raw)) == 64


class TestAuthenticationGate:
    def test_valid_token_yields_principal(self, issuer: TokenIssuer, gate: AuthenticationGate) -> None:
        issued = issuer.issue_access("42")
        verified = gate.authenticate(issued.token)
        assert verified.principal_id == "42"
        assert verified.expires_at == issued.expires_at

    def test_valid_until_expiry_instant(self, issuer: TokenIssuer, gate: AuthenticationGate, clock) -> None:
        issued = issuer.issue_access("42")
        clock.now = issued.expires_at
        assert gate.authenticate(issued.token).principal_id == "42"

    def test_expired_after_expiry_instant(self, issuer: TokenIssuer, gate: AuthenticationGate, clock) -> None:
        issued = issuer.issue_access("42")
        clock.now = issued.expires_at + timedelta(seconds=1)
        with pytest.raises(Expired):
            gate.authenticate(issued.token)

    @pytest.mark.parametrize("token", [None, ""])
    def test_missing_token(self, gate: AuthenticationGate, token) -> None:
        with pytest.raises(MissingCredential):
            gate.authenticate(token)

    def test_other_hmac_algorithm_rejected(self, gate: AuthenticationGate, clock) -> None:
        now = int(clock.now.timestamp())
        token = jwt.encode({"sub": "42", "type": "access", "iat": now, "exp": now + 60}, SECRET, algorithm="HS512")
        with pytest.raises(AlgorithmMismatch):
            gate.authenticate(token)

    def test_alg_none_rejected(self, gate: AuthenticationGate, clock) -> None:
        now = int(clock.now.timestamp())
        header = _b64({"alg": "none", "typ": "JWT"})
        payload = _b64({"sub": "42", "type": "access", "iat": now, "exp": now + 60})
        with pytest.raises(AlgorithmMismatch):
            gate.authenticate(f"{header}.{payload}.")

    def test_wrong_secret_rejected(self, gate: AuthenticationGate, clock) -> None:
        forged = TokenIssuer("attacker-secret-0123456789abcdef01234", TTL, clock=clock).issue_access("42")
        with pytest.raises(InvalidSignature):
            gate.authenticate(forged.token)

    def test_tampered_payload_rejected(self, issuer: TokenIssuer, gate: AuthenticationGate, clock) -> None:
        header, _payload, signature = issuer.issue_access("42").token.split(".")
        now = int(clock.now.timestamp())
        payload = _b64({"sub": "1", "type": "access", "iat": now, "exp": now + 60})
        with pytest.raises(InvalidSignature):
            gate.authenticate(f"{header}.{payload}.{signature}")

    def test_non_access_token_rejected(self, gate: AuthenticationGate, clock) -> None:
        now = int(clock.now.timestamp())
        token = jwt.encode({"sub": "42", "type": "refresh", "iat": now, "exp": now + 60}, SECRET, algorithm="HS256")
        with pytest.raises(InvalidSignature):
            gate.authenticate(token)

    @pytest.mark.parametrize("token", ["not-a-jwt", "a.b.c", "...."])
    def test_malformed_token_rejected(self, gate: AuthenticationGate, token: str) -> None:
        with pytest.raises((MalformedToken, InvalidSignature)):
            gate.authenticate(token)


class TestParseBearer:
    def test_extracts_token(self) -> None:
        assert parse_bearer("Bearer abc.def.ghi") == "abc.def.ghi"

    @pytest.mark.parametrize("header", [None, ""])
    def test_missing_header(self, header) -> None:
        with pytest.raises(MissingCredential):
            parse_bearer(header)

    @pytest.mark.parametrize("header", ["Basic dXNlcjpwYXNz", "Bearer", "Bearer ", "bearer abc", "Bearer a b", "abc"])
    def test_malformed_header(self, header: str) -> None:
        with pytest.raises(MalformedToken):
            parse_bearer(header)
