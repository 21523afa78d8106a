"""Unit tests for auth/service.py -- registration, login, refresh, logout.

Uses the in-memory backend (memory_service fixture) and a fake clock.

Covers:
- register validation: empty fields, short password, over-long handle,
  passwords past bcrypt's 72-byte limit, whitespace-only handle
- duplicate handle -> DuplicateCredential
- unknown handle and wrong password raise indistinguishable InvalidCredential
- login returns a working access token and a rotating refresh token
- refresh/logout input validation and revocation
- current_principal for a principal that no longer exists
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from auth.errors import (
    DuplicateCredential,
    Expired,
    InvalidCredential,
    PrincipalNotFound,
    TokenExpired,
    TokenNotFound,
    ValidationError,
)
from auth.models import VerifiedPrincipal
from auth.service import AuthService


class TestRegister:
    def test_register_returns_principal(self, memory_service: AuthService) -> None:
        principal = memory_service.register("alice", "secret123")
        assert principal.handle == "alice"
        assert principal.id

    def test_register_strips_handle(self, memory_service: AuthService) -> None:
        assert memory_service.register("  alice  ", "secret123").handle == "alice"

    def test_password_is_stored_hashed(self, memory_service: AuthService) -> None:
        memory_service.register("alice", "secret123")
        record = memory_service.credentials.find_credential("alice")
        assert record.password_hash != "secret123"
        assert memory_service.hasher.verify(record.password_hash, "secret123")
        assert "secret123" not in repr(record)
        assert record.password_hash not in repr(record)

    @pytest.mark.parametrize(
        ("handle", "password"),
        [
            ("", "secret123"),
            ("   ", "secret123"),
            ("alice", ""),
            ("alice", "short"),
            ("a" * 256, "secret123"),
            ("alice", "x" * 73),
            ("alice", "é" * 37),  # 74 bytes in UTF-8
        ],
    )
    def test_invalid_input(self, memory_service: AuthService, handle: str, password: str) -> None:
        with pytest.raises(ValidationError):
            memory_service.register(handle, password)

    def test_duplicate_handle(self, memory_service: AuthService) -> None:
        memory_service.register("alice", "secret123")
        with pytest.raises(DuplicateCredential):
            memory_service.register("alice", "different456")


class TestLogin:
    def test_login_issues_working_tokens(self, memory_service: AuthService) -> None:
        principal = memory_service.register("alice", "secret123")
        pair = memory_service.login("alice", "secret123")
        assert pair.token_type == "bearer"
        assert pair.expires_in == 900
        assert memory_service.authenticate(pair.access_token).principal_id == principal.id
        assert memory_service.registry.validate_and_rotate(pair.refresh_token)[0] == principal.id

    def test_unknown_handle_and_wrong_password_are_indistinguishable(self, memory_service: AuthService) -> None:
        memory_service.register("alice", "secret123")
        with pytest.raises(InvalidCredential) as unknown:
            memory_service.login("mallory", "secret123")
        with pytest.raises(InvalidCredential) as wrong:
            memory_service.login("alice", "secret124")
        assert type(unknown.value) is type(wrong.value)
        assert str(unknown.value) == str(wrong.value)
        assert unknown.value.code == wrong.value.code
        assert unknown.value.status_code == wrong.value.status_code == 401

    def test_unknown_handle_still_runs_bcrypt(self, memory_service: AuthService, monkeypatch) -> None:
        calls: list[str] = []
        original = memory_service.hasher.verify

        def spy(hashed: str, plaintext: str) -> bool:
            calls.append(hashed)
            return original(hashed, plaintext)

        monkeypatch.setattr(memory_service.hasher, "verify", spy)
        with pytest.raises(InvalidCredential):
            memory_service.login("nobody", "secret123")
        assert len(calls) == 1

    @pytest.mark.parametrize(("handle", "password"), [("", "secret123"), ("alice", "")])
    def test_empty_fields(self, memory_service: AuthService, handle: str, password: str) -> None:
        with pytest.raises(ValidationError):
            memory_service.login(handle, password)

    def test_access_token_expires(self, memory_service: AuthService, clock) -> None:
        memory_service.register("alice", "secret123")
        pair = memory_service.login("alice", "secret123")
        clock.advance(seconds=901)
        with pytest.raises(Expired):
            memory_service.authenticate(pair.access_token)


class TestRefresh:
    def test_refresh_rotates(self, memory_service: AuthService) -> None:
        principal = memory_service.register("alice", "secret123")
        pair = memory_service.login("alice", "secret123")
        refreshed = memory_service.refresh(pair.refresh_token)
        assert refreshed.refresh_token != pair.refresh_token
        assert memory_service.authenticate(refreshed.access_token).principal_id == principal.id
        with pytest.raises(TokenNotFound):
            memory_service.refresh(pair.refresh_token)

    def test_refresh_after_ttl(self, memory_service: AuthService, clock) -> None:
        memory_service.register("alice", "secret123")
        pair = memory_service.login("alice", "secret123")
        clock.advance(days=31)
        with pytest.raises(TokenExpired):
            memory_service.refresh(pair.refresh_token)

    def test_refresh_requires_token(self, memory_service: AuthService) -> None:
        with pytest.raises(ValidationError):
            memory_service.refresh("")

    def test_logout_revokes(self, memory_service: AuthService) -> None:
        memory_service.register("alice", "secret123")
        pair = memory_service.login("alice", "secret123")
        memory_service.logout(pair.refresh_token)
        memory_service.logout(pair.refresh_token)
        with pytest.raises(TokenNotFound):
            memory_service.refresh(pair.refresh_token)


class TestCurrentPrincipal:
    def test_resolves_principal(self, memory_service: AuthService) -> None:
        principal = memory_service.register("alice", "secret123")
        verified = memory_service.authenticate(memory_service.login("alice", "secret123").access_token)
        assert memory_service.current_principal(verified) == principal

    def test_unknown_principal(self, memory_service: AuthService, clock) -> None:
        verified = VerifiedPrincipal(
            principal_id="gone",
            issued_at=clock.now,
            expires_at=clock.now + timedelta(minutes=1),
        )
        with pytest.raises(PrincipalNotFound):
            memory_service.current_principal(verified)
