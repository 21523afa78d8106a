"""
tests/conftest.py -- Shared test fixtures for tokengate.

This module provides:
  - FakeClock / clock: a settable clock injected into issuer, registry and gate
  - settings: a Settings instance with a fixed key and the minimum bcrypt cost
  - memory_service: AuthService over the in-memory stores (unit tests)
  - api_client: TestClient over the real app with a patched lifespan
  - login_as: helper fixture that registers (if needed) and logs in a handle

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares one
in-memory instance across all connections in the same process.

The DEBUG env var must be set before api.main is imported: the module reads
get_settings() for CORS origins, and without DEBUG or SECRET_KEY that raises.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

# CRITICAL: Set DEBUG before any api/core import.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.memory import MemoryCredentialStore, MemoryRefreshTokenStore
from auth.service import AuthService, build_auth_service
from auth.store import AuthStore
from core.config import Settings
from posts.store import PostStore

TEST_SECRET = "test-secret-key-0123456789abcdef0123456789"


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    return Settings(debug=True, secret_key=TEST_SECRET, bcrypt_rounds=10, password_min_length=8)


@pytest.fixture
def memory_service(settings: Settings, clock: FakeClock) -> AuthService:
    return build_auth_service(settings, MemoryCredentialStore(), MemoryRefreshTokenStore(), clock=clock)


# ---------------------------------------------------------------------------
# API integration
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[AuthStore, PostStore]:
    """Create isolated named shared-memory SQLite stores.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state.
    """
    url = f"sqlite:///file:test_tokengate_{db_suffix}?mode=memory&cache=shared&uri=true"
    return AuthStore(url), PostStore(url)


def _patch_lifespan(auth_store: AuthStore, post_store: PostStore, settings: Settings):
    """Return a lifespan that wires pre-created test stores into app.state."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.auth_store = auth_store
        app.state.post_store = post_store
        app.state.auth = build_auth_service(settings, auth_store, auth_store)
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(request) -> Generator[TestClient, None, None]:
    """Yield a TestClient over the real app backed by a per-module database."""
    suffix = request.module.__name__.rsplit(".", 1)[-1]
    auth_store, post_store = _make_test_stores(suffix)
    test_settings = Settings(debug=True, secret_key=TEST_SECRET, bcrypt_rounds=10)

    app.router.lifespan_context = _patch_lifespan(auth_store, post_store, test_settings)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client

    post_store.close()
    auth_store.close()


@pytest.fixture
def login_as(api_client: TestClient) -> Callable[[str, str], dict]:
    """Return a function that registers (ignoring 409) and logs in, yielding the token body."""

    def _login(handle: str, password: str = "secret123") -> dict:
        reg = api_client.post("/auth/register", json={"handle": handle, "password": password})
        assert reg.status_code in (201, 409), reg.text
        resp = api_client.post("/auth/login", json={"handle": handle, "password": password})
        assert resp.status_code == 200, resp.text
        return resp.json()

    return _login
