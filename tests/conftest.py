"""
tests/conftest.py -- Shared test fixtures for SafeVault tests.

This module provides:
  - hasher: a low-cost PasswordHasher shared by the whole session
  - store / auth_service: a fresh in-memory CredentialStore per test
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api_client: TestClient over the real FastAPI app for integration tests

Design: the API fixture uses a named shared-memory SQLite URI (not plain
:memory:) because TestClient runs sync route handlers in a thread pool and
each pooled connection must see the same database. The named URI format
(file:name?mode=memory&cache=shared&uri=true) shares one in-memory instance
across all connections in the same process.

BCRYPT_ROUNDS must be set before any auth module import so get_settings()
picks up the cheap cost factor; 4 is bcrypt's minimum.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set before any auth/core import so the cached Settings use the
# cheap work factor and never touch the default on-disk database.
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.passwords import PasswordHasher
from auth.service import AuthService
from auth.store import CredentialStore
from auth.tokens import TokenStore

# ---------------------------------------------------------------------------
# Core fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture
def store() -> Generator[CredentialStore, None, None]:
    """Private in-memory CredentialStore, discarded after each test."""
    s = CredentialStore("sqlite://")
    yield s
    s.close()


@pytest.fixture
def auth_service(store: CredentialStore, hasher: PasswordHasher) -> AuthService:
    return AuthService(store, hasher, TokenStore())


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(auth_service: AuthService):
    """Return an async context manager that replaces the real lifespan.

    Wires the pre-built AuthService and its collaborators into app.state so
    TestClient routes see an isolated test database rather than DATABASE_URL.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.credential_store = auth_service.store
        app.state.token_store = auth_service.tokens
        app.state.auth_service = auth_service
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(
    request: pytest.FixtureRequest, hasher: PasswordHasher
) -> Generator[tuple[TestClient, AuthService], None, None]:
    """Yield (client, auth_service) for API integration tests.

    An admin ("testadmin" / "testpass123") and a regular user
    ("testuser" / "userpass123") are registered before the client starts.
    State is shared by every test in a module, so tests that register users
    pick usernames no other test in the module uses.
    """
    db_name = f"test_auth_{request.module.__name__.rsplit('.', 1)[-1]}"
    store = CredentialStore(f"sqlite:///file:{db_name}?mode=memory&cache=shared&uri=true")
    auth_service = AuthService(store, hasher, TokenStore())
    auth_service.register("testadmin", "admin@example.com", "testpass123", "admin")
    auth_service.register("testuser", "user@example.com", "userpass123", "user")

    app.router.lifespan_context = _patch_lifespan(auth_service)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, auth_service

    store.close()


@pytest.fixture
def login_headers():
    """Return a helper that logs in through the API and builds an Authorization header."""

    def _login(client: TestClient, username: str, password: str) -> dict[str, str]:
        resp = client.post("/api/v1/auth/login", json={"username": username, "password": password})
        assert resp.status_code == 200, resp.text
        return {"Authorization": f"Bearer {resp.json()['token']}"}

    return _login
