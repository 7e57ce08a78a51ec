"""
tests/conftest.py -- Shared test fixtures for Usuarios unit and integration tests.

This module provides:
  - make_store(): creates an isolated in-memory UserStore
  - _patch_lifespan(): wires a test store into app.state, bypassing real startup
  - store / service: fresh repository and AccountService per test
  - client: TestClient over the real app with a fresh store per test
  - admin: an administrator account (its id is listed in ADMIN_USER_IDS)
  - create_user / headers_for: factories for stored accounts and their bearer headers

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker
thread. The named URI format (file:name?mode=memory&cache=shared&uri=true)
shares one in-memory instance across all connections in the same process.

Environment must be set before any auth/core import:
  DEBUG=true               get_settings() auto-generates SECRET_KEY
  BCRYPT_ROUNDS=4          keeps hashing fast
  RATE_LIMIT_ENABLED=false fixtures register many accounts from one client IP
  ADMIN_USER_IDS           makes the ``admin`` fixture an administrator
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

ADMIN_ID = "00000000-0000-4000-8000-000000000001"

# CRITICAL: Set these before any auth/core import -- Settings is cached on
# first use and auth.tokens / auth.passwords read it at import time.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("ADMIN_USER_IDS", f'["{ADMIN_ID}"]')

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import User
from auth.passwords import hash_password
from auth.service import AccountService
from auth.store import UserStore
from auth.tokens import create_access_token

DEFAULT_PASSWORD = "senha123"

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def make_store() -> UserStore:
    """Create an isolated named shared-memory SQLite store.

    Every call gets its own database name, so tests never see each other's rows.
    """
    name = f"test_usuarios_{uuid.uuid4().hex}"
    return UserStore(db_url=f"sqlite:///file:{name}?mode=memory&cache=shared&uri=true")


def _make_user(store: UserStore, password: str = DEFAULT_PASSWORD, **fields) -> User:
    """Insert a user directly through the store and return it as stored."""
    fields.setdefault("name", "Maria Souza")
    fields.setdefault("email", f"user-{uuid.uuid4().hex[:8]}@example.com")
    return store.insert(User(password_hash=hash_password(password), **fields))


def _auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user)}"}


def _patch_lifespan(user_store: UserStore):
    """Return an async context manager that replaces the real lifespan.

    Wires the pre-created test store into app.state so TestClient routes see
    an isolated test DB rather than the configured database.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    user_store = make_store()
    yield user_store
    user_store.close()


@pytest.fixture
def service(store: UserStore) -> AccountService:
    return AccountService(store)


@pytest.fixture
def admin(store: UserStore) -> User:
    return _make_user(store, id=ADMIN_ID, name="Admin Geral", email="admin@example.com")


@pytest.fixture
def client(store: UserStore) -> Generator[TestClient, None, None]:
    """Yield a TestClient over the real app, backed by this test's store.

    The client hits real route handlers, middleware and exception handlers.
    """
    app.router.lifespan_context = _patch_lifespan(store)
    with TestClient(app, raise_server_exceptions=True) as test_client:
        yield test_client


@pytest.fixture
def create_user(store: UserStore):
    """Factory: create_user(password=..., **User fields) -> stored User."""

    def _create(password: str = DEFAULT_PASSWORD, **fields) -> User:
        return _make_user(store, password=password, **fields)

    return _create


@pytest.fixture
def headers_for():
    """Factory: headers_for(user) -> {"Authorization": "Bearer <fresh token>"}."""
    return _auth_headers
