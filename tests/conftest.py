"""
tests/conftest.py -- Shared test fixtures for Devices API integration tests.

This module provides:
  - _make_test_store(): creates an isolated in-memory inventory DB
  - _patch_lifespan(): wires the test store and token service into app.state,
    bypassing real startup
  - api_client: TestClient plus store and an admin session token
  - issue_user_token: factory that mints and persists a user token

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

Environment must be set before any api/auth/core import so get_settings()
sees the test secrets and rate limiting is off.

Sessions are sent as an explicit Cookie header per request rather than
through the client's cookie jar, so one test's login never leaks into the
next test sharing the module-scoped client.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager

# CRITICAL: Set env before any api/auth/core import.
os.environ.setdefault("DEVICES_SERVER_DEBUG", "true")
os.environ.setdefault("DEVICES_SERVER_JWT_SECRET", "test-jwt-secret-0123456789abcdef")
os.environ.setdefault("DEVICES_SERVER_ADMIN_SECRET", "test-admin-secret")
os.environ.setdefault("DEVICES_SERVER_RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("DEVICES_SERVER_DATABASE_URL", "sqlite:///file:test_default?mode=memory&cache=shared&uri=true")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.tokens import TokenService
from inventory.store import InventoryStore

ADMIN_SECRET = os.environ["DEVICES_SERVER_ADMIN_SECRET"]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def session(token: str) -> dict[str, str]:
    """Headers carrying token as the session cookie."""
    return {"Cookie": f"Authorization={token}"}


def unique_name(prefix: str) -> str:
    """A name that is unique per call and still a valid token display name (<= 20 chars)."""
    return f"{prefix[:11]} {uuid.uuid4().hex[:8]}"


def _make_test_store(db_suffix: str) -> InventoryStore:
    """Create an isolated named shared-memory SQLite store.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state (e.g. 'customers', 'devices').
    """
    return InventoryStore(db_url=f"sqlite:///file:test_inventory_{db_suffix}?mode=memory&cache=shared&uri=true")


def _patch_lifespan(store: InventoryStore, tokens: TokenService):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test services into app.state so TestClient routes see
    the isolated test DB rather than the configured database.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.store = store
        app.state.tokens = tokens
        app.state.admin_secret = ADMIN_SECRET
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, InventoryStore, str], None, None]:
    """Yield (client, store, admin_token) for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so
    tests hit real route handlers but use an isolated in-memory store. The
    store is named after the test module so modules never see each other's
    rows.
    """
    store = _make_test_store(request.module.__name__.rsplit(".", 1)[-1])
    tokens = TokenService.from_settings()
    admin_token = tokens.issue_token(str(uuid.uuid4()), "Admin", "admin", "ADMIN")

    app.router.lifespan_context = _patch_lifespan(store, tokens)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, store, admin_token

    store.close()


@pytest.fixture(scope="module")
def issue_user_token(api_client) -> Callable[..., str]:
    """Return a factory: (customer_id, name, action="READ") -> persisted user token."""
    _client, store, _admin = api_client
    tokens: TokenService = app.state.tokens

    def _issue(customer_id: str, name: str, action: str = "READ") -> str:
        token = tokens.issue_token(customer_id, name, "user", action)
        store.create_auth_token(customer_id, action, token)
        return token

    return _issue
