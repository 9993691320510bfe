"""
tests/conftest.py -- Shared test fixtures for mentorauth tests.

This module provides:
  - token_config / issuer: a TokenConfig with a fixed test key and its issuer
  - account_store: isolated in-memory AccountStore per test
  - ttl_store: isolated in-memory SQLiteTTLStore per test
  - settings_env: set environment variables and rebuild get_settings()
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api_client: TestClient with a registered account for API integration tests

Design: Named shared-memory SQLite URIs (not plain :memory:) are required for
the AccountStore because TestClient runs sync route handlers in a thread pool
and SQLAlchemy pools one connection per thread. Plain :memory: DBs are
per-connection and would present a blank schema to each worker thread. The
SQLiteTTLStore holds a single connection, so plain :memory: is fine there.

DEBUG and LOGIN_RATE_LIMIT must be set before any api/ import:
get_settings() auto-generates SECRET_KEY in dev mode rather than raising
ValueError, and the login limit must not trip across a test module.
"""

from __future__ import annotations

import asyncio
import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from types import SimpleNamespace

# CRITICAL: Set before any api/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.revocation import TokenRevocationStore
from auth.service import AuthService
from auth.store import AccountStore
from auth.tokens import TokenConfig, TokenIssuer
from cache.store import SQLiteTTLStore
from core.config import get_settings

TEST_SECRET = "test-secret-key-for-mentorauth-0123456789"
TEST_PASSWORD = "StrongP@ssword1"


def _memory_db_url(name: str) -> str:
    return f"sqlite:///file:{name}_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


# ---------------------------------------------------------------------------
# Unit-level fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def token_config() -> TokenConfig:
    return TokenConfig(secret_key=TEST_SECRET, issuer="TestIssuer", audience="TestAudience", expire_seconds=3600)


@pytest.fixture
def issuer(token_config: TokenConfig) -> TokenIssuer:
    return TokenIssuer(token_config)


@pytest.fixture
def account_store() -> Generator[AccountStore, None, None]:
    store = AccountStore(db_url=_memory_db_url("test_accounts"))
    yield store
    store.close()


@pytest.fixture
def ttl_store() -> Generator[SQLiteTTLStore, None, None]:
    store = SQLiteTTLStore(":memory:")
    yield store
    store.close()


# ---------------------------------------------------------------------------
# App fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(account_store: AccountStore, ttl_store: SQLiteTTLStore, issuer: TokenIssuer, settings):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores into app.state so TestClient routes see
    isolated test DBs rather than the files under auth/ and cache/.

    The purge_task is a long-sleeping coroutine that keeps asyncio happy
    (a real asyncio.Task is required; MagicMock would fail on .cancel()).
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = settings
        app.state.issuer = issuer
        app.state.account_store = account_store
        app.state.ttl_store = ttl_store
        app.state.revocations = TokenRevocationStore(ttl_store)
        app.state.auth_service = AuthService(account_store, issuer)
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


@pytest.fixture(scope="module")
def api_client() -> Generator[SimpleNamespace, None, None]:
    """Yield a namespace with client, stores, issuer and one registered account.

    The TestClient uses the real FastAPI app with a patched lifespan so tests
    hit real middleware and route handlers but use isolated in-memory stores.
    The account "testuser" / TEST_PASSWORD is registered before the client
    starts.
    """
    account_store = AccountStore(db_url=_memory_db_url("test_api"))
    ttl_store = SQLiteTTLStore(":memory:")
    issuer = TokenIssuer(
        TokenConfig(secret_key=TEST_SECRET, issuer="TestIssuer", audience="TestAudience", expire_seconds=3600)
    )
    settings = SimpleNamespace(revocation_fail_closed=True)

    account = AuthService(account_store, issuer).register("Test User", "testuser", "test@example.com", TEST_PASSWORD)

    app.router.lifespan_context = _patch_lifespan(account_store, ttl_store, issuer, settings)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield SimpleNamespace(
            client=client,
            account=account,
            issuer=issuer,
            account_store=account_store,
            ttl_store=ttl_store,
            settings=settings,
        )

    ttl_store.close()
    account_store.close()


@pytest.fixture
def settings_env(monkeypatch) -> Generator:
    """Set environment variables for Settings and drop the cached instance.

    Teardown restores the environment and clears the cache again so later
    tests see the module-level defaults.
    """

    def _set(**values: str) -> None:
        for name, value in values.items():
            monkeypatch.setenv(name, value)
        get_settings.cache_clear()

    yield _set
    monkeypatch.undo()
    get_settings.cache_clear()
