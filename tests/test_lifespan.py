"""
tests/test_lifespan.py -- Real application startup and the purge task.

Unlike test_api_routes.py these tests run the real lifespan from api/main.py,
pointed at files under tmp_path, so configuration errors surface exactly as
they would under uvicorn.
"""

from __future__ import annotations

import asyncio
import itertools
import time
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from api.main import _build_ttl_store, _purge_loop, app, lifespan
from auth.revocation import TokenRevocationStore
from cache.store import RedisTTLStore, SQLiteTTLStore, StoreUnavailableError
from core.config import Settings


@pytest.fixture
def real_lifespan(monkeypatch, tmp_path):
    monkeypatch.setattr(app.router, "lifespan_context", lifespan)
    return {
        "DATABASE_URL": f"sqlite:///{tmp_path / 'accounts.db'}",
        "REVOCATION_DB_PATH": str(tmp_path / "revocations.db"),
    }


def test_startup_wires_stores(real_lifespan, settings_env):
    settings_env(**real_lifespan)
    with TestClient(app) as client:
        assert isinstance(app.state.ttl_store, SQLiteTTLStore)
        assert isinstance(app.state.revocations, TokenRevocationStore)
        assert client.get("/api/v1/health").json()["status"] == "healthy"


def test_startup_fails_on_short_secret(real_lifespan, settings_env):
    settings_env(SECRET_KEY="too-short", **real_lifespan)
    with pytest.raises(ValueError, match="at least 32 characters"):
        with TestClient(app):
            pass


def test_startup_fails_without_secret_in_production(real_lifespan, settings_env):
    settings_env(DEBUG="false", SECRET_KEY="", **real_lifespan)
    with pytest.raises(ValueError, match="SECRET_KEY is required"):
        with TestClient(app):
            pass


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("interval", [0, -5])
def test_settings_reject_non_positive_purge_interval(interval):
    with pytest.raises(ValueError, match="REVOCATION_PURGE_INTERVAL_SECONDS"):
        Settings(debug=True, revocation_purge_interval_seconds=interval)


def test_settings_reject_unknown_backend():
    with pytest.raises(ValueError, match="REVOCATION_BACKEND"):
        Settings(debug=True, revocation_backend="memcached")


# ---------------------------------------------------------------------------
# Backend selection
# ---------------------------------------------------------------------------


def test_build_ttl_store_defaults_to_sqlite(tmp_path):
    store = _build_ttl_store(Settings(debug=True, revocation_db_path=str(tmp_path / "r.db")))
    try:
        assert isinstance(store, SQLiteTTLStore)
    finally:
        store.close()


def test_build_ttl_store_redis():
    # redis-py connects lazily, so no server is needed here.
    store = _build_ttl_store(Settings(debug=True, revocation_backend="redis", redis_url="redis://cache:6379/2"))
    assert isinstance(store, RedisTTLStore)


# ---------------------------------------------------------------------------
# Purge task
# ---------------------------------------------------------------------------


async def _run_purge_loop(state: SimpleNamespace, seconds: float) -> None:
    task = asyncio.create_task(_purge_loop(SimpleNamespace(state=state), 0.01))
    await asyncio.sleep(seconds)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task


def test_purge_loop_removes_expired_entries(ttl_store):
    ttl_store.set("blacklist:old", "revoked", time.time() - 10)
    ttl_store.set("blacklist:live", "revoked", time.time() + 60)

    asyncio.run(_run_purge_loop(SimpleNamespace(ttl_store=ttl_store), 0.2))

    # The loop already deleted the expired row, so nothing is left to purge.
    assert ttl_store.purge_expired() == 0
    assert ttl_store.get("blacklist:live") == "revoked"


def test_purge_loop_survives_store_failure():
    store = MagicMock()
    store.purge_expired.side_effect = itertools.chain([StoreUnavailableError("down")], itertools.repeat(0))

    asyncio.run(_run_purge_loop(SimpleNamespace(ttl_store=store), 0.2))

    assert store.purge_expired.call_count >= 2
