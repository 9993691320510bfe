"""
cache/store.py -- TTL key/value stores backing token revocation.

Each entry carries an ABSOLUTE expiry (UNIX seconds), not a relative TTL.
Revocation entries must expire exactly when the token they revoke does, so
the caller passes the token's own exp and the store never recomputes it.

Two backends share the same surface (get / set / purge_expired / ping / close):

  SQLiteTTLStore -- single-process deployments and tests. Expired rows are
      treated as misses on read and deleted lazily; purge_expired() trims the
      rest and is called periodically by the API lifespan.

  RedisTTLStore -- shared across API instances. SET ... PXAT hands expiry to
      Redis itself, so purge_expired() has nothing to do.

Both translate backend I/O failures into StoreUnavailableError so callers
handle one exception type regardless of backend.

Usage:
    store = SQLiteTTLStore()
    store.set("blacklist:abc", "revoked", expires_at=time.time() + 60)
    store.get("blacklist:abc")   # "revoked" or None
    store.purge_expired()        # call periodically to trim old entries
"""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from pathlib import Path

import redis

logger = logging.getLogger("mentorauth.cache")

_DEFAULT_DB = Path(__file__).parent / "revocations.db"

_DDL = """
CREATE TABLE IF NOT EXISTS ttl_cache (
    key         TEXT PRIMARY KEY,
    value       TEXT NOT NULL,
    expires_at  REAL NOT NULL
);
"""


class StoreUnavailableError(Exception):
    """The backing store could not be read or written."""


class SQLiteTTLStore:
    def __init__(self, db_path: Path | str = _DEFAULT_DB) -> None:
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute(_DDL)
        self._conn.commit()

    def get(self, key: str) -> str | None:
        """Return the value for key if it exists and hasn't expired."""
        try:
            with self._lock:
                row = self._conn.execute(
                    "SELECT value, expires_at FROM ttl_cache WHERE key = ?",
                    (key,),
                ).fetchone()
                if row is None:
                    return None
                value, expires_at = row
                if expires_at <= time.time():
                    self._conn.execute("DELETE FROM ttl_cache WHERE key = ?", (key,))
                    self._conn.commit()
                    return None
                return value
        except sqlite3.Error as exc:
            raise StoreUnavailableError(f"SQLite read failed: {exc}") from exc

    def set(self, key: str, value: str, expires_at: float) -> None:
        """Store value for key until expires_at, replacing any existing entry."""
        try:
            with self._lock:
                self._conn.execute(
                    "INSERT OR REPLACE INTO ttl_cache (key, value, expires_at) VALUES (?, ?, ?)",
                    (key, value, expires_at),
                )
                self._conn.commit()
        except sqlite3.Error as exc:
            raise StoreUnavailableError(f"SQLite write failed: {exc}") from exc

    def purge_expired(self) -> int:
        """Delete all entries whose expiry has passed. Returns number of rows removed."""
        try:
            with self._lock:
                cursor = self._conn.execute("DELETE FROM ttl_cache WHERE expires_at <= ?", (time.time(),))
                self._conn.commit()
                return cursor.rowcount
        except sqlite3.Error as exc:
            raise StoreUnavailableError(f"SQLite purge failed: {exc}") from exc

    def ping(self) -> bool:
        try:
            with self._lock:
                self._conn.execute("SELECT 1").fetchone()
            return True
        except sqlite3.Error:
            return False

    def close(self) -> None:
        with self._lock:
            self._conn.close()


class RedisTTLStore:
    """Redis-backed TTL store -- shared across all API instances.

    The client is injected so tests can pass a MagicMock; from_url() builds
    the real one. decode_responses=True makes get() return str like the
    SQLite backend.
    """

    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str, socket_timeout: float = 5.0) -> RedisTTLStore:
        client = redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        )
        return cls(client)

    def get(self, key: str) -> str | None:
        try:
            return self._client.get(key)
        except redis.RedisError as exc:
            raise StoreUnavailableError(f"Redis read failed: {exc}") from exc

    def set(self, key: str, value: str, expires_at: float) -> None:
        # PXAT sets value and absolute expiry in one atomic command.
        try:
            self._client.set(key, value, pxat=int(expires_at * 1000))
        except redis.RedisError as exc:
            raise StoreUnavailableError(f"Redis write failed: {exc}") from exc

    def purge_expired(self) -> int:
        return 0

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except redis.RedisError:
            return False

    def close(self) -> None:
        self._client.close()
