"""
auth/revocation.py -- Token blacklist for immediate logout.

Session tokens are stateless: a signed JWT stays valid until its exp. Logout
needs one piece of state -- the set of tokens that were revoked while still
valid. TokenRevocationStore keeps that set in a TTL key/value store:

  revoke(token, expires_at)
      Blind upsert of a sentinel at "blacklist:<token>" with an ABSOLUTE
      expiry equal to the token's own exp. An entry therefore never outlives
      its token, and the store only ever holds "valid but revoked" tokens.
      A token that has already expired is not written at all -- ordinary
      expiry checking rejects it anyway.

  is_revoked(token)
      Presence check. The sentinel's content is irrelevant.

The raw token string is the key; this module knows nothing about claims.

Store errors propagate. The request gate (api/main.py) decides what a failed
is_revoked() means; the logout route turns a failed revoke() into a 503.

Layer rule: no imports from api/ or cache/. Backends satisfy TTLStore
structurally.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Protocol, runtime_checkable

logger = logging.getLogger("mentorauth.auth.revocation")

KEY_PREFIX = "blacklist:"
SENTINEL = "revoked"


class TTLStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str, expires_at: float) -> None: ...


@runtime_checkable
class RevocationCheck(Protocol):
    """The capability the request gate depends on."""

    def is_revoked(self, token: str) -> bool: ...


class NoRevocation:
    """RevocationCheck that never rejects. For deployments without logout."""

    def is_revoked(self, token: str) -> bool:
        return False


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenRevocationStore:
    """Usage:
    revocations = TokenRevocationStore(SQLiteTTLStore())
    revocations.revoke(token, read_token_expiry(token))
    revocations.is_revoked(token)   # True until the token's exp passes
    """

    def __init__(self, store: TTLStore, clock: Callable[[], datetime] | None = None) -> None:
        self._store = store
        self._clock = clock or _utcnow

    def revoke(self, token: str, expires_at: datetime) -> bool:
        """Blacklist token until expires_at. Returns False when nothing was written."""
        remaining = (expires_at - self._clock()).total_seconds()
        if remaining <= 0:
            return False
        self._store.set(_key(token), SENTINEL, expires_at.timestamp())
        logger.info("Token revoked (expires_at=%s)", expires_at.isoformat())
        return True

    def is_revoked(self, token: str) -> bool:
        return self._store.get(_key(token)) is not None


def _key(token: str) -> str:
    return f"{KEY_PREFIX}{token}"
