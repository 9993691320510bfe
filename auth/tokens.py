"""
auth/tokens.py -- JWT issuance and password hashing utilities.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       sub (account id), email, name, a random jti, iat, exp, iss and aud.
       Verification returns None on any failure -- route layer turns that
       into a 401.

       The jti nonce is a fresh UUID4 per issuance. Two tokens for the same
       account therefore never share a signature, even inside one second,
       and revoking one session can never revoke another.

       Nothing is persisted for a successful login. Logout is handled by the
       revocation store (auth/revocation.py), not by this module.

  Passwords: bcrypt directly (no passlib wrapper). Bcrypt's cost factor makes
       brute-force of low-entropy secrets expensive. The _DUMMY_HASH constant
       lets AuthService.login() spend the same bcrypt time when an account
       does not exist, so response time does not reveal which check failed.

  TokenConfig: a frozen dataclass built once at startup from core.config
       Settings and handed to TokenIssuer. The issuer never reads ambient
       configuration per call. A missing or short key fails construction with
       ConfigurationError, which aborts the lifespan before traffic is served.

Layer rule: no imports from api/ or cache/. Import from core/ is allowed --
core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING

import bcrypt
from jose import JWTError, jwt

from auth.errors import ConfigurationError

if TYPE_CHECKING:
    from auth.models import Account
    from core.config import Settings

logger = logging.getLogger("mentorauth.auth")

MIN_SECRET_LENGTH = 32

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------

_BCRYPT_MAX_BYTES = 72


def _encode(plain: str) -> bytes:
    return plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    bcrypt only reads the first 72 bytes, and bcrypt 5 raises instead of
    truncating, so the input is cut to 72 bytes here and in verify_password().
    """
    return bcrypt.hashpw(_encode(plain), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(_encode(plain), hashed.encode("utf-8"))
    except ValueError:
        # Malformed or non-bcrypt hash stored for the account.
        return False


# Timing equalization dummy hash. Computed once at module load so the first
# login attempt is not measurably slower than subsequent ones.
_DUMMY_HASH: str = hash_password("mentorauth_timing_dummy")


def burn_password_check(plain: str) -> None:
    """Run one bcrypt verification whose result is discarded."""
    verify_password(plain, _DUMMY_HASH)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TokenConfig:
    """Immutable signing configuration for TokenIssuer."""

    secret_key: str
    issuer: str
    audience: str
    expire_seconds: int = 3600
    algorithm: str = "HS256"

    def __post_init__(self) -> None:
        if not self.secret_key:
            raise ConfigurationError("Token signing key is not configured.")
        if len(self.secret_key) < MIN_SECRET_LENGTH:
            raise ConfigurationError(f"Token signing key must be at least {MIN_SECRET_LENGTH} characters.")
        if self.expire_seconds <= 0:
            raise ConfigurationError("Token validity window must be positive.")

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenConfig:
        return cls(
            secret_key=settings.secret_key,
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
            expire_seconds=settings.token_expire_seconds,
        )


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenIssuer:
    """Signs and verifies session tokens.

    Usage:
        issuer = TokenIssuer(TokenConfig.from_settings(get_settings()))
        token = issuer.issue(account)
        claims = issuer.decode(token)   # dict or None
    """

    def __init__(self, config: TokenConfig, clock: Callable[[], datetime] | None = None) -> None:
        self.config = config
        self._clock = clock or _utcnow

    @property
    def expire_seconds(self) -> int:
        return self.config.expire_seconds

    def issue(self, account: Account) -> str:
        """Encode a signed JWT for the account.

        iat is truncated to the whole second so exp - iat equals the validity
        window exactly once both are encoded as integer claims.
        """
        issued_at = int(self._clock().timestamp())
        payload = {
            "sub": str(account.id),
            "email": account.email,
            "name": account.full_name,
            "jti": str(uuid.uuid4()),
            "iat": issued_at,
            "exp": issued_at + self.config.expire_seconds,
            "iss": self.config.issuer,
            "aud": self.config.audience,
        }
        return jwt.encode(payload, self.config.secret_key, algorithm=self.config.algorithm)

    def decode(self, token: str) -> dict | None:
        """Verify a JWT. Returns the claims dict or None on any failure.

        Checks signature, expiry, issuer and audience. Revocation is NOT
        checked here -- that is the request gate's job.
        """
        try:
            payload = jwt.decode(
                token,
                self.config.secret_key,
                algorithms=[self.config.algorithm],
                audience=self.config.audience,
                issuer=self.config.issuer,
            )
        except JWTError as exc:
            logger.debug("JWT decode failed: %s", exc)
            return None
        if "sub" not in payload or "jti" not in payload:
            return None
        return payload


def read_token_expiry(token: str) -> datetime | None:
    """Return the token's exp claim as an aware UTC datetime without verifying it.

    exp is public information; reading it needs no signing key. Returns None
    when the token is not a JWT or carries no integer exp.
    """
    try:
        claims = jwt.get_unverified_claims(token)
    except JWTError:
        return None
    exp = claims.get("exp")
    if not isinstance(exp, (int, float)) or isinstance(exp, bool):
        return None
    return datetime.fromtimestamp(exp, tz=timezone.utc)

