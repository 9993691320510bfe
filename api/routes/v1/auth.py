"""
api/routes/v1/auth.py -- Registration, login and logout REST endpoints.

Routes:
  POST /api/v1/auth/register   -- create an account; 201, no token
  POST /api/v1/auth/login      -- username-or-email login; returns a bearer JWT
  POST /api/v1/auth/logout     -- revoke the presented bearer token (requires auth)
  GET  /api/v1/auth/me         -- current account info (requires auth)

Security:
  POST /login is rate-limited per IP (LOGIN_RATE_LIMIT, default 10/minute).
  Login failures share one generic response so usernames cannot be enumerated.
  Cache-Control: no-store on login responses.
  Logout revokes the exact token string it was called with. Other sessions of
  the same account stay valid.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_rate_limit
from api.models import LoginRequest, LoginResponse, MeResponse, MessageResponse, RegisterRequest
from auth.dependencies import bearer_token, get_current_account
from auth.errors import DuplicateAccountError, ValidationError
from auth.models import Account
from auth.revocation import TokenRevocationStore
from auth.service import AuthService
from auth.tokens import read_token_expiry
from cache.store import StoreUnavailableError

logger = logging.getLogger("mentorauth.api.auth")

# Auth policy:
# - POST /api/v1/auth/register: public
# - POST /api/v1/auth/login:    public -- login endpoint must be unauthenticated
# - POST /api/v1/auth/logout:   requires auth (get_current_account)
# - GET  /api/v1/auth/me:       requires auth (get_current_account)
router = APIRouter()


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


# Sync handlers: bcrypt is CPU-bound, and FastAPI runs def routes in its
# worker thread pool instead of on the event loop.
@router.post("/auth/register", response_model=MessageResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> MessageResponse:
    """Create an account. Registration does not log the user in."""
    service: AuthService = request.app.state.auth_service
    try:
        service.register(body.full_name, body.username, body.email, body.password)
    except ValidationError as exc:
        raise HTTPException(
            status_code=400,
            detail={"code": "validation_error", "message": exc.message, "field": exc.field},
        ) from exc
    except DuplicateAccountError as exc:
        raise HTTPException(
            status_code=409,
            detail={"code": "account_exists", "message": exc.message},
        ) from exc
    return MessageResponse(message="User registered.")


@router.post("/auth/login", response_model=LoginResponse)
@limiter.limit(login_rate_limit)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with username or email and password; return a bearer token.

    Returns the same generic error for unknown identifiers and wrong passwords
    ("bad_credentials").
    """
    service: AuthService = request.app.state.auth_service
    token = service.login(body.identifier, body.password)
    if token is None:
        resp = JSONResponse(
            status_code=401,
            content={"error": {"code": "bad_credentials", "message": "Invalid credentials."}},
        )
        resp.headers["Cache-Control"] = "no-store"
        return resp

    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            access_token=token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=service.issuer.expire_seconds,
        ).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request, current_account: Account = Depends(get_current_account)) -> MessageResponse:
    """Revoke the bearer token used for this request until its natural expiry."""
    token = bearer_token(request)
    expires_at = read_token_expiry(token) if token else None
    if expires_at is None:
        raise HTTPException(
            status_code=400,
            detail={"code": "invalid_token", "message": "Invalid authorization header."},
        )

    revocations: TokenRevocationStore = request.app.state.revocations
    try:
        revocations.revoke(token, expires_at)
    except StoreUnavailableError as exc:
        logger.exception("Logout failed: revocation store unavailable (account_id=%s)", current_account.id)
        raise HTTPException(
            status_code=503,
            detail={"code": "store_unavailable", "message": "Logout is temporarily unavailable."},
        ) from exc

    logger.info("Logout (account_id=%s)", current_account.id)
    return MessageResponse(message="Logged out successfully.")


@router.get("/auth/me", response_model=MeResponse)
def me(current_account: Account = Depends(get_current_account)) -> MeResponse:
    """Return identity information for the currently authenticated account."""
    return MeResponse(
        user_id=current_account.id,
        username=current_account.username,
        email=current_account.email,
        full_name=current_account.full_name,
    )
