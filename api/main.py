"""
api/main.py -- FastAPI application entry point for mentorauth.

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. CORSMiddleware     -- adds CORS headers for the configured frontend origins
  2. SlowAPIMiddleware  -- enforces per-route rate limits from api.limiter
  3. log_requests       -- one log line per request with latency
  4. reject_revoked_tokens -- 401 for any bearer token on the revocation list

Lifespan handles startup (settings, account store, revocation store, token
issuer, purge task) and shutdown (cancel purge task, close stores)
symmetrically. Invalid configuration raises during startup, so a process with
a missing or weak SECRET_KEY never serves a request.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.concurrency import run_in_threadpool

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from auth.dependencies import bearer_token
from auth.revocation import RevocationCheck, TokenRevocationStore
from auth.service import AuthService
from auth.store import AccountStore
from auth.tokens import TokenConfig, TokenIssuer
from cache.store import RedisTTLStore, SQLiteTTLStore, StoreUnavailableError
from core.config import Settings, get_settings

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("mentorauth.api")

# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


async def _purge_loop(app: FastAPI, interval: int) -> None:
    """Purge expired revocation entries every `interval` seconds.

    SQLite only forgets expired rows lazily on read; this keeps the file from
    accumulating entries for tokens nobody presents again. Redis expires keys
    itself and its purge_expired() is a no-op. CancelledError from
    task.cancel() during shutdown propagates out of asyncio.sleep.
    """
    while True:
        await asyncio.sleep(interval)
        try:
            removed = await run_in_threadpool(app.state.ttl_store.purge_expired)
        except StoreUnavailableError:
            logger.exception("Revocation purge failed")
            continue
        if removed:
            logger.info("Purged %d expired revocation entries", removed)


def _build_ttl_store(settings: Settings) -> SQLiteTTLStore | RedisTTLStore:
    if settings.revocation_backend == "redis":
        return RedisTTLStore.from_url(settings.redis_url)
    return SQLiteTTLStore(settings.revocation_db_path)


# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Startup order matters:
      1. Settings and TokenConfig first -- a bad signing key must abort before
         any store is opened.
      2. Stores second.
      3. Purge task last -- references app.state.ttl_store.
    """
    logger.info("mentorauth API starting up")
    settings = get_settings()
    issuer = TokenIssuer(TokenConfig.from_settings(settings))

    app.state.settings = settings
    app.state.issuer = issuer
    app.state.account_store = AccountStore(db_url=settings.database_url)
    app.state.ttl_store = _build_ttl_store(settings)
    app.state.revocations = TokenRevocationStore(app.state.ttl_store)
    app.state.auth_service = AuthService(app.state.account_store, issuer)
    logger.info(
        "Auth initialized (revocation_backend=%s, token_expire_seconds=%d, accounts_present=%s)",
        settings.revocation_backend,
        settings.token_expire_seconds,
        app.state.account_store.has_accounts(),
    )
    app.state.purge_task = asyncio.create_task(_purge_loop(app, settings.revocation_purge_interval_seconds))

    yield

    app.state.purge_task.cancel()
    app.state.ttl_store.close()
    app.state.account_store.close()
    logger.info("mentorauth API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="mentorauth API",
    description="Registration, login and token revocation for the mentoring app.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# @app.middleware("http") functions registered later wrap the ones registered
# earlier; add_middleware() entries wrap all of them. The revocation gate is
# registered first so it sits innermost, directly in front of the router.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def reject_revoked_tokens(request: Request, call_next):
    """Short-circuit any request whose bearer token has been revoked.

    The only caller of is_revoked(). Requests without a bearer token pass
    straight through; signature and expiry are checked later by the auth
    dependency.

    A revocation store failure is fail-closed by default
    (REVOCATION_FAIL_CLOSED=true): the request is denied exactly as if the
    token were revoked. With fail-closed off the failure is logged and the
    request continues.
    """
    token = bearer_token(request)
    if token is not None:
        revocations: RevocationCheck = request.app.state.revocations
        try:
            revoked = await run_in_threadpool(revocations.is_revoked, token)
        except StoreUnavailableError:
            fail_closed = request.app.state.settings.revocation_fail_closed
            logger.exception(
                "Revocation lookup failed on %s %s (fail_closed=%s)",
                request.method,
                request.url.path,
                fail_closed,
            )
            revoked = fail_closed
        if revoked:
            return JSONResponse(
                status_code=401,
                content=ErrorResponse(
                    error=ErrorDetail(
                        code="token_revoked",
                        message="This token has been revoked and cannot be used.",
                    )
                ).model_dump(exclude_none=True),
                headers={"WWW-Authenticate": "Bearer"},
            )
    return await call_next(request)


# ---------------------------------------------------------------------------
# Request logging middleware
#
# Every request passes through this coroutine before reaching any route
# handler. Wall-clock time before and after call_next gives the latency.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins_list,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Accept", "Content-Type", "Authorization"],
    max_age=3600,
)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter

# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = JSONResponse(
        status_code=429,
        content=ErrorResponse(
            error=ErrorDetail(
                code="rate_limited",
                message="Too many requests.",
                detail=str(exc),
            )
        ).model_dump(exclude_none=True),
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or query params fail validation."""
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail=str(exc.errors()),
            )
        ).model_dump(exclude_none=True),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    Route handlers raise HTTPException with a dict detail. When detail is
    already a structured dict, use it directly as the error field rather than
    stringifying it.
    """
    if isinstance(exc.detail, dict):
        content = {"error": {k: v for k, v in exc.detail.items() if v is not None}}
    else:
        content = ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(exclude_none=True)
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="internal_error",
                message="An unexpected error occurred.",
            )
        ).model_dump(exclude_none=True),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable.
# No rate limit -- health checks from load balancers must not be throttled.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return liveness plus the state of both stores."""
    database_ok = request.app.state.account_store.ping()
    store_ok = request.app.state.ttl_store.ping()
    return HealthResponse(
        status="healthy" if database_ok and store_ok else "degraded",
        version=VERSION,
        components={
            "app": "ok",
            "database": "ok" if database_ok else "error",
            "revocation_store": "ok" if store_ok else "error",
        },
    )
