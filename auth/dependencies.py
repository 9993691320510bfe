"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Clients authenticate with an Authorization: Bearer <token> header carrying a
JWT issued by POST /auth/login.

Revocation is not checked here. The revocation gate middleware in api/main.py
runs before any handler, so a revoked token never reaches these helpers.

try_get_current_account() is the soft variant (returns None on failure).
get_current_account() wraps it and raises HTTP 401 if unauthenticated.

Layer rule: no imports from api/ or cache/.
  auth/dependencies.py may import from fastapi (for HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.models import Account


def bearer_token(request: Request) -> str | None:
    """Return the raw token from an Authorization: Bearer header, or None."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    token = auth_header[len("Bearer ") :].strip()
    return token or None


def try_get_current_account(request: Request) -> Account | None:
    """Authenticate the request via its bearer token.

    Returns the Account on success, None on any failure. Never raises --
    callers that need a hard 401 should use get_current_account().
    """
    token = bearer_token(request)
    if token is None:
        return None
    payload = request.app.state.issuer.decode(token)
    if payload is None:
        return None
    try:
        account_id = int(payload["sub"])
    except (TypeError, ValueError):
        return None
    return request.app.state.account_store.get_by_id(account_id)


def get_current_account(request: Request) -> Account:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(account: Account = Depends(get_current_account)): ...
    """
    account = try_get_current_account(request)
    if account is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
            headers={"WWW-Authenticate": "Bearer"},
        )
    return account
