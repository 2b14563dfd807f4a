"""
auth/dependencies.py -- FastAPI Depends() helpers for bearer-token auth.

Session tokens travel in an "Authorization: Bearer <token>" header. The token
is verified with purpose=session, so a password-reset or email-verification
token presented here is rejected like any forged token.

try_get_current_account() is the soft variant (returns None on failure).
get_current_account() wraps it and raises HTTP 401 if unauthenticated.

Collaborators are read from request.app.state (token_service, account_store),
which api/main.py populates in its lifespan.

Layer rule: no imports from api/ or core/.
  auth/dependencies.py may import from fastapi (for HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.errors import TokenError
from auth.models import Account
from auth.tokens import TokenPurpose


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None


def try_get_current_account(request: Request) -> Account | None:
    """Authenticate the request from its bearer token. Never raises."""
    token = _bearer_token(request)
    if token is None:
        return None

    try:
        claims = request.app.state.token_service.verify(token, purpose=TokenPurpose.SESSION)
    except TokenError:
        return None

    account_id = claims.get("id")
    if not isinstance(account_id, int):
        return None
    return request.app.state.account_store.find_by_id(account_id)


def get_current_account(request: Request) -> Account:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(account: Account = Depends(get_current_account)): ...
    """
    account = try_get_current_account(request)
    if account is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
            headers={"WWW-Authenticate": "Bearer"},
        )
    return account
