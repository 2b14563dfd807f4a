"""
api/routes/v1/auth.py -- Authentication REST endpoints.

Routes:
  POST /api/v1/auth/register                   -- create an unverified account
  POST /api/v1/auth/login                      -- username OR email + password; returns session token
  POST /api/v1/auth/forgot-password            -- email a password-reset link
  POST /api/v1/auth/reset-password?token=      -- set a new password with a reset token
  POST /api/v1/auth/verify-email               -- email a verification link
  GET  /api/v1/auth/verify?token=              -- accept a verification token
  GET  /api/v1/auth/me                         -- public identity of the bearer (requires auth)
  GET  /api/v1/auth/providers                  -- enabled OAuth providers (public)
  GET  /api/v1/auth/oauth/{provider}           -- redirect to the provider
  GET  /api/v1/auth/oauth/{provider}/callback  -- finish OAuth, return session token

This is the only place a FailureReason becomes an HTTP status. Messages are
fixed strings from _FAILURES; nothing from the exception or token internals
reaches the client.

Security:
  [H2] login, forgot-password and verify-email are rate-limited per IP.
  [M5] Cache-Control: no-store on every response that carries a token.
"""

from __future__ import annotations

import logging

from authlib.integrations.starlette_client import OAuthError
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import (
    EmailRequest,
    LoginRequest,
    LoginResponse,
    MeResponse,
    MessageResponse,
    OAuthProviderInfo,
    RegisterRequest,
    ResetPasswordRequest,
    TokenResponse,
)
from auth.dependencies import get_current_account
from auth.linking import IdentityLinker
from auth.models import Account
from auth.oauth import get_enabled_providers, get_oauth_user_info
from auth.outcomes import Failure, FailureReason, Outcome
from auth.service import AuthService

logger = logging.getLogger("authgate.api.auth")

router = APIRouter()

# (status, message) per failure reason; the code is the reason value. Operations
# that need a different status for the same reason pass an override map to
# _raise_for().
_FAILURES: dict[FailureReason, tuple[int, str]] = {
    FailureReason.MISSING_FIELD: (400, "Required field missing"),
    FailureReason.AMBIGUOUS_IDENTIFIER: (400, "Provide either username or email, not both"),
    FailureReason.USERNAME_TAKEN: (409, "Username already exists"),
    FailureReason.EMAIL_TAKEN: (409, "Email already in use"),
    FailureReason.ACCOUNT_NOT_FOUND: (400, "Account not exist"),
    FailureReason.ALREADY_VERIFIED: (409, "Email has been verified"),
    FailureReason.INVALID_CREDENTIALS: (400, "Wrong username/email or password"),
    FailureReason.TOKEN_REJECTED: (409, "Token invalid/expired"),
    FailureReason.DELIVERY_FAILED: (503, "Message could not be delivered, try again later"),
}


def _raise_for(outcome: Outcome, status_overrides: dict[FailureReason, int] | None = None) -> None:
    """Raise the HTTPException matching a Failure outcome; no-op on Success."""
    if not isinstance(outcome, Failure):
        return
    status, message = _FAILURES[outcome.reason]
    if status_overrides and outcome.reason in status_overrides:
        status = status_overrides[outcome.reason]
    raise HTTPException(status_code=status, detail={"code": outcome.reason.value, "message": message})


def _service(request: Request) -> AuthService:
    return request.app.state.auth_service


# ---------------------------------------------------------------------------
# Registration and login
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=MessageResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> MessageResponse:
    """Create an unverified account. No token is issued; call /auth/login next."""
    outcome = _service(request).register(body.username, body.password, email=body.email)
    _raise_for(outcome)
    return MessageResponse(message="User created successfully")


@limiter.limit("10/minute")  # [H2] brute-force mitigation -- must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login", response_model=LoginResponse, status_code=201)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with username or email plus password.

    Email login only matches verified accounts. Unknown account and wrong
    password return the same 400 body.
    """
    outcome = _service(request).login(body.password, username=body.username, email=body.email)
    _raise_for(outcome)
    resp = JSONResponse(status_code=201, content=LoginResponse(token=outcome.payload).model_dump())
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


# ---------------------------------------------------------------------------
# Password reset
# ---------------------------------------------------------------------------


@limiter.limit("5/minute")  # [H2] mail-bombing mitigation
@router.post("/auth/forgot-password", response_model=MessageResponse, status_code=201)
def forgot_password(request: Request, body: EmailRequest) -> MessageResponse:
    """Email a password-reset link. Works for unverified accounts too."""
    _raise_for(_service(request).forgot_password(body.email))
    return MessageResponse(message="Reset link sent")


@router.post("/auth/reset-password", response_model=MessageResponse, status_code=201)
def reset_password(
    request: Request,
    body: ResetPasswordRequest,
    token: str = Query(..., min_length=1),
) -> MessageResponse:
    """Set a new password. Expired and forged tokens get the same 409."""
    _raise_for(_service(request).reset_password(token, body.new_password))
    return MessageResponse(message="New password set")


# ---------------------------------------------------------------------------
# Email verification
# ---------------------------------------------------------------------------


@limiter.limit("5/minute")  # [H2] mail-bombing mitigation
@router.post("/auth/verify-email", response_model=MessageResponse, status_code=201)
def verify_email(request: Request, body: EmailRequest) -> MessageResponse:
    """Email a verification link to an unverified account."""
    _raise_for(_service(request).request_verification(body.email))
    return MessageResponse(message="Verify link sent")


@router.get("/auth/verify", response_model=MessageResponse, status_code=201)
def accept_verify_email(request: Request, token: str = Query(..., min_length=1)) -> MessageResponse:
    """Accept a verification token. Confirming an already-verified account succeeds."""
    outcome = _service(request).confirm_verification(token)
    _raise_for(
        outcome,
        status_overrides={FailureReason.TOKEN_REJECTED: 400, FailureReason.ACCOUNT_NOT_FOUND: 409},
    )
    return MessageResponse(message="Verified")


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=MeResponse)
async def me(current: Account = Depends(get_current_account)) -> MeResponse:
    """Return identity information for the bearer of the session token."""
    return MeResponse(
        id=current.id,
        username=current.username,
        email=current.email,
        display_name=current.display_name,
        verified=current.verified,
    )


# ---------------------------------------------------------------------------
# OAuth
# ---------------------------------------------------------------------------


@router.get("/auth/providers", response_model=list[OAuthProviderInfo])
async def list_providers(request: Request) -> list[OAuthProviderInfo]:
    """Return the configured OAuth providers. Empty list if none are set up."""
    return [OAuthProviderInfo(**p) for p in get_enabled_providers(request.app.state.settings)]


def _require_provider(request: Request, provider: str) -> None:
    # Validate against the enabled list so a spoofed provider name can never
    # reach authlib's create_client().
    enabled = {p["name"] for p in get_enabled_providers(request.app.state.settings)}
    if provider not in enabled:
        raise HTTPException(
            status_code=404,
            detail={"code": "unknown_provider", "message": "OAuth provider not available."},
        )


@router.get("/auth/oauth/{provider}")
async def oauth_redirect(request: Request, provider: str):
    """Redirect the browser to the provider's authorization page."""
    _require_provider(request, provider)
    client = request.app.state.oauth.create_client(provider)
    redirect_uri = str(request.url_for("oauth_callback", provider=provider))
    return await client.authorize_redirect(request, redirect_uri)


@router.get("/auth/oauth/{provider}/callback", response_model=TokenResponse, name="oauth_callback")
async def oauth_callback(request: Request, provider: str) -> JSONResponse:
    """Finish the OAuth flow and hand the verified identity to IdentityLinker.

    Flow:
      1. Exchange the authorization code (authlib checks state via the session).
      2. Extract a verified email and display name -- ValueError if unverified [H1].
      3. Find or create the account and issue a session token.
    """
    _require_provider(request, provider)
    client = request.app.state.oauth.create_client(provider)

    try:
        token = await client.authorize_access_token(request)
    except OAuthError:
        logger.exception("OAuth token exchange failed for provider %r", provider)
        raise HTTPException(
            status_code=400,
            detail={"code": "oauth_failed", "message": "OAuth authentication failed."},
        ) from None

    try:
        identity = await get_oauth_user_info(client, provider, token)
    except ValueError:
        logger.warning("OAuth login rejected: unverified or missing email from %r", provider)
        raise HTTPException(
            status_code=400,
            detail={"code": "oauth_failed", "message": "OAuth authentication failed."},
        ) from None

    linker: IdentityLinker = request.app.state.identity_linker
    outcome = linker.link(identity)
    _raise_for(outcome)
    resp = JSONResponse(content=TokenResponse(token=outcome.payload).model_dump())
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp
