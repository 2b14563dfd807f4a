"""
api/main.py -- FastAPI application entry point for authgate.

Run with:  uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter
  4. SessionMiddleware     -- holds the OAuth state between redirect and callback

Lifespan builds the collaborators (store, hasher, token service, dispatcher),
wires them into AuthService and IdentityLinker, and stores everything on
app.state. This is the only place settings turn into objects; auth/ never
reads configuration itself.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.middleware.sessions import SessionMiddleware

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from auth.errors import InfrastructureError
from auth.linking import IdentityLinker
from auth.notifications import DisabledDispatcher, LogDispatcher, NotificationDispatcher, SmtpDispatcher
from auth.oauth import create_oauth
from auth.passwords import PasswordHasher
from auth.service import AuthService
from auth.store import AccountStore
from auth.tokens import TokenConfig, TokenService
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
logger = logging.getLogger("authgate.api")

_settings = get_settings()

# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


def build_dispatcher(settings: Settings) -> NotificationDispatcher:
    """SMTP when enabled. Otherwise log whole messages in DEBUG, refuse delivery in production."""
    if settings.smtp_enabled:
        return SmtpDispatcher(settings)
    if settings.debug:
        logger.warning("SMTP disabled -- reset and verification links will be written to the log")
        return LogDispatcher()
    logger.warning("SMTP disabled -- reset and verification emails cannot be delivered")
    return DisabledDispatcher()


def wire_app_state(app: FastAPI, settings: Settings, store: AccountStore, dispatcher: NotificationDispatcher) -> None:
    """Build the auth collaborators and attach them to app.state.

    Shared by the real lifespan and the test lifespan so both wire the service
    identically; only the store and dispatcher differ.
    """
    token_service = TokenService(TokenConfig.from_settings(settings))
    service = AuthService(
        store=store,
        hasher=PasswordHasher(rounds=settings.bcrypt_rounds),
        tokens=token_service,
        dispatcher=dispatcher,
        base_url=settings.app_base_url,
    )
    app.state.settings = settings
    app.state.account_store = store
    app.state.token_service = token_service
    app.state.auth_service = service
    app.state.identity_linker = IdentityLinker(service, store)


# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the account store on startup; dispose of it on shutdown."""
    logger.info("authgate API starting up")
    store = AccountStore(_settings.database_url)
    wire_app_state(app, _settings, store, build_dispatcher(_settings))
    app.state.oauth = create_oauth(_settings)
    logger.info("Auth initialized (bcrypt_rounds=%d)", _settings.bcrypt_rounds)

    yield

    store.close()
    logger.info("authgate API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="authgate API",
    description="Account registration, login, password reset, email verification and OAuth linking.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack -- register in the order requests should encounter them.
# ---------------------------------------------------------------------------

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# authlib stores the OAuth state value in the session between the authorization
# redirect and the callback (CSRF protection for the authorization code flow).
app.add_middleware(SessionMiddleware, secret_key=_settings.secret_key)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter

# ---------------------------------------------------------------------------
# Request logging middleware
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


def _internal_error() -> JSONResponse:
    detail = ErrorDetail(code="internal_error", message="An unexpected error occurred.")
    return JSONResponse(status_code=500, content=ErrorResponse(error=detail).model_dump())


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error and a Retry-After header."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = JSONResponse(
        status_code=429,
        content=ErrorResponse(
            error=ErrorDetail(code="rate_limited", message="Too many requests.", detail=str(exc))
        ).model_dump(),
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
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    Route handlers raise HTTPException with a {"code", "message"} dict as
    detail. Use it directly rather than stringifying it.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(code=f"http_{exc.status_code}", message=str(exc.detail))
        ).model_dump(),
        headers=exc.headers,
    )


@app.exception_handler(InfrastructureError)
async def infrastructure_error_handler(request: Request, exc: InfrastructureError) -> JSONResponse:
    """Store or transport failure surfaced by the core: generic 500, details in the log only."""
    logger.error(
        "Infrastructure failure on %s %s: %s", request.method, request.url.path, exc.message, exc_info=exc
    )
    return _internal_error()


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is written to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _internal_error()


# ---------------------------------------------------------------------------
# Health endpoint -- no auth, no rate limit.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
async def health(request: Request) -> HealthResponse:
    """Return API liveness, version, and database reachability."""
    store: AccountStore = request.app.state.account_store
    return HealthResponse(
        version=VERSION,
        components={"app": "ok", "database": "ok" if store.ping() else "error"},
    )
