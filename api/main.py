"""
api/main.py -- FastAPI application entry point for the storefront auth service.

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for the storefront frontend

The general per-IP API limit (api.limiter.enforce_api_limit) is a dependency
of every /api/v1 router, so its 429 goes through the AuthError handler.

Lifespan builds every auth collaborator once and parks it on app.state:
  user_store, clock, token_codec, action_tokens, mailer, login_throttle,
  authenticator, flows.
Building TokenCodec there is what makes a missing SECRET_KEY fatal at
startup (SigningKeyMissing propagates out of lifespan and uvicorn exits).
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import enforce_api_limit
from api.models import ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.users import router as users_router
from auth.action_tokens import ActionTokenGenerator
from auth.authenticator import Authenticator
from auth.clock import Clock, SystemClock
from auth.errors import AuthError, RateLimited
from auth.flows import AccountFlows
from auth.mailer import Mailer, SmtpMailer
from auth.store import UserStore
from auth.throttle import LoginThrottle
from auth.tokens import TokenCodec
from core.config import Settings, get_settings

API_VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("storefront.api")

_settings = get_settings()


# ---------------------------------------------------------------------------
# Service wiring
# ---------------------------------------------------------------------------


def init_auth_state(
    app: FastAPI,
    settings: Settings,
    user_store: UserStore,
    *,
    clock: Clock | None = None,
    mailer: Mailer | None = None,
    login_throttle: LoginThrottle | None = None,
) -> None:
    """Build the auth collaborators and attach them to app.state.

    Shared by the real lifespan and the test lifespan so both run the same
    wiring. Raises SigningKeyMissing if settings.secret_key is empty.
    """
    clock = clock or SystemClock()
    codec = TokenCodec(
        settings.secret_key,
        access_expire_seconds=settings.access_token_expire_seconds,
        refresh_expire_seconds=settings.refresh_token_expire_seconds,
        clock=clock,
    )
    action_tokens = ActionTokenGenerator(settings.secret_key, reset_ttl_seconds=settings.reset_token_ttl_seconds)
    mailer = mailer or SmtpMailer(
        client_url=settings.client_url,
        smtp_host=settings.smtp_host,
        smtp_port=settings.smtp_port,
        smtp_user=settings.smtp_user,
        smtp_password=settings.smtp_password,
        smtp_use_tls=settings.smtp_use_tls,
        from_email=settings.email_from,
        from_name=settings.email_from_name,
        reset_ttl_seconds=settings.reset_token_ttl_seconds,
        dev_mode=settings.debug,
    )

    app.state.user_store = user_store
    app.state.clock = clock
    app.state.token_codec = codec
    app.state.action_tokens = action_tokens
    app.state.mailer = mailer
    app.state.login_throttle = login_throttle or LoginThrottle(settings.login_rate_limit, clock=clock)
    app.state.authenticator = Authenticator(user_store, codec)
    app.state.flows = AccountFlows(user_store, codec, action_tokens, mailer, clock)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the user store and wire the auth core; close the store on shutdown."""
    logger.info("Storefront auth API starting up")
    user_store = UserStore(_settings.database_url)
    try:
        init_auth_state(app, _settings, user_store)
    except Exception:
        user_store.close()
        raise
    logger.info("Auth initialized (login limit %s, api limit %s)", _settings.login_rate_limit, _settings.api_rate_limit)

    yield

    app.state.user_store.close()
    logger.info("Storefront auth API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Storefront Auth API",
    description="Registration, login, bearer tokens, email verification and password recovery.",
    version=API_VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Starlette wraps middleware in reverse registration order, so the last one
# added sees the request first: TrustedHost -> CORS.
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)


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

_api_limit = [Depends(enforce_api_limit)]

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"], dependencies=_api_limit)
app.include_router(users_router, prefix="/api/v1", tags=["Users"], dependencies=_api_limit)


# ---------------------------------------------------------------------------
# Exception handlers
#
# Every handler returns the same ErrorResponse envelope
# ({"success": false, "message", "code"}) so clients parse errors uniformly.
# ---------------------------------------------------------------------------


def _error(status_code: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(code=code, message=message, detail=detail).model_dump(exclude_none=True),
    )


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Map every auth-core failure to its status code and stable error code."""
    response = _error(exc.status_code, exc.code, exc.message)
    if isinstance(exc, RateLimited):
        response.headers["Retry-After"] = str(exc.retry_after)
    if exc.status_code == 401:
        response.headers["WWW-Authenticate"] = "Bearer"
    if exc.status_code >= 500:
        logger.error("Auth failure on %s %s: %s", request.method, request.url.path, exc.code)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed input is a 400, with the first validation message surfaced.

    detail lists field locations and messages only. Submitted values (which
    may be passwords) are never echoed back.
    """
    errors = exc.errors()
    message = errors[0].get("msg", "Validation failed") if errors else "Validation failed"
    detail = "; ".join(
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg', 'invalid')}" for error in errors
    )
    return _error(400, "validation_error", message, detail or None)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected server errors. The traceback goes to the log only."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, "internal_error", "Internal server error.")


# ---------------------------------------------------------------------------
# Health endpoint -- registered on the app, outside the rate-limited routers,
# so liveness checks never get 429.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"], response_model=HealthResponse)
def health(request: Request) -> HealthResponse:
    """Return liveness, version and database reachability."""
    try:
        request.app.state.user_store.ping()
        database = "ok"
    except Exception:
        logger.exception("Health check: database unreachable")
        database = "error"
    return HealthResponse(
        status="healthy" if database == "ok" else "degraded",
        version=API_VERSION,
        components={"app": "ok", "database": database},
    )
