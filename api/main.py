"""
api/main.py -- FastAPI application entry point for LinkPass.

Run with:      uvicorn api.main:app --reload
               python main.py serve

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for the front-end origins
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan builds the store, the Stytch adapter and the AuthService on
startup and releases the DB pool and HTTP session on shutdown.

Every error response uses the same envelope:
  {"error": {"code": "...", "message": "...", "detail": null}}
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.users import router as users_router
from auth import errors
from auth.provider import StytchMagicLinkProvider
from auth.service import AuthService
from auth.store import AuthStore
from core.config import get_settings

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("linkpass.api")

_settings = get_settings()
_started_at = time.monotonic()

# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the auth stack on startup; release it on shutdown.

    Everything before yield runs on startup; everything after yield runs on
    shutdown. Tests replace this function to wire in-memory stores and a fake
    provider instead.
    """
    logger.info("LinkPass API starting up (env=%s)", _settings.app_env)
    store = AuthStore(_settings.database_url)
    provider = StytchMagicLinkProvider.from_settings(_settings)
    app.state.store = store
    app.state.auth_service = AuthService(
        store,
        store,
        provider,
        login_redirect_url=_settings.magic_link_login_url,
        signup_redirect_url=_settings.magic_link_signup_url,
    )
    logger.info("Auth initialized (provider=%s)", provider.api_base)

    yield

    provider.close()
    store.close()
    logger.info("LinkPass API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="LinkPass API",
    description="Passwordless sign-up and sign-in with email magic links.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack -- registered in the order the request encounters them.
# ---------------------------------------------------------------------------

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=_settings.allowed_hosts_list,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


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

app.include_router(users_router, prefix="/api", tags=["Users"])


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

# Looked up along the exception's MRO, so subclasses may override their base.
_STATUS_BY_ERROR: dict[type[errors.AuthError], int] = {
    errors.ValidationError: 400,
    errors.InvalidOrExpiredTokenError: 400,
    errors.ProviderDataError: 400,
    errors.UnauthorizedError: 401,
    errors.NotFoundError: 404,
    errors.AlreadyExistsError: 409,
    errors.AuthProviderError: 500,
    errors.SessionPersistError: 500,
    errors.AuthError: 500,
}


def status_for(exc: errors.AuthError) -> int:
    for cls in type(exc).__mro__:
        if cls in _STATUS_BY_ERROR:
            return _STATUS_BY_ERROR[cls]
    return 500


def _error_response(status_code: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(),
    )


@app.exception_handler(errors.AuthError)
async def auth_error_handler(request: Request, exc: errors.AuthError) -> JSONResponse:
    """Map the service's error taxonomy onto HTTP.

    Only the stable code and the curated message go out. The chained cause
    (provider or database detail) was already reported by the service's
    observer and is not repeated here.
    """
    response = _error_response(status_for(exc), exc.code, exc.message)
    if isinstance(exc, errors.UnauthorizedError):
        response.headers["WWW-Authenticate"] = "Bearer"
    return response


@app.exception_handler(RateLimitExceeded)
def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded.

    A plain def: SlowAPIMiddleware calls this handler directly and returns
    its result without awaiting it.
    """
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error_response(429, "rate_limited", "Too many requests.", str(exc.detail))
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 when the body is not the expected JSON shape at all."""
    return _error_response(422, "validation_error", "Request validation failed.", str(exc.errors()))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Structured envelope for framework-raised errors (unknown route, wrong method)."""
    if exc.status_code == 404:
        message = f"Route {request.method} {request.url.path} not found."
    else:
        message = str(exc.detail)
    return _error_response(exc.status_code, f"http_{exc.status_code}", message)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint -- no rate limit, no auth.
# ---------------------------------------------------------------------------


@app.get("/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return liveness, version, uptime and database reachability."""
    components = {"app": "ok"}
    try:
        components["database"] = "ok" if request.app.state.store.ping() else "error"
    except SQLAlchemyError:
        logger.warning("Health check: database unreachable", exc_info=True)
        components["database"] = "error"
    return HealthResponse(
        status="healthy" if components["database"] == "ok" else "degraded",
        version=VERSION,
        environment=_settings.app_env,
        uptime_seconds=round(time.monotonic() - _started_at, 3),
        components=components,
    )
