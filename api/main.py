"""
api/main.py -- FastAPI application entry point for the Usuarios API.

Serves the user registry consumed by the SPA: registration, login, session
checks, profile management and listing.

Install deps:  pip install -e .
Run with:      uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. CORSMiddleware     -- adds CORS headers for the configured SPA origins
  2. SlowAPIMiddleware  -- enforces default and per-route rate limits from api.limiter

Lifespan opens the UserStore on startup and disposes of it on shutdown.

Every error leaves through one of the exception handlers below and has the
same envelope: {"success": false, "code", "message", "errors"}.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException

from api.limiter import limiter
from api.models import ErrorResponse, FieldErrorDetail, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.users import router as users_router
from auth.store import UserStore
from core.config import get_settings
from core.errors import (
    AccountError,
    ConflictError,
    ForbiddenError,
    InvalidCredentialsError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)

API_VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("usuarios.api")

_settings = get_settings()
_started_at = time.monotonic()

# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the identity store for the lifetime of the server.

    Table and index creation runs inside UserStore(), so the schema exists
    before the first request is accepted.
    """
    logger.info("Usuarios API starting up")
    app.state.user_store = UserStore(_settings.database_url)
    logger.info("User store initialized")

    yield

    app.state.user_store.close()
    logger.info("Usuarios API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Usuarios API",
    description="User registration, authentication and profile management.",
    version=API_VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
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

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(users_router, prefix="/api/v1", tags=["Users"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# AccountError variants are raised by auth/ and mapped to a status code here
# and nowhere else. Subclasses resolve to their nearest mapped ancestor
# (InactiveAccountError -> UnauthorizedError -> 401).
# ---------------------------------------------------------------------------

_STATUS_BY_ERROR: dict[type[AccountError], int] = {
    ValidationError: 400,
    InvalidCredentialsError: 401,
    UnauthorizedError: 401,
    ForbiddenError: 403,
    NotFoundError: 404,
    ConflictError: 409,
}


def status_for(exc: AccountError) -> int:
    for cls in type(exc).__mro__:
        if cls in _STATUS_BY_ERROR:
            return _STATUS_BY_ERROR[cls]
    return 400


def _error_response(
    status_code: int,
    code: str,
    message: str,
    errors: list[FieldErrorDetail] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(code=code, message=message, errors=errors).model_dump(),
    )


@app.exception_handler(AccountError)
async def account_error_handler(request: Request, exc: AccountError) -> JSONResponse:
    errors = None
    if isinstance(exc, ValidationError) and exc.errors:
        errors = [FieldErrorDetail(field=e.field, message=e.message) for e in exc.errors]
    elif isinstance(exc, ConflictError):
        errors = [FieldErrorDetail(field=exc.field, message=exc.message)]
    status_code = status_for(exc)
    if status_code >= 401:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc.code)
    return _error_response(status_code, exc.code, exc.message, errors)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 when a rate limit is exceeded.

    Retry-After tells clients how many seconds to wait before retrying.
    """
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error_response(
        429,
        "rate_limited",
        "Muitas requisições. Tente novamente mais tarde.",
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


def _field_name(loc: tuple) -> str:
    # ("body", "email") -> "email"; ("query", "limit") -> "limit"
    parts = [str(p) for p in loc[1:]] if len(loc) > 1 else [str(p) for p in loc]
    return ".".join(parts)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with every malformed field when the body or query fails to parse."""
    errors = [FieldErrorDetail(field=_field_name(tuple(err.get("loc", ()))), message=err["msg"]) for err in exc.errors()]
    return _error_response(400, ValidationError.code, ValidationError.default_message, errors)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Wrap framework-raised HTTP errors (unknown route, wrong method) in the envelope."""
    return _error_response(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(500, "internal_error", "Erro interno do servidor")


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
@limiter.exempt
def health(request: Request) -> HealthResponse:
    """Return API liveness, version, uptime and database reachability."""
    components = {
        "app": "ok",
        "database": "ok" if request.app.state.user_store.ping() else "error",
    }
    return HealthResponse(
        status="healthy" if all(v == "ok" for v in components.values()) else "degraded",
        components=components,
        version=API_VERSION,
        timestamp=datetime.now(timezone.utc).isoformat(),
        uptime_seconds=round(time.monotonic() - _started_at, 3),
    )
