"""
api/main.py -- FastAPI application entry point for CoreID.

Run with:      uvicorn asgi:app --reload

Middleware, in the order added (Starlette runs the last-added one first):
  1. TrustedHostMiddleware -- 400 for any Host outside localhost
  2. CORSMiddleware        -- credentials allowed for the local front-end origins
  3. SlowAPIMiddleware     -- login / resend limits declared in api/routes/v1/auth.py

Lifespan builds the UserStore, the SMTP sender and the AuthService on startup
and closes the store on shutdown. A broken token configuration raises
ConfigurationError here, so the process never starts serving.
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

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.users import router as users_router
from auth.mailer import SmtpEmailSender
from auth.service import build_auth_service
from auth.store import UserStore
from core.config import get_settings
from core.errors import (
    AlreadyActivated,
    CoreIDError,
    DuplicateError,
    NotFound,
    Unauthenticated,
    ValidationError,
)

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("coreid.api")

# Domain error -> HTTP status. Anything not listed (StoreFailure,
# ConfigurationError, MalformedTokenError) is an opaque 500.
_STATUS_BY_ERROR: dict[type[CoreIDError], int] = {
    ValidationError: 400,
    Unauthenticated: 401,
    NotFound: 404,
    DuplicateError: 409,
    AlreadyActivated: 409,
}


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build application-level services on startup, release them on shutdown."""
    settings = get_settings()
    logger.info("CoreID API starting up")
    app.state.settings = settings
    app.state.user_store = UserStore(db_url=settings.database_url)
    app.state.auth_service = build_auth_service(settings, app.state.user_store, SmtpEmailSender(settings))
    logger.info("Auth initialized (token lifetime %d min)", settings.token_expire_minutes)

    yield

    app.state.user_store.close()
    logger.info("CoreID API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="CoreID API",
    description="Multi-tenant user directory: registration, verification, login and company accounts.",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=["localhost", "127.0.0.1", "*.localhost"],
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost", "http://localhost:3000", "http://127.0.0.1"],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

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
app.include_router(users_router, prefix="/api/v1", tags=["Users"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# Every error body is {"error": {"code", "message", "detail"}}. Domain errors
# keep their own code; everything else gets a transport-level one.
# ---------------------------------------------------------------------------


def _error(status: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    body = ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail))
    return JSONResponse(status_code=status, content=body.model_dump())


@app.exception_handler(CoreIDError)
async def domain_error_handler(request: Request, exc: CoreIDError) -> JSONResponse:
    """Map domain errors raised by auth/ to precise HTTP statuses.

    Unmapped CoreIDError subclasses are system faults: logged with traceback
    and returned as a generic 500 without the internal message.
    """
    for error_cls, status in _STATUS_BY_ERROR.items():
        if isinstance(exc, error_cls):
            return _error(status, exc.code, str(exc))
    logger.error("Unhandled %s on %s %s", type(exc).__name__, request.method, request.url.path, exc_info=exc)
    return _error(500, "internal_error", "An unexpected error occurred.")


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning("Rate limit hit on %s from %s", request.url.path, request.client.host if request.client else "?")
    response = _error(429, "rate_limited", "Too many requests.", detail=str(exc.detail))
    response.headers["Retry-After"] = str(int(getattr(exc, "retry_after", 60)))
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed JSON bodies and query strings. Business-rule failures are 400s from the core."""
    return _error(422, "validation_error", "Request validation failed.", detail=str(exc.errors()))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """401/403 from auth/dependencies.py carry a ready-made {"code", "message"} detail."""
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)
    return _error(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort. The traceback is logged, the body stays generic."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
#
# No rate limit and no auth -- load balancers must not be throttled.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", response_model=HealthResponse, tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return liveness, version and a database round-trip check."""
    db_ok = request.app.state.user_store.ping()
    return HealthResponse(
        status="healthy" if db_ok else "degraded",
        version=VERSION,
        components={"app": "ok", "database": "ok" if db_ok else "error"},
    )
