"""
api/main.py -- FastAPI application entry point for sessiongate.

Exposes the session endpoints (login, logout, me, refresh) and hosts the
access gate that protects every page. The web UI router is mounted by
asgi.py, not here.

Run with:  uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. log_requests          -- one log line per request with latency
  4. access_gate           -- allow / redirect-to-login / redirect-to-dashboard
  5. session_cookies       -- request-scoped SessionStore; applies staged cookies
  6. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan creates the validator HTTP client and the issuer on startup and
closes the client on shutdown.
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
from fastapi.responses import JSONResponse, RedirectResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from auth.errors import AuthError
from auth.gate import RoutePolicy, evaluate
from auth.issuer import SessionIssuer
from auth.session_store import ACCESS_COOKIE, SessionStore
from auth.validator import HttpCredentialValidator
from core.config import get_settings

VERSION = "0.1.0"

_settings = get_settings()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=_settings.effective_log_level,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("sessiongate.api")

# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Everything before yield runs on startup; everything after yield runs on
    shutdown. The validator client owns a connection pool, so it is closed
    symmetrically here rather than left to garbage collection.
    """
    settings = get_settings()
    logger.info("sessiongate API starting up (environment=%s)", settings.environment)
    validator = HttpCredentialValidator(
        settings.validator_base_url,
        timeout=settings.request_timeout_seconds,
    )
    app.state.validator = validator
    app.state.issuer = SessionIssuer(validator, window_minutes=settings.access_window_minutes)
    logger.info(
        "Issuer initialized (validator=%s, access window=%dm, renewal window=%dd)",
        settings.validator_base_url,
        settings.access_window_minutes,
        settings.renewal_window_days,
    )

    yield

    await validator.aclose()
    logger.info("sessiongate API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="sessiongate API",
    description="Cookie-based session issuance, renewal and route gating.",
    version=VERSION,
    debug=_settings.debug,
    lifespan=lifespan,
)

# Attach the shared limiter to app.state so SlowAPIMiddleware can locate it.
# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter
app.state.route_policy = RoutePolicy.from_settings(_settings)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Starlette wraps middleware in reverse registration order: the LAST one
# added is the OUTERMOST. Registration below therefore runs innermost-first.
# ---------------------------------------------------------------------------

app.add_middleware(SlowAPIMiddleware)


@app.middleware("http")
async def session_cookies(request: Request, call_next):
    """Build the request-scoped SessionStore and apply its staged changes.

    Runs inside the gate and outside the routes and their exception handlers,
    so a 401 rendered from RenewalFailed still carries the cookie deletions
    the issuer staged before raising.
    """
    store = SessionStore.from_settings(request.cookies, get_settings())
    request.state.session_store = store
    response = await call_next(request)
    store.apply(response)
    return response


@app.middleware("http")
async def access_gate(request: Request, call_next):
    """Allow the request, or redirect it, before any guarded handler runs.

    Presence-only: an access cookie that exists is enough to pass. Whether
    it is still valid is decided by the validator when a handler uses it.
    """
    policy: RoutePolicy = request.app.state.route_policy
    path = request.url.path
    if policy.is_exempt(path):
        return await call_next(request)
    decision = evaluate(path, bool(request.cookies.get(ACCESS_COOKIE)), policy)
    if not decision.allowed:
        logger.debug("Gate %s %s -> %s", request.method, path, decision.kind.value)
        return RedirectResponse(decision.location, status_code=302)
    return await call_next(request)


# ---------------------------------------------------------------------------
# Request logging middleware
#
# Pattern: Interceptor / Chain of Responsibility. We capture wall-clock time
# before and after call_next so we can report latency on every response.
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


app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type"],
    max_age=3600,
)

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=_settings.allowed_hosts,
)

# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
# Web UI router is mounted by asgi.py, not here.


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Render a session failure using its row in the decision table.

    The message is the generic one attached to the error kind; upstream
    detail (validator status codes, network errors) stays in the logs.
    """
    policy = exc.policy
    response = JSONResponse(
        status_code=policy.status_code,
        content=ErrorResponse(error=ErrorDetail(code=exc.kind.value, message=exc.message)).model_dump(
            exclude_none=True
        ),
    )
    response.headers["Cache-Control"] = "no-store"
    return response


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
    """Return a structured error for all FastAPI/Starlette HTTP exceptions."""
    if isinstance(exc.detail, dict):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(),
    )


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
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable.
# Sits under /api/ so the access gate never redirects it.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=VERSION)
