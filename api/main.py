"""
api/main.py -- FastAPI application entry point for the app server.

Run with:      uvicorn api.main:app

Middleware stack (outermost to innermost):
  1. log_requests       -- method, path, status, latency, client for every request
  2. CORSMiddleware     -- adds CORS headers for allowed browser origins
  3. SlowAPIMiddleware  -- enforces per-route rate limits from api.limiter
  4. auth_gate          -- bearer token check; 401/403 short-circuit before any route

Lifespan builds every service once from Settings and stores it on app.state:
  settings, store (CredentialStore), tokens (TokenService),
  mailer (SmtpMailer), dispatcher (NotificationDispatcher).
Route handlers read them from request.app.state; nothing is a module global.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse
from api.routes.auth import router as auth_router
from api.routes.notifications import router as notifications_router
from api.routes.system import router as system_router
from api.routes.users import router as users_router
from auth.gate import evaluate_request, gate_response
from auth.store import CredentialStore
from auth.tokens import TokenService
from core.config import APP_DESCRIPTION, APP_LONG_NAME, APP_VERSION, get_settings
from notify.dispatcher import NotificationDispatcher
from notify.mailer import SmtpMailer

_settings = get_settings()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=getattr(logging, _settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("appserver.api")


# ---------------------------------------------------------------------------
# Lifespan -- startup / shutdown
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the service graph on startup and release it on shutdown.

    Startup order follows the dependency order: the store and the mail
    transport first, then the dispatcher that needs both.
    """
    logger.info("%s v%s starting up", APP_LONG_NAME, APP_VERSION)
    settings = get_settings()
    app.state.settings = settings
    app.state.store = CredentialStore(settings.db_url)
    app.state.tokens = TokenService.from_settings(settings)
    app.state.mailer = SmtpMailer.from_settings(settings)
    app.state.dispatcher = NotificationDispatcher(app.state.store, app.state.mailer)
    logger.info("Services initialized (smtp=%s:%d)", settings.smtp_server, settings.smtp_port)

    yield

    app.state.store.close()
    logger.info("%s shutdown complete", APP_LONG_NAME)


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title=APP_LONG_NAME,
    description=APP_DESCRIPTION,
    version=APP_VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Request gate
#
# Registered first so it ends up innermost: CORS and rate limiting still see
# the request, but no route handler runs until the gate has decided.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def auth_gate(request: Request, call_next):
    """Authorize every request before routing.

    Exempt paths and OPTIONS preflights pass with no identity attached.
    Otherwise the bearer token must verify, and its payload is placed on
    request.state.current_user for auth.dependencies to read.
    """
    decision = evaluate_request(
        request.method,
        request.url.path,
        request.headers.get("Authorization"),
        request.app.state.tokens,
    )
    if not decision.allowed:
        logger.info(
            "Gate rejected %s %s (%s: %s)",
            request.method,
            request.url.path,
            decision.state.value,
            decision.kind.value if decision.kind else "",
        )
        return gate_response(decision)
    request.state.current_user = decision.payload
    return await call_next(request)


# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

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

app.include_router(system_router, prefix="/api", tags=["System"])
app.include_router(auth_router, prefix="/api", tags=["Auth"])
app.include_router(users_router, prefix="/api", tags=["Users"])
app.include_router(notifications_router, prefix="/api", tags=["Notifications"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly. The gate's 401/403 are plain text and never reach these.
# ---------------------------------------------------------------------------


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error and a Retry-After header."""
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
    """Return 422 with structured error when request body or path params fail validation."""
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


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Return a structured error for all HTTP exceptions.

    Route handlers raise HTTPException with a dict detail ({"code", "message"});
    use it directly as the error field rather than stringifying it.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
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
