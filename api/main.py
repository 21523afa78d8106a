"""
api/main.py -- FastAPI application entry point for tokengate.

Run with:  uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. CORSMiddleware  -- adds CORS headers for the configured browser origins
  2. log_requests    -- one log line per request with latency

Lifespan builds every long-lived object exactly once, from one Settings
instance, and parks it on app.state:
  app.state.auth_store  -- AuthStore (credentials + refresh token records)
  app.state.post_store  -- PostStore
  app.state.auth        -- AuthService wired by build_auth_service()
Nothing below reads configuration from module globals.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.auth import router as auth_router
from api.routes.posts import router as posts_router
from auth.errors import AuthError, StoreUnavailable, TokenError
from auth.service import build_auth_service
from auth.store import AuthStore
from core.config import get_settings
from posts.store import PostStore

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("tokengate.api")

# ---------------------------------------------------------------------------
# Lifespan -- startup / shutdown
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Startup order: stores first (schema creation), then the service that
    wraps them, then a one-shot purge of expired refresh token records.
    There is no background task.
    """
    settings = get_settings()
    logger.info("tokengate API starting up")
    app.state.auth_store = AuthStore(settings.database_url)
    app.state.post_store = PostStore(settings.database_url)
    app.state.auth = build_auth_service(settings, app.state.auth_store, app.state.auth_store)
    purged = app.state.auth.registry.purge_expired()
    logger.info("Auth initialized (purged %d expired refresh tokens)", purged)

    yield

    app.state.post_store.close()
    app.state.auth_store.close()
    logger.info("tokengate API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="tokengate",
    description="Username/password registration, JWT access tokens and rotating refresh tokens.",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)


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

app.include_router(auth_router, tags=["Auth"])
app.include_router(posts_router, tags=["Posts"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Map domain errors to their status and public code.

    The body only ever contains the class's fixed public message. Token
    failures share one body; the concrete class name goes to the log.
    """
    if isinstance(exc, StoreUnavailable):
        # Already logged with context by the store.
        logger.error("Store unavailable on %s %s", request.method, request.url.path)
    elif isinstance(exc, TokenError):
        logger.info("Token rejected on %s %s: %s", request.method, request.url.path, type(exc).__name__)
    response = JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=ErrorDetail(code=exc.code, message=exc.message)).model_dump(exclude_none=True),
    )
    if exc.status_code == 401:
        response.headers["WWW-Authenticate"] = "Bearer"
    response.headers["Cache-Control"] = "no-store"
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with a structured error when the body is missing or malformed.

    Only field locations and messages are echoed back, never the input values,
    so a rejected password is not reflected into the response.
    """
    problems = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors())
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail=problems,
            )
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    Route handlers raise HTTPException with a dict detail. When detail is
    already a structured dict, use it directly as the error field.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(code=f"http_{exc.status_code}", message=str(exc.detail)),
        ).model_dump(exclude_none=True),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is written to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(code="internal_error", message="An unexpected error occurred."),
        ).model_dump(exclude_none=True),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# No authentication -- load balancers and monitors must reach it.
# ---------------------------------------------------------------------------


@app.get("/health", response_model=HealthResponse, tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return liveness, version and a database round-trip check."""
    database = "ok" if request.app.state.auth_store.ping() else "error"
    return HealthResponse(version=VERSION, components={"app": "ok", "database": database})
