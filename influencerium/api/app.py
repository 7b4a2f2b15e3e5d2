"""FastAPI application for the Influencerium access layer.

Endpoints:
  POST   /auth/login                        - Email/password login, issues JWT + session
  POST   /auth/refresh                      - Exchange refresh token for access token
  POST   /auth/logout                       - Revoke the current session
  GET    /auth/me                           - Current principal with permissions
  GET    /auth/sessions                     - List own sessions (masked tokens)
  GET    /auth/sessions/count               - Count own active sessions
  GET    /auth/sessions/{id}                - Get one own session
  DELETE /auth/sessions                     - Log out other devices
  DELETE /auth/sessions/all                 - Log out everywhere
  DELETE /auth/sessions/device/{type}       - Revoke sessions by device tag
  DELETE /auth/sessions/{id}                - Revoke one own session
  GET    /users/{user_id}/sessions          - Owner or user:manage
  GET    /users/{user_id}/sessions/count    - user:manage
  DELETE /users/{user_id}/sessions          - user:manage + admin:access
  GET    /admin/roles                       - Role catalog
  GET    /admin/roles/{role}/permissions    - Permissions of one role
  POST   /admin/sessions/cleanup            - Expire sessions past their lifetime
  GET    /health                            - Health check
  GET    /metrics                           - Prometheus metrics
"""

from __future__ import annotations

import logging
import sqlite3
import time
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

import influencerium
from influencerium.api.ratelimit import limiter
from influencerium.api.routes.admin import admin_router, users_router
from influencerium.api.routes.auth import router as auth_router
from influencerium.api.routes.sessions import router as sessions_router
from influencerium.config import settings
from influencerium.exceptions import AuthorizationError, InfluenceriumError
from influencerium.logging_config import log_startup_info, setup_logging
from influencerium.sessions.service import SessionService
from influencerium.storage.database import Database

logger = logging.getLogger("influencerium")
_audit_logger = logging.getLogger("influencerium.audit")


# ---------------------------------------------------------------------------
# App lifecycle
# ---------------------------------------------------------------------------

_db = Database(settings.db_path, timeout=settings.db_timeout_seconds)
_sessions = SessionService(_db, lifetime=settings.session_lifetime)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.log_level, settings.log_format)
    await _db.connect()
    log_startup_info(settings)
    yield
    logger.info("Closing database connection")
    await _db.close()
    logger.info("Shutdown complete")


_OPENAPI_TAGS = [
    {"name": "Health", "description": "Health checks and version info"},
    {"name": "Auth", "description": "Login, token refresh, logout"},
    {"name": "Sessions", "description": "Self-service session management"},
    {"name": "Users", "description": "Per-user session control"},
    {"name": "Admin", "description": "Role catalog and session maintenance"},
    {"name": "Metrics", "description": "Prometheus metrics endpoint"},
]

app = FastAPI(
    title="Influencerium - Access Layer",
    description="Role-based access control and session management for the Influencerium backend.",
    version=influencerium.__version__,
    lifespan=lifespan,
    openapi_tags=_OPENAPI_TAGS,
)

app.state.db = _db
app.state.sessions = _sessions
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Error handlers
# ---------------------------------------------------------------------------
@app.exception_handler(InfluenceriumError)
async def influencerium_error_handler(request: Request, exc: InfluenceriumError) -> JSONResponse:
    """Centralized handler for custom Influencerium exceptions."""
    request_id = getattr(request.state, "request_id", "unknown")
    content = {
        "error": exc.error_type,
        "message": exc.message,
        "request_id": request_id,
    }
    if isinstance(exc, AuthorizationError):
        content["required"] = exc.required
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(sqlite3.IntegrityError)
async def integrity_error_handler(request: Request, exc: sqlite3.IntegrityError) -> JSONResponse:
    """Unique/foreign-key violations from the store surface as conflicts."""
    request_id = getattr(request.state, "request_id", "unknown")
    logger.warning("Store constraint violation: %s [%s]", exc, request_id)
    return JSONResponse(
        status_code=409,
        content={
            "error": "CONFLICT_ERROR",
            "message": str(exc) if settings.debug else "Resource already exists",
            "request_id": request_id,
        },
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with Retry-After header on rate limit."""
    request_id = getattr(request.state, "request_id", "unknown")
    _audit_logger.warning(
        "Rate limit exceeded: %s %s from %s",
        request.method,
        request.url.path,
        get_remote_address(request),
        extra={"event_category": "audit", "action": "rate_limit_exceeded"},
    )
    response = JSONResponse(
        status_code=429,
        content={
            "error": "RATE_LIMIT_EXCEEDED",
            "message": str(exc.detail),
            "request_id": request_id,
        },
    )
    response.headers["Retry-After"] = "60"
    return response


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Session-ID", "X-Session-Expires", "X-Request-ID"],
)

app.add_middleware(GZipMiddleware, minimum_size=500)


@app.middleware("http")
async def security_headers_middleware(request: Request, call_next) -> Response:
    response: Response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    response.headers["Cache-Control"] = "no-store"
    return response


# Request logging middleware (also sets request_id on state for error handlers)
@app.middleware("http")
async def request_logging_middleware(request: Request, call_next) -> Response:
    request_id = str(uuid4())[:8]
    request.state.request_id = request_id
    start = time.monotonic()
    response: Response = await call_next(request)
    elapsed_ms = round((time.monotonic() - start) * 1000, 1)
    logger.info(
        "%s %s %s %.1fms [%s]",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
        request_id,
        extra={
            "request_id": request_id,
            "path": request.url.path,
            "method": request.method,
            "status_code": response.status_code,
            "duration_ms": elapsed_ms,
        },
    )
    response.headers["X-Request-ID"] = request_id
    return response


# ---------------------------------------------------------------------------
# Prometheus metrics
# ---------------------------------------------------------------------------
from prometheus_fastapi_instrumentator import Instrumentator  # noqa: E402

_instrumentator = Instrumentator(
    excluded_handlers=["/metrics"],
    should_respect_env_var=False,
)
_instrumentator.instrument(app).expose(app, endpoint="/metrics", tags=["Metrics"])


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@app.get("/health", tags=["Health"])
async def health():
    return {"status": "ok", "version": influencerium.__version__}


app.include_router(auth_router)
app.include_router(sessions_router)
app.include_router(users_router)
app.include_router(admin_router)
