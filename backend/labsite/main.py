"""
0xJerry's Lab API - FastAPI Application Entry Point

This module initializes the FastAPI application with all middleware,
routes, exception handlers and lifecycle event handlers.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from labsite import __version__
from labsite.core.config import settings
from labsite.core.database import close_db, init_db
from labsite.core.logging_config import get_logger, setup_logging
from labsite.middleware.logging import LoggingMiddleware
from labsite.middleware.rate_limit import RateLimitMiddleware
from labsite.middleware.request_id import RequestIDMiddleware
from labsite.middleware.security_headers import SecurityHeadersMiddleware


logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan context manager.

    Startup:
        - Set up logging
        - Initialize database (create tables when DB_CREATE_ALL is set)

    Shutdown:
        - Dispose the database engine
    """
    setup_logging(level=settings.log_level, json_format=settings.log_json)
    await init_db()
    logger.info("Application started", extra={"environment": settings.environment})

    yield

    await close_db()


app = FastAPI(
    title=settings.project_name,
    version=__version__,
    description="Backend for a cybersecurity blog: HTB/THM progress, OTP-gated writeups, newsletter and security feeds",
    openapi_url=f"{settings.api_v1_prefix}/openapi.json",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)


# Configure middleware
# Note: Middleware is executed in reverse order of registration
# (last registered = first executed)

# Security headers middleware (runs last, adds headers to response)
app.add_middleware(SecurityHeadersMiddleware, enable_hsts=settings.is_production)

# Rate limiting middleware (protects all endpoints)
if settings.rate_limit_enabled:
    app.add_middleware(
        RateLimitMiddleware,
        auth_limit=settings.rate_limit_auth,
        default_limit=settings.rate_limit_default,
    )

# Logging middleware (runs after RequestID to access request_id)
app.add_middleware(LoggingMiddleware)

# Request ID middleware (first to run - sets correlation ID)
app.add_middleware(RequestIDMiddleware)

# CORS middleware - configured from environment
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Fallback", "X-Request-ID", "Retry-After"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed or incomplete request input as 400."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Invalid request", "errors": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error(
        "Database error",
        extra={
            "path": request.url.path,
            "request_id": getattr(request.state, "request_id", None),
            "exception_type": type(exc).__name__,
        },
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Database not available"},
    )


# Import and include routers
from labsite.api.v1 import (  # noqa: E402
    auth,
    feeds,
    health,
    htb_stats,
    logs,
    machines,
    members,
    newsletter,
    rooms,
    sessions,
    setup,
    thm_stats,
    users,
    writeups,
)

app.include_router(health.router, prefix=settings.api_v1_prefix, tags=["health"])
app.include_router(auth.router, prefix=settings.api_v1_prefix, tags=["auth"])
app.include_router(setup.router, prefix=settings.api_v1_prefix, tags=["setup"])
app.include_router(users.router, prefix=settings.api_v1_prefix, tags=["admin"])
app.include_router(sessions.router, prefix=settings.api_v1_prefix, tags=["admin"])
app.include_router(logs.router, prefix=settings.api_v1_prefix, tags=["logs"])
app.include_router(htb_stats.router, prefix=settings.api_v1_prefix, tags=["stats"])
app.include_router(thm_stats.router, prefix=settings.api_v1_prefix, tags=["stats"])
app.include_router(machines.router, prefix=settings.api_v1_prefix, tags=["machines"])
app.include_router(rooms.router, prefix=settings.api_v1_prefix, tags=["rooms"])
app.include_router(writeups.router, prefix=settings.api_v1_prefix, tags=["writeups"])
app.include_router(newsletter.router, prefix=settings.api_v1_prefix, tags=["newsletter"])
app.include_router(members.router, prefix=settings.api_v1_prefix, tags=["members"])
app.include_router(feeds.router, prefix=settings.api_v1_prefix, tags=["feeds"])


@app.get("/")
async def root():
    """
    Root endpoint.

    Returns basic API information.
    """
    return {
        "message": f"{settings.site_name} API",
        "version": __version__,
        "docs": "/docs",
    }
