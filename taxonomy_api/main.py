"""Taxonomy API main application module.

This module initializes the FastAPI application and configures
core middleware, routers, and startup/shutdown events.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from taxonomy_api.api.assignments import router as assignments_router
from taxonomy_api.api.categories import router as categories_router
from taxonomy_api.api.filters import router as filters_router
from taxonomy_api.api.health import router as health_router
from taxonomy_api.api.middleware import error_response, setup_middleware
from taxonomy_api.api.resolution import router as resolution_router
from taxonomy_api.domain.exceptions import (
    ConflictError,
    DomainError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from taxonomy_api.infrastructure.config import settings
from taxonomy_api.infrastructure.database import create_tables, engine
from taxonomy_api.infrastructure.logging import configure_logging

logger = structlog.get_logger()

ERROR_STATUS: dict[type[DomainError], int] = {
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    StorageError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup and shutdown events.

    Args:
        app: The FastAPI application instance.

    Yields:
        None after startup, cleanup happens after yield.
    """
    # Startup
    configure_logging()
    logger.info(
        "Starting Taxonomy API",
        version=settings.api_version,
        debug=settings.debug,
        filter_cache_enabled=settings.filter_cache_enabled,
    )

    if settings.create_tables_on_startup:
        await create_tables()
        logger.info("Database tables ensured")

    yield

    # Shutdown
    logger.info("Shutting down Taxonomy API")
    await engine.dispose()


app = FastAPI(
    title="Taxonomy API",
    description="Category taxonomy and dynamic filter assignment service",
    version=settings.api_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware (must be added before custom middleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Setup custom middleware (request ID, error handling)
setup_middleware(app)

# Include routers
app.include_router(health_router, tags=["Health"])
app.include_router(categories_router)
app.include_router(filters_router)
app.include_router(assignments_router)
app.include_router(resolution_router)


# ============================================================================
# Exception Handlers
# ============================================================================


@app.exception_handler(DomainError)
async def domain_exception_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Map domain errors to HTTP statuses with the standard error format."""
    status_code = next(
        (code for error_type, code in ERROR_STATUS.items() if isinstance(exc, error_type)),
        status.HTTP_400_BAD_REQUEST,
    )
    logger.info("Request rejected", error_code=exc.error_code, status_code=status_code)

    if isinstance(exc, StorageError):
        # Driver messages stay in the logs
        return error_response(
            request,
            status_code,
            exc.error_code,
            "Storage is temporarily unavailable, try again",
        )
    return error_response(request, status_code, exc.error_code, exc.message, exc.details)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Render framework HTTP errors (unknown routes, bad methods) in the standard format."""
    return error_response(request, exc.status_code, "HTTP_ERROR", str(exc.detail))
