"""
FastAPI Application Entry Point.

This is the main application file for the Freight Brokerage Core.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from brokerage.app.core.config import settings
from brokerage.app.api.v1.router import router as api_v1_router
from brokerage.app.core.observability import ObservabilityMiddleware, configure_logging
from brokerage.app.core.redis_client import close_redis, ping_redis
from brokerage.app.db.session import engine, Base
from brokerage.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)
from fastapi import HTTPException

# Import models to ensure they are registered with Base
from brokerage.app.models.transport_request import TransportRequest
from brokerage.app.models.offer import Offer
from brokerage.app.models.assignment import Assignment
from brokerage.app.models.tracking_update import TrackingUpdate
from brokerage.app.models.invoice import Invoice
from brokerage.app.models.audit_log import AuditLog
from brokerage.app.models.dlq import DeadLetterQueue

configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Creates database tables on startup.
    2. Releases the Redis pool and database engine on shutdown.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await close_redis()
    await engine.dispose()

# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Freight brokerage core: pricing, offers, arbitration, tracking and invoicing",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Status, application information and cache reachability
    """
    cache_ok = await ping_redis()
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "cache": "up" if cache_ok else "down",
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint.

    Returns:
        dict: Welcome message and API documentation links
    """
    return {
        "message": "Welcome to the Freight Brokerage Core API",
        "docs": "/docs",
        "health": "/health",
    }
