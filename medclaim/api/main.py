"""Main FastAPI application for the medical claim registry.

This module sets up the FastAPI application with all routes, middleware,
and configuration for the registry API.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from medclaim import __version__
from medclaim.api.dependencies import get_registry
from medclaim.api.middleware import setup_middleware
from medclaim.api.routes import (
    claims,
    events,
    health,
    identities,
    indices,
    records,
    upload,
)
from medclaim.infrastructure.logging_config import setup_logging
from medclaim.infrastructure.settings import settings

setup_logging(use_json=settings.json_logs, log_level=settings.log_level)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    logger.info(f"{settings.app_name} API starting up...")
    logger.info("API documentation available at /api/docs")
    yield
    if get_registry.cache_info().currsize:
        get_registry().close()
        get_registry.cache_clear()
    logger.info(f"{settings.app_name} API shutting down...")


app = FastAPI(
    title=f"{settings.app_name} API",
    description="Medical records and insurance claims registry with role-based authorization",
    version=__version__,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Process-Time"],
)

setup_middleware(app)

app.include_router(health.router)
app.include_router(identities.router)
app.include_router(records.router)
app.include_router(claims.router)
app.include_router(indices.router)
app.include_router(events.router)
app.include_router(upload.router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": f"{settings.app_name} API",
        "version": __version__,
        "docs": "/api/docs",
        "health": "/api/health"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "medclaim.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
