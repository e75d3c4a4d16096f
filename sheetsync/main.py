"""
FastAPI application entry point.

This module initializes the FastAPI application, configures middleware,
and registers the import API routers.
"""
import logging
import os
from datetime import datetime
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from .core.config import settings
from .core.logging_config import configure_logging
from .api.routers import imports

# Ensure logging is configured before the application starts serving requests.
configure_logging(settings.log_level)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle - startup and shutdown events."""
    if os.getenv("SKIP_DB_INIT") == "1":
        logger.info("SKIP_DB_INIT=1 detected; skipping database bootstrap during startup")
        yield
        return

    # Startup: Initialize database tables
    try:
        from .db.models import create_import_tables
        from .db.session import get_engine

        create_import_tables(get_engine())
        logger.info("schema_profiles, import_sessions and entity_records tables ready")
    except Exception as e:
        logger.error("Failed to initialize database tables: %s", e)
        raise  # Re-raise to prevent app from starting with broken database

    yield


# Initialize FastAPI application
app = FastAPI(
    title="Sheetsync Import API",
    version="1.0.0",
    description="Schema-learning spreadsheet importer for shipments, inventory and orders",
    lifespan=lifespan
)

DEFAULT_DASHBOARD_ORIGINS = "http://localhost:5173,http://localhost:3000"


def _allowed_origins():
    """Dashboard origins from ALLOWED_ORIGINS (comma separated)."""
    raw = os.getenv("ALLOWED_ORIGINS", DEFAULT_DASHBOARD_ORIGINS)
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(imports.router)


@app.get("/")
async def root():
    """Root endpoint returning API information."""
    return {
        "message": "Sheetsync Import API",
        "version": "1.0.0"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint for deployment monitoring."""
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "service": "sheetsync-import-api"
    }
