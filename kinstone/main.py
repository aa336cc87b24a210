"""Kinstone Fusion API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map KinstoneError → structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Database initialized on startup and disposed on shutdown via lifespan

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - Error handlers live in api/error_handlers.py to keep this module's imports small
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from kinstone.api.error_handlers import register_error_handlers
from kinstone.api.routes import fusions, health, inventory, pieces, rewards, users
from kinstone.config import get_settings
from kinstone.infrastructure import database
from kinstone.infrastructure.observability import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    database.init_db(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    logger.info("Kinstone Fusion API started")
    yield
    logger.info("Kinstone Fusion API shutting down")
    if database.db_manager is not None:
        await database.db_manager.dispose()


app = FastAPI(
    title="Kinstone Fusion API", version="1.0.0", lifespan=lifespan,
)

settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes, registered explicitly
app.include_router(health.router)
app.include_router(users.router)
app.include_router(pieces.router)
app.include_router(inventory.router)
app.include_router(fusions.router)
app.include_router(rewards.router)

register_error_handlers(app)
