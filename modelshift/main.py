"""modelshift — FastAPI application entry point.

Initializes the database connection on startup and registers API routers.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from modelshift.core import persistence
from modelshift.core.config import settings
from modelshift.api import health, imports

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize the database on startup, dispose of it on shutdown."""
    logger.info("Starting modelshift backend...")

    try:
        persistence.init_db(settings.database_url)
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")

    logger.info(f"Allowed import targets: {settings.target_models}")
    yield

    logger.info("Shutting down modelshift backend...")
    persistence.close_db()
    logger.info("modelshift backend stopped")


app = FastAPI(
    title="modelshift",
    version="0.1.0",
    description="Spreadsheet and CSV import into SQLAlchemy models, "
                "with header-driven mapping and association lookups.",
    lifespan=lifespan,
)

app.include_router(health.router, prefix="/api", tags=["health"])
app.include_router(imports.router, prefix="/api", tags=["imports"])
