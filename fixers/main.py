"""
Fixers - marketplace core service

Main FastAPI application with:
- Agent commissions, wallet withdrawals and fixer bonuses
- Agent fixer vetting
- Badge tiers and badge request review
- Stripe payment webhooks
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from fixers.api import api_router
from fixers.config import settings
from fixers.db import Database
from fixers.errors import FixersError, fixers_error_handler
from fixers.scheduler import create_scheduler
from fixers.services.notifier import DatabaseNotifier

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup:
    - Opens the database handle and the notifier
    - Starts background jobs

    Shutdown:
    - Stops jobs and disposes the engine
    """
    logger.info("Starting Fixers...")

    database = Database(settings.database_url)
    app.state.database = database
    app.state.notifier = DatabaseNotifier(database)

    scheduler = None
    if settings.enable_scheduler:
        scheduler = create_scheduler(database)
        scheduler.start()

    logger.info("Fixers started successfully!")

    yield

    logger.info("Shutting down Fixers...")
    if scheduler:
        scheduler.shutdown(wait=False)
    await database.dispose()


# Create FastAPI application
app = FastAPI(
    title="Fixers",
    description="Agent commissions, vetting, badge tiers and badge payments",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if not settings.is_production else None,
    redoc_url="/redoc" if not settings.is_production else None,
)

app.add_exception_handler(FixersError, fixers_error_handler)

# Include routers
app.include_router(api_router)  # /api/* endpoints


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "fixers.main:app",
        host="0.0.0.0",
        port=8000,
        reload=not settings.is_production,
    )
