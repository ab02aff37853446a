"""API router aggregation."""

from fastapi import APIRouter

from fixers.api.admin import admin_router
from fixers.api.agents import router as agents_router
from fixers.api.fixers import router as fixers_router
from fixers.api.health import router as health_router
from fixers.api.webhooks import router as webhooks_router

# Main API router (for /api/* endpoints)
api_router = APIRouter(prefix="/api")

api_router.include_router(health_router)
api_router.include_router(agents_router)
api_router.include_router(fixers_router)
api_router.include_router(admin_router)
api_router.include_router(webhooks_router)

__all__ = ["api_router"]
