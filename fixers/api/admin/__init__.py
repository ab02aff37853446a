"""Admin API router aggregation."""

from fastapi import APIRouter

from fixers.api.admin.badge_requests import router as badge_requests_router
from fixers.api.admin.orders import router as orders_router
from fixers.api.admin.vetting import router as vetting_router

admin_router = APIRouter(prefix="/admin", tags=["Admin"])

admin_router.include_router(vetting_router)
admin_router.include_router(badge_requests_router)
admin_router.include_router(orders_router)

__all__ = ["admin_router"]
