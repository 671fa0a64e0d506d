"""API router aggregation."""

from fastapi import APIRouter

from src.api.admin import admin_router
from src.api.auth import router as auth_router
from src.api.health import router as health_router
from src.api.prims import router as prims_router
from src.api.sales import router as sales_router

# Main API router (for /api/* endpoints)
api_router = APIRouter(prefix="/api")

api_router.include_router(health_router)
api_router.include_router(auth_router)
api_router.include_router(sales_router)
api_router.include_router(prims_router)
api_router.include_router(admin_router)

__all__ = ["api_router"]
