"""Admin API router aggregation."""

from fastapi import APIRouter

from src.api.admin.audit import router as audit_router
from src.api.admin.deductions import router as deductions_router
from src.api.admin.periods import router as periods_router
from src.api.admin.rates import router as rates_router
from src.api.admin.settings import router as settings_router
from src.api.admin.transactions import router as transactions_router

admin_router = APIRouter(prefix="/admin", tags=["Admin"])

admin_router.include_router(deductions_router)
admin_router.include_router(transactions_router)
admin_router.include_router(rates_router)
admin_router.include_router(periods_router)
admin_router.include_router(audit_router)
admin_router.include_router(settings_router)

__all__ = ["admin_router"]
