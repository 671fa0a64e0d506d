"""
PrimLedger - Commission Ledger & Earnings Aggregation

Main FastAPI application with:
- Role-based authentication (admin/salesperson)
- Sale lifecycle events written to an append-only commission ledger
- Two-phase deduction workflow and earnings aggregation
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import select

from src.api import api_router
from src.config import settings
from src.db import get_db_context
from src.models import (
    DUPLICATE_DEDUCTION_RULE,
    SETTING_DEFAULTS,
    PrimRate,
    SystemSetting,
    User,
    UserRole,
)
from src.scheduler.jobs import scheduler, setup_scheduler
from src.services.errors import LedgerError
from src.utils.password import hash_password

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def seed_defaults() -> None:
    """Create the administrator, a starting rate and default settings if missing."""
    async with get_db_context() as db:
        result = await db.execute(
            select(User).where(User.role == UserRole.ADMIN).limit(1)
        )
        admin = result.scalar_one_or_none()

        if not admin:
            logger.info("Creating administrator account...")
            admin = User(
                username=settings.admin_username,
                password_hash=hash_password(settings.admin_password),
                role=UserRole.ADMIN,
                display_name="Administrator",
                is_active=True,
            )
            db.add(admin)
            await db.flush()
            logger.info(f"Administrator account created: {settings.admin_username}")

        has_rate = await db.scalar(select(PrimRate.id).limit(1))
        if not has_rate:
            db.add(
                PrimRate(
                    rate=settings.default_prim_rate,
                    effective_date=datetime(2000, 1, 1, tzinfo=timezone.utc),
                    is_active=True,
                    created_by_user_id=admin.id,
                )
            )
            logger.info(f"Seeded commission rate {settings.default_prim_rate}%")

        default_settings = {
            DUPLICATE_DEDUCTION_RULE: settings.duplicate_deduction_rule,
            **SETTING_DEFAULTS,
        }
        for key, value in default_settings.items():
            existing = await db.get(SystemSetting, key)
            if not existing:
                db.add(SystemSetting.wrap(key, value))
                logger.info(f"Created default setting: {key}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup:
    - Seeds administrator, rate and settings
    - Starts the carry-forward scheduler when enabled

    Shutdown:
    - Stops the scheduler
    """
    logger.info("Starting PrimLedger...")

    await seed_defaults()

    if settings.enable_scheduler:
        setup_scheduler()
        scheduler.start()

    logger.info("PrimLedger started successfully!")

    yield

    logger.info("Shutting down PrimLedger...")
    if scheduler.running:
        scheduler.shutdown(wait=False)


app = FastAPI(
    title="PrimLedger",
    description="Commission ledger and earnings aggregation",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if not settings.is_production else None,
    redoc_url="/redoc" if not settings.is_production else None,
)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    """Render expected ledger errors with their status code."""
    if exc.status_code >= 409 or exc.status_code == 403:
        logger.warning(f"{request.method} {request.url.path}: {exc.kind}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(api_router)  # /api/* endpoints


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=8000,
        reload=not settings.is_production,
    )
