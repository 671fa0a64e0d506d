"""
Background job definitions using APScheduler.

Jobs include:
- Carry-forward of pending deductions into the current month's period
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from src.config import settings
from src.db import get_db_context
from src.services.deductions import carry_forward_deductions
from src.services.periods import get_or_create_period_for_date

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = AsyncIOScheduler()


async def carry_forward_job(now: Optional[datetime] = None) -> int:
    """Surface pending deductions of earlier periods in the current period."""
    logger.debug("Running carry-forward job")
    now = now or datetime.now(timezone.utc)
    try:
        async with get_db_context() as db:
            period = await get_or_create_period_for_date(db, now)
            created = await carry_forward_deductions(db, period.id)
            if created:
                logger.info(f"Carry-forward job: {created} deductions surfaced in {period.name}")
            return created
    except Exception as e:
        logger.error(f"Carry-forward job error: {e}")
        return 0


def setup_scheduler():
    """
    Configure and add all scheduled jobs.

    Called during application startup.
    """
    scheduler.add_job(
        carry_forward_job,
        trigger=IntervalTrigger(minutes=settings.carry_forward_interval_minutes),
        id="carry_forward",
        name="Carry pending deductions forward",
        replace_existing=True,
    )

    logger.info("Scheduler configured with jobs")
