"""
Commission rate provider.

The rate is never read from a global: every event resolves the rate that
was in effect at its own time from the rate history, so recomputing an old
event reproduces the old amount.
"""

import logging
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import List, Optional, Union

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.models import PrimRate, User
from src.services.errors import RateUnavailableError, ValidationError

logger = logging.getLogger(__name__)


def _as_datetime(when: Union[date, datetime]) -> datetime:
    if isinstance(when, datetime):
        return when if when.tzinfo else when.replace(tzinfo=timezone.utc)
    # A sale dated D uses the rate in effect at the end of D
    return datetime.combine(when, time.max, tzinfo=timezone.utc)


async def get_rate_at(db: AsyncSession, when: Union[date, datetime]) -> Decimal:
    """Return the rate (percent) in effect at `when`.

    Raises:
        RateUnavailableError: no rate was effective yet
    """
    moment = _as_datetime(when)
    result = await db.execute(
        select(PrimRate)
        .where(PrimRate.effective_date <= moment)
        .order_by(PrimRate.effective_date.desc(), PrimRate.id.desc())
        .limit(1)
    )
    rate = result.scalar_one_or_none()
    if rate is None:
        raise RateUnavailableError(
            f"No commission rate in effect at {moment.isoformat()}",
            {"at": moment.isoformat()},
        )
    return Decimal(rate.rate)


async def get_current_rate(db: AsyncSession) -> PrimRate:
    """Return the active rate row."""
    result = await db.execute(
        select(PrimRate)
        .where(PrimRate.is_active == True)  # noqa: E712
        .order_by(PrimRate.effective_date.desc(), PrimRate.id.desc())
        .limit(1)
    )
    rate = result.scalar_one_or_none()
    if rate is None:
        raise RateUnavailableError("No active commission rate")
    return rate


async def set_rate(
    db: AsyncSession,
    rate: Decimal,
    actor: User,
    effective_date: Optional[datetime] = None,
) -> PrimRate:
    """Record a new rate. The previous active rate stays in history, inactive."""
    rate = Decimal(rate)
    if not (Decimal("0") <= rate <= Decimal("100")):
        raise ValidationError("Commission rate must be between 0 and 100 percent")

    await db.execute(
        update(PrimRate)
        .where(PrimRate.is_active == True)  # noqa: E712
        .values(is_active=False)
    )

    new_rate = PrimRate(
        rate=rate,
        effective_date=_as_datetime(effective_date) if effective_date else datetime.now(timezone.utc),
        is_active=True,
        created_by_user_id=actor.id,
    )
    db.add(new_rate)
    await db.flush()

    logger.info(f"Commission rate set to {rate}% by user {actor.id} (rate_id={new_rate.id})")
    return new_rate


async def list_rates(db: AsyncSession) -> List[PrimRate]:
    """Full rate history, newest first."""
    result = await db.execute(
        select(PrimRate).order_by(PrimRate.effective_date.desc(), PrimRate.id.desc())
    )
    return list(result.scalars().all())
