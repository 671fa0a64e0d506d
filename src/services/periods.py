"""
Commission periods and administrative period reassignment.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional, Union

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.models import PrimPeriod, PrimTransaction, User
from src.services.errors import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

MONTH_NAMES = [
    "Ocak", "Şubat", "Mart", "Nisan", "Mayıs", "Haziran",
    "Temmuz", "Ağustos", "Eylül", "Ekim", "Kasım", "Aralık",
]


def period_name(year: int, month: int) -> str:
    """Display name of a monthly period, e.g. 'Eylül 2025'."""
    return f"{MONTH_NAMES[month - 1]} {year}"


@dataclass(frozen=True)
class ReassignResult:
    """Outcome of a period reassignment."""

    transaction_id: int
    old_period_id: int
    new_period_id: int
    changed: bool

    @property
    def message(self) -> str:
        if not self.changed:
            return "No change: transaction already belongs to this period"
        return f"Transaction moved from period {self.old_period_id} to {self.new_period_id}"


async def get_period(db: AsyncSession, period_id: int) -> PrimPeriod:
    period = await db.get(PrimPeriod, period_id)
    if not period:
        raise NotFoundError(f"Period {period_id} not found", {"period_id": period_id})
    return period


async def get_active_period(db: AsyncSession, period_id: int) -> PrimPeriod:
    """Period that new or moved transactions may reference."""
    period = await get_period(db, period_id)
    if not period.is_active:
        raise ConflictError(
            f"Period '{period.name}' is retired and cannot receive transactions",
            {"period_id": period_id},
        )
    return period


async def _find_period(db: AsyncSession, year: int, month: int) -> Optional[PrimPeriod]:
    result = await db.execute(
        select(PrimPeriod).where(PrimPeriod.year == year, PrimPeriod.month == month)
    )
    return result.scalar_one_or_none()


async def get_or_create_period_for_date(
    db: AsyncSession,
    when: Union[date, datetime],
    actor_id: Optional[int] = None,
) -> PrimPeriod:
    """Return the monthly period containing `when`, creating it if needed.

    The insert runs in a savepoint: when a concurrent request created the
    same (year, month) first, the unique constraint fires, only the
    savepoint is rolled back and the winner's row is returned.
    """
    period = await _find_period(db, when.year, when.month)
    if period:
        return period

    period = PrimPeriod(
        name=period_name(when.year, when.month),
        month=when.month,
        year=when.year,
        is_active=True,
        created_by_user_id=actor_id,
    )
    try:
        async with db.begin_nested():
            db.add(period)
    except IntegrityError:
        existing = await _find_period(db, when.year, when.month)
        if existing is None:
            raise
        logger.info(f"Period {existing.name} was created concurrently; using id={existing.id}")
        return existing

    logger.info(f"Created commission period {period.name} (id={period.id})")
    return period


async def create_period(
    db: AsyncSession,
    year: int,
    month: int,
    actor: User,
    name: Optional[str] = None,
) -> PrimPeriod:
    """Create a period explicitly (administrator)."""
    if not 1 <= month <= 12:
        raise ValidationError("Month must be between 1 and 12")

    existing = await db.execute(
        select(PrimPeriod).where(PrimPeriod.year == year, PrimPeriod.month == month)
    )
    if existing.scalar_one_or_none():
        raise ConflictError(f"Period for {month:02d}/{year} already exists")

    period = PrimPeriod(
        name=name or period_name(year, month),
        month=month,
        year=year,
        is_active=True,
        created_by_user_id=actor.id,
    )
    db.add(period)
    await db.flush()
    return period


async def list_periods(db: AsyncSession, include_inactive: bool = False) -> List[PrimPeriod]:
    """Periods, newest first."""
    query = select(PrimPeriod)
    if not include_inactive:
        query = query.where(PrimPeriod.is_active == True)  # noqa: E712
    query = query.order_by(PrimPeriod.year.desc(), PrimPeriod.month.desc())
    result = await db.execute(query)
    return list(result.scalars().all())


async def reassign_transaction_period(
    db: AsyncSession,
    transaction_id: int,
    new_period_id: int,
    actor: User,
) -> ReassignResult:
    """Move one ledger transaction to another period.

    Only period_id changes; amount, kind and deduction state are untouched.
    The move is a single UPDATE guarded on the old period, so a concurrent
    reader sees the row in exactly one period and a concurrent reassignment
    of the same row loses with a conflict instead of being overwritten.
    """
    transaction = await db.get(PrimTransaction, transaction_id)
    if not transaction:
        raise NotFoundError(
            f"Transaction {transaction_id} not found",
            {"transaction_id": transaction_id},
        )

    old_period_id = transaction.period_id
    if old_period_id == new_period_id:
        await get_period(db, new_period_id)
        return ReassignResult(transaction_id, old_period_id, new_period_id, changed=False)

    await get_active_period(db, new_period_id)

    result = await db.execute(
        update(PrimTransaction)
        .where(
            PrimTransaction.id == transaction_id,
            PrimTransaction.period_id == old_period_id,
        )
        .values(period_id=new_period_id)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConflictError(
            f"Transaction {transaction_id} was moved concurrently",
            {"transaction_id": transaction_id},
        )

    await db.refresh(transaction)
    logger.info(
        f"Transaction {transaction_id} reassigned from period {old_period_id} "
        f"to {new_period_id} by user {actor.id}"
    )
    return ReassignResult(transaction_id, old_period_id, new_period_id, changed=True)
