"""
Commission payout status of sales (paid / unpaid).

The status decides which sums a sale's ledger rows fall into; it never
writes ledger rows itself.
"""

import calendar
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.models import PrimStatus, Sale, SaleKind, User
from src.services.errors import AuthorizationError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

PREVIEW_LIMIT = 50


@dataclass
class SaleFilters:
    """Selection of sales for a bulk status change."""

    period_id: Optional[int] = None
    salesperson_id: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    month: Optional[int] = None
    year: Optional[int] = None


@dataclass
class BulkPrimStatusResult:
    total: int
    status: PrimStatus
    sample: List[Sale] = field(default_factory=list)


def _require_admin(actor: User) -> None:
    if not actor.is_admin:
        raise AuthorizationError("Only administrators can change commission payout status")


def _conditions(status: PrimStatus, filters: SaleFilters) -> list:
    conditions = [
        Sale.kind == SaleKind.SALE.value,
        Sale.prim_status != status,
    ]
    if filters.period_id:
        conditions.append(Sale.prim_period_id == filters.period_id)
    if filters.salesperson_id:
        conditions.append(Sale.salesperson_id == filters.salesperson_id)

    if filters.start_date and filters.end_date:
        if filters.start_date > filters.end_date:
            raise ValidationError("start_date must not be after end_date")
        conditions.append(Sale.sale_date.between(filters.start_date, filters.end_date))
    elif filters.month and filters.year:
        if not 1 <= filters.month <= 12:
            raise ValidationError("Month must be between 1 and 12")
        last_day = calendar.monthrange(filters.year, filters.month)[1]
        conditions.append(
            Sale.sale_date.between(
                date(filters.year, filters.month, 1),
                date(filters.year, filters.month, last_day),
            )
        )
    return conditions


async def set_prim_status(
    db: AsyncSession,
    sale_id: int,
    status: PrimStatus,
    actor: User,
) -> Sale:
    """Mark one sale's commission as paid or unpaid."""
    _require_admin(actor)
    sale = await db.get(Sale, sale_id)
    if not sale:
        raise NotFoundError(f"Sale {sale_id} not found", {"sale_id": sale_id})

    if sale.prim_status != status:
        sale.prim_status = status
        sale.prim_status_updated_at = datetime.now(timezone.utc)
        sale.prim_status_updated_by_id = actor.id
        await db.flush()
        logger.info(f"Sale {sale_id} commission marked {status.value} by user {actor.id}")
    return sale


async def bulk_set_prim_status(
    db: AsyncSession,
    status: PrimStatus,
    filters: SaleFilters,
    actor: User,
    preview: bool = False,
) -> BulkPrimStatusResult:
    """Change the payout status of every matching sale.

    With preview=True nothing is written; the result carries the number
    of sales that would change and up to PREVIEW_LIMIT of them.

    Raises:
        NotFoundError: no sale matches the filters
    """
    _require_admin(actor)
    conditions = _conditions(status, filters)

    if preview:
        total = await db.scalar(select(func.count(Sale.id)).where(*conditions))
        if not total:
            raise NotFoundError("No sales match the given filters")
        result = await db.execute(
            select(Sale)
            .where(*conditions)
            .order_by(Sale.sale_date.desc(), Sale.id.desc())
            .limit(PREVIEW_LIMIT)
        )
        return BulkPrimStatusResult(total=total, status=status, sample=list(result.scalars().all()))

    result = await db.execute(
        update(Sale)
        .where(*conditions)
        .values(
            prim_status=status,
            prim_status_updated_at=datetime.now(timezone.utc),
            prim_status_updated_by_id=actor.id,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise NotFoundError("No sales match the given filters")

    logger.info(f"{result.rowcount} sales marked {status.value} by user {actor.id}")
    return BulkPrimStatusResult(total=result.rowcount, status=status)
