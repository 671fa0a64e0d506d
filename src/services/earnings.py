"""
Earnings aggregation (read path).

Replays ledger rows plus the current payout status of their sales into one
EarningsView per (salesperson, period). Never writes.

Each query reads the ledger with a single SELECT, so a row moved by a
concurrent period reassignment is seen in exactly one period.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.models import (
    DeductionState,
    PrimPeriod,
    PrimStatus,
    PrimTransaction,
    Sale,
    SaleStatus,
    TransactionKind,
    User,
)
from src.services.commission import quantize_money
from src.services.periods import get_period

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")

PAYABLE_KINDS = (
    TransactionKind.EARN,
    TransactionKind.TRANSFER_IN,
    TransactionKind.TRANSFER_OUT,
)


@dataclass
class EarningsView:
    """Earnings of one salesperson in one period. Deduction totals are magnitudes."""

    salesperson_id: int
    salesperson_name: str
    period_id: int
    period_name: str
    period_ordinal: int
    paid_amount: Decimal = ZERO
    unpaid_amount: Decimal = ZERO
    approved_deductions_total: Decimal = ZERO
    pending_deductions_total: Decimal = ZERO
    carried_forward_deductions_total: Decimal = ZERO
    earn_count: int = 0
    deduction_count: int = 0
    transfer_in_count: int = 0
    transfer_out_count: int = 0

    @property
    def net_unpaid(self) -> Decimal:
        return quantize_money(self.unpaid_amount - self.approved_deductions_total)

    @property
    def transaction_count(self) -> int:
        return self.earn_count + self.deduction_count + self.transfer_in_count + self.transfer_out_count


def _count_kind(view: EarningsView, kind: TransactionKind) -> None:
    if kind == TransactionKind.EARN:
        view.earn_count += 1
    elif kind == TransactionKind.DEDUCTION:
        view.deduction_count += 1
    elif kind == TransactionKind.TRANSFER_IN:
        view.transfer_in_count += 1
    else:
        view.transfer_out_count += 1


def build_earnings_views(rows: Iterable, period=None) -> List[EarningsView]:
    """Reduce ledger rows into earnings views.

    Each row needs: salesperson_id, salesperson_name, period_id, period_name,
    period_ordinal, kind, amount, deduction_state, related_transaction_id,
    sale_status, prim_status.

    Payout status comes from the sale, except for restore compensations
    (earn rows linked to the deduction they reverse): those are always
    unpaid. Paid rows stay paid after the sale is cancelled; unpaid rows of
    a cancelled sale are no longer payable.

    With `period` (anything with id, name and ordinal) set, only that period
    gets views; rows of earlier periods contribute their pending deductions
    to its carried-forward total.
    """
    views: Dict[Tuple[int, int], EarningsView] = {}
    pending_by_salesperson: Dict[int, List[Tuple[int, Decimal]]] = defaultdict(list)
    names: Dict[int, str] = {}

    for row in rows:
        names[row.salesperson_id] = row.salesperson_name
        kind = TransactionKind(row.kind)
        amount = Decimal(row.amount)
        state = DeductionState(row.deduction_state) if row.deduction_state else None

        if kind == TransactionKind.DEDUCTION and state == DeductionState.PENDING:
            pending_by_salesperson[row.salesperson_id].append((row.period_ordinal, -amount))

        if period is not None and row.period_id != period.id:
            continue

        key = (row.salesperson_id, row.period_id)
        view = views.get(key)
        if view is None:
            view = views[key] = EarningsView(
                salesperson_id=row.salesperson_id,
                salesperson_name=row.salesperson_name,
                period_id=row.period_id,
                period_name=row.period_name,
                period_ordinal=row.period_ordinal,
            )
        _count_kind(view, kind)

        if kind in PAYABLE_KINDS:
            compensation = kind == TransactionKind.EARN and row.related_transaction_id is not None
            if row.prim_status == PrimStatus.PAID and not compensation:
                view.paid_amount += amount
            elif row.sale_status != SaleStatus.CANCELLED:
                view.unpaid_amount += amount
        elif state == DeductionState.APPROVED:
            view.approved_deductions_total += -amount
        elif state == DeductionState.PENDING:
            view.pending_deductions_total += -amount

    if period is not None:
        for salesperson_id, pending in pending_by_salesperson.items():
            if (salesperson_id, period.id) in views:
                continue
            if any(ordinal < period.ordinal for ordinal, _ in pending):
                views[(salesperson_id, period.id)] = EarningsView(
                    salesperson_id=salesperson_id,
                    salesperson_name=names[salesperson_id],
                    period_id=period.id,
                    period_name=period.name,
                    period_ordinal=period.ordinal,
                )

    for view in views.values():
        carried = sum(
            (
                magnitude
                for ordinal, magnitude in pending_by_salesperson.get(view.salesperson_id, [])
                if ordinal < view.period_ordinal
            ),
            ZERO,
        )
        view.carried_forward_deductions_total = quantize_money(carried)
        view.paid_amount = quantize_money(view.paid_amount)
        view.unpaid_amount = quantize_money(view.unpaid_amount)
        view.approved_deductions_total = quantize_money(view.approved_deductions_total)
        view.pending_deductions_total = quantize_money(view.pending_deductions_total)

    return sorted(
        views.values(),
        key=lambda v: (-v.period_ordinal, v.salesperson_name, v.salesperson_id),
    )


async def aggregate_earnings(
    db: AsyncSession,
    salesperson_id: Optional[int] = None,
    period_id: Optional[int] = None,
) -> List[EarningsView]:
    """Earnings views, optionally filtered by salesperson and/or period."""
    ordinal = PrimPeriod.year * 12 + PrimPeriod.month - 1
    query = (
        select(
            PrimTransaction.salesperson_id,
            User.display_name.label("salesperson_name"),
            PrimTransaction.period_id,
            PrimPeriod.name.label("period_name"),
            ordinal.label("period_ordinal"),
            PrimTransaction.kind,
            PrimTransaction.amount,
            PrimTransaction.deduction_state,
            PrimTransaction.related_transaction_id,
            Sale.status.label("sale_status"),
            Sale.prim_status,
        )
        .join(PrimPeriod, PrimTransaction.period_id == PrimPeriod.id)
        .join(User, PrimTransaction.salesperson_id == User.id)
        .outerjoin(Sale, PrimTransaction.sale_id == Sale.id)
    )

    if salesperson_id is not None:
        query = query.where(PrimTransaction.salesperson_id == salesperson_id)

    period = None
    if period_id is not None:
        period = await get_period(db, period_id)
        query = query.where(
            or_(
                PrimTransaction.period_id == period.id,
                and_(
                    PrimTransaction.kind == TransactionKind.DEDUCTION,
                    PrimTransaction.deduction_state == DeductionState.PENDING,
                    ordinal < period.ordinal,
                ),
            )
        )

    result = await db.execute(query.order_by(PrimTransaction.id))
    return build_earnings_views(result.all(), period)


async def list_transactions(
    db: AsyncSession,
    salesperson_id: Optional[int] = None,
    period_id: Optional[int] = None,
    kind: Optional[TransactionKind] = None,
    page: int = 1,
    per_page: int = 50,
) -> Tuple[List[PrimTransaction], int]:
    """One page of ledger rows, newest first, and the total row count."""
    query = select(PrimTransaction)
    if salesperson_id is not None:
        query = query.where(PrimTransaction.salesperson_id == salesperson_id)
    if period_id is not None:
        query = query.where(PrimTransaction.period_id == period_id)
    if kind is not None:
        query = query.where(PrimTransaction.kind == kind)

    total = await db.scalar(select(func.count()).select_from(query.subquery()))

    query = query.order_by(PrimTransaction.created_at.desc(), PrimTransaction.id.desc())
    query = query.offset((page - 1) * per_page).limit(per_page)
    result = await db.execute(query)
    return list(result.scalars().all()), total or 0
