"""
Commission read API.

Salespeople only ever see their own rows; administrators may filter by
any salesperson.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth.dependencies import get_current_user, scope_salesperson
from src.db import get_db
from src.models import SETTING_DEFAULTS, TRANSACTIONS_PAGE_SIZE, DeductionState, TransactionKind, User
from src.schemas.ledger import (
    EarningsResponse,
    PeriodResponse,
    RateResponse,
    TransactionListResponse,
    TransactionResponse,
)
from src.services.deductions import get_setting, list_deductions
from src.services.earnings import aggregate_earnings, list_transactions
from src.services.periods import list_periods
from src.services.rates import get_current_rate

router = APIRouter(prefix="/prims", tags=["Commission"])


@router.get("/earnings", response_model=List[EarningsResponse])
async def get_earnings(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    period_id: Optional[int] = Query(None),
    salesperson_id: Optional[int] = Query(None),
):
    """Earnings per salesperson and period."""
    views = await aggregate_earnings(
        db,
        salesperson_id=scope_salesperson(current_user, salesperson_id),
        period_id=period_id,
    )
    return [EarningsResponse.model_validate(v) for v in views]


@router.get("/transactions", response_model=TransactionListResponse)
async def get_transactions(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    period_id: Optional[int] = Query(None),
    kind: Optional[TransactionKind] = Query(None),
    salesperson_id: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    per_page: Optional[int] = Query(None, ge=1, le=500),
):
    """Ledger transactions, newest first."""
    if per_page is None:
        per_page = int(
            await get_setting(db, TRANSACTIONS_PAGE_SIZE, SETTING_DEFAULTS[TRANSACTIONS_PAGE_SIZE])
        )

    items, total = await list_transactions(
        db,
        salesperson_id=scope_salesperson(current_user, salesperson_id),
        period_id=period_id,
        kind=kind,
        page=page,
        per_page=per_page,
    )
    return TransactionListResponse(
        items=[TransactionResponse.model_validate(t) for t in items],
        total=total,
        page=page,
        per_page=per_page,
        pages=(total + per_page - 1) // per_page if total else 0,
    )


@router.get("/deductions", response_model=List[TransactionResponse])
async def get_deductions(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    period_id: Optional[int] = Query(None),
    salesperson_id: Optional[int] = Query(None),
    state: Optional[DeductionState] = Query(None),
):
    """Deduction rows only."""
    deductions = await list_deductions(
        db,
        salesperson_id=scope_salesperson(current_user, salesperson_id),
        period_id=period_id,
        state=state,
    )
    return [TransactionResponse.model_validate(d) for d in deductions]


@router.get("/rate", response_model=RateResponse)
async def get_rate(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Currently active commission rate."""
    return RateResponse.model_validate(await get_current_rate(db))


@router.get("/periods", response_model=List[PeriodResponse])
async def get_periods(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    include_inactive: bool = Query(False),
):
    """Commission periods, newest first."""
    periods = await list_periods(db, include_inactive=include_inactive)
    return [PeriodResponse.model_validate(p) for p in periods]
