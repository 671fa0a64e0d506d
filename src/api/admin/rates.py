"""Admin commission rate endpoints."""

from typing import List

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth.dependencies import require_admin
from src.db import get_db
from src.models import AuditAction, User
from src.schemas.ledger import RateCreate, RateResponse
from src.services.rates import list_rates, set_rate
from src.utils.audit import get_client_ip, log_action

router = APIRouter(prefix="/rates")


@router.get("", response_model=List[RateResponse])
async def rate_history(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """Full rate history, newest first."""
    return [RateResponse.model_validate(r) for r in await list_rates(db)]


@router.post("", response_model=RateResponse, status_code=status.HTTP_201_CREATED)
async def create_rate(
    request: Request,
    data: RateCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """Set a new commission rate; earlier rates stay in history."""
    rate = await set_rate(db, data.rate, current_user, effective_date=data.effective_date)

    await log_action(
        db=db,
        user_id=current_user.id,
        action=AuditAction.UPDATE_RATE,
        target_type="prim_rate",
        target_id=rate.id,
        action_metadata={"rate": str(rate.rate), "effective_date": rate.effective_date.isoformat()},
        ip_address=get_client_ip(request),
    )
    await db.commit()

    return RateResponse.model_validate(rate)
