"""Admin ledger transaction endpoints."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth.dependencies import require_admin
from src.db import get_db
from src.models import AuditAction, User
from src.schemas.ledger import ReassignPeriodRequest, ReassignPeriodResponse
from src.services.periods import reassign_transaction_period
from src.utils.audit import get_client_ip, log_action

router = APIRouter(prefix="/transactions")


@router.put("/{transaction_id}/period", response_model=ReassignPeriodResponse)
async def reassign_period(
    request: Request,
    transaction_id: int,
    data: ReassignPeriodRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """Move one transaction to another period."""
    result = await reassign_transaction_period(db, transaction_id, data.period_id, current_user)

    if result.changed:
        await log_action(
            db=db,
            user_id=current_user.id,
            action=AuditAction.REASSIGN_PERIOD,
            target_type="prim_transaction",
            target_id=transaction_id,
            action_metadata={
                "old_period_id": result.old_period_id,
                "new_period_id": result.new_period_id,
            },
            ip_address=get_client_ip(request),
        )
        await db.commit()

    return ReassignPeriodResponse(
        transaction_id=result.transaction_id,
        old_period_id=result.old_period_id,
        new_period_id=result.new_period_id,
        changed=result.changed,
        message=result.message,
    )
