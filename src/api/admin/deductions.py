"""Admin deduction workflow endpoints."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth.dependencies import require_admin
from src.db import get_db
from src.models import AuditAction, User
from src.schemas.ledger import (
    CarryForwardRequest,
    CarryForwardResponse,
    CleanupRequest,
    CleanupResponse,
    DeductionActionRequest,
    TransactionResponse,
)
from src.services.deductions import (
    DuplicateRule,
    approve_deduction,
    cancel_deduction,
    carry_forward_deductions,
    cleanup_duplicate_deductions,
)
from src.services.periods import get_or_create_period_for_date
from src.utils.audit import get_client_ip, log_action

router = APIRouter(prefix="/deductions")


@router.post("/cleanup-duplicates", response_model=CleanupResponse)
async def cleanup_duplicates(
    request: Request,
    data: CleanupRequest = CleanupRequest(),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """Cancel redundant duplicate deductions."""
    rule = DuplicateRule(data.rule) if data.rule else None
    result = await cleanup_duplicate_deductions(db, current_user, rule=rule)

    await log_action(
        db=db,
        user_id=current_user.id,
        action=AuditAction.CLEANUP_DEDUCTIONS,
        target_type="prim_transaction",
        action_metadata={
            "rule": result.rule.value,
            "count": result.count,
            "total_amount": str(result.total_amount),
            "cancelled_ids": result.cancelled_ids,
        },
        ip_address=get_client_ip(request),
    )
    await db.commit()

    return CleanupResponse(
        rule=result.rule.value,
        count=result.count,
        total_amount=result.total_amount,
        cancelled_ids=result.cancelled_ids,
        skipped_ids=result.skipped_ids,
    )


@router.post("/carry-forward", response_model=CarryForwardResponse)
async def carry_forward(
    request: Request,
    data: CarryForwardRequest = CarryForwardRequest(),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """Re-surface pending deductions of earlier periods in the given (or current) period."""
    period_id = data.period_id
    if period_id is None:
        period = await get_or_create_period_for_date(db, datetime.now(timezone.utc), current_user.id)
        period_id = period.id

    created = await carry_forward_deductions(db, period_id)

    await log_action(
        db=db,
        user_id=current_user.id,
        action=AuditAction.CARRY_FORWARD,
        target_type="prim_period",
        target_id=period_id,
        action_metadata={"created": created},
        ip_address=get_client_ip(request),
    )
    await db.commit()

    return CarryForwardResponse(period_id=period_id, created=created)


@router.post("/{deduction_id}/approve", response_model=TransactionResponse)
async def approve(
    request: Request,
    deduction_id: int,
    data: DeductionActionRequest = DeductionActionRequest(),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """Approve a pending deduction."""
    deduction = await approve_deduction(db, deduction_id, current_user, note=data.note)

    await log_action(
        db=db,
        user_id=current_user.id,
        action=AuditAction.APPROVE_DEDUCTION,
        target_type="prim_transaction",
        target_id=deduction_id,
        action_metadata={"amount": str(deduction.amount), "note": data.note},
        ip_address=get_client_ip(request),
    )
    await db.commit()

    return TransactionResponse.model_validate(deduction)


@router.post("/{deduction_id}/cancel", response_model=TransactionResponse)
async def cancel(
    request: Request,
    deduction_id: int,
    data: DeductionActionRequest = DeductionActionRequest(),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """Cancel a pending deduction."""
    deduction = await cancel_deduction(db, deduction_id, current_user, note=data.note)

    await log_action(
        db=db,
        user_id=current_user.id,
        action=AuditAction.CANCEL_DEDUCTION,
        target_type="prim_transaction",
        target_id=deduction_id,
        action_metadata={"amount": str(deduction.amount), "note": data.note},
        ip_address=get_client_ip(request),
    )
    await db.commit()

    return TransactionResponse.model_validate(deduction)
