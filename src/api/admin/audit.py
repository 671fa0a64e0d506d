"""Admin audit trail endpoints."""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.auth.dependencies import require_admin
from src.db import get_db
from src.models import AuditAction, AuditLog, User
from src.schemas.audit import AuditLogListResponse, AuditLogResponse

router = APIRouter(prefix="/audit")


def _to_response(log: AuditLog) -> AuditLogResponse:
    return AuditLogResponse(
        id=log.id,
        user_id=log.user_id,
        username=log.user.username if log.user else "Unknown",
        display_name=log.user.display_name if log.user else "Unknown",
        action=log.action.value,
        target_type=log.target_type,
        target_id=log.target_id,
        metadata=log.action_metadata,
        ip_address=log.ip_address,
        created_at=log.created_at,
    )


@router.get("/list", response_model=AuditLogListResponse)
async def list_audit_logs(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
    user_id: Optional[int] = Query(None),
    action: Optional[AuditAction] = Query(None),
    target_type: Optional[str] = Query(None),
    target_id: Optional[int] = Query(None),
    since: Optional[datetime] = Query(None),
    until: Optional[datetime] = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=100),
):
    """Audit entries, newest first."""
    conditions = []
    if user_id:
        conditions.append(AuditLog.user_id == user_id)
    if action:
        conditions.append(AuditLog.action == action)
    if target_type:
        conditions.append(AuditLog.target_type == target_type)
    if target_id:
        conditions.append(AuditLog.target_id == target_id)
    if since:
        conditions.append(AuditLog.created_at >= since)
    if until:
        conditions.append(AuditLog.created_at < until)

    total = await db.scalar(select(func.count(AuditLog.id)).where(*conditions)) or 0

    result = await db.execute(
        select(AuditLog)
        .options(selectinload(AuditLog.user))
        .where(*conditions)
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )

    return AuditLogListResponse(
        items=[_to_response(log) for log in result.scalars().all()],
        total=total,
        page=page,
        per_page=per_page,
        pages=(total + per_page - 1) // per_page if total else 0,
    )


@router.get("/sales/{sale_id}", response_model=List[AuditLogResponse])
async def sale_audit_trail(
    sale_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """Every recorded command on one sale, oldest first."""
    result = await db.execute(
        select(AuditLog)
        .options(selectinload(AuditLog.user))
        .where(AuditLog.target_type == "sale", AuditLog.target_id == sale_id)
        .order_by(AuditLog.created_at, AuditLog.id)
    )
    return [_to_response(log) for log in result.scalars().all()]


@router.get("/actions")
async def list_audit_actions(
    current_user: User = Depends(require_admin),
):
    """Recorded action kinds."""
    return {"actions": [action.value for action in AuditAction]}
