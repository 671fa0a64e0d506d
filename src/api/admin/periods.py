"""Admin commission period endpoints."""

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth.dependencies import require_admin
from src.db import get_db
from src.models import AuditAction, User
from src.schemas.ledger import PeriodCreate, PeriodResponse
from src.services.periods import create_period
from src.utils.audit import get_client_ip, log_action

router = APIRouter(prefix="/periods")


@router.post("", response_model=PeriodResponse, status_code=status.HTTP_201_CREATED)
async def add_period(
    request: Request,
    data: PeriodCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """Create a monthly period ahead of its first sale."""
    period = await create_period(db, data.year, data.month, current_user, name=data.name)

    await log_action(
        db=db,
        user_id=current_user.id,
        action=AuditAction.CREATE_PERIOD,
        target_type="prim_period",
        target_id=period.id,
        action_metadata={"name": period.name},
        ip_address=get_client_ip(request),
    )
    await db.commit()

    return PeriodResponse.model_validate(period)
