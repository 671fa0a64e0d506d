"""Admin runtime settings endpoints."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth.dependencies import require_admin
from src.config import settings as app_settings
from src.db import get_db
from src.models import (
    DUPLICATE_DEDUCTION_RULE,
    SETTING_DEFAULTS,
    TRANSACTIONS_PAGE_SIZE,
    AuditAction,
    SystemSetting,
    User,
)
from src.schemas.settings import SettingsResponse, SettingsUpdate
from src.utils.audit import get_client_ip, log_action

router = APIRouter(prefix="/settings")


@router.get("/data", response_model=SettingsResponse)
async def get_settings(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """Stored settings; missing keys fall back to their defaults."""
    result = await db.execute(select(SystemSetting))
    stored = {s.key: s.get_value() for s in result.scalars().all()}

    return SettingsResponse(
        duplicate_deduction_rule=stored.get(
            DUPLICATE_DEDUCTION_RULE, app_settings.duplicate_deduction_rule
        ),
        transactions_page_size=stored.get(
            TRANSACTIONS_PAGE_SIZE, SETTING_DEFAULTS[TRANSACTIONS_PAGE_SIZE]
        ),
    )


@router.put("/data")
async def update_settings(
    request: Request,
    data: SettingsUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """Change one or more settings; omitted fields keep their value."""
    updated = data.model_dump(exclude_none=True)

    previous = {}
    for key, value in updated.items():
        setting = await db.get(SystemSetting, key)
        if setting:
            previous[key] = setting.get_value()
            setting.set_value(value)
        else:
            previous[key] = None
            db.add(SystemSetting.wrap(key, value))

    await log_action(
        db=db,
        user_id=current_user.id,
        action=AuditAction.UPDATE_SETTINGS,
        target_type="system_setting",
        action_metadata={"updated": updated, "previous": previous},
        ip_address=get_client_ip(request),
    )
    await db.commit()

    return {"success": True, "updated_keys": list(updated)}
