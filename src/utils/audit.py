"""
Audit trail helpers.

Every state-changing ledger command is recorded with its actor, in the
same unit of work as the change itself: the entry is only persisted if
the command commits.
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from src.models.audit import AuditAction, AuditLog

logger = logging.getLogger(__name__)


def _jsonable(value: Any) -> Any:
    """Money stays exact: Decimals are stored as strings, never floats."""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_jsonable(v) for v in value]
    return value


async def log_action(
    db: AsyncSession,
    user_id: int,
    action: AuditAction,
    target_type: Optional[str] = None,
    target_id: Optional[int] = None,
    action_metadata: Optional[dict[str, Any]] = None,
    ip_address: Optional[str] = None,
) -> AuditLog:
    """
    Add an audit entry to the session.

    Args:
        user_id: Actor
        target_type: "sale", "prim_transaction", "prim_period", "prim_rate", ...
        action_metadata: Extra context; Decimal, enum and date values are
            converted to JSON-safe form
    """
    entry = AuditLog(
        user_id=user_id,
        action=action,
        target_type=target_type,
        target_id=target_id,
        action_metadata=_jsonable(action_metadata) if action_metadata else None,
        ip_address=ip_address,
    )
    db.add(entry)
    logger.debug(f"Audit {action.value} by user {user_id} on {target_type}:{target_id}")
    return entry


def get_client_ip(request) -> Optional[str]:
    """Client address, honouring the first X-Forwarded-For hop behind a proxy."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    client = getattr(request, "client", None)
    return client.host if client else None
