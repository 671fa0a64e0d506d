"""
AuditLog model for tracking administrative and ledger actions.
"""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, ForeignKey, Integer, JSON, String, func
from sqlalchemy import Enum as SQLAlchemyEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models.base import Base, utcnow

if TYPE_CHECKING:
    from src.models.user import User


class AuditAction(str, Enum):
    """Types of auditable actions."""
    LOGIN = "login"
    LOGOUT = "logout"
    CREATE_SALE = "create_sale"
    MODIFY_SALE = "modify_sale"
    CANCEL_SALE = "cancel_sale"
    RESTORE_SALE = "restore_sale"
    TRANSFER_SALE = "transfer_sale"
    CONVERT_SALE = "convert_sale"
    UPDATE_PRIM_STATUS = "update_prim_status"
    BULK_PRIM_STATUS = "bulk_prim_status"
    APPROVE_DEDUCTION = "approve_deduction"
    CANCEL_DEDUCTION = "cancel_deduction"
    CLEANUP_DEDUCTIONS = "cleanup_deductions"
    CARRY_FORWARD = "carry_forward"
    REASSIGN_PERIOD = "reassign_period"
    CREATE_PERIOD = "create_period"
    UPDATE_RATE = "update_rate"
    UPDATE_SETTINGS = "update_settings"


class AuditLog(Base):
    """
    Audit log of who changed what.

    Every command that writes to the ledger or resolves a deduction is
    recorded here with its actor.
    """

    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )
    action: Mapped[AuditAction] = mapped_column(
        SQLAlchemyEnum(
            AuditAction,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
        index=True,
    )
    target_type: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
        comment="Type of entity affected (sale, transaction, period, rate)",
    )
    target_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="ID of the affected entity",
    )
    action_metadata: Mapped[Optional[dict]] = mapped_column(
        JSON,
        nullable=True,
        comment="Additional context about the action",
    )
    ip_address: Mapped[Optional[str]] = mapped_column(
        String(45),
        nullable=True,
        comment="IPv4 or IPv6 address",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
        index=True,
    )

    # Relationships
    user: Mapped["User"] = relationship(
        "User",
        back_populates="audit_logs",
    )

    def __repr__(self) -> str:
        return f"<AuditLog(id={self.id}, user_id={self.user_id}, action={self.action})>"
