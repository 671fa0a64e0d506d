"""
Commission ledger models.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy import Enum as SQLAlchemyEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models.base import Base, CreatedAtMixin

if TYPE_CHECKING:
    from src.models.period import PrimPeriod
    from src.models.sale import Sale
    from src.models.user import User


class TransactionKind(str, Enum):
    """Kind of ledger transaction."""
    EARN = "earn"                  # kazanç
    DEDUCTION = "deduction"        # kesinti
    TRANSFER_IN = "transfer_in"    # transfer_gelen
    TRANSFER_OUT = "transfer_out"  # transfer_giden


class DeductionState(str, Enum):
    """Two-phase deduction workflow. approved and cancelled are terminal."""
    PENDING = "pending"
    APPROVED = "approved"
    CANCELLED = "cancelled"


class PrimTransaction(Base, CreatedAtMixin):
    """
    One signed, immutable entry of the commission ledger.

    RULES:
    - amount is written once and never updated; corrections are new rows
    - only period_id (administrative reassignment) and the deduction
      resolution fields may change after insert
    - deduction rows reduce earnings only once deduction_state is approved
    """

    __tablename__ = "prim_transactions"
    __table_args__ = (
        Index("ix_prim_transactions_salesperson_period", "salesperson_id", "period_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    salesperson_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
    )
    period_id: Mapped[int] = mapped_column(
        ForeignKey("prim_periods.id"),
        nullable=False,
        index=True,
    )
    sale_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("sales.id"),
        nullable=True,
        index=True,
    )
    related_transaction_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("prim_transactions.id"),
        nullable=True,
        comment="Paired transfer row, or the deduction a restore compensates",
    )
    kind: Mapped[TransactionKind] = mapped_column(
        SQLAlchemyEnum(
            TransactionKind,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
        index=True,
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        nullable=False,
    )
    description: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
    )

    # Deduction workflow
    deduction_state: Mapped[Optional[DeductionState]] = mapped_column(
        SQLAlchemyEnum(
            DeductionState,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=True,
        index=True,
    )
    carried_forward: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        comment="Re-surfaced in a later period while still pending",
    )
    resolved_by_user_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id"),
        nullable=True,
    )
    resolved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    resolution_note: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )

    created_by_user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
    )

    # Relationships
    salesperson: Mapped["User"] = relationship("User", foreign_keys=[salesperson_id])
    period: Mapped["PrimPeriod"] = relationship("PrimPeriod")
    sale: Mapped[Optional["Sale"]] = relationship("Sale", foreign_keys=[sale_id])

    @property
    def is_live_deduction(self) -> bool:
        return self.kind == TransactionKind.DEDUCTION and self.deduction_state in (
            DeductionState.PENDING,
            DeductionState.APPROVED,
        )

    def __repr__(self) -> str:
        return (
            f"<PrimTransaction(id={self.id}, kind={self.kind}, "
            f"amount={self.amount}, salesperson_id={self.salesperson_id})>"
        )


class CarryForwardMarker(Base, CreatedAtMixin):
    """
    Reference that re-surfaces a pending deduction in a later period.

    The deduction row itself never moves or gets copied; one marker per
    (deduction, period) pair is allowed.
    """

    __tablename__ = "carry_forward_markers"
    __table_args__ = (
        UniqueConstraint("deduction_id", "period_id", name="uq_carry_forward_deduction_period"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    deduction_id: Mapped[int] = mapped_column(
        ForeignKey("prim_transactions.id"),
        nullable=False,
        index=True,
    )
    period_id: Mapped[int] = mapped_column(
        ForeignKey("prim_periods.id"),
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<CarryForwardMarker(deduction_id={self.deduction_id}, period_id={self.period_id})>"
