"""
Sale record and its modification history.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import JSON, Date, DateTime, ForeignKey, Numeric, String, Text
from sqlalchemy import Enum as SQLAlchemyEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models.base import Base, CreatedAtMixin, TimestampMixin

if TYPE_CHECKING:
    from src.models.ledger import PrimTransaction
    from src.models.period import PrimPeriod
    from src.models.user import User


class SaleStatus(str, Enum):
    """Lifecycle status of the sale."""
    ACTIVE = "active"
    CANCELLED = "cancelled"


class PrimStatus(str, Enum):
    """Whether the sale's commission has been paid out."""
    PAID = "paid"
    UNPAID = "unpaid"


class Sale(Base, TimestampMixin):
    """
    A commissionable (or non-commissionable) sale.

    Price fields hold the current snapshot. prim_rate, base_prim_price and
    prim_amount record how the current commission was priced; prim_rate is
    fixed at creation so later recomputation reproduces historical amounts.
    """

    __tablename__ = "sales"

    id: Mapped[int] = mapped_column(primary_key=True)
    contract_no: Mapped[Optional[str]] = mapped_column(
        String(100),
        unique=True,
        nullable=True,
    )
    kind: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        index=True,
        comment="SaleKind value or SaleType.key",
    )
    customer_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    sale_date: Mapped[date] = mapped_column(Date, nullable=False)

    # Pricing snapshot
    list_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    discount_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2), nullable=True)
    discounted_list_price: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(14, 2),
        nullable=True,
    )
    activity_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)

    # Commission
    prim_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(6, 3), nullable=True)
    base_prim_price: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        default=Decimal("0"),
        nullable=False,
    )
    prim_amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        default=Decimal("0"),
        nullable=False,
    )

    # Status
    status: Mapped[SaleStatus] = mapped_column(
        SQLAlchemyEnum(
            SaleStatus,
            values_callable=lambda x: [e.value for e in x],
        ),
        default=SaleStatus.ACTIVE,
        nullable=False,
        index=True,
    )
    prim_status: Mapped[PrimStatus] = mapped_column(
        SQLAlchemyEnum(
            PrimStatus,
            values_callable=lambda x: [e.value for e in x],
        ),
        default=PrimStatus.UNPAID,
        nullable=False,
        index=True,
    )
    prim_status_updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    prim_status_updated_by_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id"),
        nullable=True,
    )

    # Ownership
    salesperson_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )
    prim_period_id: Mapped[int] = mapped_column(
        ForeignKey("prim_periods.id"),
        nullable=False,
        index=True,
    )

    # Cancellation
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    cancelled_by_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id"),
        nullable=True,
    )
    cancellation_transaction_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("prim_transactions.id", use_alter=True),
        nullable=True,
        comment="Deduction written when a paid sale was cancelled",
    )

    # Transfer
    transferred_from_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id"),
        nullable=True,
    )
    transferred_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    transferred_by_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id"),
        nullable=True,
    )

    # Relationships
    salesperson: Mapped["User"] = relationship(
        "User",
        back_populates="sales",
        foreign_keys=[salesperson_id],
    )
    prim_period: Mapped["PrimPeriod"] = relationship("PrimPeriod")
    modifications: Mapped[List["SaleModification"]] = relationship(
        "SaleModification",
        back_populates="sale",
        order_by="SaleModification.id",
    )
    cancellation_transaction: Mapped[Optional["PrimTransaction"]] = relationship(
        "PrimTransaction",
        foreign_keys=[cancellation_transaction_id],
        post_update=True,
    )

    @property
    def is_cancelled(self) -> bool:
        return self.status == SaleStatus.CANCELLED

    def __repr__(self) -> str:
        return f"<Sale(id={self.id}, contract_no='{self.contract_no}', status={self.status})>"


class SaleModification(Base, CreatedAtMixin):
    """
    Append-only price modification history entry.

    commission_delta always equals new_commission - previous_commission;
    when it is non-zero the ledger row carrying the same signed amount is
    linked through linked_transaction_id.
    """

    __tablename__ = "sale_modifications"

    id: Mapped[int] = mapped_column(primary_key=True)
    sale_id: Mapped[int] = mapped_column(
        ForeignKey("sales.id"),
        nullable=False,
        index=True,
    )
    previous_snapshot: Mapped[dict] = mapped_column(JSON, nullable=False)
    new_snapshot: Mapped[dict] = mapped_column(JSON, nullable=False)
    previous_commission: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    new_commission: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    commission_delta: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    actor_user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
    )
    linked_transaction_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("prim_transactions.id"),
        nullable=True,
    )

    # Relationships
    sale: Mapped["Sale"] = relationship("Sale", back_populates="modifications")
    actor: Mapped["User"] = relationship("User")

    def __repr__(self) -> str:
        return f"<SaleModification(id={self.id}, sale_id={self.sale_id}, delta={self.commission_delta})>"
