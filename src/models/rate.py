"""
PrimRate model: commission rate history keyed by effective date.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Numeric, func
from sqlalchemy.orm import Mapped, mapped_column

from src.models.base import Base, CreatedAtMixin


class PrimRate(Base, CreatedAtMixin):
    """
    Commission rate as a percentage (1 = 1%).

    Rows are never edited; a new rate is a new row. The rate applied to an
    event is the latest row whose effective_date is not after the event.
    """

    __tablename__ = "prim_rates"

    id: Mapped[int] = mapped_column(primary_key=True)
    rate: Mapped[Decimal] = mapped_column(
        Numeric(6, 3),
        nullable=False,
    )
    effective_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
        comment="Marks the rate currently shown as active",
    )
    created_by_user_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id"),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<PrimRate(id={self.id}, rate={self.rate}, effective={self.effective_date})>"
