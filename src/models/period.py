"""
PrimPeriod model: the monthly bucket every ledger transaction belongs to.
"""

from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from src.models.base import Base, CreatedAtMixin


class PrimPeriod(Base, CreatedAtMixin):
    """
    Named, non-overlapping commission period (one calendar month).

    Periods are never deleted. Deactivating a period (is_active=False)
    retires it: no transaction may be assigned or reassigned to it.
    """

    __tablename__ = "prim_periods"
    __table_args__ = (
        UniqueConstraint("year", "month", name="uq_prim_periods_year_month"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        comment="Display name, e.g. 'Eylül 2025'",
    )
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )
    created_by_user_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id"),
        nullable=True,
    )

    @property
    def ordinal(self) -> int:
        """Monotonic month index used for 'earlier than' comparisons."""
        return self.year * 12 + (self.month - 1)

    def __repr__(self) -> str:
        return f"<PrimPeriod(id={self.id}, name='{self.name}')>"
