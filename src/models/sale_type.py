"""
Sale kinds: two fixed kinds plus an administrator-defined table.
"""

from enum import Enum
from typing import List

from sqlalchemy import JSON, Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from src.models.base import Base, TimestampMixin


class SaleKind(str, Enum):
    """Kinds with fixed commission semantics."""
    SALE = "sale"        # always generates commission
    DEPOSIT = "deposit"  # kapora, never generates commission


class SaleType(Base, TimestampMixin):
    """
    Administrator-defined sale kind.

    Looked up by `key`; the fixed SaleKind values never have a row here.
    """

    __tablename__ = "sale_types"

    id: Mapped[int] = mapped_column(primary_key=True)
    key: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        index=True,
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str] = mapped_column(String(200), default="", nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    generates_commission: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )
    required_fields: Mapped[List[str]] = mapped_column(
        JSON,
        default=list,
        nullable=False,
        comment="Sale fields that must be present for this kind",
    )
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    def __repr__(self) -> str:
        return f"<SaleType(key='{self.key}', commission={self.generates_commission})>"
