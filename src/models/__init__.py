"""
Database models for the commission ledger.

All models are exported here for convenient imports:
    from src.models import Sale, PrimTransaction, PrimPeriod, etc.
"""

from src.models.audit import AuditAction, AuditLog
from src.models.base import Base, CreatedAtMixin, TimestampMixin
from src.models.ledger import (
    CarryForwardMarker,
    DeductionState,
    PrimTransaction,
    TransactionKind,
)
from src.models.period import PrimPeriod
from src.models.rate import PrimRate
from src.models.sale import PrimStatus, Sale, SaleModification, SaleStatus
from src.models.sale_type import SaleKind, SaleType
from src.models.settings import (
    DUPLICATE_DEDUCTION_RULE,
    SETTING_DEFAULTS,
    TRANSACTIONS_PAGE_SIZE,
    SystemSetting,
)
from src.models.user import User, UserRole

__all__ = [
    # Base
    "Base",
    "CreatedAtMixin",
    "TimestampMixin",
    # User
    "User",
    "UserRole",
    # Sale
    "Sale",
    "SaleModification",
    "SaleStatus",
    "PrimStatus",
    "SaleKind",
    "SaleType",
    # Ledger
    "PrimTransaction",
    "TransactionKind",
    "DeductionState",
    "CarryForwardMarker",
    "PrimPeriod",
    "PrimRate",
    # Settings
    "SystemSetting",
    "SETTING_DEFAULTS",
    "DUPLICATE_DEDUCTION_RULE",
    "TRANSACTIONS_PAGE_SIZE",
    # Audit
    "AuditLog",
    "AuditAction",
]
