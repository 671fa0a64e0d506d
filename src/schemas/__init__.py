"""Pydantic schemas for request/response validation."""

from src.schemas.audit import AuditLogListResponse, AuditLogResponse
from src.schemas.auth import CurrentUserResponse, LoginRequest, LoginResponse
from src.schemas.ledger import (
    CleanupResponse,
    EarningsResponse,
    PeriodCreate,
    PeriodResponse,
    RateCreate,
    RateResponse,
    ReassignPeriodRequest,
    ReassignPeriodResponse,
    TransactionListResponse,
    TransactionResponse,
)
from src.schemas.sale import (
    BulkPrimStatusRequest,
    BulkPrimStatusResponse,
    ModificationResponse,
    PrimStatusUpdate,
    SaleCreate,
    SaleEventResponse,
    SaleModifyRequest,
    SaleResponse,
    SaleTransferRequest,
)
from src.schemas.settings import SettingsResponse, SettingsUpdate

__all__ = [
    # Auth
    "LoginRequest",
    "LoginResponse",
    "CurrentUserResponse",
    # Sale
    "SaleCreate",
    "SaleModifyRequest",
    "SaleTransferRequest",
    "PrimStatusUpdate",
    "BulkPrimStatusRequest",
    "BulkPrimStatusResponse",
    "SaleResponse",
    "SaleEventResponse",
    "ModificationResponse",
    # Ledger
    "TransactionResponse",
    "TransactionListResponse",
    "EarningsResponse",
    "CleanupResponse",
    "ReassignPeriodRequest",
    "ReassignPeriodResponse",
    "RateCreate",
    "RateResponse",
    "PeriodCreate",
    "PeriodResponse",
    # Audit
    "AuditLogResponse",
    "AuditLogListResponse",
    # Settings
    "SettingsResponse",
    "SettingsUpdate",
]
