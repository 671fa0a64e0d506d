"""Sale schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator

from src.models.sale import PrimStatus, SaleStatus


def reject_float(value: Any) -> Any:
    """Money must arrive as a string or integer, never a binary float."""
    if isinstance(value, float):
        raise ValueError("amounts must be sent as decimal strings, not floats")
    return value


class PriceFields(BaseModel):
    """Candidate prices of a sale."""

    list_price: Optional[Decimal] = Field(None, ge=0, max_digits=14, decimal_places=2)
    discount_rate: Optional[Decimal] = Field(None, ge=0, le=100, max_digits=5, decimal_places=2)
    discounted_list_price: Optional[Decimal] = Field(None, ge=0, max_digits=14, decimal_places=2)
    activity_price: Optional[Decimal] = Field(None, ge=0, max_digits=14, decimal_places=2)

    @field_validator(
        "list_price",
        "discount_rate",
        "discounted_list_price",
        "activity_price",
        mode="before",
    )
    @classmethod
    def no_floats(cls, v: Any) -> Any:
        return reject_float(v)


class SaleCreate(PriceFields):
    """Record a new sale."""

    kind: str = Field(default="sale", min_length=1, max_length=50)
    contract_no: Optional[str] = Field(None, max_length=100)
    customer_name: Optional[str] = Field(None, max_length=200)
    sale_date: Optional[date] = None
    salesperson_id: Optional[int] = None  # defaults to the caller
    period_id: Optional[int] = None  # defaults to the sale date's month


class SaleModifyRequest(PriceFields):
    """New price snapshot for an active sale."""

    list_price: Decimal = Field(..., ge=0, max_digits=14, decimal_places=2)
    reason: str = Field(..., max_length=2000)


class SaleCancelRequest(BaseModel):
    """Optional period the cancellation deduction is booked in."""

    period_id: Optional[int] = None


class SaleConvertRequest(BaseModel):
    """Convert a deposit into a sale."""

    sale_date: date
    contract_no: Optional[str] = Field(None, max_length=100)  # keeps the deposit's when omitted
    period_id: Optional[int] = None  # defaults to the sale date's month


class SaleTransferRequest(BaseModel):
    """Transfer a sale to another salesperson."""

    to_salesperson_id: int
    reason: Optional[str] = Field(None, max_length=1000)


class PrimStatusUpdate(BaseModel):
    """Mark a sale's commission as paid or unpaid."""

    prim_status: PrimStatus


class SaleFilterRequest(BaseModel):
    """Filters of a bulk payout status change."""

    period_id: Optional[int] = None
    salesperson_id: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    month: Optional[int] = Field(None, ge=1, le=12)
    year: Optional[int] = Field(None, ge=2000, le=2100)


class BulkPrimStatusRequest(BaseModel):
    """Bulk payout status change."""

    prim_status: PrimStatus
    filters: SaleFilterRequest = Field(default_factory=SaleFilterRequest)


class SaleResponse(BaseModel):
    """Sale with its commission fields."""

    id: int
    contract_no: Optional[str]
    kind: str
    customer_name: Optional[str]
    sale_date: date
    list_price: Decimal
    discount_rate: Optional[Decimal]
    discounted_list_price: Optional[Decimal]
    activity_price: Optional[Decimal]
    prim_rate: Optional[Decimal]
    base_prim_price: Decimal
    prim_amount: Decimal
    status: SaleStatus
    prim_status: PrimStatus
    salesperson_id: int
    prim_period_id: int
    cancelled_at: Optional[datetime] = None
    cancellation_transaction_id: Optional[int] = None
    transferred_from_id: Optional[int] = None
    transferred_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ModificationResponse(BaseModel):
    """One entry of a sale's modification history."""

    id: int
    sale_id: int
    previous_snapshot: dict
    new_snapshot: dict
    previous_commission: Decimal
    new_commission: Decimal
    commission_delta: Decimal
    reason: str
    actor_user_id: int
    linked_transaction_id: Optional[int]
    created_at: datetime

    model_config = {"from_attributes": True}


class SaleEventResponse(BaseModel):
    """Sale after a lifecycle event and the ledger rows it appended."""

    sale: SaleResponse
    transaction_ids: List[int] = Field(default_factory=list)
    superseded_ids: List[int] = Field(default_factory=list)
    modification: Optional[ModificationResponse] = None


class BulkPrimStatusSample(BaseModel):
    """Sale listed in a bulk status preview."""

    id: int
    contract_no: Optional[str]
    customer_name: Optional[str]
    prim_amount: Decimal
    prim_status: PrimStatus
    salesperson_id: int
    prim_period_id: int
    sale_date: date

    model_config = {"from_attributes": True}


class BulkPrimStatusResponse(BaseModel):
    """Result (or preview) of a bulk payout status change."""

    success: bool = True
    message: str
    total: int
    prim_status: PrimStatus
    affected_sales: List[BulkPrimStatusSample] = Field(default_factory=list)
