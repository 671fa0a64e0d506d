"""Commission ledger schemas."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from src.models.ledger import DeductionState, TransactionKind
from src.schemas.sale import reject_float


class TransactionResponse(BaseModel):
    """One ledger transaction."""

    id: int
    salesperson_id: int
    period_id: int
    sale_id: Optional[int]
    related_transaction_id: Optional[int]
    kind: TransactionKind
    amount: Decimal
    description: str
    deduction_state: Optional[DeductionState]
    carried_forward: bool
    resolved_by_user_id: Optional[int]
    resolved_at: Optional[datetime]
    resolution_note: Optional[str]
    created_by_user_id: int
    created_at: datetime

    model_config = {"from_attributes": True}


class TransactionListResponse(BaseModel):
    """Paginated list of ledger transactions."""

    items: List[TransactionResponse]
    total: int
    page: int
    per_page: int
    pages: int


class EarningsResponse(BaseModel):
    """Earnings of one salesperson in one period."""

    salesperson_id: int
    salesperson_name: str
    period_id: int
    period_name: str
    paid_amount: Decimal
    unpaid_amount: Decimal
    approved_deductions_total: Decimal
    pending_deductions_total: Decimal
    carried_forward_deductions_total: Decimal
    net_unpaid: Decimal
    earn_count: int
    deduction_count: int
    transfer_in_count: int
    transfer_out_count: int
    transaction_count: int

    model_config = {"from_attributes": True}


class DeductionActionRequest(BaseModel):
    """Optional note recorded with an approval or cancellation."""

    note: Optional[str] = Field(None, max_length=1000)


class CleanupRequest(BaseModel):
    """Duplicate cleanup; the configured rule applies when omitted."""

    rule: Optional[str] = Field(None, pattern="^(sale_and_amount|sale_and_carry_forward)$")


class CleanupResponse(BaseModel):
    """Duplicate deduction cleanup summary."""

    rule: str
    count: int
    total_amount: Decimal
    cancelled_ids: List[int]
    skipped_ids: List[int]


class CarryForwardRequest(BaseModel):
    """Target period of a carry-forward run; current month when omitted."""

    period_id: Optional[int] = None


class CarryForwardResponse(BaseModel):
    period_id: int
    created: int


class ReassignPeriodRequest(BaseModel):
    period_id: int


class ReassignPeriodResponse(BaseModel):
    """Outcome of a period reassignment."""

    transaction_id: int
    old_period_id: int
    new_period_id: int
    changed: bool
    message: str


class RateCreate(BaseModel):
    """New commission rate (percent)."""

    rate: Decimal = Field(..., ge=0, le=100, max_digits=6, decimal_places=3)
    effective_date: Optional[datetime] = None

    @field_validator("rate", mode="before")
    @classmethod
    def no_floats(cls, v):
        return reject_float(v)


class RateResponse(BaseModel):
    id: int
    rate: Decimal
    effective_date: datetime
    is_active: bool
    created_by_user_id: Optional[int]
    created_at: datetime

    model_config = {"from_attributes": True}


class PeriodCreate(BaseModel):
    """Create a monthly period explicitly."""

    year: int = Field(..., ge=2000, le=2100)
    month: int = Field(..., ge=1, le=12)
    name: Optional[str] = Field(None, max_length=100)


class PeriodResponse(BaseModel):
    id: int
    name: str
    year: int
    month: int
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}
