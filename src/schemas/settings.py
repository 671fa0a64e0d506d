"""System settings schemas."""

from typing import Optional

from pydantic import BaseModel, Field


class SettingsResponse(BaseModel):
    """Current runtime settings of the ledger."""

    duplicate_deduction_rule: str = Field(default="sale_and_amount")
    transactions_page_size: int = Field(default=50)


class SettingsUpdate(BaseModel):
    """Update runtime settings."""

    duplicate_deduction_rule: Optional[str] = Field(
        None,
        pattern="^(sale_and_amount|sale_and_carry_forward)$",
    )
    transactions_page_size: Optional[int] = Field(None, ge=1, le=500)
