"""Business logic services."""

from src.services.commission import PriceSnapshot, compute_commission
from src.services.deductions import (
    approve_deduction,
    cancel_deduction,
    carry_forward_deductions,
    cleanup_duplicate_deductions,
)
from src.services.earnings import aggregate_earnings
from src.services.ledger_writer import on_cancel, on_create, on_modify, on_restore, on_transfer
from src.services.periods import reassign_transaction_period

__all__ = [
    "PriceSnapshot",
    "compute_commission",
    "on_create",
    "on_modify",
    "on_cancel",
    "on_restore",
    "on_transfer",
    "approve_deduction",
    "cancel_deduction",
    "carry_forward_deductions",
    "cleanup_duplicate_deductions",
    "aggregate_earnings",
    "reassign_transaction_period",
]
