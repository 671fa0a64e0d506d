"""
Commission ("prim") calculation.

Rules:
- Deposit (kapora) sales never earn commission
- Candidate prices: list price, discounted list price (only when a discount
  rate is set) and activity price; only strictly positive ones count
- Commission = lowest candidate x rate / 100, rounded half-up to kuruş
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

from src.models.sale_type import SaleKind
from src.services.errors import ValidationError

ZERO = Decimal("0")
HUNDRED = Decimal("100")
MINOR_UNIT = Decimal("0.01")


def quantize_money(value: Decimal) -> Decimal:
    """Round to the currency's minor unit using round-half-up."""
    return value.quantize(MINOR_UNIT, rounding=ROUND_HALF_UP)


def _to_decimal(value: Any, field: str) -> Optional[Decimal]:
    if value is None:
        return None
    if isinstance(value, float):
        # Binary floats drift; callers must pass Decimal or str
        value = str(value)
    try:
        result = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"Malformed price for {field}: {value!r}")
    if not result.is_finite():
        raise ValidationError(f"Malformed price for {field}: {value!r}")
    return result


@dataclass(frozen=True)
class PriceSnapshot:
    """Immutable set of the prices commission is computed from."""

    list_price: Decimal
    discount_rate: Optional[Decimal] = None
    discounted_list_price: Optional[Decimal] = None
    activity_price: Optional[Decimal] = None

    @property
    def effective_discounted_price(self) -> Optional[Decimal]:
        """Discounted list price, derived from the rate when not given."""
        if not self.discount_rate or self.discount_rate <= ZERO:
            return None
        if self.discounted_list_price is not None:
            return self.discounted_list_price
        return quantize_money(self.list_price * (HUNDRED - self.discount_rate) / HUNDRED)

    def candidates(self) -> list[Decimal]:
        prices = [self.list_price, self.effective_discounted_price, self.activity_price]
        return [p for p in prices if p is not None and p > ZERO]

    def to_dict(self) -> dict[str, Optional[str]]:
        """JSON-safe form; amounts as strings to stay exact."""
        return {
            "list_price": str(self.list_price),
            "discount_rate": None if self.discount_rate is None else str(self.discount_rate),
            "discounted_list_price": (
                None if self.effective_discounted_price is None
                else str(self.effective_discounted_price)
            ),
            "activity_price": None if self.activity_price is None else str(self.activity_price),
        }

    @classmethod
    def from_values(
        cls,
        list_price: Any,
        discount_rate: Any = None,
        discounted_list_price: Any = None,
        activity_price: Any = None,
    ) -> "PriceSnapshot":
        snapshot = cls(
            list_price=_to_decimal(list_price, "list_price"),
            discount_rate=_to_decimal(discount_rate, "discount_rate"),
            discounted_list_price=_to_decimal(discounted_list_price, "discounted_list_price"),
            activity_price=_to_decimal(activity_price, "activity_price"),
        )
        validate_snapshot(snapshot)
        return snapshot

    @classmethod
    def from_sale(cls, sale) -> "PriceSnapshot":
        return cls(
            list_price=sale.list_price,
            discount_rate=sale.discount_rate,
            discounted_list_price=sale.discounted_list_price,
            activity_price=sale.activity_price,
        )


def validate_snapshot(snapshot: PriceSnapshot) -> None:
    """Reject prices that can never be valid."""
    if snapshot.list_price is None:
        raise ValidationError("list_price is required")
    for field in ("list_price", "discounted_list_price", "activity_price"):
        value = getattr(snapshot, field)
        if value is not None and value < ZERO:
            raise ValidationError(f"{field} cannot be negative")
    if snapshot.discount_rate is not None and not (ZERO <= snapshot.discount_rate <= HUNDRED):
        raise ValidationError("discount_rate must be between 0 and 100")


def base_prim_price(snapshot: PriceSnapshot) -> Decimal:
    """Lowest strictly positive candidate price, or 0 when there is none."""
    candidates = snapshot.candidates()
    return min(candidates) if candidates else ZERO


def compute_commission(
    snapshot: PriceSnapshot,
    kind: str,
    rate: Decimal,
    generates_commission: bool = True,
) -> Decimal:
    """Compute the commission for a price snapshot.

    Pure and deterministic: identical inputs always give the identical
    amount, so historical commissions can be reproduced during audits.

    Args:
        snapshot: Prices of the sale
        kind: SaleKind value or custom sale type key
        rate: Commission rate in percent (1 = 1%)
        generates_commission: Policy of a custom sale type

    Returns:
        Non-negative Decimal amount with two decimal places
    """
    if kind == SaleKind.DEPOSIT.value or not generates_commission:
        return quantize_money(ZERO)

    base = base_prim_price(snapshot)
    if base <= ZERO:
        return quantize_money(ZERO)

    amount = quantize_money(base * Decimal(rate) / HUNDRED)
    return max(amount, quantize_money(ZERO))
