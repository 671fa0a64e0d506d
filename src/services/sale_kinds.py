"""
Sale kind policy lookup.

`sale` and `deposit` have fixed semantics; every other kind is a row of
the sale_types table, looked up by key.
"""

from dataclasses import dataclass
from typing import Any, FrozenSet

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.models import SaleKind, SaleType
from src.services.errors import ValidationError


@dataclass(frozen=True)
class SaleKindPolicy:
    key: str
    generates_commission: bool
    required_fields: FrozenSet[str]


FIXED_POLICIES = {
    SaleKind.SALE.value: SaleKindPolicy(
        key=SaleKind.SALE.value,
        generates_commission=True,
        required_fields=frozenset({"contract_no", "sale_date", "list_price"}),
    ),
    SaleKind.DEPOSIT.value: SaleKindPolicy(
        key=SaleKind.DEPOSIT.value,
        generates_commission=False,
        required_fields=frozenset({"sale_date"}),
    ),
}


async def resolve_sale_kind(db: AsyncSession, kind: str) -> SaleKindPolicy:
    """Return the policy for a kind key, or raise ValidationError if unknown."""
    key = (kind or "").strip().lower()
    if key in FIXED_POLICIES:
        return FIXED_POLICIES[key]

    result = await db.execute(
        select(SaleType).where(
            SaleType.key == key,
            SaleType.is_active == True,  # noqa: E712
        )
    )
    sale_type = result.scalar_one_or_none()
    if not sale_type:
        raise ValidationError(f"Unknown sale kind: {kind!r}", {"kind": kind})

    return SaleKindPolicy(
        key=sale_type.key,
        generates_commission=sale_type.generates_commission,
        required_fields=frozenset(sale_type.required_fields or []),
    )


def check_required_fields(policy: SaleKindPolicy, data: Any) -> None:
    """Raise ValidationError listing every required field that is missing."""
    missing = []
    for field in sorted(policy.required_fields):
        value = getattr(data, field, None)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(field)
    if missing:
        raise ValidationError(
            f"Missing required fields for sale kind '{policy.key}': {', '.join(missing)}",
            {"missing": missing},
        )
