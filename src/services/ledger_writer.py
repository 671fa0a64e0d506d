"""
Ledger writer: turns sale lifecycle events into ledger transactions.

Every event appends rows; no existing amount is ever rewritten. Each
function flushes but leaves the commit to the caller's unit of work
(the request session), so all rows of one event persist together.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from types import SimpleNamespace
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.models import (
    DeductionState,
    PrimStatus,
    PrimTransaction,
    Sale,
    SaleKind,
    SaleModification,
    SaleStatus,
    TransactionKind,
    User,
    UserRole,
)
from src.services.commission import (
    PriceSnapshot,
    base_prim_price,
    compute_commission,
    quantize_money,
)
from src.services.deductions import cancel_deduction
from src.services.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from src.services.periods import get_active_period, get_or_create_period_for_date
from src.services.rates import get_rate_at
from src.services.sale_kinds import check_required_fields, resolve_sale_kind

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


@dataclass
class LedgerEvent:
    """Sale after the event and the ledger rows the event appended."""

    sale: Sale
    transactions: List[PrimTransaction] = field(default_factory=list)
    modification: Optional[SaleModification] = None
    superseded: List[PrimTransaction] = field(default_factory=list)


def _now() -> datetime:
    return datetime.now(timezone.utc)


async def get_sale(db: AsyncSession, sale_id: int) -> Sale:
    sale = await db.get(Sale, sale_id)
    if not sale:
        raise NotFoundError(f"Sale {sale_id} not found", {"sale_id": sale_id})
    return sale


def ensure_can_access(sale: Sale, actor: User) -> None:
    """Owners act on their own sales; administrators on any."""
    if actor.is_admin or sale.salesperson_id == actor.id:
        return
    raise AuthorizationError(
        f"Sale {sale.id} belongs to another salesperson",
        {"sale_id": sale.id},
    )


async def _get_salesperson(db: AsyncSession, user_id: int) -> User:
    user = await db.get(User, user_id)
    if not user or not user.is_active:
        raise NotFoundError(f"Salesperson {user_id} not found", {"salesperson_id": user_id})
    return user


async def amount_counted_for(
    db: AsyncSession,
    sale_id: int,
    salesperson_id: int,
    include_compensation: bool = True,
) -> Decimal:
    """Commission of a sale currently counted for one salesperson.

    Non-deduction rows (earn, transfer_in, transfer_out) plus approved
    deductions; pending and cancelled deductions have no effect yet.
    With include_compensation=False, restore compensations (earn rows
    linked to the deduction they reverse) are left out.
    """
    result = await db.execute(
        select(
            PrimTransaction.kind,
            PrimTransaction.amount,
            PrimTransaction.deduction_state,
            PrimTransaction.related_transaction_id,
        ).where(
            PrimTransaction.sale_id == sale_id,
            PrimTransaction.salesperson_id == salesperson_id,
        )
    )
    total = ZERO
    for kind, amount, state, related_id in result.all():
        if kind == TransactionKind.DEDUCTION and state != DeductionState.APPROVED:
            continue
        if not include_compensation and kind == TransactionKind.EARN and related_id is not None:
            continue
        total += Decimal(amount)
    return quantize_money(total)


async def _pending_deductions(db: AsyncSession, sale_id: int, salesperson_id: int) -> List[PrimTransaction]:
    result = await db.execute(
        select(PrimTransaction)
        .where(
            PrimTransaction.sale_id == sale_id,
            PrimTransaction.salesperson_id == salesperson_id,
            PrimTransaction.kind == TransactionKind.DEDUCTION,
            PrimTransaction.deduction_state == DeductionState.PENDING,
        )
        .order_by(PrimTransaction.id)
    )
    return list(result.scalars().all())


def _transaction(
    sale: Sale,
    kind: TransactionKind,
    amount: Decimal,
    period_id: int,
    actor: User,
    description: str,
    salesperson_id: Optional[int] = None,
) -> PrimTransaction:
    return PrimTransaction(
        salesperson_id=salesperson_id or sale.salesperson_id,
        period_id=period_id,
        sale_id=sale.id,
        kind=kind,
        amount=quantize_money(amount),
        description=description[:500],
        deduction_state=DeductionState.PENDING if kind == TransactionKind.DEDUCTION else None,
        carried_forward=False,
        created_by_user_id=actor.id,
    )


def _sale_label(sale: Sale) -> str:
    return sale.contract_no or f"#{sale.id}"


async def on_create(db: AsyncSession, data, actor: User) -> LedgerEvent:
    """Record a new sale and its commission.

    Args:
        data: SaleCreate-like object
        actor: User creating the sale; non-administrators may only
            create sales for themselves
    """
    policy = await resolve_sale_kind(db, data.kind)
    check_required_fields(policy, data)

    snapshot = PriceSnapshot.from_values(
        list_price=data.list_price if data.list_price is not None else ZERO,
        discount_rate=data.discount_rate,
        discounted_list_price=data.discounted_list_price,
        activity_price=data.activity_price,
    )

    salesperson_id = data.salesperson_id or actor.id
    if salesperson_id != actor.id and not actor.is_admin:
        raise AuthorizationError("Only administrators can record sales for other salespeople")
    salesperson = await _get_salesperson(db, salesperson_id)

    if data.contract_no:
        existing = await db.execute(select(Sale.id).where(Sale.contract_no == data.contract_no))
        if existing.scalar_one_or_none() is not None:
            raise ConflictError(
                f"Contract number {data.contract_no} already exists",
                {"contract_no": data.contract_no},
            )

    sale_date: date = data.sale_date or _now().date()

    rate: Optional[Decimal] = None
    if policy.generates_commission:
        rate = await get_rate_at(db, sale_date)

    if data.period_id:
        period = await get_active_period(db, data.period_id)
    else:
        period = await get_or_create_period_for_date(db, sale_date, actor.id)

    amount = compute_commission(
        snapshot,
        policy.key,
        rate if rate is not None else ZERO,
        generates_commission=policy.generates_commission,
    )

    sale = Sale(
        contract_no=data.contract_no or None,
        kind=policy.key,
        customer_name=data.customer_name,
        sale_date=sale_date,
        list_price=snapshot.list_price,
        discount_rate=snapshot.discount_rate,
        discounted_list_price=snapshot.effective_discounted_price,
        activity_price=snapshot.activity_price,
        prim_rate=rate,
        base_prim_price=base_prim_price(snapshot) if rate is not None else ZERO,
        prim_amount=amount,
        status=SaleStatus.ACTIVE,
        prim_status=PrimStatus.UNPAID,
        salesperson_id=salesperson.id,
        prim_period_id=period.id,
    )
    db.add(sale)
    await db.flush()

    event = LedgerEvent(sale=sale)
    if amount > ZERO:
        earn = _transaction(
            sale,
            TransactionKind.EARN,
            amount,
            period.id,
            actor,
            f"Commission for sale {_sale_label(sale)}",
        )
        db.add(earn)
        await db.flush()
        event.transactions.append(earn)

    logger.info(
        f"Sale {sale.id} ({policy.key}) created for salesperson {salesperson.id} "
        f"in {period.name}: commission {amount}"
    )
    return event


async def on_modify(
    db: AsyncSession,
    sale_id: int,
    new_snapshot: PriceSnapshot,
    reason: str,
    actor: User,
) -> LedgerEvent:
    """Reprice a sale and book the commission difference.

    Both snapshots are priced with the rate stored on the sale, so the
    delta reflects the price change only.
    """
    if not reason or not reason.strip():
        raise ValidationError("A modification reason is required")

    sale = await get_sale(db, sale_id)
    ensure_can_access(sale, actor)
    if sale.is_cancelled:
        raise ConflictError(f"Sale {sale_id} is cancelled and cannot be modified", {"sale_id": sale_id})

    previous_snapshot = PriceSnapshot.from_sale(sale)
    generates = sale.prim_rate is not None
    rate = Decimal(sale.prim_rate) if generates else ZERO

    previous_amount = compute_commission(previous_snapshot, sale.kind, rate, generates)
    stored_amount = quantize_money(Decimal(sale.prim_amount))
    if previous_amount != stored_amount:
        logger.warning(
            f"Sale {sale_id}: recomputed commission {previous_amount} differs from "
            f"stored {stored_amount}; using stored amount"
        )
        previous_amount = stored_amount

    new_amount = compute_commission(new_snapshot, sale.kind, rate, generates)
    delta = quantize_money(new_amount - previous_amount)

    sale.list_price = new_snapshot.list_price
    sale.discount_rate = new_snapshot.discount_rate
    sale.discounted_list_price = new_snapshot.effective_discounted_price
    sale.activity_price = new_snapshot.activity_price
    sale.base_prim_price = base_prim_price(new_snapshot) if generates else ZERO
    sale.prim_amount = new_amount

    event = LedgerEvent(sale=sale)
    delta_row: Optional[PrimTransaction] = None
    if delta > ZERO or (delta < ZERO and sale.prim_status == PrimStatus.UNPAID):
        delta_row = _transaction(
            sale,
            TransactionKind.EARN,
            delta,
            sale.prim_period_id,
            actor,
            f"Commission adjustment for sale {_sale_label(sale)}: {reason.strip()}",
        )
    elif delta < ZERO:
        period = await get_or_create_period_for_date(db, _now(), actor.id)
        delta_row = _transaction(
            sale,
            TransactionKind.DEDUCTION,
            delta,
            period.id,
            actor,
            f"Paid commission reduced for sale {_sale_label(sale)}: {reason.strip()}",
        )

    if delta_row is not None:
        db.add(delta_row)
        await db.flush()
        event.transactions.append(delta_row)

    modification = SaleModification(
        sale_id=sale.id,
        previous_snapshot=previous_snapshot.to_dict(),
        new_snapshot=new_snapshot.to_dict(),
        previous_commission=previous_amount,
        new_commission=new_amount,
        commission_delta=delta,
        reason=reason.strip(),
        actor_user_id=actor.id,
        linked_transaction_id=delta_row.id if delta_row is not None else None,
    )
    db.add(modification)
    await db.flush()
    event.modification = modification

    logger.info(
        f"Sale {sale_id} modified by user {actor.id}: commission "
        f"{previous_amount} -> {new_amount} (delta {delta})"
    )
    return event


async def on_cancel(
    db: AsyncSession,
    sale_id: int,
    actor: User,
    period_id: Optional[int] = None,
) -> LedgerEvent:
    """Cancel a sale. A paid sale gets a pending deduction for its commission.

    Deductions of the sale that are still pending (paid price reductions)
    are cancelled first: the cancellation deduction claws back everything
    still counted, so keeping them would subtract the same money twice.
    Restore compensations are not counted; they were never paid out and
    stop being payable once the sale is cancelled.
    """
    sale = await get_sale(db, sale_id)
    ensure_can_access(sale, actor)
    if sale.is_cancelled:
        raise ConflictError(f"Sale {sale_id} is already cancelled", {"sale_id": sale_id})

    if period_id:
        period = await get_active_period(db, period_id)
    else:
        period = await get_or_create_period_for_date(db, _now(), actor.id)

    event = LedgerEvent(sale=sale)
    for pending in await _pending_deductions(db, sale.id, sale.salesperson_id):
        resolved = await cancel_deduction(
            db,
            pending.id,
            actor,
            note=f"Superseded by cancellation of sale {_sale_label(sale)}",
        )
        event.superseded.append(resolved)

    if sale.prim_status == PrimStatus.PAID:
        counted = await amount_counted_for(
            db, sale.id, sale.salesperson_id, include_compensation=False
        )
        if counted > ZERO:
            deduction = _transaction(
                sale,
                TransactionKind.DEDUCTION,
                -counted,
                period.id,
                actor,
                f"Cancellation of paid sale {_sale_label(sale)}",
            )
            db.add(deduction)
            await db.flush()
            sale.cancellation_transaction_id = deduction.id
            event.transactions.append(deduction)

    sale.status = SaleStatus.CANCELLED
    sale.cancelled_at = _now()
    sale.cancelled_by_id = actor.id
    await db.flush()

    logger.info(
        f"Sale {sale_id} cancelled by user {actor.id} "
        f"({sale.prim_status.value}, deduction rows: {len(event.transactions)}, "
        f"superseded: {len(event.superseded)})"
    )
    return event


async def on_restore(db: AsyncSession, sale_id: int, actor: User) -> LedgerEvent:
    """Undo a cancellation without deleting any ledger row."""
    sale = await get_sale(db, sale_id)
    ensure_can_access(sale, actor)
    if not sale.is_cancelled:
        raise ConflictError(f"Sale {sale_id} is not cancelled", {"sale_id": sale_id})

    event = LedgerEvent(sale=sale)
    if sale.cancellation_transaction_id:
        deduction = await db.get(PrimTransaction, sale.cancellation_transaction_id)
        if deduction.deduction_state == DeductionState.PENDING:
            await cancel_deduction(db, deduction.id, actor, note="Sale restored")
        elif deduction.deduction_state == DeductionState.APPROVED:
            period = await get_or_create_period_for_date(db, _now(), actor.id)
            compensation = _transaction(
                sale,
                TransactionKind.EARN,
                abs(Decimal(deduction.amount)),
                period.id,
                actor,
                f"Restore of sale {_sale_label(sale)} reverses deduction {deduction.id}",
                salesperson_id=deduction.salesperson_id,
            )
            compensation.related_transaction_id = deduction.id
            db.add(compensation)
            await db.flush()
            event.transactions.append(compensation)

    sale.status = SaleStatus.ACTIVE
    sale.cancelled_at = None
    sale.cancelled_by_id = None
    sale.cancellation_transaction_id = None
    await db.flush()

    logger.info(f"Sale {sale_id} restored by user {actor.id}")
    return event


async def on_convert_to_sale(
    db: AsyncSession,
    sale_id: int,
    sale_date: date,
    actor: User,
    contract_no: Optional[str] = None,
    period_id: Optional[int] = None,
) -> LedgerEvent:
    """Turn a deposit (kapora) into a sale and book its commission.

    The deposit's stored prices are priced at the rate in effect on the
    new sale date; the sale moves to that date's period and starts unpaid.
    """
    sale = await get_sale(db, sale_id)
    ensure_can_access(sale, actor)
    if sale.is_cancelled:
        raise ConflictError(f"Sale {sale_id} is cancelled and cannot be converted", {"sale_id": sale_id})
    if sale.kind != SaleKind.DEPOSIT.value:
        raise ValidationError(
            f"Only deposits can be converted to a sale; sale {sale_id} is a '{sale.kind}'",
            {"sale_id": sale_id, "kind": sale.kind},
        )

    contract_no = (contract_no or "").strip() or sale.contract_no
    policy = await resolve_sale_kind(db, SaleKind.SALE.value)
    check_required_fields(
        policy,
        SimpleNamespace(contract_no=contract_no, sale_date=sale_date, list_price=sale.list_price),
    )

    if contract_no != sale.contract_no:
        existing = await db.execute(select(Sale.id).where(Sale.contract_no == contract_no))
        if existing.scalar_one_or_none() is not None:
            raise ConflictError(
                f"Contract number {contract_no} already exists",
                {"contract_no": contract_no},
            )

    rate = await get_rate_at(db, sale_date)
    if period_id:
        period = await get_active_period(db, period_id)
    else:
        period = await get_or_create_period_for_date(db, sale_date, actor.id)

    snapshot = PriceSnapshot.from_sale(sale)
    amount = compute_commission(snapshot, policy.key, rate, policy.generates_commission)

    sale.kind = policy.key
    sale.contract_no = contract_no
    sale.sale_date = sale_date
    sale.discounted_list_price = snapshot.effective_discounted_price
    sale.prim_rate = rate
    sale.base_prim_price = base_prim_price(snapshot)
    sale.prim_amount = amount
    sale.prim_period_id = period.id
    sale.prim_status = PrimStatus.UNPAID

    event = LedgerEvent(sale=sale)
    if amount > ZERO:
        earn = _transaction(
            sale,
            TransactionKind.EARN,
            amount,
            period.id,
            actor,
            f"Commission for deposit {_sale_label(sale)} converted to sale",
        )
        db.add(earn)
        event.transactions.append(earn)
    await db.flush()

    logger.info(
        f"Deposit {sale_id} converted to sale by user {actor.id} "
        f"in {period.name}: commission {amount}"
    )
    return event


async def on_transfer(
    db: AsyncSession,
    sale_id: int,
    to_salesperson_id: int,
    actor: User,
    reason: Optional[str] = None,
) -> LedgerEvent:
    """Move a sale and its counted commission to another salesperson."""
    if not actor.is_admin:
        raise AuthorizationError("Only administrators can transfer sales")

    sale = await get_sale(db, sale_id)
    if sale.is_cancelled:
        raise ConflictError(f"Sale {sale_id} is cancelled and cannot be transferred", {"sale_id": sale_id})
    if sale.salesperson_id == to_salesperson_id:
        raise ConflictError(
            f"Sale {sale_id} already belongs to salesperson {to_salesperson_id}",
            {"sale_id": sale_id},
        )

    target = await _get_salesperson(db, to_salesperson_id)
    if target.role != UserRole.SALESPERSON:
        raise NotFoundError(
            f"Salesperson {to_salesperson_id} not found",
            {"salesperson_id": to_salesperson_id},
        )

    old_owner_id = sale.salesperson_id
    magnitude = await amount_counted_for(db, sale.id, old_owner_id)
    if magnitude < ZERO:
        raise ConflictError(
            f"Sale {sale_id} has a negative commission balance ({magnitude}) "
            f"for salesperson {old_owner_id}; resolve it before transferring",
            {"sale_id": sale_id, "amount": str(magnitude)},
        )

    event = LedgerEvent(sale=sale)
    if magnitude > ZERO:
        note = f": {reason.strip()}" if reason and reason.strip() else ""
        outgoing = _transaction(
            sale,
            TransactionKind.TRANSFER_OUT,
            -magnitude,
            sale.prim_period_id,
            actor,
            f"Sale {_sale_label(sale)} transferred to {target.display_name}{note}",
            salesperson_id=old_owner_id,
        )
        incoming = _transaction(
            sale,
            TransactionKind.TRANSFER_IN,
            magnitude,
            sale.prim_period_id,
            actor,
            f"Sale {_sale_label(sale)} transferred from salesperson {old_owner_id}{note}",
            salesperson_id=target.id,
        )
        db.add_all([outgoing, incoming])
        await db.flush()
        outgoing.related_transaction_id = incoming.id
        incoming.related_transaction_id = outgoing.id
        event.transactions.extend([outgoing, incoming])

    sale.salesperson_id = target.id
    sale.transferred_from_id = old_owner_id
    sale.transferred_at = _now()
    sale.transferred_by_id = actor.id
    await db.flush()

    logger.info(
        f"Sale {sale_id} transferred from salesperson {old_owner_id} to {target.id} "
        f"by user {actor.id} (amount {magnitude})"
    )
    return event
