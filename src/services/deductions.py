"""
Deduction (kesinti) workflow.

A deduction is written in `pending` state and only reduces earnings once
an administrator approves it:

    pending -> approved   (terminal, reduces net unpaid)
    pending -> cancelled  (terminal, no financial effect, kept for audit)

Pending deductions from earlier periods are re-surfaced in later periods
by reference (CarryForwardMarker), never by copying the row. Because
re-surfacing and re-derivation from mutable sale records can still leave
more than one live row for the same cancellation, a duplicate detection
pass cancels the redundant rows.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.models import (
    DUPLICATE_DEDUCTION_RULE,
    CarryForwardMarker,
    DeductionState,
    PrimPeriod,
    PrimTransaction,
    SaleModification,
    SystemSetting,
    TransactionKind,
    User,
)
from src.services.errors import ConflictError, NotFoundError, ValidationError
from src.services.periods import get_period

logger = logging.getLogger(__name__)


class DuplicateRule(str, Enum):
    """Key used to decide that two deduction rows are the same deduction."""
    SALE_AND_AMOUNT = "sale_and_amount"
    SALE_AND_CARRY_FORWARD = "sale_and_carry_forward"


@dataclass
class DuplicateGroup:
    """Live deductions judged to be one economic deduction."""

    kept: PrimTransaction
    redundant: List[PrimTransaction] = field(default_factory=list)


@dataclass
class CleanupResult:
    """Summary returned by cleanup_duplicate_deductions."""

    rule: DuplicateRule
    count: int = 0
    total_amount: Decimal = Decimal("0.00")
    cancelled_ids: List[int] = field(default_factory=list)
    skipped_ids: List[int] = field(default_factory=list)


async def get_setting(db: AsyncSession, key: str, default=None):
    """Get a system setting value."""
    setting = await db.get(SystemSetting, key)
    if setting:
        return setting.get_value()
    return default


async def get_duplicate_rule(db: AsyncSession) -> DuplicateRule:
    """Configured duplicate rule: system setting first, then environment."""
    value = await get_setting(db, DUPLICATE_DEDUCTION_RULE, settings.duplicate_deduction_rule)
    try:
        return DuplicateRule(value)
    except ValueError:
        logger.warning(f"Invalid {DUPLICATE_DEDUCTION_RULE} setting {value!r}, using default")
        return DuplicateRule(settings.duplicate_deduction_rule)


async def _resolve_deduction(
    db: AsyncSession,
    deduction_id: int,
    target: DeductionState,
    actor: User,
    note: Optional[str] = None,
) -> PrimTransaction:
    """Move a pending deduction to a terminal state exactly once.

    The UPDATE only matches while the row is still pending, so of two
    concurrent calls at most one changes it; the other gets ConflictError.
    """
    result = await db.execute(
        update(PrimTransaction)
        .where(
            PrimTransaction.id == deduction_id,
            PrimTransaction.kind == TransactionKind.DEDUCTION,
            PrimTransaction.deduction_state == DeductionState.PENDING,
        )
        .values(
            deduction_state=target,
            resolved_by_user_id=actor.id,
            resolved_at=datetime.now(timezone.utc),
            resolution_note=note,
        )
        .execution_options(synchronize_session=False)
    )

    transaction = await db.get(PrimTransaction, deduction_id, populate_existing=True)
    if result.rowcount == 1:
        logger.info(
            f"Deduction {deduction_id} {target.value} by user {actor.id} "
            f"(amount={transaction.amount})"
        )
        return transaction

    if transaction is None:
        raise NotFoundError(
            f"Deduction {deduction_id} not found",
            {"transaction_id": deduction_id},
        )
    if transaction.kind != TransactionKind.DEDUCTION:
        raise ValidationError(
            f"Transaction {deduction_id} is a {transaction.kind.value}, not a deduction",
            {"transaction_id": deduction_id},
        )
    logger.warning(
        f"Rejected {target.value} of deduction {deduction_id}: "
        f"already {transaction.deduction_state.value}"
    )
    raise ConflictError(
        f"Deduction {deduction_id} is already {transaction.deduction_state.value}",
        {"transaction_id": deduction_id, "state": transaction.deduction_state.value},
    )


async def approve_deduction(
    db: AsyncSession,
    deduction_id: int,
    actor: User,
    note: Optional[str] = None,
) -> PrimTransaction:
    """Approve a pending deduction; the only action that reduces net unpaid."""
    return await _resolve_deduction(db, deduction_id, DeductionState.APPROVED, actor, note)


async def cancel_deduction(
    db: AsyncSession,
    deduction_id: int,
    actor: User,
    note: Optional[str] = None,
) -> PrimTransaction:
    """Cancel a pending deduction. It stays on the ledger with no effect."""
    return await _resolve_deduction(db, deduction_id, DeductionState.CANCELLED, actor, note)


async def list_deductions(
    db: AsyncSession,
    salesperson_id: Optional[int] = None,
    period_id: Optional[int] = None,
    state: Optional[DeductionState] = None,
) -> List[PrimTransaction]:
    """Deduction rows, newest first."""
    query = select(PrimTransaction).where(PrimTransaction.kind == TransactionKind.DEDUCTION)
    if salesperson_id is not None:
        query = query.where(PrimTransaction.salesperson_id == salesperson_id)
    if period_id is not None:
        query = query.where(PrimTransaction.period_id == period_id)
    if state is not None:
        query = query.where(PrimTransaction.deduction_state == state)
    query = query.order_by(PrimTransaction.created_at.desc(), PrimTransaction.id.desc())

    result = await db.execute(query)
    return list(result.scalars().all())


async def carry_forward_deductions(db: AsyncSession, period_id: int) -> int:
    """Re-surface pending deductions of earlier periods in `period_id`.

    Idempotent: a deduction gets at most one marker per period.

    Returns:
        Number of markers created by this call
    """
    target = await get_period(db, period_id)

    result = await db.execute(
        select(PrimTransaction)
        .join(PrimPeriod, PrimTransaction.period_id == PrimPeriod.id)
        .where(
            PrimTransaction.kind == TransactionKind.DEDUCTION,
            PrimTransaction.deduction_state == DeductionState.PENDING,
            PrimPeriod.year * 12 + PrimPeriod.month < target.year * 12 + target.month,
        )
        .order_by(PrimTransaction.id)
    )
    pending = result.scalars().all()
    if not pending:
        return 0

    existing = await db.execute(
        select(CarryForwardMarker.deduction_id).where(CarryForwardMarker.period_id == target.id)
    )
    already_marked = set(existing.scalars().all())

    created = 0
    for deduction in pending:
        if deduction.id in already_marked:
            continue
        db.add(CarryForwardMarker(deduction_id=deduction.id, period_id=target.id))
        deduction.carried_forward = True
        created += 1

    try:
        await db.flush()
    except IntegrityError:
        raise ConflictError(
            f"Carry-forward into period {target.name} is already running",
            {"period_id": target.id},
        )

    if created:
        logger.info(f"Carried {created} pending deductions forward into {target.name}")
    return created


async def _markers_by_deduction(
    db: AsyncSession,
    deduction_ids: List[int],
) -> Dict[int, Set[int]]:
    if not deduction_ids:
        return {}
    result = await db.execute(
        select(CarryForwardMarker.deduction_id, CarryForwardMarker.period_id).where(
            CarryForwardMarker.deduction_id.in_(deduction_ids)
        )
    )
    markers: Dict[int, Set[int]] = {}
    for deduction_id, marker_period_id in result.all():
        markers.setdefault(deduction_id, set()).add(marker_period_id)
    return markers


def group_duplicates(
    deductions: List[PrimTransaction],
    markers: Dict[int, Set[int]],
    rule: DuplicateRule,
) -> List[DuplicateGroup]:
    """Group live deductions that represent the same underlying deduction.

    `deductions` must be ordered oldest first. The kept row is the earliest
    approved row if one exists (it has already taken effect), otherwise the
    earliest row.
    """
    clusters: Dict[Tuple, List[Tuple[Set[int], List[PrimTransaction]]]] = {}

    for deduction in deductions:
        if deduction.sale_id is None:
            continue
        if rule == DuplicateRule.SALE_AND_AMOUNT:
            key = (deduction.salesperson_id, deduction.sale_id, Decimal(deduction.amount))
            buckets = clusters.setdefault(key, [])
            if not buckets:
                buckets.append((set(), []))
            buckets[0][1].append(deduction)
            continue

        marked = markers.get(deduction.id, set())
        if not marked:
            continue
        key = (deduction.salesperson_id, deduction.sale_id)
        buckets = clusters.setdefault(key, [])
        for periods, members in buckets:
            if periods & marked:
                periods.update(marked)
                members.append(deduction)
                break
        else:
            buckets.append((set(marked), [deduction]))

    groups = []
    for buckets in clusters.values():
        for _, members in buckets:
            if len(members) < 2:
                continue
            approved = [d for d in members if d.deduction_state == DeductionState.APPROVED]
            kept = approved[0] if approved else members[0]
            groups.append(
                DuplicateGroup(kept=kept, redundant=[d for d in members if d is not kept])
            )
    return groups


async def _distinct_event_ids(db: AsyncSession) -> Set[int]:
    """Deductions that stand for their own event and are never duplicates.

    A deduction booked for a price reduction belongs to that one
    modification (two equal reductions are two claw-backs), and an approved
    deduction already reversed by a restore compensation no longer counts.
    """
    modifications = await db.execute(
        select(SaleModification.linked_transaction_id).where(
            SaleModification.linked_transaction_id.is_not(None)
        )
    )
    reversed_ = await db.execute(
        select(PrimTransaction.related_transaction_id).where(
            PrimTransaction.kind == TransactionKind.EARN,
            PrimTransaction.related_transaction_id.is_not(None),
        )
    )
    return set(modifications.scalars().all()) | set(reversed_.scalars().all())


async def find_duplicate_deductions(
    db: AsyncSession,
    rule: DuplicateRule,
) -> List[DuplicateGroup]:
    """Detect duplicate live deductions without changing anything.

    Only deductions that stand for a sale cancellation are compared.
    """
    distinct_ids = await _distinct_event_ids(db)
    result = await db.execute(
        select(PrimTransaction)
        .where(
            PrimTransaction.kind == TransactionKind.DEDUCTION,
            PrimTransaction.deduction_state.in_(
                [DeductionState.PENDING, DeductionState.APPROVED]
            ),
            PrimTransaction.sale_id.is_not(None),
        )
        .order_by(PrimTransaction.created_at, PrimTransaction.id)
    )
    deductions = [d for d in result.scalars().all() if d.id not in distinct_ids]
    markers = await _markers_by_deduction(db, [d.id for d in deductions])
    return group_duplicates(deductions, markers, rule)


async def cleanup_duplicate_deductions(
    db: AsyncSession,
    actor: User,
    rule: Optional[DuplicateRule] = None,
) -> CleanupResult:
    """Cancel redundant pending duplicates, keeping one row per deduction.

    Redundant rows that are already approved cannot be undone here; they
    are reported in skipped_ids for manual review.
    """
    rule = rule or await get_duplicate_rule(db)
    groups = await find_duplicate_deductions(db, rule)

    cleanup = CleanupResult(rule=rule)
    for group in groups:
        for duplicate in group.redundant:
            if duplicate.deduction_state != DeductionState.PENDING:
                logger.warning(
                    f"Duplicate deduction {duplicate.id} of {group.kept.id} is "
                    f"{duplicate.deduction_state.value}; needs manual review"
                )
                cleanup.skipped_ids.append(duplicate.id)
                continue
            await _resolve_deduction(
                db,
                duplicate.id,
                DeductionState.CANCELLED,
                actor,
                note=f"Duplicate of deduction {group.kept.id} ({rule.value})",
            )
            cleanup.count += 1
            cleanup.total_amount += abs(Decimal(duplicate.amount))
            cleanup.cancelled_ids.append(duplicate.id)

    logger.info(
        f"Duplicate deduction cleanup ({rule.value}): cancelled {cleanup.count}, "
        f"reclaimed {cleanup.total_amount}"
    )
    return cleanup
