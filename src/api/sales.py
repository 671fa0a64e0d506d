"""
Sale lifecycle API endpoints.

Each endpoint runs one ledger event inside the request session and
writes an audit entry before committing.
"""

from typing import List

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth.dependencies import get_current_user, require_admin
from src.db import get_db
from src.models import AuditAction, SaleModification, User
from src.schemas.sale import (
    BulkPrimStatusRequest,
    BulkPrimStatusResponse,
    BulkPrimStatusSample,
    ModificationResponse,
    PrimStatusUpdate,
    SaleCancelRequest,
    SaleConvertRequest,
    SaleCreate,
    SaleEventResponse,
    SaleModifyRequest,
    SaleResponse,
    SaleTransferRequest,
)
from src.services import ledger_writer
from src.services.commission import PriceSnapshot
from src.services.ledger_writer import LedgerEvent, ensure_can_access, get_sale
from src.services.prim_status import SaleFilters, bulk_set_prim_status, set_prim_status
from src.utils.audit import get_client_ip, log_action

router = APIRouter(prefix="/sales", tags=["Sales"])


def _event_response(event: LedgerEvent) -> SaleEventResponse:
    return SaleEventResponse(
        sale=SaleResponse.model_validate(event.sale),
        transaction_ids=[t.id for t in event.transactions],
        superseded_ids=[t.id for t in event.superseded],
        modification=(
            ModificationResponse.model_validate(event.modification)
            if event.modification is not None
            else None
        ),
    )


@router.post("", response_model=SaleEventResponse, status_code=status.HTTP_201_CREATED)
async def create_sale(
    request: Request,
    data: SaleCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Record a sale and its commission."""
    event = await ledger_writer.on_create(db, data, current_user)

    await log_action(
        db=db,
        user_id=current_user.id,
        action=AuditAction.CREATE_SALE,
        target_type="sale",
        target_id=event.sale.id,
        action_metadata={
            "kind": event.sale.kind,
            "contract_no": event.sale.contract_no,
            "prim_amount": str(event.sale.prim_amount),
        },
        ip_address=get_client_ip(request),
    )
    await db.commit()

    return _event_response(event)


@router.put("/bulk-prim-status", response_model=BulkPrimStatusResponse)
async def bulk_update_prim_status(
    request: Request,
    data: BulkPrimStatusRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """Mark every matching sale paid or unpaid."""
    filters = SaleFilters(**data.filters.model_dump())
    result = await bulk_set_prim_status(db, data.prim_status, filters, current_user)

    await log_action(
        db=db,
        user_id=current_user.id,
        action=AuditAction.BULK_PRIM_STATUS,
        target_type="sale",
        action_metadata={
            "filters": data.filters.model_dump(mode="json"),
            "prim_status": data.prim_status.value,
            "affected": result.total,
        },
        ip_address=get_client_ip(request),
    )
    await db.commit()

    return BulkPrimStatusResponse(
        message=f"{result.total} sales marked {result.status.value}",
        total=result.total,
        prim_status=result.status,
    )


@router.post("/bulk-prim-status/preview", response_model=BulkPrimStatusResponse)
async def preview_bulk_prim_status(
    data: BulkPrimStatusRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """Show which sales a bulk status change would affect."""
    filters = SaleFilters(**data.filters.model_dump())
    result = await bulk_set_prim_status(db, data.prim_status, filters, current_user, preview=True)

    return BulkPrimStatusResponse(
        message=f"{result.total} sales will be affected",
        total=result.total,
        prim_status=result.status,
        affected_sales=[BulkPrimStatusSample.model_validate(s) for s in result.sample],
    )


@router.get("/{sale_id}", response_model=SaleResponse)
async def get_sale_detail(
    sale_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    sale = await get_sale(db, sale_id)
    ensure_can_access(sale, current_user)
    return SaleResponse.model_validate(sale)


@router.get("/{sale_id}/modifications", response_model=List[ModificationResponse])
async def list_modifications(
    sale_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Modification history of a sale, oldest first."""
    sale = await get_sale(db, sale_id)
    ensure_can_access(sale, current_user)

    result = await db.execute(
        select(SaleModification)
        .where(SaleModification.sale_id == sale_id)
        .order_by(SaleModification.id)
    )
    return [ModificationResponse.model_validate(m) for m in result.scalars().all()]


@router.put("/{sale_id}/modify", response_model=SaleEventResponse)
async def modify_sale(
    request: Request,
    sale_id: int,
    data: SaleModifyRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Change a sale's prices and book the commission difference."""
    snapshot = PriceSnapshot.from_values(
        list_price=data.list_price,
        discount_rate=data.discount_rate,
        discounted_list_price=data.discounted_list_price,
        activity_price=data.activity_price,
    )
    event = await ledger_writer.on_modify(db, sale_id, snapshot, data.reason, current_user)

    await log_action(
        db=db,
        user_id=current_user.id,
        action=AuditAction.MODIFY_SALE,
        target_type="sale",
        target_id=sale_id,
        action_metadata={
            "reason": data.reason,
            "delta": str(event.modification.commission_delta),
        },
        ip_address=get_client_ip(request),
    )
    await db.commit()

    return _event_response(event)


@router.put("/{sale_id}/cancel", response_model=SaleEventResponse)
async def cancel_sale(
    request: Request,
    sale_id: int,
    data: SaleCancelRequest = SaleCancelRequest(),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Cancel a sale; a paid sale gets a pending deduction."""
    event = await ledger_writer.on_cancel(db, sale_id, current_user, period_id=data.period_id)

    await log_action(
        db=db,
        user_id=current_user.id,
        action=AuditAction.CANCEL_SALE,
        target_type="sale",
        target_id=sale_id,
        action_metadata={
            "deduction_ids": [t.id for t in event.transactions],
            "superseded_ids": [t.id for t in event.superseded],
        },
        ip_address=get_client_ip(request),
    )
    await db.commit()

    return _event_response(event)


@router.put("/{sale_id}/restore", response_model=SaleEventResponse)
async def restore_sale(
    request: Request,
    sale_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Undo a cancellation."""
    event = await ledger_writer.on_restore(db, sale_id, current_user)

    await log_action(
        db=db,
        user_id=current_user.id,
        action=AuditAction.RESTORE_SALE,
        target_type="sale",
        target_id=sale_id,
        action_metadata={"compensation_ids": [t.id for t in event.transactions]},
        ip_address=get_client_ip(request),
    )
    await db.commit()

    return _event_response(event)


@router.put("/{sale_id}/convert-to-sale", response_model=SaleEventResponse)
async def convert_to_sale(
    request: Request,
    sale_id: int,
    data: SaleConvertRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Convert a deposit into a sale and book its commission."""
    event = await ledger_writer.on_convert_to_sale(
        db,
        sale_id,
        data.sale_date,
        current_user,
        contract_no=data.contract_no,
        period_id=data.period_id,
    )

    await log_action(
        db=db,
        user_id=current_user.id,
        action=AuditAction.CONVERT_SALE,
        target_type="sale",
        target_id=sale_id,
        action_metadata={
            "sale_date": data.sale_date,
            "prim_amount": event.sale.prim_amount,
            "transaction_ids": [t.id for t in event.transactions],
        },
        ip_address=get_client_ip(request),
    )
    await db.commit()

    return _event_response(event)


@router.put("/{sale_id}/transfer", response_model=SaleEventResponse)
async def transfer_sale(
    request: Request,
    sale_id: int,
    data: SaleTransferRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """Transfer a sale and its commission to another salesperson."""
    sale = await get_sale(db, sale_id)
    from_salesperson_id = sale.salesperson_id

    event = await ledger_writer.on_transfer(
        db,
        sale_id,
        data.to_salesperson_id,
        current_user,
        reason=data.reason,
    )

    await log_action(
        db=db,
        user_id=current_user.id,
        action=AuditAction.TRANSFER_SALE,
        target_type="sale",
        target_id=sale_id,
        action_metadata={
            "from_salesperson_id": from_salesperson_id,
            "to_salesperson_id": data.to_salesperson_id,
            "reason": data.reason,
        },
        ip_address=get_client_ip(request),
    )
    await db.commit()

    return _event_response(event)


@router.put("/{sale_id}/prim-status", response_model=SaleResponse)
async def update_prim_status(
    request: Request,
    sale_id: int,
    data: PrimStatusUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """Mark one sale's commission paid or unpaid."""
    sale = await set_prim_status(db, sale_id, data.prim_status, current_user)

    await log_action(
        db=db,
        user_id=current_user.id,
        action=AuditAction.UPDATE_PRIM_STATUS,
        target_type="sale",
        target_id=sale_id,
        action_metadata={"prim_status": data.prim_status.value},
        ip_address=get_client_ip(request),
    )
    await db.commit()

    return SaleResponse.model_validate(sale)
