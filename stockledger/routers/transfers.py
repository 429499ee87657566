from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from stockledger.core.api_docs import error_responses
from stockledger.core.deps import get_db
from stockledger.core.permissions import require_admin
from stockledger.core.security_current import get_current_user
from stockledger.models.user import User
from stockledger.schemas.common import pagination_meta
from stockledger.schemas.transfer import (
    StockTransferCreateIn,
    StockTransferListOut,
    StockTransferOut,
    StockTransferRecordOut,
)
from stockledger.services import transfer_service

router = APIRouter(prefix="/stock-transfers", tags=["stock-transfers"])


@router.post(
    "",
    response_model=StockTransferOut,
    summary="Transfer stock between locations",
    description=(
        "Books an `out` entry at the source and an `in` entry at the destination in one transaction. "
        "Either both entries are written or neither is."
    ),
    responses=error_responses(
        401,
        403,
        404,
        422,
        500,
        503,
        domain_codes=("invalid_transfer", "insufficient_stock", "item_inactive"),
    ),
)
def create_stock_transfer(
    payload: StockTransferCreateIn,
    db: Session = Depends(get_db),
    user: User = Depends(require_admin),
):
    result = transfer_service.transfer_stock(
        db,
        item_id=payload.item_id,
        from_location_id=payload.from_location_id,
        to_location_id=payload.to_location_id,
        quantity=payload.quantity,
        actor_user_id=user.id,
        note=payload.note,
    )
    return StockTransferOut(
        transfer_id=result.transfer_id,
        item_id=result.item_id,
        from_location_id=result.from_location_id,
        to_location_id=result.to_location_id,
        quantity=float(result.quantity),
        new_quantity=float(result.new_quantity),
        out_entry_id=result.out_leg.ledger_entry_id,
        in_entry_id=result.in_leg.ledger_entry_id,
        ledger_entry_id=result.in_leg.ledger_entry_id,
    )


@router.get(
    "",
    response_model=StockTransferListOut,
    summary="List stock transfers",
    responses=error_responses(401, 422, 500),
)
def list_stock_transfers(
    item_id: str | None = Query(default=None),
    location_id: str | None = Query(default=None, description="Matches source or destination"),
    limit: int = Query(default=50, ge=1, le=200, description="Page size"),
    offset: int = Query(default=0, ge=0, description="Pagination offset"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    records, total = transfer_service.list_transfers(
        db,
        item_id=item_id,
        location_id=location_id,
        limit=limit,
        offset=offset,
    )
    items = [
        StockTransferRecordOut(
            transfer_id=record.transfer_id,
            item_id=record.item_id,
            from_location_id=record.from_location_id,
            to_location_id=record.to_location_id,
            quantity=float(record.quantity),
            actor_user_id=record.actor_user_id,
            note=record.note,
            out_entry_id=record.out_entry_id,
            in_entry_id=record.in_entry_id,
            created_at=record.created_at,
        )
        for record in records
    ]
    return StockTransferListOut(
        items=items,
        pagination=pagination_meta(total=total, limit=limit, offset=offset, count=len(items)),
    )
