from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from stockledger.core.api_docs import error_responses
from stockledger.core.deps import get_db
from stockledger.core.permissions import require_admin
from stockledger.core.security_current import get_current_user
from stockledger.models.ledger import StockLedgerEntry
from stockledger.models.stock_item import StockItem
from stockledger.models.user import User
from stockledger.schemas.common import pagination_meta
from stockledger.schemas.inventory import (
    LocationBalanceListOut,
    LocationBalanceOut,
    StockAdjustIn,
    StockItemCreateIn,
    StockItemListOut,
    StockItemOut,
    StockItemUpdateIn,
    StockLedgerEntryOut,
    StockLedgerListOut,
    StockMutationOut,
)
from stockledger.services import ledger_writer, stock_item_service
from stockledger.services.stock_gateway import MutationResult
from stockledger.services.transfer_service import get_location_balances

router = APIRouter(prefix="/inventory", tags=["inventory"])


def _item_out(item: StockItem) -> StockItemOut:
    return StockItemOut(
        id=item.id,
        name=item.name,
        sku=item.sku,
        description=item.description,
        category_id=item.category_id,
        uom_id=item.uom_id,
        location_id=item.location_id,
        quantity=float(item.quantity),
        reorder_level=float(item.reorder_level),
        unit_price=float(item.unit_price) if item.unit_price is not None else None,
        is_active=item.is_active,
        is_low_stock=item.quantity <= item.reorder_level,
        created_at=item.created_at,
        updated_at=item.updated_at,
    )


def _entry_out(row: StockLedgerEntry) -> StockLedgerEntryOut:
    return StockLedgerEntryOut(
        id=row.id,
        item_id=row.item_id,
        kind=row.kind,
        quantity=float(row.quantity),
        quantity_before=float(row.quantity_before),
        quantity_after=float(row.quantity_after),
        item_version=row.item_version,
        location_id=row.location_id,
        actor_user_id=row.actor_user_id,
        note=row.note,
        reference_type=row.reference_type,
        reference_id=row.reference_id,
        created_at=row.created_at,
    )


def _mutation_out(result: MutationResult) -> StockMutationOut:
    return StockMutationOut(
        item_id=result.item_id,
        kind=result.kind,
        quantity=float(result.quantity),
        quantity_before=float(result.quantity_before),
        new_quantity=float(result.new_quantity),
        ledger_entry_id=result.ledger_entry_id,
        is_low_stock=result.is_low_stock,
    )


@router.get(
    "/items",
    response_model=StockItemListOut,
    summary="List stock items",
    responses=error_responses(401, 422, 500),
)
def list_items(
    q: str | None = Query(default=None, description="Search name, SKU, or description"),
    category_id: str | None = Query(default=None),
    location_id: str | None = Query(default=None, description="Storage location filter"),
    include_inactive: bool = Query(default=False, description="Include retired items"),
    limit: int = Query(default=50, ge=1, le=200, description="Page size"),
    offset: int = Query(default=0, ge=0, description="Pagination offset"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    rows, total = stock_item_service.list_items(
        db,
        search=q,
        category_id=category_id,
        location_id=location_id,
        is_active=None if include_inactive else True,
        limit=limit,
        offset=offset,
    )
    items = [_item_out(row) for row in rows]
    return StockItemListOut(
        items=items,
        pagination=pagination_meta(total=total, limit=limit, offset=offset, count=len(items)),
    )


@router.post(
    "/items",
    response_model=StockItemOut,
    summary="Create a stock item",
    description="Creates an item at zero stock; a positive `quantity` is booked as one initial ledger entry.",
    responses=error_responses(401, 403, 404, 409, 422, 500),
)
def create_item(
    payload: StockItemCreateIn,
    db: Session = Depends(get_db),
    user: User = Depends(require_admin),
):
    item, _ = stock_item_service.create_item(
        db,
        actor_user_id=user.id,
        name=payload.name,
        sku=payload.sku,
        description=payload.description,
        category_id=payload.category_id,
        uom_id=payload.uom_id,
        location_id=payload.location_id,
        quantity=payload.quantity,
        reorder_level=payload.reorder_level,
        unit_price=payload.unit_price,
    )
    return _item_out(item)


@router.get(
    "/items/{item_id}",
    response_model=StockItemOut,
    summary="Get a stock item",
    responses=error_responses(401, 404, 500),
)
def get_item(
    item_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return _item_out(stock_item_service.get_item(db, item_id))


@router.patch(
    "/items/{item_id}",
    response_model=StockItemOut,
    summary="Update item metadata",
    description="Quantity is not editable here; use the adjust endpoint.",
    responses=error_responses(401, 403, 404, 409, 422, 500),
)
def update_item(
    item_id: str,
    payload: StockItemUpdateIn,
    db: Session = Depends(get_db),
    user: User = Depends(require_admin),
):
    item = stock_item_service.update_item_metadata(
        db,
        item_id,
        actor_user_id=user.id,
        changes=payload.model_dump(exclude_unset=True),
    )
    return _item_out(item)


@router.delete(
    "/items/{item_id}",
    response_model=StockItemOut,
    summary="Retire a stock item",
    description="Soft delete: the item is deactivated and its history is kept.",
    responses=error_responses(401, 403, 404, 500),
)
def retire_item(
    item_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(require_admin),
):
    return _item_out(stock_item_service.retire_item(db, item_id, actor_user_id=user.id))


@router.post(
    "/items/{item_id}/adjust",
    response_model=StockMutationOut,
    summary="Adjust item quantity",
    description=(
        "`add` and `remove` move the given number of units; `adjust` sets the absolute count. "
        "Removing more than is on hand fails with `insufficient_stock`."
    ),
    responses=error_responses(
        401, 403, 404, 422, 500, 503, domain_codes=("insufficient_stock", "item_inactive")
    ),
)
def adjust_item(
    item_id: str,
    payload: StockAdjustIn,
    db: Session = Depends(get_db),
    user: User = Depends(require_admin),
):
    result = stock_item_service.adjust_item_quantity(
        db,
        item_id,
        actor_user_id=user.id,
        adjustment_type=payload.adjustment_type,
        quantity=payload.quantity,
        note=payload.note,
    )
    return _mutation_out(result)


@router.get(
    "/items/{item_id}/transactions",
    response_model=StockLedgerListOut,
    summary="Item ledger history",
    responses=error_responses(401, 404, 422, 500),
)
def list_item_transactions(
    item_id: str,
    limit: int = Query(default=50, ge=1, le=200, description="Page size"),
    offset: int = Query(default=0, ge=0, description="Pagination offset"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    stock_item_service.get_item(db, item_id)
    rows, total = ledger_writer.get_item_history(db, item_id, limit=limit, offset=offset)
    items = [_entry_out(row) for row in rows]
    return StockLedgerListOut(
        items=items,
        pagination=pagination_meta(total=total, limit=limit, offset=offset, count=len(items)),
    )


@router.get(
    "/items/{item_id}/location-balances",
    response_model=LocationBalanceListOut,
    summary="Net transfer movement per location",
    description="Derived from location-tagged transfer entries. The item quantity stays global.",
    responses=error_responses(401, 404, 500),
)
def item_location_balances(
    item_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    item = stock_item_service.get_item(db, item_id)
    balances = get_location_balances(db, item_id)
    return LocationBalanceListOut(
        item_id=item.id,
        quantity=float(item.quantity),
        items=[
            LocationBalanceOut(
                location_id=balance.location_id,
                location_name=balance.location_name,
                net_quantity=float(balance.net_quantity),
            )
            for balance in balances
        ],
    )


@router.get(
    "/ledger",
    response_model=StockLedgerListOut,
    summary="List stock ledger entries",
    responses={
        200: {
            "description": "Paginated stock ledger",
            "content": {
                "application/json": {
                    "example": {
                        "items": [
                            {
                                "id": "ledger-id",
                                "item_id": "item-id",
                                "kind": "remove",
                                "quantity": 4.0,
                                "quantity_before": 10.0,
                                "quantity_after": 6.0,
                                "item_version": 2,
                                "location_id": "location-id",
                                "actor_user_id": "user-id",
                                "note": "Requisition approval: #REQ-1A2B3C",
                                "reference_type": "requisition",
                                "reference_id": "requisition-id",
                                "created_at": "2026-02-16T10:00:00Z",
                            }
                        ],
                        "pagination": {
                            "total": 12,
                            "limit": 50,
                            "offset": 0,
                            "count": 1,
                            "has_next": True,
                        },
                    }
                }
            },
        },
        **error_responses(401, 404, 422, 500),
    },
)
def list_ledger(
    item_id: str | None = Query(default=None, description="Optional item filter"),
    location_id: str | None = Query(default=None, description="Optional location filter"),
    kind: str | None = Query(default=None, pattern="^(add|remove|adjust|in|out)$"),
    limit: int = Query(default=50, ge=1, le=200, description="Page size"),
    offset: int = Query(default=0, ge=0, description="Pagination offset"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if item_id:
        stock_item_service.get_item(db, item_id)

    rows, total = ledger_writer.list_ledger_entries(
        db,
        item_id=item_id,
        location_id=location_id,
        kind=kind,
        limit=limit,
        offset=offset,
    )
    items = [_entry_out(row) for row in rows]
    return StockLedgerListOut(
        items=items,
        pagination=pagination_meta(total=total, limit=limit, offset=offset, count=len(items)),
    )


@router.get(
    "/low-stock",
    response_model=StockItemListOut,
    summary="List items at or below their reorder level",
    responses=error_responses(401, 422, 500),
)
def list_low_stock(
    limit: int = Query(default=50, ge=1, le=200, description="Page size"),
    offset: int = Query(default=0, ge=0, description="Pagination offset"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    rows, total = stock_item_service.list_low_stock_items(db, limit=limit, offset=offset)
    items = [_item_out(row) for row in rows]
    return StockItemListOut(
        items=items,
        pagination=pagination_meta(total=total, limit=limit, offset=offset, count=len(items)),
    )
