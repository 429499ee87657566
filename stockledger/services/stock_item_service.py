from decimal import Decimal
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from stockledger.core.errors import (
    DuplicateResourceError,
    InvalidQuantityError,
    ResourceNotFoundError,
    ValidationFailedError,
)
from stockledger.core.id_utils import generate_entity_id
from stockledger.core.money import money_or_none
from stockledger.core.quantities import ZERO_QUANTITY, parse_quantity
from stockledger.models.catalog import ItemCategory, UnitOfMeasure
from stockledger.models.location import Location
from stockledger.models.stock_item import StockItem
from stockledger.services.audit_service import log_audit_event
from stockledger.services.notification_service import (
    ItemCreatedEvent,
    dispatch_event,
    publish_stock_movements,
)
from stockledger.services.stock_gateway import MutationResult, apply_stock_mutation, run_unit_of_work

RETIRED_NAME_PREFIX = "[DELETED] "
ADJUSTMENT_TYPES = ("add", "remove", "adjust")
METADATA_FIELDS = (
    "name",
    "sku",
    "description",
    "category_id",
    "uom_id",
    "location_id",
    "reorder_level",
    "unit_price",
    "is_active",
)


def get_item(db: Session, item_id: str) -> StockItem:
    item = db.execute(select(StockItem).where(StockItem.id == item_id)).scalar_one_or_none()
    if not item:
        raise ResourceNotFoundError("Item", item_id)
    return item


def list_items(
    db: Session,
    *,
    search: str | None = None,
    category_id: str | None = None,
    location_id: str | None = None,
    is_active: bool | None = True,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[StockItem], int]:
    filters = []
    if is_active is not None:
        filters.append(StockItem.is_active.is_(is_active))
    if category_id:
        filters.append(StockItem.category_id == category_id)
    if location_id:
        filters.append(StockItem.location_id == location_id)
    if search and search.strip():
        pattern = f"%{search.strip().lower()}%"
        filters.append(
            or_(
                func.lower(StockItem.name).like(pattern),
                func.lower(StockItem.sku).like(pattern),
                func.lower(func.coalesce(StockItem.description, "")).like(pattern),
            )
        )

    total = int(db.execute(select(func.count(StockItem.id)).where(*filters)).scalar_one())
    rows = db.execute(
        select(StockItem).where(*filters).order_by(StockItem.name.asc(), StockItem.id.asc()).offset(offset).limit(limit)
    ).scalars().all()
    return list(rows), total


def list_low_stock_items(db: Session, *, limit: int = 50, offset: int = 0) -> tuple[list[StockItem], int]:
    filters = (StockItem.is_active.is_(True), StockItem.quantity <= StockItem.reorder_level)
    total = int(db.execute(select(func.count(StockItem.id)).where(*filters)).scalar_one())
    rows = db.execute(
        select(StockItem)
        .where(*filters)
        .order_by(StockItem.quantity.asc(), StockItem.name.asc())
        .offset(offset)
        .limit(limit)
    ).scalars().all()
    return list(rows), total


def _ensure_reference(db: Session, model, resource: str, resource_id: str | None) -> None:
    if resource_id is None:
        return
    found = db.execute(select(model.id).where(model.id == resource_id)).scalar_one_or_none()
    if not found:
        raise ResourceNotFoundError(resource, resource_id)


def _ensure_sku_available(db: Session, sku: str, *, exclude_item_id: str | None = None) -> None:
    stmt = select(StockItem.id).where(func.lower(StockItem.sku) == sku.lower())
    if exclude_item_id:
        stmt = stmt.where(StockItem.id != exclude_item_id)
    if db.execute(stmt).first():
        raise DuplicateResourceError("SKU already exists", details={"sku": sku})


def _validate_reorder_level(value: Decimal | int | float | str) -> Decimal:
    level = parse_quantity(value)
    if level < ZERO_QUANTITY:
        raise InvalidQuantityError("Reorder level cannot be negative", quantity=level)
    return level


def create_item(
    db: Session,
    *,
    actor_user_id: str,
    name: str,
    sku: str,
    description: str | None = None,
    category_id: str | None = None,
    uom_id: str | None = None,
    location_id: str | None = None,
    quantity: Decimal | int | float | str = 0,
    reorder_level: Decimal | int | float | str = 0,
    unit_price: Decimal | int | float | str | None = None,
) -> tuple[StockItem, MutationResult | None]:
    """Inserts an item at zero; any starting stock is one gateway `add` in the same commit."""
    initial_quantity = parse_quantity(quantity)
    if initial_quantity < ZERO_QUANTITY:
        raise InvalidQuantityError("Initial quantity cannot be negative", quantity=initial_quantity)
    level = _validate_reorder_level(reorder_level)
    cleaned_sku = sku.strip()

    def _operation() -> tuple[StockItem, MutationResult | None]:
        _ensure_sku_available(db, cleaned_sku)
        _ensure_reference(db, ItemCategory, "Category", category_id)
        _ensure_reference(db, UnitOfMeasure, "Unit of measure", uom_id)
        _ensure_reference(db, Location, "Location", location_id)

        item = StockItem(
            id=generate_entity_id(),
            name=name.strip(),
            sku=cleaned_sku,
            description=description,
            category_id=category_id,
            uom_id=uom_id,
            location_id=location_id,
            reorder_level=level,
            unit_price=money_or_none(unit_price),
            is_active=True,
            created_by=actor_user_id,
            updated_by=actor_user_id,
        )
        db.add(item)
        db.flush()

        mutation = None
        if initial_quantity > ZERO_QUANTITY:
            mutation = apply_stock_mutation(
                db,
                item_id=item.id,
                kind="add",
                quantity=initial_quantity,
                actor_user_id=actor_user_id,
                location_id=location_id,
                note="Initial stock",
                reference_type="initial",
                reference_id=item.id,
            )

        log_audit_event(
            db,
            actor_user_id=actor_user_id,
            action="inventory.item.create",
            target_type="stock_item",
            target_id=item.id,
            metadata_json={
                "name": item.name,
                "sku": item.sku,
                "initial_quantity": float(initial_quantity),
            },
        )
        return item, mutation

    item, mutation = run_unit_of_work(db, _operation, label="inventory.item.create")
    dispatch_event(
        ItemCreatedEvent(
            item_id=item.id,
            name=item.name,
            sku=item.sku,
            quantity=float(initial_quantity),
            actor_user_id=actor_user_id,
        )
    )
    if mutation is not None:
        publish_stock_movements(mutation)
    return item, mutation


def update_item_metadata(
    db: Session,
    item_id: str,
    *,
    actor_user_id: str,
    changes: dict[str, Any],
) -> StockItem:
    if "quantity" in changes or "quantity_version" in changes:
        raise ValidationFailedError("Quantity can only change through stock adjustments")
    unknown = sorted(set(changes) - set(METADATA_FIELDS))
    if unknown:
        raise ValidationFailedError("Unsupported item fields", details={"fields": unknown})

    def _operation() -> StockItem:
        item = get_item(db, item_id)
        normalized: dict[str, Any] = {}
        for field_name, value in changes.items():
            if field_name == "name" and value is not None:
                value = value.strip()
            elif field_name == "sku" and value is not None:
                value = value.strip()
                _ensure_sku_available(db, value, exclude_item_id=item.id)
            elif field_name == "reorder_level" and value is not None:
                value = _validate_reorder_level(value)
            elif field_name == "unit_price":
                value = money_or_none(value)
            elif field_name == "category_id":
                _ensure_reference(db, ItemCategory, "Category", value)
            elif field_name == "uom_id":
                _ensure_reference(db, UnitOfMeasure, "Unit of measure", value)
            elif field_name == "location_id":
                _ensure_reference(db, Location, "Location", value)
            normalized[field_name] = value

        reactivating = normalized.get("is_active") is True and not item.is_active
        if reactivating and "name" not in normalized and item.name.startswith(RETIRED_NAME_PREFIX):
            normalized["name"] = item.name[len(RETIRED_NAME_PREFIX):]

        diff: dict[str, dict[str, Any]] = {}
        for field_name, value in normalized.items():
            previous = getattr(item, field_name)
            if previous != value:
                diff[field_name] = {"old": previous, "new": value}
                setattr(item, field_name, value)

        if diff:
            item.updated_by = actor_user_id
            log_audit_event(
                db,
                actor_user_id=actor_user_id,
                action="inventory.item.update",
                target_type="stock_item",
                target_id=item.id,
                metadata_json={"changes": diff},
            )
        db.flush()
        return item

    return run_unit_of_work(db, _operation, label="inventory.item.update")


def retire_item(db: Session, item_id: str, *, actor_user_id: str) -> StockItem:
    def _operation() -> StockItem:
        item = get_item(db, item_id)
        if not item.is_active:
            return item
        item.is_active = False
        if not item.name.startswith(RETIRED_NAME_PREFIX):
            item.name = f"{RETIRED_NAME_PREFIX}{item.name}"[:150]
        item.updated_by = actor_user_id
        log_audit_event(
            db,
            actor_user_id=actor_user_id,
            action="inventory.item.retire",
            target_type="stock_item",
            target_id=item.id,
            metadata_json={"sku": item.sku, "quantity": float(item.quantity)},
        )
        db.flush()
        return item

    return run_unit_of_work(db, _operation, label="inventory.item.retire")


def adjust_item_quantity(
    db: Session,
    item_id: str,
    *,
    actor_user_id: str,
    adjustment_type: str,
    quantity: Decimal | int | float | str,
    note: str | None = None,
) -> MutationResult:
    if adjustment_type not in ADJUSTMENT_TYPES:
        raise ValidationFailedError(
            f"Unsupported adjustment type '{adjustment_type}'",
            details={"adjustment_type": adjustment_type, "allowed": list(ADJUSTMENT_TYPES)},
        )

    def _operation() -> MutationResult:
        result = apply_stock_mutation(
            db,
            item_id=item_id,
            kind=adjustment_type,
            quantity=quantity,
            actor_user_id=actor_user_id,
            note=note,
            reference_type="manual",
        )
        log_audit_event(
            db,
            actor_user_id=actor_user_id,
            action="inventory.adjust",
            target_type="stock_item",
            target_id=item_id,
            metadata_json={
                "adjustment_type": adjustment_type,
                "quantity": float(result.quantity),
                "old_quantity": float(result.quantity_before),
                "new_quantity": float(result.new_quantity),
                "ledger_entry_id": result.ledger_entry_id,
            },
        )
        return result

    result = run_unit_of_work(db, _operation, label="inventory.adjust")
    publish_stock_movements(result)
    return result
