from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from stockledger.core.errors import InvalidTransferError, ResourceNotFoundError
from stockledger.core.id_utils import generate_entity_id
from stockledger.core.observability import log_event
from stockledger.core.quantities import ZERO_QUANTITY, parse_quantity, to_quantity
from stockledger.models.ledger import StockLedgerEntry
from stockledger.models.location import Location
from stockledger.models.stock_item import StockItem
from stockledger.services.audit_service import log_audit_event
from stockledger.services.ledger_writer import get_location_net_movements
from stockledger.services.notification_service import publish_stock_movements
from stockledger.services.stock_gateway import MutationResult, apply_stock_mutation, run_unit_of_work

TRANSFER_REFERENCE_TYPE = "transfer"


@dataclass(frozen=True)
class TransferResult:
    transfer_id: str
    item_id: str
    from_location_id: str
    to_location_id: str
    quantity: Decimal
    out_leg: MutationResult
    in_leg: MutationResult

    @property
    def new_quantity(self) -> Decimal:
        return self.in_leg.new_quantity


@dataclass(frozen=True)
class TransferRecord:
    transfer_id: str
    item_id: str
    from_location_id: str | None
    to_location_id: str | None
    quantity: Decimal
    actor_user_id: str
    note: str | None
    out_entry_id: str
    in_entry_id: str | None
    created_at: datetime


@dataclass(frozen=True)
class LocationBalance:
    location_id: str
    location_name: str | None
    net_quantity: Decimal


def _get_location(db: Session, location_id: str) -> Location:
    location = db.execute(
        select(Location).where(Location.id == location_id, Location.is_active.is_(True))
    ).scalar_one_or_none()
    if not location:
        raise ResourceNotFoundError("Location", location_id)
    return location


def transfer_stock(
    db: Session,
    *,
    item_id: str,
    from_location_id: str,
    to_location_id: str,
    quantity: Decimal | int | float | str,
    actor_user_id: str,
    note: str | None = None,
) -> TransferResult:
    if from_location_id == to_location_id:
        raise InvalidTransferError(
            "Source and destination locations must differ",
            details={"from_location_id": from_location_id, "to_location_id": to_location_id},
        )
    qty = parse_quantity(quantity)
    if qty <= ZERO_QUANTITY:
        raise InvalidTransferError("Transfer quantity must be greater than zero", details={"quantity": float(qty)})

    def _operation() -> TransferResult:
        item_exists = db.execute(select(StockItem.id).where(StockItem.id == item_id)).scalar_one_or_none()
        if not item_exists:
            raise ResourceNotFoundError("Item", item_id)
        _get_location(db, from_location_id)
        _get_location(db, to_location_id)

        transfer_id = generate_entity_id()
        out_leg = apply_stock_mutation(
            db,
            item_id=item_id,
            kind="out",
            quantity=qty,
            actor_user_id=actor_user_id,
            location_id=from_location_id,
            note=note or "Transfer out",
            reference_type=TRANSFER_REFERENCE_TYPE,
            reference_id=transfer_id,
        )
        in_leg = apply_stock_mutation(
            db,
            item_id=item_id,
            kind="in",
            quantity=qty,
            actor_user_id=actor_user_id,
            location_id=to_location_id,
            note=note or "Transfer in",
            reference_type=TRANSFER_REFERENCE_TYPE,
            reference_id=transfer_id,
        )
        log_audit_event(
            db,
            actor_user_id=actor_user_id,
            action="stock_transfer.create",
            target_type="stock_item",
            target_id=item_id,
            metadata_json={
                "transfer_id": transfer_id,
                "from_location_id": from_location_id,
                "to_location_id": to_location_id,
                "quantity": float(qty),
                "out_entry_id": out_leg.ledger_entry_id,
                "in_entry_id": in_leg.ledger_entry_id,
            },
        )
        return TransferResult(
            transfer_id=transfer_id,
            item_id=item_id,
            from_location_id=from_location_id,
            to_location_id=to_location_id,
            quantity=qty,
            out_leg=out_leg,
            in_leg=in_leg,
        )

    result = run_unit_of_work(db, _operation, label="stock_transfer.create")
    log_event(
        "stock.transfer",
        transfer_id=result.transfer_id,
        item_id=item_id,
        from_location_id=from_location_id,
        to_location_id=to_location_id,
        quantity=str(qty),
    )
    publish_stock_movements(result.out_leg, result.in_leg)
    return result


def list_transfers(
    db: Session,
    *,
    item_id: str | None = None,
    location_id: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[TransferRecord], int]:
    """Rebuilds transfers from the location-tagged ledger; one record per `out` leg."""
    filters = [
        StockLedgerEntry.reference_type == TRANSFER_REFERENCE_TYPE,
        StockLedgerEntry.kind == "out",
    ]
    if item_id:
        filters.append(StockLedgerEntry.item_id == item_id)
    if location_id:
        inbound_refs = select(StockLedgerEntry.reference_id).where(
            StockLedgerEntry.reference_type == TRANSFER_REFERENCE_TYPE,
            StockLedgerEntry.kind == "in",
            StockLedgerEntry.location_id == location_id,
        )
        filters.append(
            or_(
                StockLedgerEntry.location_id == location_id,
                StockLedgerEntry.reference_id.in_(inbound_refs),
            )
        )

    total = int(db.execute(select(func.count(StockLedgerEntry.id)).where(*filters)).scalar_one())
    out_legs = db.execute(
        select(StockLedgerEntry)
        .where(*filters)
        .order_by(StockLedgerEntry.created_at.desc(), StockLedgerEntry.id.desc())
        .offset(offset)
        .limit(limit)
    ).scalars().all()

    reference_ids = [leg.reference_id for leg in out_legs if leg.reference_id]
    in_legs: dict[str, StockLedgerEntry] = {}
    if reference_ids:
        for leg in db.execute(
            select(StockLedgerEntry).where(
                StockLedgerEntry.reference_type == TRANSFER_REFERENCE_TYPE,
                StockLedgerEntry.kind == "in",
                StockLedgerEntry.reference_id.in_(reference_ids),
            )
        ).scalars():
            in_legs[leg.reference_id] = leg

    records = []
    for out_leg in out_legs:
        in_leg = in_legs.get(out_leg.reference_id)
        records.append(
            TransferRecord(
                transfer_id=out_leg.reference_id,
                item_id=out_leg.item_id,
                from_location_id=out_leg.location_id,
                to_location_id=in_leg.location_id if in_leg else None,
                quantity=to_quantity(out_leg.quantity),
                actor_user_id=out_leg.actor_user_id,
                note=out_leg.note,
                out_entry_id=out_leg.id,
                in_entry_id=in_leg.id if in_leg else None,
                created_at=out_leg.created_at,
            )
        )
    return records, total


def get_location_balances(db: Session, item_id: str) -> list[LocationBalance]:
    item_exists = db.execute(select(StockItem.id).where(StockItem.id == item_id)).scalar_one_or_none()
    if not item_exists:
        raise ResourceNotFoundError("Item", item_id)

    movements = get_location_net_movements(db, item_id)
    names = {}
    if movements:
        names = dict(
            db.execute(
                select(Location.id, Location.name).where(Location.id.in_([loc for loc, _ in movements]))
            ).all()
        )
    return [
        LocationBalance(location_id=location_id, location_name=names.get(location_id), net_quantity=net)
        for location_id, net in movements
    ]
