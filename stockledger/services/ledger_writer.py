from decimal import Decimal

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from stockledger.core.errors import InvalidLedgerKindError, InvalidQuantityError, ValidationFailedError
from stockledger.core.id_utils import generate_entity_id
from stockledger.core.quantities import ZERO_QUANTITY, parse_quantity, to_quantity
from stockledger.models.ledger import StockLedgerEntry

LEDGER_KINDS = ("add", "remove", "adjust", "in", "out")
INCREASING_KINDS = frozenset({"add", "in"})
DECREASING_KINDS = frozenset({"remove", "out"})
ABSOLUTE_KINDS = frozenset({"adjust"})

REFERENCE_TYPES = ("initial", "manual", "requisition", "transfer")


def validate_movement(kind: str, quantity: Decimal | int | float | str) -> Decimal:
    """Checks kind and range only; `adjust` carries an absolute count, so zero is allowed."""
    if kind not in LEDGER_KINDS:
        raise InvalidLedgerKindError(kind)

    qty = parse_quantity(quantity)
    if kind in ABSOLUTE_KINDS:
        if qty < ZERO_QUANTITY:
            raise InvalidQuantityError("Adjusted quantity cannot be negative", quantity=qty)
    elif qty <= ZERO_QUANTITY:
        raise InvalidQuantityError(quantity=qty)
    return qty


def append_ledger_entry(
    db: Session,
    *,
    item_id: str,
    kind: str,
    quantity: Decimal,
    quantity_before: Decimal,
    quantity_after: Decimal,
    item_version: int,
    actor_user_id: str,
    location_id: str | None = None,
    note: str | None = None,
    reference_type: str | None = None,
    reference_id: str | None = None,
) -> StockLedgerEntry:
    qty = validate_movement(kind, quantity)
    if reference_type is not None and reference_type not in REFERENCE_TYPES:
        raise ValidationFailedError(
            f"Unsupported ledger reference type '{reference_type}'",
            details={"reference_type": reference_type},
        )

    entry = StockLedgerEntry(
        id=generate_entity_id(),
        item_id=item_id,
        kind=kind,
        quantity=qty,
        quantity_before=to_quantity(quantity_before),
        quantity_after=to_quantity(quantity_after),
        item_version=item_version,
        location_id=location_id,
        actor_user_id=actor_user_id,
        note=note,
        reference_type=reference_type,
        reference_id=reference_id,
    )
    db.add(entry)
    return entry


def list_ledger_entries(
    db: Session,
    *,
    item_id: str | None = None,
    location_id: str | None = None,
    kind: str | None = None,
    reference_type: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[StockLedgerEntry], int]:
    filters = []
    if item_id:
        filters.append(StockLedgerEntry.item_id == item_id)
    if location_id:
        filters.append(StockLedgerEntry.location_id == location_id)
    if kind:
        filters.append(StockLedgerEntry.kind == kind)
    if reference_type:
        filters.append(StockLedgerEntry.reference_type == reference_type)

    total = int(db.execute(select(func.count(StockLedgerEntry.id)).where(*filters)).scalar_one())
    rows = db.execute(
        select(StockLedgerEntry)
        .where(*filters)
        .order_by(StockLedgerEntry.created_at.desc(), StockLedgerEntry.item_version.desc())
        .offset(offset)
        .limit(limit)
    ).scalars().all()
    return list(rows), total


def get_item_history(
    db: Session,
    item_id: str,
    *,
    newest_first: bool = True,
    limit: int | None = None,
    offset: int = 0,
) -> tuple[list[StockLedgerEntry], int]:
    """Item-scoped history in version order, which is also commit order for that item."""
    order = StockLedgerEntry.item_version.desc() if newest_first else StockLedgerEntry.item_version.asc()
    total = int(
        db.execute(
            select(func.count(StockLedgerEntry.id)).where(StockLedgerEntry.item_id == item_id)
        ).scalar_one()
    )
    stmt = select(StockLedgerEntry).where(StockLedgerEntry.item_id == item_id).order_by(order).offset(offset)
    if limit is not None:
        stmt = stmt.limit(limit)
    return list(db.execute(stmt).scalars().all()), total


def get_location_net_movements(db: Session, item_id: str) -> list[tuple[str, Decimal]]:
    """Sums location-tagged `in` minus `out` per location. Informational only."""
    signed_qty = case(
        (StockLedgerEntry.kind == "in", StockLedgerEntry.quantity),
        (StockLedgerEntry.kind == "out", -StockLedgerEntry.quantity),
        else_=0,
    )
    rows = db.execute(
        select(StockLedgerEntry.location_id, func.coalesce(func.sum(signed_qty), 0))
        .where(
            StockLedgerEntry.item_id == item_id,
            StockLedgerEntry.location_id.is_not(None),
            StockLedgerEntry.kind.in_(("in", "out")),
        )
        .group_by(StockLedgerEntry.location_id)
        .order_by(StockLedgerEntry.location_id)
    ).all()
    return [(location_id, to_quantity(net)) for location_id, net in rows]
