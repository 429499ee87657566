"""
The only code path that changes a stock item's quantity.

Every call runs inside the caller's session transaction:

1. lock the item row (``SELECT ... FOR UPDATE``; a no-op on SQLite, where the
   engine takes the write lock at ``BEGIN IMMEDIATE`` instead),
2. compute the new quantity and reject anything below zero,
3. write it with ``UPDATE ... WHERE quantity_version = :read_version``,
4. append exactly one ledger entry carrying before/after and the new version.

Callers wrap one logical operation (all of its gateway calls plus any status
changes) in :func:`run_unit_of_work`, which commits once and retries the whole
operation when a version check loses a race.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import TypeVar

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stockledger.core.config import settings
from stockledger.core.errors import (
    ConcurrentUpdateError,
    InsufficientStockError,
    InvalidLedgerKindError,
    ItemInactiveError,
    ResourceNotFoundError,
    StockLedgerError,
    StorageError,
)
from stockledger.core.observability import log_event
from stockledger.core.quantities import ZERO_QUANTITY, to_quantity
from stockledger.models.stock_item import StockItem
from stockledger.services.ledger_writer import (
    ABSOLUTE_KINDS,
    DECREASING_KINDS,
    INCREASING_KINDS,
    append_ledger_entry,
    validate_movement,
)

T = TypeVar("T")


@dataclass(frozen=True)
class MutationResult:
    item_id: str
    kind: str
    quantity: Decimal
    quantity_before: Decimal
    new_quantity: Decimal
    item_version: int
    ledger_entry_id: str
    reorder_level: Decimal
    actor_user_id: str
    location_id: str | None = None

    @property
    def is_low_stock(self) -> bool:
        return self.new_quantity <= self.reorder_level


def resolve_new_quantity(kind: str, before: Decimal, quantity: Decimal) -> Decimal:
    if kind in ABSOLUTE_KINDS:
        return quantity
    if kind in DECREASING_KINDS:
        return before - quantity
    if kind in INCREASING_KINDS:
        return before + quantity
    raise InvalidLedgerKindError(kind)


def _lock_item(db: Session, item_id: str) -> StockItem:
    item = db.execute(
        select(StockItem)
        .where(StockItem.id == item_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if not item:
        raise ResourceNotFoundError("Item", item_id)
    return item


def apply_stock_mutation(
    db: Session,
    *,
    item_id: str,
    kind: str,
    quantity: Decimal | int | float | str,
    actor_user_id: str,
    location_id: str | None = None,
    note: str | None = None,
    reference_type: str | None = None,
    reference_id: str | None = None,
) -> MutationResult:
    qty = validate_movement(kind, quantity)
    item = _lock_item(db, item_id)
    if not item.is_active:
        raise ItemInactiveError(item_id)

    before = to_quantity(item.quantity)
    read_version = item.quantity_version
    after = resolve_new_quantity(kind, before, qty)

    if after < ZERO_QUANTITY:
        log_event(
            "stock.mutation.rejected",
            level=logging.WARNING,
            item_id=item_id,
            kind=kind,
            available=str(before),
            requested=str(qty),
            reference_type=reference_type,
            reference_id=reference_id,
        )
        raise InsufficientStockError(item_id=item_id, available=before, requested=qty)

    next_version = read_version + 1
    result = db.execute(
        update(StockItem)
        .where(StockItem.id == item_id, StockItem.quantity_version == read_version)
        .values(
            quantity=after,
            quantity_version=next_version,
            updated_by=actor_user_id,
            updated_at=datetime.now(timezone.utc),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConcurrentUpdateError(item_id=item_id, expected_version=read_version)

    entry = append_ledger_entry(
        db,
        item_id=item_id,
        kind=kind,
        quantity=qty,
        quantity_before=before,
        quantity_after=after,
        item_version=next_version,
        actor_user_id=actor_user_id,
        location_id=location_id,
        note=note,
        reference_type=reference_type,
        reference_id=reference_id,
    )
    db.flush()
    db.expire(item, ["quantity", "quantity_version", "updated_by", "updated_at"])

    log_event(
        "stock.mutation",
        item_id=item_id,
        kind=kind,
        quantity=str(qty),
        quantity_before=str(before),
        quantity_after=str(after),
        item_version=next_version,
        ledger_entry_id=entry.id,
        location_id=location_id,
        reference_type=reference_type,
        reference_id=reference_id,
    )
    return MutationResult(
        item_id=item_id,
        kind=kind,
        quantity=qty,
        quantity_before=before,
        new_quantity=after,
        item_version=next_version,
        ledger_entry_id=entry.id,
        reorder_level=to_quantity(item.reorder_level),
        actor_user_id=actor_user_id,
        location_id=location_id,
    )


def run_unit_of_work(
    db: Session,
    operation: Callable[[], T],
    *,
    attempts: int | None = None,
    label: str = "unit_of_work",
) -> T:
    """Runs `operation`, commits once, and retries the whole operation on version conflicts."""
    max_attempts = attempts or settings.stock_mutation_max_attempts
    attempt = 1
    while True:
        try:
            outcome = operation()
            db.commit()
            return outcome
        except ConcurrentUpdateError as exc:
            db.rollback()
            if attempt >= max_attempts:
                log_event(
                    "stock.mutation.conflict",
                    level=logging.WARNING,
                    label=label,
                    attempts=attempt,
                    item_id=exc.item_id,
                )
                raise
            log_event("stock.mutation.retry", label=label, attempt=attempt, item_id=exc.item_id)
            attempt += 1
        except StockLedgerError:
            db.rollback()
            raise
        except SQLAlchemyError as exc:
            db.rollback()
            log_event("storage.error", level=logging.ERROR, label=label, error=str(exc))
            raise StorageError("Storage failure; no changes were saved") from exc
