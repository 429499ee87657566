"""
ORM-level write guards for stock ledger tables.

Listeners fire during ``Session.flush()`` before SQL is emitted:

- ``StockLedgerEntry`` rows are append-only: any UPDATE or DELETE is rejected.
- ``StockItem.quantity`` cannot be changed through the unit of work. Items are
  inserted at zero and the stock gateway moves quantity with a version-checked
  Core UPDATE, which does not pass through these listeners.
- ``Requisition`` rows are frozen once reviewed. The pending -> terminal move is
  itself a conditional Core UPDATE.

``stockledger.models`` registers them on import; ``register_write_guards()`` is
idempotent.
"""

import logging

from sqlalchemy import event, inspect

from stockledger.core.errors import LedgerImmutableError, QuantityOwnershipError
from stockledger.core.observability import log_event

TERMINAL_REQUISITION_STATUSES = {"approved", "declined"}


def _reject_ledger_update(mapper, connection, target):
    log_event("ledger.write_blocked", level=logging.ERROR, operation="update", entry_id=target.id)
    raise LedgerImmutableError(
        entity_type="StockLedgerEntry",
        entity_id=target.id,
        reason="ledger entries cannot be modified",
    )


def _reject_ledger_delete(mapper, connection, target):
    log_event("ledger.write_blocked", level=logging.ERROR, operation="delete", entry_id=target.id)
    raise LedgerImmutableError(
        entity_type="StockLedgerEntry",
        entity_id=target.id,
        reason="ledger entries cannot be deleted",
    )


def _check_item_insert(mapper, connection, target):
    if target.quantity not in (None, 0):
        raise QuantityOwnershipError(
            entity_type="StockItem",
            entity_id=target.id,
            reason="items start at zero; initial stock goes through the stock gateway",
        )


def _check_item_update(mapper, connection, target):
    for key in ("quantity", "quantity_version"):
        if inspect(target).attrs[key].history.has_changes():
            raise QuantityOwnershipError(
                entity_type="StockItem",
                entity_id=target.id,
                reason=f"'{key}' is owned by the stock gateway",
            )


def _reject_item_delete(mapper, connection, target):
    raise LedgerImmutableError(
        entity_type="StockItem",
        entity_id=target.id,
        reason="items are retired, never deleted",
    )


def _check_requisition_update(mapper, connection, target):
    status_history = inspect(target).attrs["status"].history
    if status_history.deleted:
        previous_status = status_history.deleted[0]
    else:
        previous_status = target.status

    if previous_status in TERMINAL_REQUISITION_STATUSES:
        raise LedgerImmutableError(
            entity_type="Requisition",
            entity_id=target.id,
            reason=f"requisition is already {previous_status}",
        )


def _reject_requisition_delete(mapper, connection, target):
    raise LedgerImmutableError(
        entity_type="Requisition",
        entity_id=target.id,
        reason="requisitions are never deleted",
    )


def _listeners():
    from stockledger.models.ledger import StockLedgerEntry
    from stockledger.models.requisition import Requisition
    from stockledger.models.stock_item import StockItem

    return [
        (StockLedgerEntry, "before_update", _reject_ledger_update),
        (StockLedgerEntry, "before_delete", _reject_ledger_delete),
        (StockItem, "before_insert", _check_item_insert),
        (StockItem, "before_update", _check_item_update),
        (StockItem, "before_delete", _reject_item_delete),
        (Requisition, "before_update", _check_requisition_update),
        (Requisition, "before_delete", _reject_requisition_delete),
    ]


def register_write_guards() -> None:
    for target, event_name, listener in _listeners():
        if not event.contains(target, event_name, listener):
            event.listen(target, event_name, listener)

