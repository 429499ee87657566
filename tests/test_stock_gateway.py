from decimal import Decimal

import pytest
from sqlalchemy import event, select, update
from sqlalchemy.exc import OperationalError

from helpers import create_item, create_user, register_admin_and_staff
from stockledger.core.errors import (
    ConcurrentUpdateError,
    InsufficientStockError,
    InvalidLedgerKindError,
    InvalidQuantityError,
    LedgerImmutableError,
    QuantityOwnershipError,
    StorageError,
)
from stockledger.models.ledger import StockLedgerEntry
from stockledger.models.stock_item import StockItem
from stockledger.services import stock_gateway
from stockledger.services.stock_gateway import apply_stock_mutation, resolve_new_quantity, run_unit_of_work
from stockledger.services.stock_item_service import create_item as create_item_record


def _seed_item(session_local, *, quantity=10, reorder_level=2):
    actor_id = create_user(session_local, email="keeper@example.com", role="admin")
    db = session_local()
    try:
        item, _ = create_item_record(
            db,
            actor_user_id=actor_id,
            name="Barcode Scanner",
            sku="SCAN-01",
            quantity=quantity,
            reorder_level=reorder_level,
        )
        return item.id, actor_id
    finally:
        db.close()


def _mutate(session_local, item_id, actor_id, kind, quantity, **kwargs):
    db = session_local()
    try:
        return run_unit_of_work(
            db,
            lambda: apply_stock_mutation(
                db,
                item_id=item_id,
                kind=kind,
                quantity=quantity,
                actor_user_id=actor_id,
                **kwargs,
            ),
        )
    finally:
        db.close()


def _item_state(session_local, item_id):
    db = session_local()
    try:
        item = db.execute(select(StockItem).where(StockItem.id == item_id)).scalar_one()
        return item.quantity, item.quantity_version
    finally:
        db.close()


def _history(session_local, item_id):
    db = session_local()
    try:
        return db.execute(
            select(StockLedgerEntry)
            .where(StockLedgerEntry.item_id == item_id)
            .order_by(StockLedgerEntry.item_version.asc())
        ).scalars().all()
    finally:
        db.close()


def test_resolve_new_quantity_by_kind():
    before = Decimal("10")
    assert resolve_new_quantity("add", before, Decimal("3")) == Decimal("13")
    assert resolve_new_quantity("in", before, Decimal("3")) == Decimal("13")
    assert resolve_new_quantity("remove", before, Decimal("3")) == Decimal("7")
    assert resolve_new_quantity("out", before, Decimal("3")) == Decimal("7")
    assert resolve_new_quantity("adjust", before, Decimal("3")) == Decimal("3")


def test_add_remove_and_adjust_keep_a_contiguous_ledger_chain(test_context):
    _, session_local = test_context
    item_id, actor_id = _seed_item(session_local, quantity=10)

    added = _mutate(session_local, item_id, actor_id, "add", 5, reference_type="manual")
    assert added.quantity_before == Decimal("10")
    assert added.new_quantity == Decimal("15")
    assert added.item_version == 2

    removed = _mutate(session_local, item_id, actor_id, "remove", "2.5", reference_type="manual")
    assert removed.new_quantity == Decimal("12.5")

    counted = _mutate(session_local, item_id, actor_id, "adjust", 0, note="Cycle count")
    assert counted.quantity == Decimal("0")
    assert counted.new_quantity == Decimal("0")
    assert counted.is_low_stock is True

    quantity, version = _item_state(session_local, item_id)
    assert quantity == Decimal("0")
    assert version == 4

    history = _history(session_local, item_id)
    assert [entry.kind for entry in history] == ["add", "add", "remove", "adjust"]
    assert [entry.item_version for entry in history] == [1, 2, 3, 4]
    for previous, current in zip(history, history[1:]):
        assert current.quantity_before == previous.quantity_after
    assert history[-1].quantity_after == quantity


def test_remove_beyond_available_is_rejected_without_side_effects(test_context):
    _, session_local = test_context
    item_id, actor_id = _seed_item(session_local, quantity=3)

    with pytest.raises(InsufficientStockError) as exc_info:
        _mutate(session_local, item_id, actor_id, "remove", 4)

    assert exc_info.value.available == Decimal("3")
    assert exc_info.value.requested == Decimal("4")
    assert _item_state(session_local, item_id) == (Decimal("3"), 1)
    assert len(_history(session_local, item_id)) == 1


@pytest.mark.parametrize(
    ("kind", "quantity", "error"),
    [
        ("add", 0, InvalidQuantityError),
        ("remove", -1, InvalidQuantityError),
        ("adjust", -5, InvalidQuantityError),
        ("add", "0.015", InvalidQuantityError),
        ("adjust", "2.005", InvalidQuantityError),
        ("sale", 1, InvalidLedgerKindError),
    ],
)
def test_invalid_movements_are_rejected(test_context, kind, quantity, error):
    _, session_local = test_context
    item_id, actor_id = _seed_item(session_local, quantity=3)

    with pytest.raises(error):
        _mutate(session_local, item_id, actor_id, kind, quantity)

    assert _item_state(session_local, item_id) == (Decimal("3"), 1)


def test_adjust_endpoint_returns_mutation_and_rejects_overdraw(test_context):
    client, _ = test_context
    admin, staff = register_admin_and_staff(client)
    item = create_item(client, admin, sku="TAB-10", quantity=6, reorder_level=2)

    res = client.post(
        f"/inventory/items/{item['id']}/adjust",
        json={"adjustment_type": "remove", "quantity": 4, "note": "Issued to front desk"},
        headers=admin,
    )
    assert res.status_code == 200, res.text
    body = res.json()
    assert body["quantity_before"] == 6
    assert body["new_quantity"] == 2
    assert body["is_low_stock"] is True

    overdraw = client.post(
        f"/inventory/items/{item['id']}/adjust",
        json={"adjustment_type": "remove", "quantity": 3},
        headers=admin,
    )
    assert overdraw.status_code == 409
    error = overdraw.json()["error"]
    assert error["code"] == "insufficient_stock"
    assert error["details"] == {"item_id": item["id"], "available": 2.0, "requested": 3.0}

    assert client.get(f"/inventory/items/{item['id']}", headers=staff).json()["quantity"] == 2

    staff_attempt = client.post(
        f"/inventory/items/{item['id']}/adjust",
        json={"adjustment_type": "add", "quantity": 1},
        headers=staff,
    )
    assert staff_attempt.status_code == 403

    ledger = client.get(f"/inventory/ledger?item_id={item['id']}&kind=remove", headers=staff)
    assert ledger.status_code == 200, ledger.text
    entries = ledger.json()["items"]
    assert len(entries) == 1
    assert entries[0]["note"] == "Issued to front desk"
    assert entries[0]["reference_type"] == "manual"


def test_version_conflict_is_retried_as_a_whole(test_context, monkeypatch):
    _, session_local = test_context
    item_id, actor_id = _seed_item(session_local, quantity=10)

    original_lock = stock_gateway._lock_item
    calls = {"count": 0}

    def racing_lock(db, locked_item_id):
        item = original_lock(db, locked_item_id)
        calls["count"] += 1
        if calls["count"] == 1:
            db.execute(
                update(StockItem)
                .where(StockItem.id == locked_item_id)
                .values(quantity_version=StockItem.quantity_version + 1)
                .execution_options(synchronize_session=False)
            )
        return item

    monkeypatch.setattr(stock_gateway, "_lock_item", racing_lock)

    result = _mutate(session_local, item_id, actor_id, "remove", 4)

    assert calls["count"] == 2
    assert result.new_quantity == Decimal("6")
    assert _item_state(session_local, item_id) == (Decimal("6"), 2)
    assert len(_history(session_local, item_id)) == 2


def test_version_conflict_gives_up_after_max_attempts(test_context, monkeypatch):
    _, session_local = test_context
    item_id, actor_id = _seed_item(session_local, quantity=10)

    original_lock = stock_gateway._lock_item
    calls = {"count": 0}

    def always_stale_lock(db, locked_item_id):
        item = original_lock(db, locked_item_id)
        calls["count"] += 1
        db.execute(
            update(StockItem)
            .where(StockItem.id == locked_item_id)
            .values(quantity_version=StockItem.quantity_version + 1)
            .execution_options(synchronize_session=False)
        )
        return item

    monkeypatch.setattr(stock_gateway, "_lock_item", always_stale_lock)

    with pytest.raises(ConcurrentUpdateError):
        _mutate(session_local, item_id, actor_id, "remove", 1)

    assert calls["count"] == 3
    assert _item_state(session_local, item_id) == (Decimal("10"), 1)


def test_ledger_entries_cannot_be_edited_or_deleted(test_context):
    _, session_local = test_context
    item_id, _ = _seed_item(session_local, quantity=5)

    db = session_local()
    try:
        entry = db.execute(select(StockLedgerEntry).where(StockLedgerEntry.item_id == item_id)).scalar_one()
        entry.quantity = Decimal("500")
        with pytest.raises(LedgerImmutableError):
            db.flush()
        db.rollback()

        entry = db.execute(select(StockLedgerEntry).where(StockLedgerEntry.item_id == item_id)).scalar_one()
        db.delete(entry)
        with pytest.raises(LedgerImmutableError):
            db.flush()
        db.rollback()
    finally:
        db.close()

    assert len(_history(session_local, item_id)) == 1


def test_item_quantity_cannot_be_written_through_the_orm(test_context):
    _, session_local = test_context
    item_id, actor_id = _seed_item(session_local, quantity=5)

    db = session_local()
    try:
        item = db.execute(select(StockItem).where(StockItem.id == item_id)).scalar_one()
        item.quantity = Decimal("99")
        with pytest.raises(QuantityOwnershipError):
            db.flush()
        db.rollback()

        db.add(
            StockItem(
                id="seeded-item",
                name="Sneaky",
                sku="SNEAKY-1",
                quantity=Decimal("7"),
                created_by=actor_id,
            )
        )
        with pytest.raises(QuantityOwnershipError):
            db.flush()
        db.rollback()
    finally:
        db.close()

    assert _item_state(session_local, item_id) == (Decimal("5"), 1)


def test_sub_cent_initial_quantity_is_rejected_not_rounded(test_context):
    _, session_local = test_context
    actor_id = create_user(session_local, email="keeper@example.com", role="admin")
    db = session_local()
    try:
        with pytest.raises(InvalidQuantityError):
            create_item_record(db, actor_user_id=actor_id, name="Cable", sku="CAB-01", quantity="0.004")
        assert db.execute(select(StockItem)).scalars().all() == []
    finally:
        db.close()


def test_storage_failure_on_ledger_insert_rolls_back_as_storage_error(test_context):
    _, session_local = test_context
    item_id, actor_id = _seed_item(session_local, quantity=10)
    bind = session_local.kw["bind"]

    def fail_ledger_insert(conn, cursor, statement, parameters, context, executemany):
        if statement.lstrip().upper().startswith("INSERT INTO STOCK_LEDGER_ENTRIES"):
            raise OperationalError(statement, parameters, Exception("disk I/O error"))

    event.listen(bind, "before_cursor_execute", fail_ledger_insert)
    try:
        with pytest.raises(StorageError) as excinfo:
            _mutate(session_local, item_id, actor_id, "remove", 3)
        assert excinfo.value.code == "storage_error"
        assert excinfo.value.status_code == 503
    finally:
        event.remove(bind, "before_cursor_execute", fail_ledger_insert)

    assert _item_state(session_local, item_id) == (Decimal("10"), 1)
    assert [entry.kind for entry in _history(session_local, item_id)] == ["add"]


def test_storage_failure_surfaces_as_503_envelope(test_context):
    client, session_local = test_context
    admin, _ = register_admin_and_staff(client)
    item = create_item(client, admin, sku="LBL-01", quantity=5)
    bind = session_local.kw["bind"]

    def fail_ledger_insert(conn, cursor, statement, parameters, context, executemany):
        if statement.lstrip().upper().startswith("INSERT INTO STOCK_LEDGER_ENTRIES"):
            raise OperationalError(statement, parameters, Exception("database is locked"))

    event.listen(bind, "before_cursor_execute", fail_ledger_insert)
    try:
        res = client.post(
            f"/inventory/items/{item['id']}/adjust",
            json={"adjustment_type": "add", "quantity": 2},
            headers=admin,
        )
    finally:
        event.remove(bind, "before_cursor_execute", fail_ledger_insert)

    assert res.status_code == 503
    assert res.json()["error"]["code"] == "storage_error"
    assert client.get(f"/inventory/items/{item['id']}", headers=admin).json()["quantity"] == 5


def test_write_guards_are_registered_with_the_models():
    import stockledger.models  # noqa: F401
    from stockledger.db.guards import _reject_ledger_update

    assert event.contains(StockLedgerEntry, "before_update", _reject_ledger_update)
