import pytest

from helpers import create_item, create_location, register_admin_and_staff
from stockledger.core.config import settings
from stockledger.services import notification_service
from stockledger.services.notification_service import (
    ItemCreatedEvent,
    LowStockAlertEvent,
    StockMovementEvent,
    dispatch_event,
    get_notification_provider,
    register_notification_provider,
)


class RecordingProvider:
    name = "recording"

    def __init__(self):
        self.events = []

    def publish(self, event):
        self.events.append(event)


class ExplodingProvider:
    name = "exploding"

    def publish(self, event):
        raise RuntimeError("broker unavailable")


@pytest.fixture()
def use_provider(monkeypatch):
    def _use(provider):
        monkeypatch.setitem(notification_service._NOTIFICATION_PROVIDERS, provider.name, provider)
        monkeypatch.setattr(settings, "notification_provider", provider.name)
        return provider

    return _use


def test_unknown_provider_is_rejected():
    with pytest.raises(ValueError, match="Unknown notification provider"):
        get_notification_provider("carrier-pigeon")
    assert get_notification_provider(" LOG ").name == "log"


def test_register_provider_normalizes_name(monkeypatch):
    monkeypatch.setattr(notification_service, "_NOTIFICATION_PROVIDERS", dict(notification_service._NOTIFICATION_PROVIDERS))

    class Webhook:
        name = " Webhook "

        def publish(self, event):
            return None

    provider = Webhook()
    register_notification_provider(provider)
    assert get_notification_provider("webhook") is provider


def test_adjustment_publishes_movement_and_low_stock_alert(test_context, use_provider):
    client, _ = test_context
    admin, _ = register_admin_and_staff(client)
    item = create_item(client, admin, sku="BADGE-1", quantity=10, reorder_level=4)
    provider = use_provider(RecordingProvider())

    res = client.post(
        f"/inventory/items/{item['id']}/adjust",
        json={"adjustment_type": "remove", "quantity": 7},
        headers=admin,
    )
    assert res.status_code == 200, res.text

    movement, alert = provider.events
    assert isinstance(movement, StockMovementEvent)
    assert movement.item_id == item["id"]
    assert movement.kind == "remove"
    assert movement.new_quantity == 3
    assert movement.ledger_entry_id == res.json()["ledger_entry_id"]
    assert isinstance(alert, LowStockAlertEvent)
    assert alert.quantity == 3
    assert alert.reorder_level == 4


def test_transfer_sends_one_low_stock_alert_for_both_legs(test_context, use_provider):
    client, session_local = test_context
    admin, _ = register_admin_and_staff(client)
    warehouse = create_location(session_local, name="Warehouse", code="WH")
    branch = create_location(session_local, name="Branch", code="BR")
    item = create_item(client, admin, sku="BADGE-2", quantity=2, reorder_level=5)
    provider = use_provider(RecordingProvider())

    res = client.post(
        "/stock-transfers",
        json={"item_id": item["id"], "from_location_id": warehouse, "to_location_id": branch, "quantity": 1},
        headers=admin,
    )
    assert res.status_code == 200, res.text

    kinds = [type(event).__name__ for event in provider.events]
    assert kinds == ["StockMovementEvent", "StockMovementEvent", "LowStockAlertEvent"]


def test_provider_failure_does_not_undo_committed_stock(test_context, use_provider):
    client, _ = test_context
    admin, _ = register_admin_and_staff(client)
    use_provider(ExplodingProvider())

    item = create_item(client, admin, sku="BADGE-3", quantity=5, reorder_level=1)
    assert item["quantity"] == 5

    res = client.post(
        f"/inventory/items/{item['id']}/adjust",
        json={"adjustment_type": "add", "quantity": 2},
        headers=admin,
    )
    assert res.status_code == 200, res.text
    assert client.get(f"/inventory/items/{item['id']}", headers=admin).json()["quantity"] == 7


def test_dispatch_event_reports_failure(use_provider):
    event = ItemCreatedEvent(item_id="item-1", name="Badge", sku="BADGE", quantity=0, actor_user_id="user-1")

    use_provider(RecordingProvider())
    assert dispatch_event(event) is True

    use_provider(ExplodingProvider())
    assert dispatch_event(event) is False
