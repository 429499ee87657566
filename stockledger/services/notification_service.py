import logging
from dataclasses import asdict, dataclass
from typing import Protocol, Union

from stockledger.core.config import settings
from stockledger.core.observability import log_event
from stockledger.services.stock_gateway import MutationResult


@dataclass(frozen=True)
class StockMovementEvent:
    item_id: str
    kind: str
    quantity: float
    new_quantity: float
    reorder_level: float
    ledger_entry_id: str
    actor_user_id: str
    is_low_stock: bool
    location_id: str | None = None

    event_type = "stock.movement"


@dataclass(frozen=True)
class LowStockAlertEvent:
    item_id: str
    quantity: float
    reorder_level: float

    event_type = "stock.low"


@dataclass(frozen=True)
class ItemCreatedEvent:
    item_id: str
    name: str
    sku: str
    quantity: float
    actor_user_id: str

    event_type = "item.created"


@dataclass(frozen=True)
class RequisitionReviewedEvent:
    requisition_id: str
    reference_number: str
    status: str
    requester_id: str
    reviewer_id: str
    ledger_entry_id: str | None = None

    event_type = "requisition.reviewed"


NotificationEvent = Union[StockMovementEvent, LowStockAlertEvent, ItemCreatedEvent, RequisitionReviewedEvent]


class NotificationProvider(Protocol):
    name: str

    def publish(self, event: NotificationEvent) -> None:
        ...


class LogNotificationProvider:
    name = "log"

    def publish(self, event: NotificationEvent) -> None:
        log_event("notification", notification_type=event.event_type, payload=asdict(event))


class NullNotificationProvider:
    name = "null"

    def publish(self, event: NotificationEvent) -> None:
        return None


_NOTIFICATION_PROVIDERS: dict[str, NotificationProvider] = {
    "log": LogNotificationProvider(),
    "null": NullNotificationProvider(),
}


def register_notification_provider(provider: NotificationProvider) -> None:
    _NOTIFICATION_PROVIDERS[provider.name.strip().lower()] = provider


def get_notification_provider(name: str) -> NotificationProvider:
    normalized = (name or "").strip().lower()
    provider = _NOTIFICATION_PROVIDERS.get(normalized)
    if not provider:
        available = ", ".join(sorted(_NOTIFICATION_PROVIDERS))
        raise ValueError(f"Unknown notification provider '{name}'. Available: {available}")
    return provider


def dispatch_event(event: NotificationEvent) -> bool:
    """Publishes a committed event. Failures are logged and never reach the caller."""
    try:
        get_notification_provider(settings.notification_provider).publish(event)
    except Exception as exc:
        log_event(
            "notification.failed",
            level=logging.WARNING,
            notification_type=event.event_type,
            provider=settings.notification_provider,
            error=str(exc),
        )
        return False
    return True


def publish_stock_movements(*results: MutationResult) -> None:
    for result in results:
        dispatch_event(
            StockMovementEvent(
                item_id=result.item_id,
                kind=result.kind,
                quantity=float(result.quantity),
                new_quantity=float(result.new_quantity),
                reorder_level=float(result.reorder_level),
                ledger_entry_id=result.ledger_entry_id,
                actor_user_id=result.actor_user_id,
                is_low_stock=result.is_low_stock,
                location_id=result.location_id,
            )
        )

    # One alert per item, based on the last committed quantity.
    latest_by_item = {result.item_id: result for result in results}
    for result in latest_by_item.values():
        if result.is_low_stock:
            dispatch_event(
                LowStockAlertEvent(
                    item_id=result.item_id,
                    quantity=float(result.new_quantity),
                    reorder_level=float(result.reorder_level),
                )
            )
