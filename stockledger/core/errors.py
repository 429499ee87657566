"""Domain exceptions for the stock ledger.

Every error carries a machine-readable ``code`` and the HTTP status it maps to.
The FastAPI handler in ``core.observability`` renders them in the shared error
envelope, so services raise these instead of ``HTTPException``.
"""

from decimal import Decimal
from typing import Any


class StockLedgerError(Exception):
    code = "stock_ledger_error"
    status_code = 400

    def __init__(self, message: str, *, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationFailedError(StockLedgerError):
    code = "validation_error"
    status_code = 422


class InvalidQuantityError(ValidationFailedError):
    def __init__(self, message: str = "Quantity must be greater than zero", *, quantity: Any = None):
        super().__init__(message, details={"quantity": _as_number(quantity)})


class InvalidLedgerKindError(ValidationFailedError):
    def __init__(self, kind: str):
        super().__init__(f"Unsupported ledger entry kind '{kind}'", details={"kind": kind})


class ResourceNotFoundError(StockLedgerError):
    code = "not_found"
    status_code = 404

    def __init__(self, resource: str, resource_id: str | None = None):
        super().__init__(f"{resource} not found", details={"id": resource_id} if resource_id else None)
        self.resource = resource
        self.resource_id = resource_id


class AuthenticationError(StockLedgerError):
    code = "unauthorized"
    status_code = 401


class DuplicateResourceError(StockLedgerError):
    code = "conflict"
    status_code = 409


class InsufficientStockError(StockLedgerError):
    code = "insufficient_stock"
    status_code = 409

    def __init__(
        self,
        *,
        item_id: str,
        available: Decimal,
        requested: Decimal,
        message: str = "Insufficient stock",
    ):
        super().__init__(
            message,
            details={
                "item_id": item_id,
                "available": _as_number(available),
                "requested": _as_number(requested),
            },
        )
        self.item_id = item_id
        self.available = available
        self.requested = requested


class CannotApproveError(InsufficientStockError):
    def __init__(self, *, item_id: str, available: Decimal, requested: Decimal):
        super().__init__(
            item_id=item_id,
            available=available,
            requested=requested,
            message="Cannot approve: insufficient stock",
        )


class ItemInactiveError(StockLedgerError):
    code = "item_inactive"
    status_code = 409

    def __init__(self, item_id: str):
        super().__init__("Item has been retired", details={"item_id": item_id})
        self.item_id = item_id


class AlreadyReviewedError(StockLedgerError):
    code = "already_reviewed"
    status_code = 409

    def __init__(self, requisition_id: str, status: str | None = None):
        super().__init__(
            "This requisition has already been processed",
            details={"requisition_id": requisition_id, "status": status},
        )
        self.requisition_id = requisition_id
        self.status = status


class InvalidTransferError(StockLedgerError):
    code = "invalid_transfer"
    status_code = 400


class StorageError(StockLedgerError):
    code = "storage_error"
    status_code = 503


class ConcurrentUpdateError(StorageError):
    """Raised when a version-checked write lost a race; the unit of work is retryable."""

    code = "concurrent_update"
    status_code = 409

    def __init__(self, *, item_id: str, expected_version: int):
        super().__init__(
            "Stock item was modified concurrently",
            details={"item_id": item_id, "expected_version": expected_version},
        )
        self.item_id = item_id
        self.expected_version = expected_version


class LedgerImmutableError(StockLedgerError):
    code = "ledger_immutable"
    status_code = 500

    def __init__(self, *, entity_type: str, entity_id: str | None, reason: str):
        super().__init__(
            f"{entity_type} {entity_id} is immutable: {reason}",
            details={"entity_type": entity_type, "entity_id": entity_id},
        )
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason


class QuantityOwnershipError(LedgerImmutableError):
    pass


def _as_number(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    return value
