from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from stockledger.schemas.common import PaginationMeta


class StockTransferCreateIn(BaseModel):
    item_id: str
    from_location_id: str
    to_location_id: str
    quantity: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    note: str | None = Field(default=None, max_length=255)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "item_id": "item-id-here",
                "from_location_id": "warehouse-location-id",
                "to_location_id": "branch-location-id",
                "quantity": 3,
                "note": "Restock branch office",
            }
        }
    )


class StockTransferOut(BaseModel):
    transfer_id: str
    item_id: str
    from_location_id: str
    to_location_id: str
    quantity: float
    new_quantity: float
    out_entry_id: str
    in_entry_id: str
    ledger_entry_id: str


class StockTransferRecordOut(BaseModel):
    transfer_id: str
    item_id: str
    from_location_id: str | None = None
    to_location_id: str | None = None
    quantity: float
    actor_user_id: str
    note: str | None = None
    out_entry_id: str
    in_entry_id: str | None = None
    created_at: datetime


class StockTransferListOut(BaseModel):
    items: list[StockTransferRecordOut]
    pagination: PaginationMeta
