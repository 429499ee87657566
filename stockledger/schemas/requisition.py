from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from stockledger.schemas.common import PaginationMeta


class RequisitionCreateIn(BaseModel):
    item_id: str
    quantity: int = Field(ge=1)
    location_id: str
    note: str | None = Field(default=None, max_length=255)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "item_id": "item-id-here",
                "quantity": 4,
                "location_id": "location-id-here",
                "note": "New hires starting Monday",
            }
        }
    )


class RequisitionReviewIn(BaseModel):
    decision: Literal["approve", "decline"]
    admin_note: str | None = Field(default=None, max_length=1000)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "decision": "approve",
                "admin_note": "Collect from the main store room",
            }
        }
    )


class RequisitionOut(BaseModel):
    id: str
    reference_number: str
    requested_by: str
    item_id: str
    location_id: str
    quantity: int
    note: str | None = None
    status: str
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    admin_note: str | None = None
    created_at: datetime
    updated_at: datetime


class RequisitionReviewOut(RequisitionOut):
    new_quantity: float | None = None
    ledger_entry_id: str | None = None


class RequisitionListOut(BaseModel):
    items: list[RequisitionOut]
    pagination: PaginationMeta
