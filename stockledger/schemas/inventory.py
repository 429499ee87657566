from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from stockledger.schemas.common import PaginationMeta


class StockItemCreateIn(BaseModel):
    name: str = Field(min_length=1, max_length=150)
    sku: str = Field(min_length=1, max_length=64)
    description: str | None = None
    category_id: str | None = None
    uom_id: str | None = None
    location_id: str | None = None
    quantity: Decimal = Field(default=Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    reorder_level: Decimal = Field(default=Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    unit_price: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)

    @field_validator("name", "sku")
    @classmethod
    def validate_required_text(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("value cannot be blank")
        return cleaned

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "USB-C Docking Station",
                "sku": "DOCK-USBC-01",
                "description": "Dual monitor dock for staff laptops",
                "quantity": 10,
                "reorder_level": 5,
                "unit_price": 129.99,
            }
        }
    )


class StockItemUpdateIn(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=150)
    sku: str | None = Field(default=None, min_length=1, max_length=64)
    description: str | None = None
    category_id: str | None = None
    uom_id: str | None = None
    location_id: str | None = None
    reorder_level: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    unit_price: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    is_active: bool | None = None

    @model_validator(mode="after")
    def validate_any_field_present(self) -> "StockItemUpdateIn":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")
        for field_name in ("name", "sku", "reorder_level", "is_active"):
            if field_name in self.model_fields_set and getattr(self, field_name) is None:
                raise ValueError(f"{field_name} cannot be null")
        return self

    model_config = ConfigDict(
        extra="forbid",
        json_schema_extra={
            "example": {
                "name": "USB-C Docking Station (Gen 2)",
                "reorder_level": 8,
            }
        },
    )


class StockItemOut(BaseModel):
    id: str
    name: str
    sku: str
    description: str | None = None
    category_id: str | None = None
    uom_id: str | None = None
    location_id: str | None = None
    quantity: float
    reorder_level: float
    unit_price: float | None = None
    is_active: bool
    is_low_stock: bool
    created_at: datetime
    updated_at: datetime


class StockItemListOut(BaseModel):
    items: list[StockItemOut]
    pagination: PaginationMeta


class StockAdjustIn(BaseModel):
    adjustment_type: Literal["add", "remove", "adjust"]
    quantity: Decimal = Field(
        ...,
        max_digits=12,
        decimal_places=2,
        description="Units to add/remove, or the new absolute count for `adjust`.",
    )
    note: str | None = Field(default=None, max_length=255)

    @model_validator(mode="after")
    def validate_quantity_for_type(self) -> "StockAdjustIn":
        if self.adjustment_type == "adjust":
            if self.quantity < 0:
                raise ValueError("quantity cannot be negative for adjust")
        elif self.quantity < Decimal("0.01"):
            raise ValueError("quantity must be at least 0.01")
        return self

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "adjustment_type": "remove",
                "quantity": 2,
                "note": "2 units damaged in transit",
            }
        }
    )


class StockMutationOut(BaseModel):
    item_id: str
    kind: str
    quantity: float
    quantity_before: float
    new_quantity: float
    ledger_entry_id: str
    is_low_stock: bool


class StockLedgerEntryOut(BaseModel):
    id: str
    item_id: str
    kind: str
    quantity: float
    quantity_before: float
    quantity_after: float
    item_version: int
    location_id: str | None = None
    actor_user_id: str
    note: str | None = None
    reference_type: str | None = None
    reference_id: str | None = None
    created_at: datetime


class StockLedgerListOut(BaseModel):
    items: list[StockLedgerEntryOut]
    pagination: PaginationMeta


class LocationBalanceOut(BaseModel):
    location_id: str
    location_name: str | None = None
    net_quantity: float


class LocationBalanceListOut(BaseModel):
    item_id: str
    quantity: float
    items: list[LocationBalanceOut]
