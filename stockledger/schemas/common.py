from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class PaginationMeta(BaseModel):
    total: int = Field(description="Rows matching the filters")
    limit: int
    offset: int
    count: int = Field(description="Rows in this page")
    has_next: bool

    model_config = ConfigDict(
        json_schema_extra={"example": {"total": 7, "limit": 5, "offset": 5, "count": 2, "has_next": False}}
    )


def pagination_meta(*, total: int, limit: int, offset: int, count: int) -> PaginationMeta:
    return PaginationMeta(total=total, limit=limit, offset=offset, count=count, has_next=offset + count < total)


class ValidationIssueOut(BaseModel):
    field: str
    message: str
    type: str | None = None


class ErrorDetailOut(BaseModel):
    code: str = Field(description="Stable machine-readable error code")
    message: str
    request_id: str
    path: str
    details: list[ValidationIssueOut] | dict[str, Any] | None = Field(
        default=None,
        description="Field issues for validation errors, otherwise code-specific context",
    )


class ErrorOut(BaseModel):
    error: ErrorDetailOut

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": {
                    "code": "insufficient_stock",
                    "message": "Insufficient stock",
                    "request_id": "3f0c9a4e5b2d4d7e9a61c0b7f2e8d413",
                    "path": "/inventory/items/item-id/adjust",
                    "details": {"item_id": "item-id", "available": 2.0, "requested": 5.0},
                }
            }
        }
    )
