from datetime import datetime

from pydantic import BaseModel, ConfigDict

from stockledger.schemas.common import PaginationMeta


class LocationOut(BaseModel):
    id: str
    name: str
    code: str
    address: str | None = None
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class LocationListOut(BaseModel):
    items: list[LocationOut]
    pagination: PaginationMeta
