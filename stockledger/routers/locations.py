from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from stockledger.core.api_docs import error_responses
from stockledger.core.deps import get_db
from stockledger.core.security_current import get_current_user
from stockledger.models.location import Location
from stockledger.models.user import User
from stockledger.schemas.common import pagination_meta
from stockledger.schemas.location import LocationListOut, LocationOut

router = APIRouter(prefix="/locations", tags=["locations"])


@router.get(
    "",
    response_model=LocationListOut,
    summary="List locations",
    description="Sites that requisitions deliver to and transfers move between.",
    responses=error_responses(401, 422, 500),
)
def list_locations(
    q: str | None = Query(default=None, max_length=120, description="Match on name or code"),
    include_inactive: bool = Query(default=False),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    filters = []
    if not include_inactive:
        filters.append(Location.is_active.is_(True))
    if q and q.strip():
        pattern = f"%{q.strip().lower()}%"
        filters.append(or_(func.lower(Location.name).like(pattern), func.lower(Location.code).like(pattern)))

    total = int(db.execute(select(func.count(Location.id)).where(*filters)).scalar_one())
    rows = db.execute(
        select(Location).where(*filters).order_by(Location.name.asc(), Location.id.asc()).offset(offset).limit(limit)
    ).scalars().all()
    return LocationListOut(
        items=[LocationOut.model_validate(row) for row in rows],
        pagination=pagination_meta(total=total, limit=limit, offset=offset, count=len(rows)),
    )
