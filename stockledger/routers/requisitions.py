from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from stockledger.core.api_docs import error_responses
from stockledger.core.deps import get_db
from stockledger.core.permissions import is_admin, require_admin
from stockledger.core.security_current import get_current_user
from stockledger.models.requisition import Requisition
from stockledger.models.user import User
from stockledger.schemas.common import pagination_meta
from stockledger.schemas.requisition import (
    RequisitionCreateIn,
    RequisitionListOut,
    RequisitionOut,
    RequisitionReviewIn,
    RequisitionReviewOut,
)
from stockledger.services import requisition_service

router = APIRouter(prefix="/requisitions", tags=["requisitions"])


def _requisition_out(requisition: Requisition) -> RequisitionOut:
    return RequisitionOut(
        id=requisition.id,
        reference_number=requisition.reference_number,
        requested_by=requisition.requested_by,
        item_id=requisition.item_id,
        location_id=requisition.location_id,
        quantity=requisition.quantity,
        note=requisition.note,
        status=requisition.status,
        reviewed_by=requisition.reviewed_by,
        reviewed_at=requisition.reviewed_at,
        admin_note=requisition.admin_note,
        created_at=requisition.created_at,
        updated_at=requisition.updated_at,
    )


@router.post(
    "",
    response_model=RequisitionOut,
    summary="Request stock",
    description="Creates a pending requisition. Stock is only taken when an admin approves it.",
    responses=error_responses(401, 404, 409, 422, 500),
)
def create_requisition(
    payload: RequisitionCreateIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    requisition = requisition_service.create_requisition(
        db,
        requester_id=user.id,
        item_id=payload.item_id,
        quantity=payload.quantity,
        location_id=payload.location_id,
        note=payload.note,
    )
    return _requisition_out(requisition)


@router.get(
    "",
    response_model=RequisitionListOut,
    summary="List requisitions",
    description="Admins see every requisition; other users see their own.",
    responses=error_responses(401, 422, 500),
)
def list_requisitions(
    status: str | None = Query(default=None, pattern="^(pending|approved|declined)$"),
    item_id: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200, description="Page size"),
    offset: int = Query(default=0, ge=0, description="Pagination offset"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    rows, total = requisition_service.list_requisitions(
        db,
        requested_by=None if is_admin(user) else user.id,
        status=status,
        item_id=item_id,
        limit=limit,
        offset=offset,
    )
    items = [_requisition_out(row) for row in rows]
    return RequisitionListOut(
        items=items,
        pagination=pagination_meta(total=total, limit=limit, offset=offset, count=len(items)),
    )


@router.get(
    "/{requisition_id}",
    response_model=RequisitionOut,
    summary="Get a requisition",
    responses=error_responses(401, 404, 500),
)
def get_requisition(
    requisition_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    requisition = requisition_service.get_requisition(db, requisition_id)
    if not is_admin(user) and requisition.requested_by != user.id:
        raise HTTPException(status_code=404, detail="Requisition not found")
    return _requisition_out(requisition)


@router.post(
    "/{requisition_id}/review",
    response_model=RequisitionReviewOut,
    summary="Approve or decline a requisition",
    description=(
        "Approval removes the requested quantity from stock in the same transaction as the status change. "
        "If stock is short the requisition stays pending."
    ),
    responses=error_responses(
        401,
        403,
        404,
        422,
        500,
        503,
        domain_codes=("insufficient_stock", "already_reviewed", "item_inactive"),
    ),
)
def review_requisition(
    requisition_id: str,
    payload: RequisitionReviewIn,
    db: Session = Depends(get_db),
    user: User = Depends(require_admin),
):
    outcome = requisition_service.review_requisition(
        db,
        requisition_id,
        reviewer_id=user.id,
        decision=payload.decision,
        admin_note=payload.admin_note,
    )
    base = _requisition_out(outcome.requisition)
    mutation = outcome.mutation
    return RequisitionReviewOut(
        **base.model_dump(),
        new_quantity=float(mutation.new_quantity) if mutation else None,
        ledger_entry_id=mutation.ledger_entry_id if mutation else None,
    )
