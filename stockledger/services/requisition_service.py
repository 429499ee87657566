import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from stockledger.core.errors import (
    AlreadyReviewedError,
    CannotApproveError,
    InsufficientStockError,
    InvalidQuantityError,
    ItemInactiveError,
    ResourceNotFoundError,
    ValidationFailedError,
)
from stockledger.core.id_utils import generate_entity_id
from stockledger.core.observability import log_event
from stockledger.models.location import Location
from stockledger.models.requisition import Requisition
from stockledger.models.stock_item import StockItem
from stockledger.services.audit_service import log_audit_event
from stockledger.services.notification_service import (
    RequisitionReviewedEvent,
    dispatch_event,
    publish_stock_movements,
)
from stockledger.services.stock_gateway import MutationResult, apply_stock_mutation, run_unit_of_work


class RequisitionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DECLINED = "declined"


class ReviewDecision(str, Enum):
    APPROVE = "approve"
    DECLINE = "decline"


ALLOWED_REQUISITION_TRANSITIONS: dict[RequisitionStatus, dict[ReviewDecision, RequisitionStatus]] = {
    RequisitionStatus.PENDING: {
        ReviewDecision.APPROVE: RequisitionStatus.APPROVED,
        ReviewDecision.DECLINE: RequisitionStatus.DECLINED,
    },
    RequisitionStatus.APPROVED: {},
    RequisitionStatus.DECLINED: {},
}


@dataclass(frozen=True)
class ReviewOutcome:
    requisition: Requisition
    mutation: MutationResult | None


def next_requisition_status(
    requisition_id: str,
    current: RequisitionStatus | str,
    decision: ReviewDecision | str,
) -> RequisitionStatus:
    current_status = RequisitionStatus(current)
    target = ALLOWED_REQUISITION_TRANSITIONS[current_status].get(ReviewDecision(decision))
    if target is None:
        raise AlreadyReviewedError(requisition_id, current_status.value)
    return target


def get_requisition(db: Session, requisition_id: str) -> Requisition:
    requisition = db.execute(
        select(Requisition).where(Requisition.id == requisition_id)
    ).scalar_one_or_none()
    if not requisition:
        raise ResourceNotFoundError("Requisition", requisition_id)
    return requisition


def list_requisitions(
    db: Session,
    *,
    requested_by: str | None = None,
    status: RequisitionStatus | str | None = None,
    item_id: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Requisition], int]:
    filters = []
    if requested_by:
        filters.append(Requisition.requested_by == requested_by)
    if status:
        try:
            status_value = RequisitionStatus(status).value
        except ValueError as exc:
            raise ValidationFailedError(f"Unsupported requisition status '{status}'") from exc
        filters.append(Requisition.status == status_value)
    if item_id:
        filters.append(Requisition.item_id == item_id)

    total = int(db.execute(select(func.count(Requisition.id)).where(*filters)).scalar_one())
    rows = db.execute(
        select(Requisition)
        .where(*filters)
        .order_by(Requisition.created_at.desc(), Requisition.id.desc())
        .offset(offset)
        .limit(limit)
    ).scalars().all()
    return list(rows), total


def create_requisition(
    db: Session,
    *,
    requester_id: str,
    item_id: str,
    quantity: int,
    location_id: str,
    note: str | None = None,
) -> Requisition:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationFailedError("Requisition quantity must be a whole number", details={"quantity": quantity})
    if quantity <= 0:
        raise InvalidQuantityError(quantity=quantity)

    def _operation() -> Requisition:
        item = db.execute(select(StockItem).where(StockItem.id == item_id)).scalar_one_or_none()
        if not item:
            raise ResourceNotFoundError("Item", item_id)
        if not item.is_active:
            raise ItemInactiveError(item_id)
        location = db.execute(
            select(Location).where(Location.id == location_id, Location.is_active.is_(True))
        ).scalar_one_or_none()
        if not location:
            raise ResourceNotFoundError("Location", location_id)

        requisition = Requisition(
            id=generate_entity_id(),
            requested_by=requester_id,
            item_id=item_id,
            location_id=location_id,
            quantity=quantity,
            note=note,
            status=RequisitionStatus.PENDING.value,
        )
        db.add(requisition)
        log_audit_event(
            db,
            actor_user_id=requester_id,
            action="requisition.create",
            target_type="requisition",
            target_id=requisition.id,
            metadata_json={"item_id": item_id, "quantity": quantity, "location_id": location_id},
        )
        db.flush()
        return requisition

    return run_unit_of_work(db, _operation, label="requisition.create")


def _claim_pending(
    db: Session,
    requisition: Requisition,
    *,
    target: RequisitionStatus,
    reviewer_id: str,
    admin_note: str | None,
) -> None:
    # Conditional on the row still being pending, so racing reviewers get exactly one transition.
    result = db.execute(
        update(Requisition)
        .where(
            Requisition.id == requisition.id,
            Requisition.status == RequisitionStatus.PENDING.value,
        )
        .values(
            status=target.value,
            reviewed_by=reviewer_id,
            reviewed_at=datetime.now(timezone.utc),
            admin_note=admin_note,
            updated_at=datetime.now(timezone.utc),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        current = db.execute(
            select(Requisition.status).where(Requisition.id == requisition.id)
        ).scalar_one_or_none()
        raise AlreadyReviewedError(requisition.id, current)


def review_requisition(
    db: Session,
    requisition_id: str,
    *,
    reviewer_id: str,
    decision: ReviewDecision | str,
    admin_note: str | None = None,
) -> ReviewOutcome:
    try:
        review_decision = ReviewDecision(decision)
    except ValueError as exc:
        raise ValidationFailedError(
            f"Unsupported review decision '{decision}'",
            details={"decision": str(decision), "allowed": [d.value for d in ReviewDecision]},
        ) from exc

    def _operation() -> ReviewOutcome:
        requisition = db.execute(
            select(Requisition)
            .where(Requisition.id == requisition_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if not requisition:
            raise ResourceNotFoundError("Requisition", requisition_id)

        target = next_requisition_status(requisition.id, requisition.status, review_decision)
        _claim_pending(db, requisition, target=target, reviewer_id=reviewer_id, admin_note=admin_note)

        mutation = None
        if target == RequisitionStatus.APPROVED:
            try:
                mutation = apply_stock_mutation(
                    db,
                    item_id=requisition.item_id,
                    kind="remove",
                    quantity=requisition.quantity,
                    actor_user_id=reviewer_id,
                    location_id=requisition.location_id,
                    note=f"Requisition approval: #{requisition.reference_number}",
                    reference_type="requisition",
                    reference_id=requisition.id,
                )
            except InsufficientStockError as exc:
                raise CannotApproveError(
                    item_id=exc.item_id,
                    available=exc.available,
                    requested=exc.requested,
                ) from exc

        log_audit_event(
            db,
            actor_user_id=reviewer_id,
            action=f"requisition.{review_decision.value}",
            target_type="requisition",
            target_id=requisition.id,
            metadata_json={
                "status": target.value,
                "item_id": requisition.item_id,
                "quantity": requisition.quantity,
                "ledger_entry_id": mutation.ledger_entry_id if mutation else None,
                "admin_note": admin_note,
            },
        )
        db.flush()
        db.expire(requisition)
        return ReviewOutcome(requisition=requisition, mutation=mutation)

    outcome = run_unit_of_work(db, _operation, label="requisition.review")
    requisition = outcome.requisition

    log_event(
        "requisition.reviewed",
        level=logging.INFO,
        requisition_id=requisition.id,
        status=requisition.status,
        reviewer_id=reviewer_id,
        ledger_entry_id=outcome.mutation.ledger_entry_id if outcome.mutation else None,
    )
    dispatch_event(
        RequisitionReviewedEvent(
            requisition_id=requisition.id,
            reference_number=requisition.reference_number,
            status=requisition.status,
            requester_id=requisition.requested_by,
            reviewer_id=reviewer_id,
            ledger_entry_id=outcome.mutation.ledger_entry_id if outcome.mutation else None,
        )
    )
    if outcome.mutation is not None:
        publish_stock_movements(outcome.mutation)
    return outcome
