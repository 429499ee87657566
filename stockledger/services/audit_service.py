from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from sqlalchemy.orm import Session

from stockledger.core.id_utils import generate_entity_id
from stockledger.core.observability import get_request_id
from stockledger.models.audit_log import AuditLog


def _json_safe(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(key): _json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(item) for item in value]
    return value


def log_audit_event(
    db: Session,
    *,
    actor_user_id: str,
    action: str,
    target_type: str,
    target_id: str | None = None,
    metadata_json: dict[str, Any] | None = None,
) -> AuditLog:
    """Adds an audit row to the caller's transaction; it commits or rolls back with the change."""
    request_id = get_request_id()
    event = AuditLog(
        id=generate_entity_id(),
        actor_user_id=actor_user_id,
        action=action,
        target_type=target_type,
        target_id=target_id,
        request_id=None if request_id == "-" else request_id,
        metadata_json=_json_safe(metadata_json) if metadata_json is not None else None,
    )
    db.add(event)
    return event
