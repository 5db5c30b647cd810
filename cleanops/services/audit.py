"""
Assist audit trail.
Append-only events for bathroom assist requests.
"""
from typing import Optional, Dict, Any

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models.models import BathroomAssistEvent

log = structlog.get_logger(__name__)


def log_assist_event(
    db: Session,
    request_id: str,
    event_type: str,
    actor_role: Optional[str] = None,
    actor_id: Optional[str] = None,
    actor_name: Optional[str] = None,
    payload: Optional[Dict[str, Any]] = None,
) -> Optional[BathroomAssistEvent]:
    """
    Append an event for an assist request, committed separately from the status change.

    Args:
        db: Database session
        request_id: Assist request id
        event_type: reported|accepted|resolved|escalated|cancelled
        actor_role: staff|cleaner|system|admin
        payload: Event details (issue, attachments, reason...)

    Returns:
        Created event, or None if it could not be written
    """
    event = BathroomAssistEvent(
        request_id=request_id,
        event_type=event_type,
        actor_role=actor_role or None,
        actor_id=actor_id or None,
        actor_name=actor_name or None,
        payload=payload or {},
    )
    try:
        db.add(event)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log.warning("assist_event_failed", request_id=request_id, event_type=event_type, error=str(e))
        return None
    return event


def list_assist_events(db: Session, request_id: str):
    return (
        db.query(BathroomAssistEvent)
        .filter(BathroomAssistEvent.request_id == request_id)
        .order_by(BathroomAssistEvent.created_at.asc(), BathroomAssistEvent.id.asc())
        .all()
    )
