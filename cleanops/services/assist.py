"""
Bathroom assist request lifecycle.

    pending -> accepted -> resolved
    pending -> escalated   (sweep, once escalate_after has passed)
    pending -> cancelled

Every status change is guarded: the update only applies while the row is still
in the expected prior state. Audit events and queued notifications are written
after the status change commits and may be lost.
"""
import re
import uuid
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional, Iterable, Tuple, Dict, Any

import structlog
from sqlalchemy.orm import Session

from ..config import settings
from ..models.models import BathroomAssistRequest
from ..schemas.assist import AssistCreate, AssistRequestOut
from ..storage.provider import StorageProvider
from .audit import log_assist_event
from .notifications import queue_notification
from .realtime import hub
from .time_rules import utcnow, ensure_utc

log = structlog.get_logger(__name__)

ASSIST_BUCKET = "bathroom-assist"
ACCEPTED_MEDIA_TYPES = {"image/jpeg", "image/png", "image/webp"}
DEFAULT_ESCALATION_REASON = "No cleaner accepted in time"


class AssistStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    RESOLVED = "resolved"
    ESCALATED = "escalated"
    CANCELLED = "cancelled"


TRANSITIONS = {
    AssistStatus.PENDING: {AssistStatus.ACCEPTED, AssistStatus.ESCALATED, AssistStatus.CANCELLED},
    AssistStatus.ACCEPTED: {AssistStatus.RESOLVED},
    AssistStatus.RESOLVED: set(),
    AssistStatus.ESCALATED: set(),
    AssistStatus.CANCELLED: set(),
}

OPEN_STATUSES = [AssistStatus.PENDING.value, AssistStatus.ACCEPTED.value, AssistStatus.ESCALATED.value]
CLOSED_STATUSES = [AssistStatus.RESOLVED.value, AssistStatus.ESCALATED.value]


class InvalidTransition(Exception):
    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move assist request from {current} to {target}")


class AssistNotFound(LookupError):
    pass


class AssistMediaError(ValueError):
    pass


def can_transition(current: str, target: str) -> bool:
    try:
        return AssistStatus(target) in TRANSITIONS[AssistStatus(current)]
    except ValueError:
        return False


def ensure_transition(current: str, target: str) -> AssistStatus:
    if not can_transition(current, target):
        raise InvalidTransition(current, target)
    return AssistStatus(target)


def sanitize_media(media: Optional[Iterable[Any]]) -> List[Dict[str, Any]]:
    out = []
    for item in media or []:
        data = item.model_dump() if hasattr(item, "model_dump") else dict(item)
        data["type"] = data.get("type") or "before"
        out.append(data)
    return out


def serialize_request(row: BathroomAssistRequest) -> dict:
    return AssistRequestOut.model_validate(row).model_dump(mode="json")


def _publish(event: str, row: BathroomAssistRequest) -> None:
    hub.publish(event, serialize_request(row), customer_name=row.customer_name)


def get_request(db: Session, request_id: str) -> BathroomAssistRequest:
    row = db.query(BathroomAssistRequest).filter(BathroomAssistRequest.id == str(request_id)).first()
    if row is None:
        raise AssistNotFound(request_id)
    return row


def _guarded_update(db: Session, request_id: str, target: AssistStatus, values: dict) -> BathroomAssistRequest:
    row = get_request(db, request_id)
    ensure_transition(row.status, target.value)
    expected = row.status
    values = dict(values, status=target.value)
    updated = (
        db.query(BathroomAssistRequest)
        .filter(BathroomAssistRequest.id == row.id, BathroomAssistRequest.status == expected)
        .update(values, synchronize_session=False)
    )
    if not updated:
        db.rollback()
        db.refresh(row)
        raise InvalidTransition(row.status, target.value)
    db.commit()
    db.refresh(row)
    return row


def store_report_media(
    storage: StorageProvider,
    uploads: List[Tuple[str, str, bytes]],
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """
    Upload report photos to the assist bucket.

    Args:
        storage: Storage provider
        uploads: (filename, content_type, data) triples
        now: Reference time for the year/month folder

    Returns:
        Media entries ({type, url, name, size}) ready for before_media
    """
    if len(uploads) > settings.assist_max_media:
        raise AssistMediaError(f"You can upload up to {settings.assist_max_media} photos")
    now = now or utcnow()
    folder = f"requests/{now.year}/{now.month:02d}"
    media = []
    for filename, content_type, data in uploads:
        if content_type not in ACCEPTED_MEDIA_TYPES:
            raise AssistMediaError(f"Unsupported file type: {content_type}")
        original = filename or "photo"
        safe_name = re.sub(r"[^a-zA-Z0-9.]+", "-", original)
        key = f"{folder}/{uuid.uuid4()}-{safe_name}"
        url = storage.upload(ASSIST_BUCKET, key, data, content_type)
        media.append({"type": "before", "url": url, "name": original, "size": len(data)})
    return media


def create_request(db: Session, data: AssistCreate, now: Optional[datetime] = None) -> BathroomAssistRequest:
    now = now or utcnow()
    before_media = sanitize_media(data.before_media)
    escalate_after = ensure_utc(data.escalate_after) or now + timedelta(minutes=settings.assist_escalate_after_min)
    row = BathroomAssistRequest(
        qr_code_id=data.qr_code_id,
        customer_name=data.customer_name,
        location_label=data.location_label,
        issue_type=data.issue_type,
        issue_description=data.issue_description,
        reported_by=data.reported_by,
        reported_contact=data.reported_contact,
        status=AssistStatus.PENDING.value,
        reported_at=now,
        before_media=before_media,
        request_metadata=data.metadata or {},
        escalate_after=escalate_after,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    log.info("assist_reported", request_id=row.id, customer=row.customer_name, location=row.location_label)

    log_assist_event(
        db,
        row.id,
        "reported",
        actor_role="staff",
        actor_name=data.reported_by or "Anonymous",
        payload={
            "issue": data.issue_type,
            "description": data.issue_description,
            "attachments": before_media,
        },
    )
    queue_notification(
        db,
        "cleaners",
        f"New bathroom assist reported at {data.location_label}",
        customer_name=data.customer_name,
    )
    _publish("INSERT", row)
    return row


def accept_request(
    db: Session,
    request_id: str,
    cleaner_id: Optional[str],
    cleaner_name: str,
    now: Optional[datetime] = None,
) -> BathroomAssistRequest:
    now = now or utcnow()
    row = _guarded_update(db, request_id, AssistStatus.ACCEPTED, {
        "accepted_at": now,
        "accepted_by": cleaner_id,
        "accepted_by_name": cleaner_name,
    })
    log.info("assist_accepted", request_id=row.id, cleaner_id=cleaner_id)
    log_assist_event(db, row.id, "accepted", actor_role="cleaner", actor_id=cleaner_id, actor_name=cleaner_name)
    queue_notification(
        db,
        "operations",
        f"{cleaner_name} accepted bathroom assist request",
        cleaner_id=cleaner_id,
        cleaner_name=cleaner_name,
        customer_name=row.customer_name,
    )
    _publish("UPDATE", row)
    return row


def resolve_request(
    db: Session,
    request_id: str,
    cleaner_id: Optional[str],
    cleaner_name: str,
    notes: Optional[str] = None,
    materials_used: Optional[str] = None,
    after_media: Optional[Iterable[Any]] = None,
    now: Optional[datetime] = None,
) -> BathroomAssistRequest:
    now = now or utcnow()
    media = sanitize_media(after_media)
    row = _guarded_update(db, request_id, AssistStatus.RESOLVED, {
        "resolved_at": now,
        "resolved_by": cleaner_id,
        "resolved_by_name": cleaner_name,
        "after_media": media,
        "notes": notes or None,
        "materials_used": materials_used or None,
    })
    log.info("assist_resolved", request_id=row.id, cleaner_id=cleaner_id)
    log_assist_event(
        db,
        row.id,
        "resolved",
        actor_role="cleaner",
        actor_id=cleaner_id,
        actor_name=cleaner_name,
        payload={"notes": notes or None, "materialsUsed": materials_used or None, "attachments": media},
    )
    queue_notification(
        db,
        "customers",
        f"Bathroom issue resolved in {row.location_label}",
        cleaner_id=cleaner_id,
        cleaner_name=cleaner_name,
        customer_name=row.customer_name,
    )
    _publish("UPDATE", row)
    return row


def cancel_request(
    db: Session,
    request_id: str,
    actor_id: Optional[str] = None,
    actor_name: Optional[str] = None,
    actor_role: str = "admin",
    now: Optional[datetime] = None,
) -> BathroomAssistRequest:
    now = now or utcnow()
    row = _guarded_update(db, request_id, AssistStatus.CANCELLED, {"cancelled_at": now})
    log.info("assist_cancelled", request_id=row.id, actor_id=actor_id)
    log_assist_event(db, row.id, "cancelled", actor_role=actor_role, actor_id=actor_id, actor_name=actor_name)
    _publish("UPDATE", row)
    return row


def escalate_overdue_requests(
    db: Session,
    reason: str = DEFAULT_ESCALATION_REASON,
    now: Optional[datetime] = None,
) -> List[BathroomAssistRequest]:
    """Escalate every pending request whose escalate_after has passed."""
    now = now or utcnow()
    candidates = (
        db.query(BathroomAssistRequest)
        .filter(
            BathroomAssistRequest.status == AssistStatus.PENDING.value,
            BathroomAssistRequest.escalate_after.isnot(None),
            BathroomAssistRequest.escalate_after <= now,
        )
        .order_by(BathroomAssistRequest.escalate_after.asc())
        .all()
    )
    escalated = []
    for row in candidates:
        updated = (
            db.query(BathroomAssistRequest)
            .filter(
                BathroomAssistRequest.id == row.id,
                BathroomAssistRequest.status == AssistStatus.PENDING.value,
            )
            .update(
                {"status": AssistStatus.ESCALATED.value, "escalated_at": now, "escalation_reason": reason},
                synchronize_session=False,
            )
        )
        if updated:
            escalated.append(row.id)
    db.commit()
    if not escalated:
        return []

    rows = (
        db.query(BathroomAssistRequest)
        .filter(BathroomAssistRequest.id.in_(escalated))
        .order_by(BathroomAssistRequest.escalate_after.asc())
        .all()
    )
    log.info("assist_escalated", count=len(rows), reason=reason)
    for row in rows:
        db.refresh(row)
        escalate_after = ensure_utc(row.escalate_after)
        log_assist_event(
            db,
            row.id,
            "escalated",
            actor_role="system",
            payload={"reason": reason, "escalateAfter": escalate_after.isoformat() if escalate_after else None},
        )
        queue_notification(
            db,
            "operations",
            f"Bathroom assist escalated at {row.location_label}",
            customer_name=row.customer_name,
        )
        _publish("UPDATE", row)
    return rows


def list_pending_for_cleaner(db: Session, customer_name: Optional[str] = None) -> List[BathroomAssistRequest]:
    q = db.query(BathroomAssistRequest).filter(BathroomAssistRequest.status.in_(OPEN_STATUSES))
    if customer_name:
        q = q.filter(BathroomAssistRequest.customer_name == customer_name)
    return q.order_by(BathroomAssistRequest.reported_at.asc()).all()


def list_resolved(
    db: Session,
    customer_name: Optional[str] = None,
    location_label: Optional[str] = None,
    statuses: Optional[List[str]] = None,
    limit: int = 10,
) -> List[BathroomAssistRequest]:
    q = db.query(BathroomAssistRequest)
    if customer_name:
        q = q.filter(BathroomAssistRequest.customer_name == customer_name)
    if location_label:
        q = q.filter(BathroomAssistRequest.location_label == location_label)
    q = q.filter(BathroomAssistRequest.status.in_(statuses or CLOSED_STATUSES))
    return q.order_by(BathroomAssistRequest.resolved_at.desc().nulls_last()).limit(limit).all()


def list_recent(
    db: Session,
    statuses: Optional[List[str]] = None,
    customer_name: Optional[str] = None,
    limit: int = 20,
) -> List[BathroomAssistRequest]:
    q = db.query(BathroomAssistRequest)
    if customer_name:
        q = q.filter(BathroomAssistRequest.customer_name == customer_name)
    if statuses:
        q = q.filter(BathroomAssistRequest.status.in_(statuses))
    return q.order_by(BathroomAssistRequest.reported_at.desc()).limit(limit).all()
