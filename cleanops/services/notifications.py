"""
Notification queue.
Rows in `messages` are picked up by the messaging worker; queueing is best-effort.
"""
from typing import Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models.models import Message

log = structlog.get_logger(__name__)

ASSIST_MESSAGE_TYPE = "bathroom_assist"


def queue_notification(
    db: Session,
    recipient: str,
    content: str,
    type_: str = ASSIST_MESSAGE_TYPE,
    cleaner_id: Optional[str] = None,
    cleaner_name: Optional[str] = None,
    customer_name: Optional[str] = None,
) -> Optional[Message]:
    """
    Insert a queued message and commit it on its own.

    Failures are logged and rolled back; the caller's already-committed work is untouched.

    Args:
        db: Database session (any pending work must already be committed)
        recipient: Audience (cleaners|operations|customers)
        content: Message text

    Returns:
        The queued Message, or None when the insert failed
    """
    msg = Message(
        recipient=recipient,
        type=type_,
        content=content,
        schedule=None,
        cleaner_id=cleaner_id,
        cleaner_name=cleaner_name,
        customer_name=customer_name,
    )
    try:
        db.add(msg)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log.warning("notification_queue_failed", recipient=recipient, type=type_, error=str(e))
        return None
    return msg


def list_messages(db: Session, recipient: Optional[str] = None, limit: int = 50):
    q = db.query(Message)
    if recipient:
        q = q.filter(Message.recipient == recipient)
    return q.order_by(Message.created_at.desc(), Message.id.desc()).limit(limit).all()
