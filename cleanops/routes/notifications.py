from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth.security import require_roles
from ..db import get_db
from ..schemas.manager import MessageOut
from ..services.notifications import list_messages

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=List[MessageOut])
def queued_messages(
    recipient: Optional[Literal["cleaners", "operations", "customers"]] = None,
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    _=Depends(require_roles("ops_manager", "admin")),
):
    """Most recent queued notifications, newest first."""
    return list_messages(db, recipient, limit)
