from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..auth.security import SessionContext, require_roles
from ..db import get_db
from ..models.models import Cleaner
from ..schemas.analytics import CleanerSummary
from ..schemas.manager import (
    ActivityEntry,
    CleanerDetail,
    CleanerListItem,
    PhotoFeedbackRequest,
    PhotoFeedbackResponse,
)
from ..services.activity import (
    PhotoNotFound,
    cleaner_in_scope,
    fetch_cleaner_detail,
    fetch_manager_recent_activity,
    list_manager_cleaners,
    set_photo_feedback,
)
from ..services.roster import build_cleaner_scope


router = APIRouter(prefix="/manager", tags=["manager"])

MANAGER_ROLES = ("manager", "ops_manager", "admin")


@router.get("/cleaners", response_model=List[CleanerListItem])
def manager_cleaners(
    db: Session = Depends(get_db),
    session: SessionContext = Depends(require_roles(*MANAGER_ROLES)),
):
    return list_manager_cleaners(db, session.user_id, session.role)


@router.get("/activity", response_model=List[ActivityEntry])
def manager_activity(
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    session: SessionContext = Depends(require_roles(*MANAGER_ROLES)),
):
    return fetch_manager_recent_activity(db, session.user_id, session.role, limit=limit)


@router.get("/cleaners/{cleaner_id}", response_model=CleanerDetail)
def manager_cleaner_detail(
    cleaner_id: str,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(require_roles(*MANAGER_ROLES)),
):
    row = db.query(Cleaner).filter(Cleaner.id == cleaner_id).first()
    if not row:
        raise HTTPException(status_code=404, detail="Cleaner not found")
    cleaner = CleanerSummary.model_validate(row)
    scope = build_cleaner_scope(db, session.user_id, session.role)
    if not cleaner_in_scope(scope, cleaner):
        raise HTTPException(status_code=403, detail="Cleaner is not on your roster")
    return fetch_cleaner_detail(db, session.user_id, cleaner)


@router.put("/photos/{photo_id}/feedback", response_model=PhotoFeedbackResponse)
def photo_feedback(
    photo_id: int,
    payload: PhotoFeedbackRequest,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(require_roles(*MANAGER_ROLES)),
):
    try:
        stored = set_photo_feedback(db, session.user_id, photo_id, payload.feedback)
    except PhotoNotFound:
        raise HTTPException(status_code=404, detail="Photo not found")
    return PhotoFeedbackResponse(photo_id=photo_id, feedback=stored)
