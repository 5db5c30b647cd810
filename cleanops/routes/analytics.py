from datetime import date, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..auth.security import SessionContext, require_roles
from ..db import get_db
from ..schemas.analytics import AnalyticsSummary, DashboardSnapshot
from ..services.analytics import fetch_analytics_summary, fetch_dashboard_snapshot
from ..services.time_rules import local_today, range_for_days


router = APIRouter(prefix="/analytics", tags=["analytics"])

ANALYTICS_ROLES = ("manager", "ops_manager", "admin")
MAX_RANGE_DAYS = 366


@router.get("/summary", response_model=AnalyticsSummary)
def analytics_summary(
    start: Optional[date] = None,
    end: Optional[date] = None,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(require_roles(*ANALYTICS_ROLES)),
):
    """Compliance trend, on-time rates, photo compliance and hours for a day range (default: last 7 days)."""
    end_day = end or local_today()
    start_day = start or end_day - timedelta(days=6)
    if start_day > end_day:
        raise HTTPException(status_code=400, detail="start must be on or before end")
    if (end_day - start_day).days >= MAX_RANGE_DAYS:
        raise HTTPException(status_code=400, detail="Range too large")
    return fetch_analytics_summary(db, session.user_id, session.role, range_for_days(start_day, end_day))


@router.get("/snapshot", response_model=DashboardSnapshot)
def dashboard_snapshot(
    day: Optional[date] = None,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(require_roles(*ANALYTICS_ROLES)),
):
    return fetch_dashboard_snapshot(db, session.user_id, session.role, day or local_today())
