from datetime import date, timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth.security import require_roles
from ..db import get_db
from ..models.models import TimeAttendance
from ..schemas.manager import ScheduleLabel, ScheduleVisit
from ..services.schedule import CLEANER_SCHEDULES, build_schedule_label, weekly_visits
from ..services.time_rules import local_today, range_for_days, week_start


router = APIRouter(prefix="/schedule", tags=["schedule"])

SCHEDULE_ROLES = ("manager", "ops_manager", "admin")


@router.get("/week", response_model=List[ScheduleVisit])
def schedule_week(
    week_of: Optional[date] = None,
    db: Session = Depends(get_db),
    _=Depends(require_roles(*SCHEDULE_ROLES)),
):
    """Expected visits for the week containing week_of, with the matching clock-in/out when one exists."""
    monday = week_start(week_of or local_today())
    bounds = range_for_days(monday, monday + timedelta(days=6))
    rows = (
        db.query(TimeAttendance)
        .filter(TimeAttendance.clock_in >= bounds.start, TimeAttendance.clock_in <= bounds.end)
        .order_by(TimeAttendance.clock_in.asc())
        .all()
    )
    return weekly_visits(rows, monday)


@router.get("/labels", response_model=List[ScheduleLabel])
def schedule_labels(_=Depends(require_roles(*SCHEDULE_ROLES))):
    return [
        ScheduleLabel(cleaner_name=e.cleaner, site_name=e.site, label=build_schedule_label(e))
        for e in CLEANER_SCHEDULES
    ]
