"""
Attendance and task analytics.

The aggregation functions are pure: they take already-fetched records plus a
reference "now" and return view-models. The fetch_* functions load the rows for
a manager's scope and delegate to them.
"""
import math
from datetime import date, datetime
from typing import List, Optional, Dict, Iterable

import pytz
import structlog
from sqlalchemy.orm import Session

from ..config import settings
from ..models.models import TimeAttendance, TaskSelection, TaskPhoto
from ..schemas.analytics import (
    AttendanceRecord,
    TaskSelectionRecord,
    TaskPhotoRecord,
    AnalyticsSummary,
    AnalyticsTotals,
    ComplianceTrendPoint,
    CleanerRate,
    AreaDuration,
    DailyHoursPoint,
    PhotoComplianceBreakdown,
    DashboardSnapshot,
    HoursBreakdownEntry,
)
from .identity import normalize_cleaner_name, UNKNOWN_CLEANER
from .roster import CleanerScope, build_cleaner_scope, roster_name
from .schedule import is_clock_in_on_time, has_schedule
from .time_rules import (
    DateRange,
    date_key,
    day_bounds,
    ensure_utc,
    hours_between,
    is_same_local_day,
    local_today,
    minutes_between,
    utcnow,
)

log = structlog.get_logger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=pytz.UTC)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _pct(numerator: int, denominator: int) -> Optional[float]:
    if not denominator:
        return None
    return round(numerator / denominator * 100, 1)


def _row_cleaner_id(row: AttendanceRecord) -> str:
    if row.cleaner_uuid:
        return row.cleaner_uuid
    if row.cleaner_id is not None and str(row.cleaner_id).strip():
        return str(row.cleaner_id)
    return ""


def _photo_group_key(cleaner_id: Optional[str], cleaner_name: Optional[str]) -> str:
    return cleaner_id or cleaner_name or "unknown"


def _photo_sort_time(photo: TaskPhotoRecord) -> datetime:
    return ensure_utc(photo.photo_timestamp) or _EPOCH


def summarize_attendance(
    attendance: Iterable[AttendanceRecord],
    scope: CleanerScope,
    range_: DateRange,
    now: datetime,
):
    """Trend, hours and on-time aggregates over attendance rows already filtered to the scope."""
    by_date: Dict[str, Dict[str, int]] = {}
    hours_by_date: Dict[str, float] = {}
    on_time_by_cleaner: Dict[str, Dict[str, int]] = {}
    totals = {"attendance": 0, "completed": 0, "on_time": 0, "eligible": 0, "hours": 0.0}

    for row in attendance:
        reference = row.clock_in or row.clock_out
        key = date_key(reference)
        bucket = by_date.setdefault(key, {"total": 0, "completed": 0})
        bucket["total"] += 1
        totals["attendance"] += 1
        if row.clock_in and row.clock_out:
            bucket["completed"] += 1
            totals["completed"] += 1

        row_id = _row_cleaner_id(row)
        name = scope.names_by_id.get(row_id) if row_id else None
        name = name or normalize_cleaner_name(row.cleaner_name)

        is_current_day = is_same_local_day(reference, now) if reference else False
        hours = hours_between(
            row.clock_in,
            row.clock_out,
            fallback_end=now if (not row.clock_out and is_current_day) else None,
            clamp_end=range_.end,
        )
        if hours:
            totals["hours"] += hours
            hours_by_date[key] = hours_by_date.get(key, 0.0) + hours

        # rows on a day without a schedule entry are not eligible
        on_time = is_clock_in_on_time(row.clock_in, name)
        if on_time is None:
            continue
        totals["eligible"] += 1
        agg = on_time_by_cleaner.setdefault(row_id or name, {"on_time": 0, "total": 0})
        agg["total"] += 1
        if on_time:
            totals["on_time"] += 1
            agg["on_time"] += 1

    return by_date, hours_by_date, on_time_by_cleaner, totals


def build_on_time_rates(on_time_by_cleaner: Dict[str, Dict[str, int]], scope: CleanerScope) -> List[CleanerRate]:
    rates: List[CleanerRate] = []
    for key, agg in on_time_by_cleaner.items():
        rates.append(CleanerRate(
            cleaner_id=key,
            cleaner_name=scope.names_by_id.get(key, key),
            rate=_round_half_up(agg["on_time"] / agg["total"] * 100) if agg["total"] else 0,
            total=agg["total"],
            value=agg["on_time"],
        ))
    for cleaner in scope.roster:
        name = roster_name(cleaner)
        if cleaner.id in on_time_by_cleaner or name in on_time_by_cleaner:
            continue
        rates.append(CleanerRate(
            cleaner_id=cleaner.id,
            cleaner_name=name,
            rate=0 if has_schedule(name) else None,
            total=0,
            value=0,
        ))
    rates.sort(key=lambda r: (r.rate is None, -(r.rate or 0)))
    return rates


def photo_compliance(
    selections: Iterable[TaskSelectionRecord],
    photos: Iterable[TaskPhotoRecord],
):
    """
    Partition every selected-task instance into with/without photo and
    time each completed task against its earliest matching photo.
    """
    photos_by_cleaner: Dict[str, List[TaskPhotoRecord]] = {}
    for photo in photos:
        photos_by_cleaner.setdefault(_photo_group_key(photo.cleaner_id, photo.cleaner_name), []).append(photo)

    breakdown = PhotoComplianceBreakdown()
    area_durations: Dict[str, Dict[str, float]] = {}

    for selection in selections:
        if not selection.selected_tasks:
            continue
        related = photos_by_cleaner.get(_photo_group_key(selection.cleaner_id, selection.cleaner_name), [])

        for task_id in selection.selected_tasks:
            if any(_photo_matches_task(selection, task_id, p) for p in related):
                breakdown.with_photo += 1
            else:
                breakdown.without_photo += 1

        for task_id in selection.completed_tasks:
            candidates = [
                p for p in related
                if p.task_id == task_id or (selection.qr_code_id and selection.qr_code_id == p.qr_code_id)
            ]
            earliest = min(candidates, key=_photo_sort_time) if candidates else None
            minutes = minutes_between(selection.timestamp, earliest.photo_timestamp if earliest else None)
            if minutes is None:
                continue
            agg = area_durations.setdefault(selection.area_type or "Unknown Area", {"minutes": 0.0, "samples": 0})
            agg["minutes"] += minutes
            agg["samples"] += 1

    durations = [
        AreaDuration(
            label=label,
            avg_minutes=round(agg["minutes"] / agg["samples"], 1) if agg["samples"] else 0.0,
            samples=int(agg["samples"]),
        )
        for label, agg in area_durations.items()
    ]
    durations.sort(key=lambda d: -d.avg_minutes)
    return breakdown, durations


def _photo_matches_task(selection: TaskSelectionRecord, task_id: str, photo: TaskPhotoRecord) -> bool:
    if task_id and photo.task_id:
        return photo.task_id == task_id
    if selection.qr_code_id and photo.qr_code_id:
        return selection.qr_code_id == photo.qr_code_id
    return False


def build_analytics_summary(
    attendance: List[AttendanceRecord],
    selections: List[TaskSelectionRecord],
    photos: List[TaskPhotoRecord],
    scope: CleanerScope,
    range_: DateRange,
    now: Optional[datetime] = None,
) -> AnalyticsSummary:
    now = now or utcnow()
    attendance = [r for r in attendance if scope.matches(r.cleaner_uuid, r.cleaner_id, r.cleaner_name)]
    selections = [s for s in selections if scope.matches(None, s.cleaner_id, s.cleaner_name)]
    photos = [p for p in photos if scope.matches(None, p.cleaner_id, p.cleaner_name)]

    by_date, hours_by_date, on_time_by_cleaner, totals = summarize_attendance(attendance, scope, range_, now)
    breakdown, durations = photo_compliance(selections, photos)

    trend = [
        ComplianceTrendPoint(
            date=key,
            compliance=_round_half_up(v["completed"] / v["total"] * 100) if v["total"] else 0,
            total=v["total"],
            completed=v["completed"],
        )
        for key, v in sorted(by_date.items())
    ]
    hours_series = [DailyHoursPoint(date=key, hours=round(v, 2)) for key, v in sorted(hours_by_date.items())]

    return AnalyticsSummary(
        roster=scope.roster,
        totals=AnalyticsTotals(
            compliance_rate=_pct(totals["completed"], totals["attendance"]),
            on_time_rate=_pct(totals["on_time"], totals["eligible"]),
            photo_compliance_rate=_pct(breakdown.with_photo, breakdown.with_photo + breakdown.without_photo),
            total_hours_worked=round(totals["hours"], 2),
        ),
        trend=trend,
        on_time_by_cleaner=build_on_time_rates(on_time_by_cleaner, scope),
        task_completion_by_area=durations,
        photo_compliance_breakdown=breakdown,
        hours_by_date=hours_series,
    )


def build_dashboard_snapshot(
    day: date,
    attendance: List[AttendanceRecord],
    selections: List[TaskSelectionRecord],
    photos: List[TaskPhotoRecord],
    scope: CleanerScope,
    now: Optional[datetime] = None,
) -> DashboardSnapshot:
    now = now or utcnow()
    bounds = day_bounds(day)
    is_current_day = day == local_today(now)

    attendance = [r for r in attendance if scope.matches(r.cleaner_uuid, r.cleaner_id, r.cleaner_name)]
    selections = [s for s in selections if scope.matches(None, s.cleaner_id, s.cleaner_name)]
    photos = [p for p in photos if scope.matches(None, p.cleaner_id, p.cleaner_name)]

    cleaners_online = None
    if is_current_day:
        active = set()
        for row in attendance:
            if not row.clock_in or row.clock_out:
                continue
            key = row.cleaner_uuid or (str(row.cleaner_id) if row.cleaner_id is not None else None) or row.cleaner_name
            if key:
                active.add(str(key))
        cleaners_online = len(active)

    fallback = min(ensure_utc(now), bounds.end) if is_current_day else None
    breakdown: List[HoursBreakdownEntry] = []
    total_hours = 0.0
    for row in attendance:
        hours = hours_between(
            row.clock_in,
            row.clock_out,
            fallback_end=fallback if not row.clock_out else None,
            clamp_end=bounds.end,
        )
        if not hours:
            continue
        breakdown.append(HoursBreakdownEntry(
            cleaner_name=row.cleaner_name or UNKNOWN_CLEANER,
            site_name=row.site_name or "Unknown Site",
            hours=hours,
        ))
        total_hours += hours

    return DashboardSnapshot(
        date=day,
        is_current_day=is_current_day,
        cleaners_online=cleaners_online,
        areas_cleaned=sum(1 for s in selections if s.completed_tasks),
        photos_taken=len(photos),
        hours_worked=round(total_hours, 2),
        attendance_count=len(attendance),
        hours_breakdown=breakdown,
        refresh_interval_s=settings.snapshot_refresh_s,
    )


def _load(db: Session, model, column, range_: DateRange, record_cls) -> list:
    rows = (
        db.query(model)
        .filter(column >= range_.start, column <= range_.end)
        .order_by(column.asc(), model.id.asc())
        .all()
    )
    return [record_cls.model_validate(r) for r in rows]


def load_range(db: Session, range_: DateRange):
    attendance = _load(db, TimeAttendance, TimeAttendance.clock_in, range_, AttendanceRecord)
    selections = _load(db, TaskSelection, TaskSelection.timestamp, range_, TaskSelectionRecord)
    photos = _load(db, TaskPhoto, TaskPhoto.photo_timestamp, range_, TaskPhotoRecord)
    return attendance, selections, photos


def fetch_analytics_summary(
    db: Session,
    manager_id: Optional[str],
    role: str,
    range_: DateRange,
    now: Optional[datetime] = None,
) -> AnalyticsSummary:
    scope = build_cleaner_scope(db, manager_id, role)
    attendance, selections, photos = load_range(db, range_)
    log.info(
        "analytics_summary",
        manager_id=manager_id,
        role=role,
        attendance=len(attendance),
        selections=len(selections),
        photos=len(photos),
        restricted=scope.restrict,
    )
    return build_analytics_summary(attendance, selections, photos, scope, range_, now=now)


def fetch_dashboard_snapshot(
    db: Session,
    manager_id: Optional[str],
    role: str,
    day: date,
    now: Optional[datetime] = None,
) -> DashboardSnapshot:
    scope = build_cleaner_scope(db, manager_id, role)
    attendance, selections, photos = load_range(db, day_bounds(day))
    return build_dashboard_snapshot(day, attendance, selections, photos, scope, now=now)
