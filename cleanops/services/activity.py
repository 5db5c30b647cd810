"""
Manager views of cleaner activity: roster status list, recent activity feed,
per-cleaner detail and photo feedback.
"""
import re
from datetime import datetime
from typing import Optional, List, Dict

import structlog
from sqlalchemy import or_, func
from sqlalchemy.orm import Session

from ..models.models import (
    BuildingQRCode,
    Area,
    CleanerLog,
    ManagerPhotoFeedback,
    TaskPhoto,
    TaskSelection,
    TimeAttendance,
)
from ..schemas.analytics import AttendanceRecord, TaskPhotoRecord, TaskSelectionRecord, CleanerSummary
from ..schemas.manager import (
    ActivityEntry,
    CleanerDetail,
    CleanerListItem,
    CleanerLogRecord,
    TaskSummary,
)
from .identity import normalize_cleaner_name
from .photo_grouping import group_task_photos, group_photos_by_date, photo_time
from .roster import CleanerScope, build_cleaner_scope, roster_name
from .time_rules import utcnow, ensure_utc, local_today, day_bounds

log = structlog.get_logger(__name__)

RESERVED_ACTIVITY_LABELS = {
    "bathrooms ablutions",
    "admin office",
    "general areas",
    "warehouse industrial",
    "kitchen canteen",
    "reception common",
    "unassigned area",
    "unknown area",
    "area",
}

ATTENDANCE_LIMIT = 60
LOG_LIMIT = 120
TASK_LIMIT = 80
PHOTO_LIMIT = 80

_AREA_CODE_RE = re.compile(r"^[A-Z0-9_]+$")


class PhotoNotFound(LookupError):
    pass


def normalize_activity_label(value: Optional[str]) -> Optional[str]:
    """Display label, or None for blanks, area-type codes and generic placeholders."""
    if not value:
        return None
    trimmed = str(value).strip()
    if not trimmed:
        return None
    if _AREA_CODE_RE.match(trimmed) and "_" in trimmed:
        return None
    cleaned = re.sub(r"\s{2,}", " ", trimmed.replace("_", " ")).strip()
    if not cleaned or cleaned.lower() in RESERVED_ACTIVITY_LABELS:
        return None
    return cleaned


def resolve_activity_label(*labels: Optional[str]) -> Optional[str]:
    for label in labels:
        normalized = normalize_activity_label(label)
        if normalized:
            return normalized
    return None


def _qr_metadata(db: Session, qr_ids) -> Dict[str, Dict[str, Optional[str]]]:
    ids = [i for i in set(qr_ids) if i]
    if not ids:
        return {}
    rows = db.query(BuildingQRCode).filter(BuildingQRCode.qr_code_id.in_(ids)).all()
    return {
        r.qr_code_id: {
            "area": (r.building_area or "").strip() or (r.area_description or "").strip() or None,
            "customer": (r.customer_name or "").strip() or None,
        }
        for r in rows
    }


def _area_names(db: Session, area_ids) -> Dict[str, str]:
    ids = [i for i in set(area_ids) if i]
    if not ids:
        return {}
    rows = db.query(Area).filter(Area.id.in_(ids)).all()
    return {a.id: a.name or a.description or "Area" for a in rows}


def fetch_manager_recent_activity(
    db: Session,
    manager_id: Optional[str],
    role: Optional[str],
    limit: int = 100,
) -> List[ActivityEntry]:
    """Scan logs and task photos merged into one feed, newest first."""
    scope = build_cleaner_scope(db, manager_id, role)

    logs_q = db.query(CleanerLog)
    photos_q = db.query(TaskPhoto)
    if scope.restrict:
        ids = list(scope.id_set)
        logs_q = logs_q.filter(CleanerLog.cleaner_id.in_(ids))
        photos_q = photos_q.filter(TaskPhoto.cleaner_id.in_(ids))
    logs = logs_q.order_by(CleanerLog.timestamp.desc()).limit(limit).all()
    photos = (
        photos_q.order_by(TaskPhoto.photo_timestamp.desc().nulls_first(), TaskPhoto.id.desc())
        .limit(limit)
        .all()
    )

    qr_meta = _qr_metadata(db, [r.qr_code_id for r in logs] + [p.qr_code_id for p in photos])
    area_map = _area_names(db, [r.area_id for r in logs])
    names = dict(scope.names_by_id)

    entries: List[ActivityEntry] = []
    for row in logs:
        meta = qr_meta.get(row.qr_code_id or "", {})
        site = resolve_activity_label(meta.get("customer"), row.customer_name)
        area = resolve_activity_label(meta.get("area"), area_map.get(row.area_id or ""), row.site_area)
        detail = " • ".join(p for p in [site, area, row.comments] if p) or None
        entries.append(ActivityEntry(
            id=f"log-{row.id}",
            cleaner_id=row.cleaner_id,
            cleaner_name=names.get(row.cleaner_id or "") or row.cleaner_name,
            action=row.action or "Activity Logged",
            timestamp=ensure_utc(row.timestamp),
            detail=detail,
            site=site,
            area=area,
            comments=row.comments,
            entry_type="log",
        ))

    for photo in photos:
        meta = qr_meta.get(photo.qr_code_id or "", {})
        site = resolve_activity_label(meta.get("customer"), photo.customer_name)
        area = resolve_activity_label(meta.get("area"), photo.area_name, photo.area_type)
        detail = " • ".join(p for p in [area, photo.qr_code_id, photo.task_id] if p) or "Task photo"
        entries.append(ActivityEntry(
            id=f"photo-{photo.id}",
            cleaner_id=photo.cleaner_id,
            cleaner_name=names.get(photo.cleaner_id or "") or photo.cleaner_name,
            action="Task Photo",
            timestamp=ensure_utc(photo.photo_timestamp) or ensure_utc(photo.created_at),
            detail=detail,
            site=site,
            area=area,
            photo_url=photo.photo_data,
            entry_type="photo",
        ))

    entries.sort(key=lambda e: (e.timestamp is not None, e.timestamp.timestamp() if e.timestamp else 0.0), reverse=True)
    return entries[:limit]


def list_manager_cleaners(db: Session, manager_id: Optional[str], role: Optional[str]) -> List[CleanerListItem]:
    """Roster with each cleaner's latest scan and whether they are on shift now."""
    scope = build_cleaner_scope(db, manager_id, role)
    items = []
    for cleaner in scope.roster:
        name = roster_name(cleaner)
        latest = (
            db.query(CleanerLog)
            .filter(CleanerLog.cleaner_id == cleaner.id)
            .order_by(CleanerLog.timestamp.desc())
            .first()
        )
        on_shift = (
            db.query(TimeAttendance.id)
            .filter(
                TimeAttendance.clock_out.is_(None),
                or_(TimeAttendance.cleaner_uuid == cleaner.id, func.lower(TimeAttendance.cleaner_name) == name.lower()),
            )
            .first()
            is not None
        )
        items.append(CleanerListItem(
            cleaner_id=cleaner.id,
            cleaner_name=name,
            customer_name=latest.customer_name if latest else None,
            site_area=latest.site_area if latest else None,
            event_type=latest.action if latest else None,
            timestamp=ensure_utc(latest.timestamp) if latest else None,
            is_active=on_shift,
        ))
    items.sort(key=lambda i: (not i.is_active, i.cleaner_name.lower()))
    return items


def _cleaner_filter(column_id, column_name, cleaner_id: Optional[str], name: str):
    clauses = [func.lower(column_name) == name.lower()]
    if cleaner_id:
        clauses.append(column_id == cleaner_id)
    return or_(*clauses)


def fetch_cleaner_detail(
    db: Session,
    manager_id: str,
    cleaner: CleanerSummary,
    now: Optional[datetime] = None,
) -> CleanerDetail:
    """
    Everything the manager's cleaner drill-down shows.

    Attendance, logs, selections and photos are matched by cleaner id or
    normalized name, newest first and capped per kind.
    """
    now = now or utcnow()
    name = roster_name(cleaner)
    today = day_bounds(local_today(now))

    attendance_rows = (
        db.query(TimeAttendance)
        .filter(_cleaner_filter(TimeAttendance.cleaner_uuid, TimeAttendance.cleaner_name, cleaner.id, name))
        .order_by(TimeAttendance.clock_in.desc())
        .limit(ATTENDANCE_LIMIT)
        .all()
    )
    log_rows = (
        db.query(CleanerLog)
        .filter(_cleaner_filter(CleanerLog.cleaner_id, CleanerLog.cleaner_name, cleaner.id, name))
        .order_by(CleanerLog.timestamp.desc())
        .limit(LOG_LIMIT)
        .all()
    )
    selection_rows = (
        db.query(TaskSelection)
        .filter(_cleaner_filter(TaskSelection.cleaner_id, TaskSelection.cleaner_name, cleaner.id, name))
        .order_by(TaskSelection.timestamp.desc())
        .limit(TASK_LIMIT)
        .all()
    )
    photo_rows = (
        db.query(TaskPhoto)
        .filter(_cleaner_filter(TaskPhoto.cleaner_id, TaskPhoto.cleaner_name, cleaner.id, name))
        .order_by(TaskPhoto.photo_timestamp.desc(), TaskPhoto.id.desc())
        .limit(PHOTO_LIMIT)
        .all()
    )

    attendance = [AttendanceRecord.model_validate(r) for r in attendance_rows]
    selections = [TaskSelectionRecord.model_validate(r) for r in selection_rows]
    photos = [TaskPhotoRecord.model_validate(p) for p in photo_rows]

    def in_today(value) -> bool:
        ts = ensure_utc(value)
        return ts is not None and today.start <= ts <= today.end

    today_selections = [s for s in selections if in_today(s.timestamp)]
    summaries = [
        TaskSummary(
            id=s.id,
            area=normalize_activity_label(s.area_type) or s.area_type,
            total=len(s.selected_tasks),
            completed=len(s.completed_tasks),
            timestamp=ensure_utc(s.timestamp),
        )
        for s in today_selections
    ]

    feedback_rows = []
    if photos:
        feedback_rows = (
            db.query(ManagerPhotoFeedback)
            .filter(
                ManagerPhotoFeedback.manager_id == manager_id,
                ManagerPhotoFeedback.photo_id.in_([p.id for p in photos]),
            )
            .all()
        )

    return CleanerDetail(
        cleaner_id=cleaner.id,
        cleaner_name=normalize_cleaner_name(name),
        attendance=attendance,
        logs=[CleanerLogRecord.model_validate(r) for r in log_rows],
        task_summaries=summaries,
        areas_today=len(today_selections),
        photos_today=sum(1 for p in photos if in_today(photo_time(p))),
        records_today=sum(1 for a in attendance if in_today(a.clock_in)),
        photo_groups=group_task_photos(photos),
        photos_by_date=group_photos_by_date(photos),
        feedback={f.photo_id: f.feedback for f in feedback_rows},
    )


def cleaner_in_scope(scope: CleanerScope, cleaner: CleanerSummary) -> bool:
    return scope.matches(cleaner_uuid=cleaner.id, cleaner_name=roster_name(cleaner))


def set_photo_feedback(db: Session, manager_id: str, photo_id: int, feedback: Optional[str]) -> Optional[str]:
    """
    Thumbs up/down on a task photo. Sending the current value again (or None)
    clears it.

    Returns:
        The feedback now stored, or None when cleared
    """
    if not db.query(TaskPhoto.id).filter(TaskPhoto.id == photo_id).first():
        raise PhotoNotFound(photo_id)
    existing = (
        db.query(ManagerPhotoFeedback)
        .filter(ManagerPhotoFeedback.manager_id == manager_id, ManagerPhotoFeedback.photo_id == photo_id)
        .first()
    )
    if feedback is None or (existing is not None and existing.feedback == feedback):
        if existing is not None:
            db.delete(existing)
            db.commit()
        return None
    if existing is None:
        db.add(ManagerPhotoFeedback(manager_id=manager_id, photo_id=photo_id, feedback=feedback))
    else:
        existing.feedback = feedback
    db.commit()
    log.info("photo_feedback_set", manager_id=manager_id, photo_id=photo_id, feedback=feedback)
    return feedback
