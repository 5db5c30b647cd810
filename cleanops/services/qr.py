"""
QR code workflow for cleaners.

Parsing of scanned payloads (JSON or plain text), clock-in/clock-out against
`time_attendance`, area/task scans logged to `uk_cleaner_logs`, the task
catalog per area type, task selections with photos, ops site inspections and
generation of printable building QR codes.
"""
import base64
import json
import re
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from io import BytesIO
from typing import Optional, List, Dict, Any, Tuple

import qrcode
import structlog
from PIL import Image
from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models.models import (
    AreaTask,
    BuildingQRCode,
    CleanerLog,
    Customer,
    TaskPhoto,
    TaskSelection,
    TimeAttendance,
)
from ..schemas.qr import (
    QRCodeData,
    TaskDefinition,
    TaskSelectionCreate,
    OpsInspectionCreate,
    ManualQRCreate,
    ManualQRResult,
)
from ..storage.provider import StorageProvider
from .identity import normalize_cleaner_name, normalize_cleaner_numeric_id, UNKNOWN_CLEANER
from .time_rules import utcnow, ensure_utc, day_bounds

log = structlog.get_logger(__name__)

QR_BUCKET = "qr-codes"
OPS_INSPECTION = "OPS_SITE_INSPECTION"
GENERAL_AREAS = "GENERAL_AREAS"


def _tasks(category: str, *items: Tuple[str, str]) -> List[TaskDefinition]:
    return [TaskDefinition(id=task_id, name=name, category=category) for task_id, name in items]


AREA_TASKS: Dict[str, List[TaskDefinition]] = {
    "BATHROOMS_ABLUTIONS": _tasks(
        "BATHROOMS_ABLUTIONS",
        ("bath_clean_toilets", "Clean toilets"),
        ("bath_clean_urinals", "Clean urinals"),
        ("bath_clean_sinks", "Clean sinks"),
        ("bath_wipe_mirrors", "Wipe mirrors"),
        ("bath_empty_bins", "Empty waste bins"),
        ("bath_replenish_supplies", "Replenish: hand paper towels, toilet rolls, soap"),
        ("bath_mop_floors", "Mop floors"),
    ),
    "ADMIN_OFFICE": _tasks(
        "ADMIN_OFFICE",
        ("office_wipe_desks", "Wipe desks and workstations"),
        ("office_reset_meetings", "Reset meeting rooms (tables, chairs, presentation surfaces)"),
        ("office_vacuum_floors", "Vacuum floors"),
        ("office_empty_bins", "Empty waste bins"),
        ("office_dust_computers", "Dust computers and monitors"),
        ("office_wipe_phones", "Wipe phones and headsets"),
        ("office_clean_switches", "Clean light switches and touch points"),
    ),
    "GENERAL_AREAS": _tasks(
        "GENERAL_AREAS",
        ("general_floor_care", "Vacuum, mop, or sweep floors (as appropriate)"),
        ("general_remove_waste", "Remove waste and litter"),
        ("general_wipe_handrails", "Wipe handrails and banisters"),
        ("general_clean_glass", "Clean glass panels and internal doors"),
    ),
    "WAREHOUSE_INDUSTRIAL": _tasks(
        "WAREHOUSE_INDUSTRIAL",
        ("warehouse_floor_care", "Sweep, mop, or vacuum floors"),
        ("warehouse_remove_waste", "Remove waste and pallets"),
        ("warehouse_tidy_racking", "Keep racking/shelving areas tidy"),
    ),
    "KITCHEN_CANTEEN": _tasks(
        "KITCHEN_CANTEEN",
        ("kitchen_wipe_surfaces", "Wipe all surfaces and counters"),
        ("kitchen_clean_sinks", "Clean sinks and taps"),
        ("kitchen_wipe_appliances", "Wipe appliances (microwaves, kettles, coffee machines)"),
        ("kitchen_clean_fridges", "Clean fridges (internal & external, weekly/monthly deep as required)"),
        ("kitchen_clean_dishwashers", "Clean dishwashers (internal & external)"),
        ("kitchen_sanitise_tables", "Wipe and sanitise tables and chairs"),
        ("kitchen_mop_floors", "Mop floors"),
        ("kitchen_remove_waste", "Remove waste and recycling"),
    ),
    "RECEPTION_COMMON": _tasks(
        "RECEPTION_COMMON",
        ("reception_clean_glass", "Clean glass doors and partitions"),
        ("reception_wipe_counters", "Wipe counters and reception desks"),
        ("reception_arrange_chairs", "Clean and arrange waiting area chairs"),
        ("reception_remove_waste", "Remove waste and recycling"),
    ),
    OPS_INSPECTION: _tasks(
        OPS_INSPECTION,
        ("ops_photo_1", "Inspection Photo 1"),
        ("ops_photo_2", "Inspection Photo 2"),
        ("ops_photo_3", "Inspection Photo 3"),
    ),
}

# Checked in order; first match wins.
_AREA_PATTERNS = [
    ("BATHROOMS_ABLUTIONS", re.compile(
        r"bathroom|toilet|ablution|restroom|washroom|wc|lavatory|ladies|gents|men's|mens|women|disabled|accessible|urinal"
    )),
    ("ADMIN_OFFICE", re.compile(r"office|admin|meeting|boardroom|conference|\bhr\b|\bit\b|finance|accounts|training|sales")),
    ("KITCHEN_CANTEEN", re.compile(r"kitchen|canteen|break ?room|tea ?room|pantry|lunchroom|staff ?room|coffee")),
    ("WAREHOUSE_INDUSTRIAL", re.compile(
        r"warehouse|industrial|storage|stores|stock ?room|loading( bay)?|dock|workshop|factory|plant"
    )),
    ("RECEPTION_COMMON", re.compile(r"reception|lobby|entrance|front desk|foyer|atrium")),
]

_CLOCK_IN_REF_KEYS = [
    "clockInQrId", "clock_in_qr_id", "clockInQr", "clock_in_qr", "clockInId", "clock_in_id",
    "linkedClockInQrId", "linked_clock_in_qr_id", "pairedClockInId", "paired_clock_in_id",
    "pairedClockInQr", "paired_clock_in_qr", "clockInCode", "clock_in_code",
]

_SITE_WORDS_RE = re.compile(r"\b(clock[-\s]?in|clock[-\s]?out|check[-\s]?in|check[-\s]?out|qr|site)\b", re.IGNORECASE)
_UNKNOWN_SITE_RE = re.compile(r"unknown site", re.IGNORECASE)


class ScanRejected(Exception):
    """The scan is valid but not allowed in the cleaner's current state."""


class QRCodeError(ValueError):
    pass


class InspectionError(ValueError):
    pass


@dataclass
class ScanOutcome:
    action: str
    site_area: str
    customer_label: str
    attendance: Optional[TimeAttendance] = None
    area_type: Optional[str] = None


# ----- Labels and parsing -----
def get_tasks_for_area(area_type: Optional[str]) -> List[TaskDefinition]:
    return list(AREA_TASKS.get(area_type or "", []))


def normalize_area_type(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    upper = str(value).strip().upper()
    if not upper:
        return None
    if upper in AREA_TASKS:
        return upper
    canonical = re.sub(r"[^A-Z0-9]+", "_", upper)
    return canonical if canonical in AREA_TASKS else None


def normalize_qr_type(value: Any) -> Optional[str]:
    if value is None:
        return None
    canonical = re.sub(r"[^a-z0-9]+", "_", str(value).strip().lower()).strip("_")
    return {
        "clock_in": "CLOCK_IN",
        "clockin": "CLOCK_IN",
        "clock_out": "CLOCK_OUT",
        "clockout": "CLOCK_OUT",
        "area": "AREA",
        "task": "TASK",
        "feedback": "FEEDBACK",
    }.get(canonical)


def sanitize_segment(value: Optional[str]) -> str:
    text = str(value if value is not None else "unknown").strip()
    text = re.sub(r"\s+", "_", text)
    text = re.sub(r"[^a-zA-Z0-9._-]+", "_", text)
    return text.strip("_").lower() or "unknown"


def normalize_label(value: Any) -> str:
    if not value:
        return ""
    trimmed = str(value).strip()
    if not trimmed or _UNKNOWN_SITE_RE.search(trimmed):
        return ""
    return trimmed


def prettify_site_label(value: Any) -> str:
    trimmed = normalize_label(value)
    if not trimmed:
        return ""
    text = re.sub(r"[_-]+", " ", trimmed)
    text = _SITE_WORDS_RE.sub("", text)
    parts = [p for p in re.sub(r"\s+", " ", text).strip().split(" ") if p]
    return " ".join(p.upper() if len(p) <= 3 else p[:1].upper() + p[1:].lower() for p in parts)


def detect_area_type(qr: QRCodeData) -> str:
    """Area type from the QR itself, else from keywords in its labels, else GENERAL_AREAS."""
    explicit = normalize_area_type(qr.area_type)
    if explicit:
        return explicit
    meta = qr.metadata or {}
    raw = " ".join(
        str(meta.get(k)) for k in ("areaName", "originalText", "siteName", "label", "category") if meta.get(k)
    ).lower()
    for area_type, pattern in _AREA_PATTERNS:
        if pattern.search(raw):
            return area_type
    return GENERAL_AREAS


_CLOCK_OUT_RE = re.compile(r"\bclock[\s_-]*out\b")
_CLOCK_IN_RE = re.compile(r"\bclock[\s_-]*in\b")


def from_plain_text(text: str) -> Dict[str, Any]:
    raw = (text or "").strip()
    lower = raw.lower()
    if _CLOCK_OUT_RE.search(lower):
        qr_type = "CLOCK_OUT"
    elif _CLOCK_IN_RE.search(lower):
        qr_type = "CLOCK_IN"
    elif "feedback" in lower:
        qr_type = "FEEDBACK"
    elif "task" in lower:
        qr_type = "TASK"
    else:
        qr_type = "AREA"
    first_token = re.split(r"\s|[:\-–]", raw)[0] if raw else ""
    return {
        "id": raw,
        "type": qr_type,
        "customerName": first_token if first_token and len(first_token) <= 30 else None,
        "metadata": {"originalText": raw, "areaName": raw},
    }


def parse_qr_code(raw: str) -> Optional[QRCodeData]:
    """Decode a scanned payload; None when it carries no usable id and type."""
    trimmed = (raw or "").strip()
    if not trimmed:
        return None
    if trimmed.startswith("{"):
        try:
            record = json.loads(trimmed)
        except ValueError as e:
            log.info("qr_payload_invalid_json", error=str(e))
            return None
    else:
        record = from_plain_text(trimmed)
    if not isinstance(record, dict):
        return None
    meta = record.get("metadata") if isinstance(record.get("metadata"), dict) else {}
    if not record.get("id") and isinstance(meta.get("qrCodeId"), str):
        record["id"] = meta["qrCodeId"]
    qr_type = (
        normalize_qr_type(record.get("type"))
        or normalize_qr_type(meta.get("action"))
        or normalize_qr_type(meta.get("qrType"))
    )
    if not record.get("id") or not qr_type:
        return None
    record["id"] = str(record["id"])
    record["type"] = qr_type
    return QRCodeData.model_validate(record)


def derive_site_label(qr: QRCodeData) -> str:
    meta = qr.metadata or {}
    site = meta.get("siteName")
    if site is None:
        site = meta.get("areaName")
    return normalize_label(site) or normalize_label(qr.customer_name) or normalize_label(qr.site_id) or "Site"


def derive_customer_label(qr: QRCodeData, site_label: str) -> str:
    return normalize_label(qr.customer_name) or site_label


def resolve_clock_in_reference(qr: QRCodeData) -> Optional[str]:
    meta = qr.metadata or {}
    for key in _CLOCK_IN_REF_KEYS:
        value = meta.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    nested = meta.get("clockIn")
    if isinstance(nested, dict):
        value = nested.get("id") or nested.get("qrId") or nested.get("qr_id")
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


# ----- Attendance -----
def find_open_attendance(
    db: Session,
    cleaner_id: Optional[str],
    cleaner_name: Optional[str],
    mobile: Optional[str] = None,
    clock_in_qr: Optional[str] = None,
) -> Optional[TimeAttendance]:
    """Latest attendance row without clock-out that belongs to this cleaner."""
    trimmed_id = str(cleaner_id).strip() if cleaner_id else None
    numeric_id = normalize_cleaner_numeric_id(trimmed_id)
    name = normalize_cleaner_name(cleaner_name)
    clauses = []
    if trimmed_id:
        clauses.append(func.lower(TimeAttendance.cleaner_uuid) == trimmed_id.lower())
    if numeric_id is not None:
        clauses.append(TimeAttendance.cleaner_id == numeric_id)
    if mobile and mobile.strip():
        clauses.append(TimeAttendance.cleaner_mobile == mobile.strip())
    if name != UNKNOWN_CLEANER:
        clauses.append(func.lower(TimeAttendance.cleaner_name) == name.lower())
    if not clauses:
        return None
    q = db.query(TimeAttendance).filter(TimeAttendance.clock_out.is_(None), or_(*clauses))
    if clock_in_qr:
        # the QR id only narrows this cleaner's own rows
        row = q.filter(TimeAttendance.clock_in_qr == clock_in_qr).order_by(TimeAttendance.id.desc()).first()
        if row is not None:
            return row
    return q.order_by(TimeAttendance.id.desc()).first()


def _log_scan(
    db: Session,
    qr: QRCodeData,
    cleaner_id: str,
    cleaner_name: str,
    outcome: ScanOutcome,
    latitude: Optional[float],
    longitude: Optional[float],
    now: datetime,
) -> None:
    row = CleanerLog(
        cleaner_id=cleaner_id,
        cleaner_name=cleaner_name,
        action=outcome.action,
        qr_code_id=qr.id,
        site_id=qr.site_id,
        area_id=qr.area_id,
        customer_name=outcome.customer_label,
        site_area=outcome.site_area,
        comments=f"{outcome.site_area} - {outcome.customer_label}".strip(),
        latitude=latitude,
        longitude=longitude,
        device_info={"qr_code_scanned": qr.payload()},
        timestamp=now,
    )
    try:
        db.add(row)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log.warning("scan_log_failed", cleaner_id=cleaner_id, action=outcome.action, error=str(e))


def process_scan(
    db: Session,
    qr: QRCodeData,
    cleaner_id: str,
    cleaner_name: str,
    mobile: Optional[str] = None,
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
    now: Optional[datetime] = None,
) -> ScanOutcome:
    """
    Apply a scan for a cleaner.

    CLOCK_IN opens an attendance row, CLOCK_OUT closes the open one, AREA needs an
    open shift and TASK logs a task start. Every accepted scan is logged.

    Raises:
        ScanRejected: when the cleaner's shift state does not allow the scan
    """
    now = now or utcnow()
    name = normalize_cleaner_name(cleaner_name)
    site_raw = derive_site_label(qr)
    site_label = prettify_site_label(site_raw) or site_raw or "Site"
    customer_label = derive_customer_label(qr, site_label)
    site_area = prettify_site_label((qr.metadata or {}).get("areaName")) or site_label
    numeric_id = normalize_cleaner_numeric_id(cleaner_id)

    if qr.type == "CLOCK_IN":
        if find_open_attendance(db, cleaner_id, name, mobile):
            raise ScanRejected(
                "You are already clocked in. Please clock out first or scan an area QR code to continue working."
            )
        attendance = TimeAttendance(
            cleaner_id=numeric_id,
            cleaner_uuid=cleaner_id,
            cleaner_name=name,
            cleaner_mobile=mobile or "",
            customer_name=customer_label,
            site_name=site_label,
            clock_in=now,
            clock_in_qr=qr.id,
            notes="Clock-in via QR",
        )
        db.add(attendance)
        db.commit()
        db.refresh(attendance)
        log.info("clock_in", cleaner_id=cleaner_id, attendance_id=attendance.id, site=site_label)
        outcome = ScanOutcome("Clock In", site_area, customer_label, attendance=attendance)
    elif qr.type == "CLOCK_OUT":
        attendance = find_open_attendance(db, cleaner_id, name, mobile, resolve_clock_in_reference(qr))
        if attendance is None:
            raise ScanRejected("No active clock-in found. Please clock in first.")
        attendance.clock_out = now
        attendance.notes = f"{attendance.notes} | Clock-out via QR" if attendance.notes else "Clock-out via QR"
        attendance.customer_name = customer_label or attendance.customer_name
        attendance.site_name = site_label or attendance.site_name
        if attendance.cleaner_uuid is None and cleaner_id:
            attendance.cleaner_uuid = cleaner_id
        if attendance.cleaner_id is None and numeric_id is not None:
            attendance.cleaner_id = numeric_id
        db.commit()
        db.refresh(attendance)
        log.info("clock_out", cleaner_id=cleaner_id, attendance_id=attendance.id)
        outcome = ScanOutcome("Clock Out", site_area, customer_label, attendance=attendance)
    elif qr.type == "AREA":
        attendance = find_open_attendance(db, cleaner_id, name, mobile)
        if attendance is None:
            raise ScanRejected("Please clock in first before scanning area QR codes.")
        outcome = ScanOutcome("Area Scan", site_area, customer_label, attendance=attendance,
                              area_type=detect_area_type(qr))
    elif qr.type == "TASK":
        outcome = ScanOutcome("Task Started", site_area, customer_label, area_type=detect_area_type(qr))
    else:
        outcome = ScanOutcome("QR Scan", site_area, customer_label)

    _log_scan(db, qr, cleaner_id, name, outcome, latitude, longitude, now)
    return outcome


# ----- Tasks -----
def fetch_tasks_for_qr_area(db: Session, qr: QRCodeData) -> Tuple[str, str, List[TaskDefinition]]:
    """
    Checklist for a scanned area.

    Configured `area_tasks` rows win (by QR id, then exact customer + area, then
    area substring within the customer); otherwise the catalog for the detected
    area type is used.

    Returns:
        (area_type, source, tasks) where source is "area_tasks" or "catalog"
    """
    fallback_type = detect_area_type(qr)
    meta = qr.metadata or {}
    customer = (qr.customer_name or meta.get("siteName") or "").strip()
    area = str(meta.get("areaName") or "").strip()
    area_segment = sanitize_segment(area) if area else ""

    def usable(rows):
        out = []
        for row in rows:
            description = (row.task_description or "").strip()
            if not description or row.active is False:
                continue
            placeholder = (row.task_type or "").strip().upper() == "AREA"
            if placeholder and area_segment and sanitize_segment(description) == area_segment:
                continue
            out.append(row)
        return out

    base = db.query(AreaTask).filter(AreaTask.active.is_(True))
    rows = usable(base.filter(AreaTask.qr_code == qr.id).all()) if qr.id else []
    if not rows and customer and area:
        rows = usable(base.filter(AreaTask.customer_name == customer, AreaTask.area == area).all())
    if not rows and area:
        candidates = base.filter(AreaTask.area.ilike(f"%{area}%")).all()
        if customer:
            candidates = [r for r in candidates if (r.customer_name or "").strip().lower() == customer.lower()]
        rows = usable(candidates)

    if not rows:
        return fallback_type, "catalog", get_tasks_for_area(fallback_type)

    rows.sort(key=lambda r: (r.sort_order is None, r.sort_order or 0, r.task_description.strip().lower()))
    seen = set()
    tasks = []
    for row in rows:
        if row.id in seen:
            continue
        seen.add(row.id)
        description = row.task_description.strip()
        tasks.append(TaskDefinition(
            id=row.id,
            name=description,
            category=normalize_area_type(row.task_type) or fallback_type,
            description=description,
        ))
    return fallback_type, "area_tasks", tasks


def save_task_selection(
    db: Session,
    cleaner_id: str,
    cleaner_name: str,
    data: TaskSelectionCreate,
    now: Optional[datetime] = None,
) -> TaskSelection:
    """Store a selection; its photos are written afterwards and may be lost."""
    now = now or utcnow()
    name = normalize_cleaner_name(cleaner_name)
    timestamp = ensure_utc(data.timestamp) or now
    selection = TaskSelection(
        cleaner_id=cleaner_id,
        cleaner_name=name,
        qr_code_id=data.qr_code_id,
        area_type=data.area_type,
        selected_tasks=json.dumps(data.selected_tasks),
        completed_tasks=json.dumps(data.completed_tasks) if data.completed_tasks is not None else None,
        timestamp=timestamp,
    )
    db.add(selection)
    db.commit()
    db.refresh(selection)

    if data.photos:
        started_at = ensure_utc(data.started_at) or timestamp
        try:
            for photo in data.photos:
                db.add(TaskPhoto(
                    cleaner_id=cleaner_id,
                    cleaner_name=name,
                    qr_code_id=data.qr_code_id,
                    task_id=photo.task_id,
                    area_type=data.area_type,
                    area_name=data.area_name,
                    customer_name=data.customer_name,
                    photo_data=photo.photo,
                    photo_timestamp=ensure_utc(photo.timestamp) or now,
                    started_at=started_at,
                ))
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            log.warning("task_photos_failed", cleaner_id=cleaner_id, selection_id=selection.id, error=str(e))
    return selection


def save_ops_inspection(
    db: Session,
    cleaner_id: Optional[str],
    cleaner_name: str,
    data: OpsInspectionCreate,
    now: Optional[datetime] = None,
) -> List[TaskPhoto]:
    if not cleaner_id:
        raise InspectionError("Cleaner ID is required to save an inspection.")
    if not data.photos:
        raise InspectionError("At least one photo is required to submit an inspection.")
    photos = sorted((p for p in data.photos if p.photo and p.photo.strip()), key=lambda p: p.slot)
    if not photos:
        raise InspectionError("Inspection photos are not valid.")

    now = now or utcnow()
    name = normalize_cleaner_name(cleaner_name)
    qr_code_id = (data.qr_code_id or "").strip() or f"ops_inspection_{uuid.uuid4()}"
    task_ids = [f"ops_photo_{p.slot}" for p in photos]

    try:
        db.add(TaskSelection(
            cleaner_id=cleaner_id,
            cleaner_name=name,
            qr_code_id=qr_code_id,
            area_type=OPS_INSPECTION,
            selected_tasks=json.dumps(task_ids),
            completed_tasks=json.dumps(task_ids),
            timestamp=now,
        ))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log.warning("inspection_selection_failed", cleaner_id=cleaner_id, error=str(e))

    site = (data.site_name or "").strip()
    customer = (data.customer_name or "").strip() or site or None
    started_at = ensure_utc(data.clock_in_time) or now
    rows = [
        TaskPhoto(
            cleaner_id=cleaner_id,
            cleaner_name=name,
            qr_code_id=qr_code_id,
            task_id=f"ops_photo_{p.slot}",
            area_type=OPS_INSPECTION,
            area_name=site or "Site Inspection",
            customer_name=customer,
            photo_data=p.photo,
            photo_timestamp=ensure_utc(p.timestamp) or now,
            started_at=started_at,
        )
        for p in photos
    ]
    db.add_all(rows)
    db.commit()
    log.info("ops_inspection_saved", cleaner_id=cleaner_id, photos=len(rows), qr_code_id=qr_code_id)
    return rows


def get_task_selections(db: Session, cleaner_id: str, day: Optional[date] = None) -> List[TaskSelection]:
    q = db.query(TaskSelection).filter(TaskSelection.cleaner_id == cleaner_id)
    if day is not None:
        bounds = day_bounds(day)
        q = q.filter(TaskSelection.timestamp >= bounds.start, TaskSelection.timestamp <= bounds.end)
    return q.order_by(TaskSelection.timestamp.desc()).all()


def update_completed_tasks(db: Session, qr_code_id: str, cleaner_id: str, completed: List[str]) -> int:
    updated = (
        db.query(TaskSelection)
        .filter(TaskSelection.qr_code_id == qr_code_id, TaskSelection.cleaner_id == cleaner_id)
        .update({"completed_tasks": json.dumps(completed)}, synchronize_session=False)
    )
    db.commit()
    return updated


# ----- Building QR codes -----
def generate_qr_png(data: str, size: int = 400) -> bytes:
    """Render a QR code as PNG bytes"""
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=2,
    )
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")
    img = img.resize((size, size), Image.Resampling.NEAREST)

    buffer = BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


def _describe_area_task(qr_type: str, area_name: str) -> str:
    return {
        "CLOCK_IN": f"Clock in checkpoint – {area_name}",
        "CLOCK_OUT": f"Clock out checkpoint – {area_name}",
        "TASK": f"Task QR – {area_name}",
        "FEEDBACK": f"Feedback QR – {area_name}",
    }.get(qr_type, area_name)


def _default_area_description(qr_type: str) -> str:
    return {
        "CLOCK_IN": "Clock In QR Code",
        "CLOCK_OUT": "Clock Out QR Code",
        "TASK": "Task QR Code",
        "FEEDBACK": "Feedback QR Code",
    }.get(qr_type, "Area QR Code")


def ensure_area_task_record(
    db: Session,
    qr: QRCodeData,
    customer_name: Optional[str],
    area_name: Optional[str],
    description: Optional[str] = None,
) -> AreaTask:
    customer = (customer_name or "").strip() or "Unassigned Customer"
    area = (area_name or "").strip() or "Unassigned Area"
    task_description = (description or "").strip() or _describe_area_task(qr.type, area)
    row = db.query(AreaTask).filter(AreaTask.qr_code == qr.id).first()
    if row is None:
        row = AreaTask(qr_code=qr.id)
        db.add(row)
    else:
        row.updated_at = utcnow()
    row.customer_name = customer
    row.area = area
    row.task_description = task_description
    row.task_type = qr.type
    row.active = True
    return row


def create_manual_qr_code(
    db: Session,
    storage: StorageProvider,
    data: ManualQRCreate,
    now: Optional[datetime] = None,
) -> ManualQRResult:
    """
    Create a printable QR code for a customer's site or area.

    The PNG goes to the qr-codes bucket, `building_qr_codes` is upserted on
    (customer, area) and a matching `area_tasks` row is kept in sync.
    """
    if not data.customer_name:
        raise QRCodeError("Customer name is required")
    if not data.customer_id:
        raise QRCodeError("Customer selection is required")
    if not db.query(Customer).filter(Customer.id == data.customer_id, Customer.deleted_at.is_(None)).first():
        raise QRCodeError("Customer not found")

    now = now or utcnow()
    qr_type = normalize_qr_type(data.type) or "AREA"
    metadata = dict(data.metadata or {})
    metadata.update({
        "siteName": data.site_name,
        "areaName": data.area_name,
        "floor": data.floor,
        "category": data.category,
        "label": data.label,
        "notes": data.notes,
        "generatedAt": now.isoformat(),
    })
    metadata = {k: v for k, v in metadata.items() if v is not None}

    qr = QRCodeData(
        id=str(uuid.uuid4()),
        type=qr_type,
        site_id=data.site_id,
        area_id=data.area_id,
        task_id=(data.metadata.get("taskId") or str(uuid.uuid4())) if qr_type == "TASK" else None,
        customer_name=data.customer_name,
        metadata=metadata,
    )
    encoded = json.dumps(qr.payload())
    png = generate_qr_png(data.raw_value or encoded)

    area_label = data.area_name or data.site_name or qr_type
    storage_path = f"manual/{sanitize_segment(data.customer_name)}/{sanitize_segment(area_label)}/{qr.id}.png"
    storage_url = storage.upload(QR_BUCKET, storage_path, png, "image/png", upsert=True)

    row = (
        db.query(BuildingQRCode)
        .filter(BuildingQRCode.customer_name == data.customer_name, BuildingQRCode.building_area == area_label)
        .first()
    )
    if row is None:
        row = BuildingQRCode(customer_name=data.customer_name, building_area=area_label)
        db.add(row)
    row.qr_code_id = qr.id
    row.area_description = data.description or _default_area_description(qr_type)
    row.qr_code_url = encoded
    row.qr_code_image_path = storage_url
    row.is_active = True
    row.created_at = now
    ensure_area_task_record(db, qr, data.customer_name, area_label, data.description)
    db.commit()
    log.info("qr_code_created", qr_code_id=qr.id, customer=data.customer_name, area=area_label, type=qr_type)

    return ManualQRResult(
        qr_data=qr,
        data_url="data:image/png;base64," + base64.b64encode(png).decode("ascii"),
        storage_url=storage_url,
        storage_path=storage_path,
    )


def list_qr_codes(db: Session, customer_name: Optional[str] = None, include_inactive: bool = False):
    q = db.query(BuildingQRCode)
    if customer_name:
        q = q.filter(BuildingQRCode.customer_name == customer_name)
    if not include_inactive:
        q = q.filter(BuildingQRCode.is_active.is_(True))
    return q.order_by(BuildingQRCode.customer_name.asc(), BuildingQRCode.building_area.asc()).all()
