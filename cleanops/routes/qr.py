from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException
from sqlalchemy.orm import Session

from ..auth.security import SessionContext, get_session, require_roles
from ..db import get_db
from ..models.models import Cleaner
from ..schemas.analytics import TaskSelectionRecord
from ..schemas.qr import (
    AreaTasksResponse,
    BuildingQRCodeOut,
    CleanerStatus,
    CompletedTasksUpdate,
    ManualQRCreate,
    ManualQRResult,
    OpsInspectionCreate,
    QRCodeData,
    ScanRequest,
    ScanResponse,
    TaskDefinition,
    TaskSelectionCreate,
)
from ..services import qr as qr_service
from ..services.time_rules import to_local
from ..storage.provider import StorageProvider
from .files import get_storage


router = APIRouter(prefix="/qr", tags=["qr"])

QR_ADMIN_ROLES = ("admin", "ops_manager")


def _parse_or_400(payload: str) -> QRCodeData:
    qr = qr_service.parse_qr_code(payload)
    if qr is None:
        raise HTTPException(status_code=400, detail="Unrecognised QR code")
    return qr


@router.post("/parse", response_model=QRCodeData)
def parse_qr(payload: str = Body(..., embed=True), _: SessionContext = Depends(get_session)):
    return _parse_or_400(payload)


@router.post("/scan", response_model=ScanResponse)
def scan_qr(
    req: ScanRequest,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(require_roles("cleaner")),
):
    qr = _parse_or_400(req.payload)
    cleaner = db.query(Cleaner).filter(Cleaner.id == session.user_id).first()
    mobile = req.mobile_number or (cleaner.mobile_number if cleaner else None)
    try:
        outcome = qr_service.process_scan(
            db,
            qr,
            session.user_id,
            session.name,
            mobile=mobile,
            latitude=req.latitude,
            longitude=req.longitude,
        )
    except qr_service.ScanRejected as e:
        raise HTTPException(status_code=409, detail=str(e))
    return ScanResponse(
        action=outcome.action,
        qr=qr,
        attendance_id=outcome.attendance.id if outcome.attendance else None,
        area_type=outcome.area_type,
    )


@router.get("/status", response_model=CleanerStatus)
def cleaner_status(db: Session = Depends(get_db), session: SessionContext = Depends(require_roles("cleaner"))):
    cleaner = db.query(Cleaner).filter(Cleaner.id == session.user_id).first()
    open_row = qr_service.find_open_attendance(
        db, session.user_id, session.name, cleaner.mobile_number if cleaner else None
    )
    if open_row is None:
        return CleanerStatus(clocked_in=False)
    local = to_local(open_row.clock_in)
    return CleanerStatus(
        clocked_in=True,
        attendance_id=open_row.id,
        clock_in=open_row.clock_in,
        site_name=open_row.site_name,
        customer_name=open_row.customer_name,
        day=local.date() if local else None,
    )


@router.post("/tasks", response_model=AreaTasksResponse)
def tasks_for_qr(
    payload: str = Body(..., embed=True),
    db: Session = Depends(get_db),
    _: SessionContext = Depends(get_session),
):
    qr = _parse_or_400(payload)
    area_type, source, tasks = qr_service.fetch_tasks_for_qr_area(db, qr)
    return AreaTasksResponse(area_type=area_type, source=source, tasks=tasks)


@router.get("/catalog/{area_type}", response_model=List[TaskDefinition])
def task_catalog(area_type: str):
    normalized = qr_service.normalize_area_type(area_type)
    if not normalized:
        raise HTTPException(status_code=404, detail="Unknown area type")
    return qr_service.get_tasks_for_area(normalized)


@router.post("/selections", response_model=TaskSelectionRecord)
def save_selection(
    payload: TaskSelectionCreate,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(require_roles("cleaner", "ops_manager")),
):
    return qr_service.save_task_selection(db, session.user_id, session.name, payload)


@router.get("/selections", response_model=List[TaskSelectionRecord])
def list_selections(
    day: Optional[date] = None,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(require_roles("cleaner", "ops_manager")),
):
    return qr_service.get_task_selections(db, session.user_id, day)


@router.patch("/selections/completed")
def update_completed(
    payload: CompletedTasksUpdate,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(require_roles("cleaner", "ops_manager")),
):
    updated = qr_service.update_completed_tasks(db, payload.qr_code_id, session.user_id, payload.completed_tasks)
    if not updated:
        raise HTTPException(status_code=404, detail="Task selection not found")
    return {"status": "ok", "updated": updated}


@router.post("/inspections")
def save_inspection(
    payload: OpsInspectionCreate,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(require_roles("cleaner", "ops_manager")),
):
    try:
        rows = qr_service.save_ops_inspection(db, session.user_id, session.name, payload)
    except qr_service.InspectionError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"status": "ok", "qr_code_id": rows[0].qr_code_id, "photos": len(rows)}


@router.post("/codes", response_model=ManualQRResult)
def create_qr_code(
    payload: ManualQRCreate,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
    _=Depends(require_roles(*QR_ADMIN_ROLES)),
):
    try:
        return qr_service.create_manual_qr_code(db, storage, payload)
    except qr_service.QRCodeError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/codes", response_model=List[BuildingQRCodeOut])
def list_qr_codes(
    customer_name: Optional[str] = None,
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    _=Depends(require_roles(*QR_ADMIN_ROLES, "manager")),
):
    return qr_service.list_qr_codes(db, customer_name, include_inactive)
