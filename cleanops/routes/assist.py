from typing import List, Optional

from fastapi import (
    APIRouter,
    Depends,
    File,
    Form,
    HTTPException,
    Query,
    Request,
    UploadFile,
    WebSocket,
    WebSocketDisconnect,
)
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
import structlog
from sqlalchemy.orm import Session

from ..auth.security import SessionContext, require_roles, session_from_token
from ..db import get_db
from ..schemas.assist import (
    ISSUE_TYPES,
    AssistAccept,
    AssistCreate,
    AssistEscalationRun,
    AssistEventOut,
    AssistRequestOut,
    AssistResolve,
)
from ..services import assist as assist_service
from ..services.audit import list_assist_events
from ..services.realtime import hub, ALL_CHANNEL
from ..storage.provider import StorageProvider
from .files import get_storage

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/assist", tags=["assist"])

STAFF_ROLES = ("cleaner", "manager", "ops_manager", "admin")
SUPERVISOR_ROLES = ("manager", "ops_manager", "admin")


def _get_or_404(db: Session, request_id: str):
    try:
        return assist_service.get_request(db, request_id)
    except assist_service.AssistNotFound:
        raise HTTPException(status_code=404, detail="Assist request not found")


@router.get("/issue-types")
def issue_types():
    return [{"value": k, "label": v} for k, v in ISSUE_TYPES.items()]


@router.post("/requests", response_model=AssistRequestOut)
def create_request(payload: AssistCreate, db: Session = Depends(get_db)):
    return assist_service.create_request(db, payload)


@router.post("/report", response_model=AssistRequestOut)
def report_issue(
    request: Request,
    customer_name: str = Form(...),
    issue_type: str = Form(...),
    location_label: str = Form("Bathroom"),
    issue_description: Optional[str] = Form(None),
    reported_by: Optional[str] = Form(None),
    reported_contact: Optional[str] = Form(None),
    qr_code_id: Optional[str] = Form(None),
    files: List[UploadFile] = File(default=[]),
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
):
    """Public bathroom report form (reached from the QR code on the door)."""
    try:
        data = AssistCreate(
            qr_code_id=qr_code_id,
            customer_name=customer_name,
            location_label=location_label or "Bathroom",
            issue_type=issue_type,
            issue_description=issue_description,
            reported_by=reported_by,
            reported_contact=reported_contact,
            metadata={"source": "public_form", "query": dict(request.query_params)},
        )
    except ValidationError as e:
        raise RequestValidationError(e.errors())

    uploads = [(f.filename or "photo", f.content_type or "", f.file.read()) for f in files if f.filename]
    try:
        data.before_media = assist_service.store_report_media(storage, uploads)
    except assist_service.AssistMediaError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return assist_service.create_request(db, data)


@router.get("/requests/pending", response_model=List[AssistRequestOut])
def pending_requests(
    customer_name: Optional[str] = None,
    db: Session = Depends(get_db),
    _: SessionContext = Depends(require_roles(*STAFF_ROLES)),
):
    return assist_service.list_pending_for_cleaner(db, customer_name)


@router.get("/requests/resolved", response_model=List[AssistRequestOut])
def resolved_requests(
    customer_name: Optional[str] = None,
    location_label: Optional[str] = None,
    status: Optional[List[str]] = Query(None),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return assist_service.list_resolved(db, customer_name, location_label, status, limit)


@router.get("/requests", response_model=List[AssistRequestOut])
def recent_requests(
    status: Optional[List[str]] = Query(None),
    customer_name: Optional[str] = None,
    limit: int = Query(20, ge=1, le=200),
    db: Session = Depends(get_db),
    _: SessionContext = Depends(require_roles(*STAFF_ROLES)),
):
    return assist_service.list_recent(db, status, customer_name, limit)


@router.get("/requests/{request_id}", response_model=AssistRequestOut)
def get_request(request_id: str, db: Session = Depends(get_db), _: SessionContext = Depends(require_roles(*STAFF_ROLES))):
    return _get_or_404(db, request_id)


@router.get("/requests/{request_id}/events", response_model=List[AssistEventOut])
def request_events(
    request_id: str,
    db: Session = Depends(get_db),
    _: SessionContext = Depends(require_roles(*STAFF_ROLES)),
):
    _get_or_404(db, request_id)
    return list_assist_events(db, request_id)


@router.post("/requests/{request_id}/accept", response_model=AssistRequestOut)
def accept_request(
    request_id: str,
    payload: Optional[AssistAccept] = None,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(require_roles("cleaner")),
):
    name = (payload.cleaner_name if payload and payload.cleaner_name else None) or session.name
    try:
        return assist_service.accept_request(db, request_id, session.user_id, name)
    except assist_service.AssistNotFound:
        raise HTTPException(status_code=404, detail="Assist request not found")


@router.post("/requests/{request_id}/resolve", response_model=AssistRequestOut)
def resolve_request(
    request_id: str,
    payload: AssistResolve,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(require_roles("cleaner")),
):
    try:
        return assist_service.resolve_request(
            db,
            request_id,
            session.user_id,
            payload.cleaner_name or session.name,
            notes=payload.notes,
            materials_used=payload.materials_used,
            after_media=[m.model_copy(update={"type": "after"}) for m in payload.after_media],
        )
    except assist_service.AssistNotFound:
        raise HTTPException(status_code=404, detail="Assist request not found")


@router.post("/requests/{request_id}/cancel", response_model=AssistRequestOut)
def cancel_request(
    request_id: str,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(require_roles(*SUPERVISOR_ROLES)),
):
    try:
        return assist_service.cancel_request(db, request_id, session.user_id, session.name, session.role)
    except assist_service.AssistNotFound:
        raise HTTPException(status_code=404, detail="Assist request not found")


@router.post("/escalations/run", response_model=List[AssistRequestOut])
def run_escalations(
    payload: Optional[AssistEscalationRun] = None,
    db: Session = Depends(get_db),
    _=Depends(require_roles("ops_manager", "admin")),
):
    reason = (payload.reason if payload else None) or assist_service.DEFAULT_ESCALATION_REASON
    return assist_service.escalate_overdue_requests(db, reason=reason)


@router.websocket("/ws")
async def assist_feed(
    websocket: WebSocket,
    token: Optional[str] = None,
    customer_name: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """Change feed of assist requests; customer_name narrows it to one customer."""
    if not token:
        await websocket.close(code=4401)
        return
    try:
        session = session_from_token(token, db)
    except HTTPException:
        await websocket.close(code=4401)
        return
    if session.role not in STAFF_ROLES:
        await websocket.close(code=4403)
        return

    channel = customer_name or ALL_CHANNEL
    await websocket.accept()
    await hub.connect(websocket, channel)
    log.info("assist_feed_connected", user_id=session.user_id, channel=channel)
    try:
        while True:
            data = await websocket.receive_text()
            if data and data.strip().lower() in {"ping", "keepalive"}:
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        log.info("assist_feed_disconnected", user_id=session.user_id, channel=channel)
    finally:
        await hub.disconnect(websocket, channel)
