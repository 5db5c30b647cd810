from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Body
from pydantic import BaseModel, Field
from sqlalchemy import or_
from sqlalchemy.orm import Session
import structlog
from slugify import slugify

from ..db import get_db
from ..models.models import Admin, Cleaner, Manager
from ..schemas.auth import (
    RegisterRequest,
    ManagerRegisterRequest,
    LoginRequest,
    SessionOut,
    TokenResponse,
)
from ..services.identity import full_name
from .security import (
    SessionContext,
    get_password_hash,
    verify_password,
    create_access_token,
    create_refresh_token,
    decode_token,
    get_session,
    require_roles,
)

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def compute_username(first_name: str, last_name: str, suffix: Optional[int] = None) -> str:
    last = slugify(last_name or "", lowercase=True, separator="", regex_pattern=r"[^A-Za-z0-9]")
    first_initial = slugify((first_name or "")[:1], lowercase=True, separator="", regex_pattern=r"[^A-Za-z0-9]")
    base = f"{last}{first_initial}" or "admin"
    return f"{base}{suffix}" if suffix else base


def find_available_username(db: Session, first_name: str, last_name: str) -> str:
    candidate = compute_username(first_name, last_name)
    i = 0
    while True:
        name = f"{candidate}{i}" if i > 0 else candidate
        if not db.query(Admin).filter(Admin.username == name).first():
            return name
        i += 1


def _token_response(user_id: str, role: str, name: str) -> TokenResponse:
    return TokenResponse(
        access_token=create_access_token(user_id, role, name),
        refresh_token=create_refresh_token(user_id, role),
        session=SessionOut(user_id=user_id, name=name, role=role),
    )


def _ensure_mobile_free(db: Session, model, mobile_number: str) -> None:
    if db.query(model).filter(model.mobile_number == mobile_number).first():
        raise HTTPException(status_code=409, detail="Mobile number already registered")


@router.post("/register/cleaner", response_model=TokenResponse)
def register_cleaner(req: RegisterRequest, db: Session = Depends(get_db)):
    _ensure_mobile_free(db, Cleaner, req.mobile_number)
    cleaner = Cleaner(
        first_name=req.first_name,
        last_name=req.last_name,
        mobile_number=req.mobile_number,
        email=str(req.email).lower() if req.email else None,
        password_hash=get_password_hash(req.password),
    )
    db.add(cleaner)
    db.commit()
    db.refresh(cleaner)
    name = full_name(cleaner.first_name, cleaner.last_name)
    log.info("cleaner_registered", cleaner_id=cleaner.id)
    return _token_response(cleaner.id, "cleaner", name)


@router.post("/register/manager", response_model=TokenResponse)
def register_manager(
    req: ManagerRegisterRequest,
    db: Session = Depends(get_db),
    _admin: SessionContext = Depends(require_roles("admin")),
):
    _ensure_mobile_free(db, Manager, req.mobile_number)
    manager = Manager(
        first_name=req.first_name,
        last_name=req.last_name,
        mobile_number=req.mobile_number,
        email=str(req.email).lower() if req.email else None,
        password_hash=get_password_hash(req.password),
        role=req.role,
    )
    db.add(manager)
    db.commit()
    db.refresh(manager)
    log.info("manager_registered", manager_id=manager.id, role=manager.role)
    return _token_response(manager.id, manager.role, full_name(manager.first_name, manager.last_name))


class AdminCreateRequest(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: Optional[str] = None
    password: str = Field(min_length=8)


@router.post("/register/admin")
def register_admin(
    req: AdminCreateRequest,
    db: Session = Depends(get_db),
    _admin: SessionContext = Depends(require_roles("admin")),
):
    username = find_available_username(db, req.first_name, req.last_name)
    admin = Admin(
        username=username,
        first_name=req.first_name.strip(),
        last_name=req.last_name.strip(),
        email=req.email,
        password_hash=get_password_hash(req.password),
    )
    db.add(admin)
    db.commit()
    return {"id": admin.id, "username": username}


def _login_person(db: Session, model, identifier: str, password: str):
    ident = identifier.strip()
    user = (
        db.query(model)
        .filter(or_(model.mobile_number == ident, model.email == ident.lower()))
        .first()
    )
    if not user or not user.is_active or not verify_password(password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return user


@router.post("/login/cleaner", response_model=TokenResponse)
def login_cleaner(req: LoginRequest, db: Session = Depends(get_db)):
    cleaner = _login_person(db, Cleaner, req.identifier, req.password)
    return _token_response(cleaner.id, "cleaner", full_name(cleaner.first_name, cleaner.last_name))


@router.post("/login/manager", response_model=TokenResponse)
def login_manager(req: LoginRequest, db: Session = Depends(get_db)):
    manager = _login_person(db, Manager, req.identifier, req.password)
    return _token_response(manager.id, manager.role, full_name(manager.first_name, manager.last_name))


@router.post("/login/admin", response_model=TokenResponse)
def login_admin(req: LoginRequest, db: Session = Depends(get_db)):
    admin = db.query(Admin).filter(Admin.username == req.identifier.strip().lower()).first()
    if not admin or not admin.is_active or not verify_password(req.password, admin.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    name = " ".join(p for p in [admin.first_name, admin.last_name] if p) or admin.username
    return _token_response(admin.id, "admin", name)


@router.post("/refresh", response_model=TokenResponse)
def refresh(refresh_token: str = Body(..., embed=True), db: Session = Depends(get_db)):
    payload = decode_token(refresh_token)
    if payload.get("type") != "refresh":
        raise HTTPException(status_code=401, detail="Invalid token")
    role = payload.get("role")
    user_id = str(payload.get("sub") or "")
    if role == "cleaner":
        user = db.query(Cleaner).filter(Cleaner.id == user_id).first()
    elif role in ("manager", "ops_manager"):
        user = db.query(Manager).filter(Manager.id == user_id).first()
    elif role == "admin":
        user = db.query(Admin).filter(Admin.id == user_id).first()
    else:
        user = None
    if user is None or not user.is_active:
        raise HTTPException(status_code=401, detail="User not active")
    if role == "admin":
        name = " ".join(p for p in [user.first_name, user.last_name] if p) or user.username
    else:
        name = full_name(user.first_name, user.last_name)
        role = getattr(user, "role", None) or role
    return _token_response(user.id, role, name)


@router.get("/me", response_model=SessionOut)
def me(session: SessionContext = Depends(get_session)):
    return SessionOut(user_id=session.user_id, name=session.name, role=session.role)
