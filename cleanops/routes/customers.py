from typing import Optional, List, Dict

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session
import structlog

from ..auth.security import SessionContext, get_optional_session, require_roles, get_session
from ..db import get_db
from ..models.models import Customer, Area, AreaTask
from ..schemas.customers import (
    CustomerCreate,
    CustomerResponse,
    AreaCreate,
    AreaResponse,
    CustomerAreaRow,
    AreaTaskCreate,
    AreaTaskUpdate,
    AreaTaskResponse,
    AreaTaskReorder,
    AreaTaskAreaNode,
    AreaTaskCustomerNode,
)
from ..services.time_rules import utcnow

log = structlog.get_logger(__name__)

router = APIRouter(tags=["customers"])

TASK_EDITORS = ("admin", "ops_manager")


# ----- Customers -----
@router.get("/customers", response_model=List[CustomerResponse])
def list_customers(
    include_deleted: bool = False,
    db: Session = Depends(get_db),
    session: Optional[SessionContext] = Depends(get_optional_session),
):
    q = db.query(Customer)
    if include_deleted:
        if session is None or session.role != "admin":
            raise HTTPException(status_code=403, detail="Forbidden")
    else:
        q = q.filter(Customer.is_active.is_(True), Customer.deleted_at.is_(None))
    return q.order_by(Customer.name.asc()).all()


@router.post("/customers", response_model=CustomerResponse)
def admin_create_customer(
    payload: CustomerCreate,
    db: Session = Depends(get_db),
    _=Depends(require_roles("admin")),
):
    exists = (
        db.query(Customer)
        .filter(func.lower(Customer.name) == payload.name.lower(), Customer.deleted_at.is_(None))
        .first()
    )
    if exists:
        raise HTTPException(status_code=409, detail="Customer already exists")
    c = Customer(**payload.model_dump())
    db.add(c)
    db.commit()
    db.refresh(c)
    log.info("customer_created", customer_id=c.id, name=c.name)
    return c


@router.delete("/customers/{customer_id}")
def admin_soft_delete_customer(customer_id: str, db: Session = Depends(get_db), _=Depends(require_roles("admin"))):
    c = db.query(Customer).filter(Customer.id == customer_id).first()
    if not c:
        raise HTTPException(status_code=404, detail="Customer not found")
    if c.deleted_at is None:
        now = utcnow()
        c.deleted_at = now
        c.updated_at = now
        c.is_active = False
        db.commit()
        log.info("customer_soft_deleted", customer_id=c.id)
    return {"status": "ok"}


# ----- Areas -----
@router.get("/customers/areas", response_model=List[CustomerAreaRow])
def admin_list_customer_areas(db: Session = Depends(get_db), _=Depends(require_roles("admin", "ops_manager"))):
    customers = (
        db.query(Customer)
        .filter(Customer.deleted_at.is_(None))
        .order_by(Customer.name.asc())
        .all()
    )
    rows: List[CustomerAreaRow] = []
    for c in customers:
        areas = [a for a in c.areas if a.is_active]
        if not areas:
            rows.append(CustomerAreaRow(customer_id=c.id, customer_name=c.name))
            continue
        for a in areas:
            rows.append(CustomerAreaRow(
                customer_id=c.id,
                customer_name=c.name,
                area_id=a.id,
                area_name=a.name,
                area_description=a.description,
            ))
    return rows


@router.post("/areas", response_model=AreaResponse)
def admin_create_area(payload: AreaCreate, db: Session = Depends(get_db), _=Depends(require_roles("admin"))):
    c = db.query(Customer).filter(Customer.id == payload.customer_id, Customer.deleted_at.is_(None)).first()
    if not c:
        raise HTTPException(status_code=404, detail="Customer not found")
    dup = db.query(Area).filter(Area.customer_id == c.id, func.lower(Area.name) == payload.name.lower()).first()
    if dup:
        raise HTTPException(status_code=409, detail="Area already exists for this customer")
    a = Area(customer_id=c.id, name=payload.name, description=payload.description)
    db.add(a)
    db.commit()
    db.refresh(a)
    log.info("area_created", area_id=a.id, customer_id=c.id)
    return a


# ----- Area tasks -----
def _ordered_tasks(q):
    return q.order_by(
        AreaTask.customer_name.asc(),
        AreaTask.area.asc(),
        AreaTask.sort_order.is_(None),
        AreaTask.sort_order.asc(),
        AreaTask.created_at.asc(),
    )


@router.get("/area-tasks", response_model=List[AreaTaskResponse])
def list_area_tasks(
    customer_name: Optional[str] = None,
    area: Optional[str] = None,
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    _: SessionContext = Depends(get_session),
):
    q = db.query(AreaTask)
    if customer_name:
        q = q.filter(AreaTask.customer_name == customer_name)
    if area:
        q = q.filter(AreaTask.area == area)
    if not include_inactive:
        q = q.filter(AreaTask.active.is_(True))
    return _ordered_tasks(q).all()


@router.get("/area-tasks/tree", response_model=List[AreaTaskCustomerNode])
def area_task_tree(
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    _: SessionContext = Depends(get_session),
):
    q = db.query(AreaTask)
    if not include_inactive:
        q = q.filter(AreaTask.active.is_(True))
    tree: Dict[str, Dict[str, List[AreaTask]]] = {}
    for t in _ordered_tasks(q).all():
        tree.setdefault(t.customer_name, {}).setdefault(t.area, []).append(t)
    return [
        AreaTaskCustomerNode(
            customer_name=customer,
            areas=[
                AreaTaskAreaNode(area=area, tasks=[AreaTaskResponse.model_validate(t) for t in tasks])
                for area, tasks in areas.items()
            ],
        )
        for customer, areas in tree.items()
    ]


@router.post("/area-tasks", response_model=AreaTaskResponse)
def create_area_task(payload: AreaTaskCreate, db: Session = Depends(get_db), _=Depends(require_roles(*TASK_EDITORS))):
    data = payload.model_dump()
    if data.get("sort_order") is None:
        current = (
            db.query(func.max(AreaTask.sort_order))
            .filter(AreaTask.customer_name == payload.customer_name, AreaTask.area == payload.area)
            .scalar()
        )
        data["sort_order"] = 0 if current is None else current + 1
    t = AreaTask(**data)
    db.add(t)
    db.commit()
    db.refresh(t)
    return t


@router.patch("/area-tasks/{task_id}", response_model=AreaTaskResponse)
def update_area_task(
    task_id: str,
    payload: AreaTaskUpdate,
    db: Session = Depends(get_db),
    _=Depends(require_roles(*TASK_EDITORS)),
):
    t = db.query(AreaTask).filter(AreaTask.id == task_id).first()
    if not t:
        raise HTTPException(status_code=404, detail="Task not found")
    for k, v in payload.model_dump(exclude_unset=True).items():
        setattr(t, k, v)
    t.updated_at = utcnow()
    db.commit()
    db.refresh(t)
    return t


@router.delete("/area-tasks/{task_id}")
def delete_area_task(task_id: str, db: Session = Depends(get_db), _=Depends(require_roles(*TASK_EDITORS))):
    t = db.query(AreaTask).filter(AreaTask.id == task_id).first()
    if not t:
        raise HTTPException(status_code=404, detail="Task not found")
    db.delete(t)
    db.commit()
    return {"status": "ok"}


@router.post("/area-tasks/reorder")
def reorder_area_tasks(payload: AreaTaskReorder, db: Session = Depends(get_db), _=Depends(require_roles(*TASK_EDITORS))):
    tasks = (
        db.query(AreaTask)
        .filter(AreaTask.customer_name == payload.customer_name, AreaTask.area == payload.area)
        .all()
    )
    known = {t.id for t in tasks}
    unknown = [tid for tid in payload.order if tid not in known]
    if unknown:
        raise HTTPException(status_code=400, detail=f"Tasks not in this area: {', '.join(unknown)}")
    index = {tid: i for i, tid in enumerate(payload.order)}
    now = utcnow()
    for t in tasks:
        if t.id in index:
            t.sort_order = index[t.id]
            t.updated_at = now
    db.commit()
    return {"status": "ok"}
