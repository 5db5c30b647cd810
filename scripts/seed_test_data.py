"""
Seed the local database with an admin, an ops manager, a manager with a small
roster of cleaners, and two customers with areas and area tasks.

Usage:
  python scripts/seed_test_data.py

This script is idempotent: records are matched on username, mobile number or
customer name and only created when missing.
"""

from cleanops.db import SessionLocal, Base, engine
from cleanops.models.models import (
    Admin,
    Area,
    AreaTask,
    Cleaner,
    Customer,
    Manager,
    ManagerCleaner,
)
from cleanops.auth.router import find_available_username
from cleanops.auth.security import get_password_hash

DEFAULT_PASSWORD = "password123"

CUSTOMERS = {
    "Metalex": {
        "Kitchen": ["Wipe benches", "Empty bins", "Mop floor"],
        "Bathroom": ["Clean toilets", "Refill soap", "Restock paper"],
    },
    "Harbour Offices": {
        "Office": ["Vacuum carpet", "Dust desks"],
        "Bathroom": ["Clean toilets", "Mop floor"],
    },
}

CLEANERS = [
    ("Ava", "Jones", "07000000001"),
    ("Noah", "Smith", "07000000002"),
    ("Mia", "Brown", "07000000003"),
]


def ensure_admin(session, first_name: str, last_name: str) -> Admin:
    admin = session.query(Admin).filter(Admin.first_name == first_name, Admin.last_name == last_name).first()
    if admin:
        return admin
    admin = Admin(
        username=find_available_username(session, first_name, last_name),
        first_name=first_name,
        last_name=last_name,
        password_hash=get_password_hash(DEFAULT_PASSWORD),
    )
    session.add(admin)
    session.flush()
    return admin


def ensure_manager(session, first_name: str, last_name: str, mobile: str, role: str) -> Manager:
    manager = session.query(Manager).filter(Manager.mobile_number == mobile).first()
    if manager:
        return manager
    manager = Manager(
        first_name=first_name,
        last_name=last_name,
        mobile_number=mobile,
        role=role,
        password_hash=get_password_hash(DEFAULT_PASSWORD),
    )
    session.add(manager)
    session.flush()
    return manager


def ensure_cleaner(session, first_name: str, last_name: str, mobile: str) -> Cleaner:
    cleaner = session.query(Cleaner).filter(Cleaner.mobile_number == mobile).first()
    if cleaner:
        return cleaner
    cleaner = Cleaner(
        first_name=first_name,
        last_name=last_name,
        mobile_number=mobile,
        password_hash=get_password_hash(DEFAULT_PASSWORD),
    )
    session.add(cleaner)
    session.flush()
    return cleaner


def ensure_customer(session, name: str, areas: dict) -> Customer:
    customer = session.query(Customer).filter(Customer.name == name).first()
    if not customer:
        customer = Customer(name=name)
        session.add(customer)
        session.flush()
    for area_name, tasks in areas.items():
        area = session.query(Area).filter(Area.customer_id == customer.id, Area.name == area_name).first()
        if not area:
            session.add(Area(customer_id=customer.id, name=area_name))
        existing = {
            t.task_description
            for t in session.query(AreaTask).filter(AreaTask.customer_name == name, AreaTask.area == area_name)
        }
        for idx, task in enumerate(tasks):
            if task not in existing:
                session.add(AreaTask(customer_name=name, area=area_name, task_description=task, sort_order=idx))
    return customer


def main():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        admin = ensure_admin(session, "Site", "Admin")
        ensure_manager(session, "Olivia", "Ops", "07100000001", "ops_manager")
        manager = ensure_manager(session, "Liam", "Lead", "07100000002", "manager")
        for first, last, mobile in CLEANERS:
            cleaner = ensure_cleaner(session, first, last, mobile)
            link = (
                session.query(ManagerCleaner)
                .filter(ManagerCleaner.manager_id == manager.id, ManagerCleaner.cleaner_id == cleaner.id)
                .first()
            )
            if not link:
                session.add(ManagerCleaner(manager_id=manager.id, cleaner_id=cleaner.id))
        for name, areas in CUSTOMERS.items():
            ensure_customer(session, name, areas)
        session.commit()
        print(f"Seeded. Admin username: {admin.username} / password: {DEFAULT_PASSWORD}")
    finally:
        session.close()


if __name__ == "__main__":
    main()
