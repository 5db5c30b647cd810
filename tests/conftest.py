import os
import tempfile

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENABLE_METRICS", "false")
os.environ.setdefault("ASSIST_SWEEP_INTERVAL_S", "0")
os.environ.setdefault("RATE_LIMIT", "10000/minute")
os.environ.setdefault("STORAGE_DIR", tempfile.mkdtemp(prefix="cleanops-storage-"))
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
from fastapi.testclient import TestClient

from cleanops.auth.security import create_access_token, get_password_hash
from cleanops.db import Base, SessionLocal, engine, get_db
from cleanops.main import app
from cleanops.models.models import Admin, Cleaner, Customer, Manager, ManagerCleaner
from cleanops.routes.files import get_storage
from cleanops.storage.local_provider import LocalStorageProvider


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def storage(tmp_path):
    return LocalStorageProvider(str(tmp_path / "storage"))


@pytest.fixture
def client(db, storage):
    def _get_db():
        session = SessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_storage] = lambda: storage
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_admin(db, username="admina", first_name="Ada", last_name="Admin", password="password123"):
    admin = Admin(
        username=username,
        first_name=first_name,
        last_name=last_name,
        password_hash=get_password_hash(password),
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    return admin


def make_manager(db, first_name="Liam", last_name="Lead", mobile="07100000002", role="manager", password="password123"):
    manager = Manager(
        first_name=first_name,
        last_name=last_name,
        mobile_number=mobile,
        role=role,
        password_hash=get_password_hash(password),
    )
    db.add(manager)
    db.commit()
    db.refresh(manager)
    return manager


def make_cleaner(db, first_name="Ava", last_name="Jones", mobile="07000000001", password="password123"):
    cleaner = Cleaner(
        first_name=first_name,
        last_name=last_name,
        mobile_number=mobile,
        password_hash=get_password_hash(password),
    )
    db.add(cleaner)
    db.commit()
    db.refresh(cleaner)
    return cleaner


def make_customer(db, name="Metalex"):
    customer = Customer(name=name)
    db.add(customer)
    db.commit()
    db.refresh(customer)
    return customer


def link_cleaner(db, manager, cleaner):
    db.add(ManagerCleaner(manager_id=manager.id, cleaner_id=cleaner.id))
    db.commit()


def auth_headers(user, role):
    name = f"{user.first_name} {user.last_name}"
    return {"Authorization": f"Bearer {create_access_token(user.id, role, name)}"}


@pytest.fixture
def admin(db):
    return make_admin(db)


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin, "admin")


@pytest.fixture
def cleaner(db):
    return make_cleaner(db)


@pytest.fixture
def cleaner_headers(cleaner):
    return auth_headers(cleaner, "cleaner")


@pytest.fixture
def ops_manager(db):
    return make_manager(db, first_name="Olivia", last_name="Ops", mobile="07100000001", role="ops_manager")


@pytest.fixture
def ops_headers(ops_manager):
    return auth_headers(ops_manager, "ops_manager")
