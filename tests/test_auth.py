from cleanops.auth.router import compute_username
from cleanops.auth.security import create_refresh_token

from conftest import make_admin, make_manager


def test_register_and_login_cleaner(client):
    r = client.post(
        "/auth/register/cleaner",
        json={"first_name": "Ava", "last_name": "Jones", "mobile_number": "07000000009", "password": "password123"},
    )
    assert r.status_code == 200
    session = r.json()["session"]
    assert session["role"] == "cleaner"
    assert session["name"] == "Ava Jones"

    r = client.post("/auth/login/cleaner", json={"identifier": "07000000009", "password": "password123"})
    assert r.status_code == 200
    token = r.json()["access_token"]
    me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"}).json()
    assert me["user_id"] == session["user_id"]


def test_duplicate_mobile_is_conflict(client, cleaner):
    r = client.post(
        "/auth/register/cleaner",
        json={"first_name": "Other", "mobile_number": cleaner.mobile_number, "password": "password123"},
    )
    assert r.status_code == 409


def test_bad_password(client, cleaner):
    r = client.post("/auth/login/cleaner", json={"identifier": cleaner.mobile_number, "password": "wrong-pass"})
    assert r.status_code == 401
    assert r.json()["detail"] == "Invalid credentials"


def test_manager_login_by_email(client, db):
    manager = make_manager(db, role="ops_manager")
    manager.email = "liam@example.com"
    db.commit()
    r = client.post("/auth/login/manager", json={"identifier": "LIAM@example.com", "password": "password123"})
    assert r.status_code == 200
    assert r.json()["session"]["role"] == "ops_manager"


def test_register_manager_requires_admin(client, admin_headers, cleaner_headers):
    payload = {"first_name": "Mia", "mobile_number": "07100000009", "password": "password123", "role": "ops_manager"}
    assert client.post("/auth/register/manager", json=payload, headers=cleaner_headers).status_code == 403
    r = client.post("/auth/register/manager", json=payload, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["session"]["role"] == "ops_manager"


def test_admin_username_and_login(client, db, admin_headers):
    assert compute_username("Ada", "Lovelace") == "lovelacea"
    r = client.post(
        "/auth/register/admin",
        json={"first_name": "Ada", "last_name": "Admin", "password": "password123"},
        headers=admin_headers,
    )
    # "admina" is taken by the fixture admin
    assert r.json()["username"] == "admina1"

    r = client.post("/auth/login/admin", json={"identifier": "AdminA1", "password": "password123"})
    assert r.status_code == 200
    assert r.json()["session"]["role"] == "admin"


def test_refresh(client, db):
    admin = make_admin(db, username="root")
    r = client.post("/auth/refresh", json={"refresh_token": create_refresh_token(admin.id, "admin")})
    assert r.status_code == 200
    assert r.json()["session"]["name"] == "Ada Admin"


def test_refresh_token_is_not_an_access_token(client, cleaner):
    token = create_refresh_token(cleaner.id, "cleaner")
    r = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401


def test_garbage_token(client):
    r = client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401
    assert r.json()["detail"] == "Invalid token"


def test_inactive_user_rejected(client, db, cleaner, cleaner_headers):
    cleaner.is_active = False
    db.commit()
    assert client.get("/auth/me", headers=cleaner_headers).status_code == 401
