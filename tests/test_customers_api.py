from conftest import make_customer


def test_create_and_list_customers(client, admin_headers):
    r = client.post("/customers", json={"name": "  Metalex ", "contact_email": ""}, headers=admin_headers)
    assert r.status_code == 200
    body = r.json()
    assert body["name"] == "Metalex"
    assert body["contact_email"] is None

    r = client.get("/customers")
    assert [c["name"] for c in r.json()] == ["Metalex"]


def test_duplicate_customer_is_conflict(client, admin_headers):
    client.post("/customers", json={"name": "Metalex"}, headers=admin_headers)
    r = client.post("/customers", json={"name": "metalex"}, headers=admin_headers)
    assert r.status_code == 409


def test_create_customer_requires_admin(client, cleaner_headers):
    r = client.post("/customers", json={"name": "Metalex"}, headers=cleaner_headers)
    assert r.status_code == 403
    r = client.post("/customers", json={"name": "Metalex"})
    assert r.status_code == 401


def test_soft_delete_hides_customer(client, db, admin_headers):
    customer = make_customer(db)
    r = client.delete(f"/customers/{customer.id}", headers=admin_headers)
    assert r.status_code == 200

    assert client.get("/customers").json() == []
    r = client.get("/customers", params={"include_deleted": True}, headers=admin_headers)
    rows = r.json()
    assert rows[0]["deleted_at"] is not None
    assert rows[0]["is_active"] is False


def test_include_deleted_needs_admin(client, cleaner_headers):
    assert client.get("/customers", params={"include_deleted": True}).status_code == 403
    r = client.get("/customers", params={"include_deleted": True}, headers=cleaner_headers)
    assert r.status_code == 403


def test_delete_missing_customer(client, admin_headers):
    assert client.delete("/customers/nope", headers=admin_headers).status_code == 404


def test_areas(client, db, admin_headers, ops_headers):
    metalex = make_customer(db, "Metalex")
    make_customer(db, "Harbour Offices")

    r = client.post("/areas", json={"customer_id": metalex.id, "name": "Kitchen"}, headers=admin_headers)
    assert r.status_code == 200
    r = client.post("/areas", json={"customer_id": metalex.id, "name": "kitchen"}, headers=admin_headers)
    assert r.status_code == 409
    r = client.post("/areas", json={"customer_id": "missing", "name": "Kitchen"}, headers=admin_headers)
    assert r.status_code == 404

    rows = client.get("/customers/areas", headers=ops_headers).json()
    assert rows == [
        {
            "customer_id": rows[0]["customer_id"],
            "customer_name": "Harbour Offices",
            "area_id": None,
            "area_name": None,
            "area_description": None,
        },
        {
            "customer_id": metalex.id,
            "customer_name": "Metalex",
            "area_id": rows[1]["area_id"],
            "area_name": "Kitchen",
            "area_description": None,
        },
    ]
