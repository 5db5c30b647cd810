def _create(client, headers, description, **extra):
    payload = {"customer_name": "Metalex", "area": "Kitchen", "task_description": description}
    payload.update(extra)
    r = client.post("/area-tasks", json=payload, headers=headers)
    assert r.status_code == 200, r.text
    return r.json()


def test_sort_order_defaults_to_next(client, admin_headers):
    first = _create(client, admin_headers, "Wipe benches")
    second = _create(client, admin_headers, "Mop floor")
    assert first["sort_order"] == 0
    assert second["sort_order"] == 1


def test_list_filters_and_orders(client, admin_headers, cleaner_headers):
    _create(client, admin_headers, "Second", sort_order=2)
    _create(client, admin_headers, "First", sort_order=1)
    _create(client, admin_headers, "Hidden", active=False)
    _create(client, admin_headers, "Other area", area="Bathroom")

    r = client.get("/area-tasks", params={"customer_name": "Metalex", "area": "Kitchen"}, headers=cleaner_headers)
    assert [t["task_description"] for t in r.json()] == ["First", "Second"]

    r = client.get(
        "/area-tasks",
        params={"customer_name": "Metalex", "area": "Kitchen", "include_inactive": True},
        headers=cleaner_headers,
    )
    assert len(r.json()) == 3


def test_tree(client, admin_headers):
    _create(client, admin_headers, "Wipe benches")
    _create(client, admin_headers, "Clean toilets", area="Bathroom")
    tree = client.get("/area-tasks/tree", headers=admin_headers).json()
    assert tree[0]["customer_name"] == "Metalex"
    assert [a["area"] for a in tree[0]["areas"]] == ["Bathroom", "Kitchen"]


def test_editing_requires_editor_role(client, cleaner_headers):
    r = client.post(
        "/area-tasks",
        json={"customer_name": "Metalex", "area": "Kitchen", "task_description": "x"},
        headers=cleaner_headers,
    )
    assert r.status_code == 403


def test_update_and_blank_rejection(client, ops_headers):
    task = _create(client, ops_headers, "Wipe benches")
    r = client.patch(f"/area-tasks/{task['id']}", json={"task_description": "Wipe all benches"}, headers=ops_headers)
    assert r.status_code == 200
    assert r.json()["task_description"] == "Wipe all benches"
    assert r.json()["updated_at"] is not None

    r = client.patch(f"/area-tasks/{task['id']}", json={"area": "   "}, headers=ops_headers)
    assert r.status_code == 422

    assert client.patch("/area-tasks/nope", json={"active": False}, headers=ops_headers).status_code == 404


def test_delete(client, admin_headers):
    task = _create(client, admin_headers, "Wipe benches")
    assert client.delete(f"/area-tasks/{task['id']}", headers=admin_headers).status_code == 200
    assert client.delete(f"/area-tasks/{task['id']}", headers=admin_headers).status_code == 404


def test_reorder(client, admin_headers):
    a = _create(client, admin_headers, "A")
    b = _create(client, admin_headers, "B")
    r = client.post(
        "/area-tasks/reorder",
        json={"customer_name": "Metalex", "area": "Kitchen", "order": [b["id"], a["id"]]},
        headers=admin_headers,
    )
    assert r.status_code == 200
    listed = client.get("/area-tasks", params={"customer_name": "Metalex"}, headers=admin_headers).json()
    assert [t["task_description"] for t in listed] == ["B", "A"]

    r = client.post(
        "/area-tasks/reorder",
        json={"customer_name": "Metalex", "area": "Kitchen", "order": ["ghost"]},
        headers=admin_headers,
    )
    assert r.status_code == 400
