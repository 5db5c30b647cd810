from conftest import auth_headers, make_cleaner

REPORT = {"customer_name": "Metalex", "location_label": "Ground Floor Ladies", "issue_type": "toilet_blocked"}


def _report(client):
    r = client.post("/assist/requests", json=REPORT)
    assert r.status_code == 200, r.text
    return r.json()


def test_public_report_creates_pending_request(client):
    body = _report(client)
    assert body["status"] == "pending"
    assert body["escalate_after"] is not None
    assert body["before_media"] == []


def test_report_validation(client):
    r = client.post("/assist/requests", json=dict(REPORT, customer_name="  "))
    assert r.status_code == 422
    r = client.post("/assist/requests", json=dict(REPORT, issue_description="x" * 601))
    assert r.status_code == 422


def test_accept_and_resolve_flow(client, cleaner_headers):
    request_id = _report(client)["id"]

    r = client.post(f"/assist/requests/{request_id}/accept", headers=cleaner_headers)
    assert r.status_code == 200
    assert r.json()["status"] == "accepted"
    assert r.json()["accepted_by_name"] == "Ava Jones"

    r = client.post(
        f"/assist/requests/{request_id}/resolve",
        json={"notes": "Unblocked", "after_media": [{"url": "http://x/after.jpg"}]},
        headers=cleaner_headers,
    )
    assert r.status_code == 200
    assert r.json()["status"] == "resolved"
    assert r.json()["after_media"][0]["type"] == "after"

    events = client.get(f"/assist/requests/{request_id}/events", headers=cleaner_headers).json()
    assert [e["event_type"] for e in events] == ["reported", "accepted", "resolved"]

    resolved = client.get("/assist/requests/resolved", params={"customer_name": "Metalex"}).json()
    assert [r["id"] for r in resolved] == [request_id]


def test_invalid_transitions_are_conflicts(client, db, cleaner_headers):
    request_id = _report(client)["id"]

    r = client.post(f"/assist/requests/{request_id}/resolve", json={}, headers=cleaner_headers)
    assert r.status_code == 409
    assert r.json()["current"] == "pending"

    client.post(f"/assist/requests/{request_id}/accept", headers=cleaner_headers)
    other = make_cleaner(db, first_name="Noah", last_name="Smith", mobile="07000000002")
    r = client.post(f"/assist/requests/{request_id}/accept", headers=auth_headers(other, "cleaner"))
    assert r.status_code == 409


def test_unknown_request_is_404(client, cleaner_headers):
    assert client.post("/assist/requests/nope/accept", headers=cleaner_headers).status_code == 404
    assert client.get("/assist/requests/nope", headers=cleaner_headers).status_code == 404


def test_accept_requires_cleaner(client, admin_headers):
    request_id = _report(client)["id"]
    assert client.post(f"/assist/requests/{request_id}/accept").status_code == 401
    assert client.post(f"/assist/requests/{request_id}/accept", headers=admin_headers).status_code == 403


def test_cancel(client, ops_headers, cleaner_headers):
    request_id = _report(client)["id"]
    assert client.post(f"/assist/requests/{request_id}/cancel", headers=cleaner_headers).status_code == 403
    r = client.post(f"/assist/requests/{request_id}/cancel", headers=ops_headers)
    assert r.status_code == 200
    assert r.json()["status"] == "cancelled"
    assert client.post(f"/assist/requests/{request_id}/cancel", headers=ops_headers).status_code == 409


def test_pending_listing(client, cleaner_headers):
    first = _report(client)["id"]
    client.post("/assist/requests", json=dict(REPORT, customer_name="Harbour Offices"))
    pending = client.get("/assist/requests/pending", params={"customer_name": "Metalex"}, headers=cleaner_headers)
    assert [r["id"] for r in pending.json()] == [first]


def test_escalation_run(client, ops_headers):
    r = client.post(
        "/assist/requests",
        json=dict(REPORT, escalate_after="2000-01-01T00:00:00Z"),
    )
    request_id = r.json()["id"]
    _report(client)

    r = client.post("/assist/escalations/run", json={"reason": "Nobody came"}, headers=ops_headers)
    assert r.status_code == 200
    assert [row["id"] for row in r.json()] == [request_id]
    assert r.json()[0]["escalation_reason"] == "Nobody came"


def test_public_multipart_report(client):
    r = client.post(
        "/assist/report",
        data={"customer_name": "Metalex", "issue_type": "floor_wet"},
        files=[("files", ("wet floor.jpg", b"\xff\xd8jpeg", "image/jpeg"))],
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["location_label"] == "Bathroom"
    assert body["metadata"]["source"] == "public_form"
    media = body["before_media"]
    assert len(media) == 1
    assert media[0]["name"] == "wet floor.jpg"

    key = media[0]["url"].split("/files/bathroom-assist/", 1)[1]
    assert client.get(f"/files/bathroom-assist/{key}").status_code == 200


def test_public_report_rejects_bad_media(client):
    r = client.post(
        "/assist/report",
        data={"customer_name": "Metalex", "issue_type": "floor_wet"},
        files=[("files", ("notes.txt", b"hello", "text/plain"))],
    )
    assert r.status_code == 400
    r = client.post("/assist/report", data={"customer_name": " ", "issue_type": "floor_wet"})
    assert r.status_code == 422


def test_private_buckets_are_not_served(client):
    assert client.get("/files/private/anything.png").status_code == 404
