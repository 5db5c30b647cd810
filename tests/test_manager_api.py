from datetime import datetime, timedelta

import pytest

from cleanops.models.models import CleanerLog, TaskPhoto, TimeAttendance
from cleanops.services.time_rules import utcnow
from conftest import auth_headers, link_cleaner, make_cleaner, make_manager


@pytest.fixture
def roster(db, cleaner):
    manager = make_manager(db)
    other = make_cleaner(db, first_name="Noah", last_name="Smith", mobile="07000000002")
    link_cleaner(db, manager, cleaner)
    return manager, other


def test_cleaner_list_is_scoped_to_roster(client, db, cleaner, roster):
    manager, _ = roster
    db.add(TimeAttendance(cleaner_uuid=cleaner.id, cleaner_name="Ava Jones", clock_in=utcnow()))
    db.commit()

    items = client.get("/manager/cleaners", headers=auth_headers(manager, "manager")).json()
    assert [i["cleaner_name"] for i in items] == ["Ava Jones"]
    assert items[0]["is_active"] is True


def test_ops_manager_sees_everyone(client, roster, ops_headers):
    items = client.get("/manager/cleaners", headers=ops_headers).json()
    assert [i["cleaner_name"] for i in items] == ["Ava Jones", "Noah Smith"]


def test_cleaner_detail(client, db, cleaner, roster):
    manager, other = roster
    headers = auth_headers(manager, "manager")
    now = utcnow()
    db.add(TimeAttendance(cleaner_uuid=cleaner.id, cleaner_name="Ava Jones", clock_in=now))
    db.add(TaskPhoto(cleaner_id=cleaner.id, cleaner_name="Ava Jones", qr_code_id="q1", task_id="t1",
                     area_name="Kitchen", photo_data="data:x", photo_timestamp=now))
    db.commit()

    r = client.get(f"/manager/cleaners/{cleaner.id}", headers=headers)
    assert r.status_code == 200
    body = r.json()
    assert body["cleaner_name"] == "Ava Jones"
    assert body["records_today"] == 1
    assert body["photos_today"] == 1
    assert body["photo_groups"][0]["area_label"] == "Kitchen"

    assert client.get(f"/manager/cleaners/{other.id}", headers=headers).status_code == 403
    assert client.get("/manager/cleaners/nope", headers=headers).status_code == 404


def test_photo_feedback_toggles(client, db, cleaner, roster):
    manager, _ = roster
    headers = auth_headers(manager, "manager")
    photo = TaskPhoto(cleaner_id=cleaner.id, cleaner_name="Ava Jones", photo_data="data:x", photo_timestamp=utcnow())
    db.add(photo)
    db.commit()

    r = client.put(f"/manager/photos/{photo.id}/feedback", json={"feedback": "up"}, headers=headers)
    assert r.json() == {"photo_id": photo.id, "feedback": "up"}
    r = client.put(f"/manager/photos/{photo.id}/feedback", json={"feedback": "down"}, headers=headers)
    assert r.json()["feedback"] == "down"
    r = client.put(f"/manager/photos/{photo.id}/feedback", json={"feedback": "down"}, headers=headers)
    assert r.json()["feedback"] is None
    r = client.put("/manager/photos/9999/feedback", json={"feedback": "up"}, headers=headers)
    assert r.status_code == 404


def test_activity_feed_newest_first(client, db, cleaner, roster):
    manager, other = roster
    base = datetime(2024, 1, 15, 9, 0)
    db.add_all([
        CleanerLog(cleaner_id=cleaner.id, cleaner_name="Ava Jones", action="Clock In", timestamp=base),
        CleanerLog(cleaner_id=other.id, cleaner_name="Noah Smith", action="Clock In", timestamp=base),
        TaskPhoto(cleaner_id=cleaner.id, cleaner_name="Ava Jones", area_name="Kitchen",
                  photo_data="data:x", photo_timestamp=base + timedelta(minutes=30)),
    ])
    db.commit()

    feed = client.get("/manager/activity", headers=auth_headers(manager, "manager")).json()
    assert [e["entry_type"] for e in feed] == ["photo", "log"]
    assert feed[0]["area"] == "Kitchen"
    assert all(e["cleaner_id"] == cleaner.id for e in feed)


def test_manager_routes_reject_cleaners(client, cleaner_headers):
    assert client.get("/manager/cleaners", headers=cleaner_headers).status_code == 403


def test_analytics_endpoints(client, db, cleaner, ops_headers, cleaner_headers):
    db.add(TimeAttendance(
        cleaner_uuid=cleaner.id,
        cleaner_name="Ava Jones",
        clock_in=datetime(2024, 1, 15, 9, 0),
        clock_out=datetime(2024, 1, 15, 17, 0),
    ))
    db.commit()

    r = client.get("/analytics/summary", params={"start": "2024-01-15", "end": "2024-01-16"}, headers=ops_headers)
    assert r.status_code == 200
    assert r.json()["totals"]["total_hours_worked"] == 8.0

    r = client.get("/analytics/snapshot", params={"day": "2024-01-15"}, headers=ops_headers)
    assert r.status_code == 200
    assert r.json()["is_current_day"] is False
    assert r.json()["hours_worked"] == 8.0

    bad = client.get("/analytics/summary", params={"start": "2024-02-01", "end": "2024-01-01"}, headers=ops_headers)
    assert bad.status_code == 400
    too_long = client.get("/analytics/summary", params={"start": "2022-01-01", "end": "2024-01-01"}, headers=ops_headers)
    assert too_long.status_code == 400
    assert client.get("/analytics/summary", headers=cleaner_headers).status_code == 403


def test_schedule_endpoints(client, db, ops_headers):
    db.add(TimeAttendance(cleaner_name="Danica", site_name="General", clock_in=datetime(2024, 1, 16, 9, 2)))
    db.commit()

    visits = client.get("/schedule/week", params={"week_of": "2024-01-17"}, headers=ops_headers).json()
    danica = [v for v in visits if v["cleaner_name"] == "Danica"]
    assert [v["date"] for v in danica] == ["2024-01-15", "2024-01-16", "2024-01-17", "2024-01-18", "2024-01-19"]
    assert danica[1]["attendance_id"] is not None
    assert danica[0]["attendance_id"] is None

    labels = client.get("/schedule/labels", headers=ops_headers).json()
    assert labels[0]["label"] == "Danica • Mon, Tue, Wed, Thu, Fri • 09:00 - 13:00"


def test_notifications_listing(client, ops_headers, cleaner_headers):
    client.post(
        "/assist/requests",
        json={"customer_name": "Metalex", "location_label": "Gents", "issue_type": "bad_smell"},
    )
    r = client.get("/notifications", params={"recipient": "cleaners"}, headers=ops_headers)
    assert r.status_code == 200
    assert r.json()[0]["content"] == "New bathroom assist reported at Gents"
    assert client.get("/notifications", headers=cleaner_headers).status_code == 403
