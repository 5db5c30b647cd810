import random
from datetime import datetime

import pytz

from cleanops.schemas.analytics import TaskPhotoRecord
from cleanops.services.photo_grouping import group_photos_by_date, group_task_photos

UTC = pytz.UTC


def photo(id_, hour, qr="q1", task="t1", area="Kitchen", day=15, started_hour=8):
    return TaskPhotoRecord(
        id=id_,
        cleaner_id="c1",
        qr_code_id=qr,
        task_id=task,
        area_name=area,
        customer_name="Metalex",
        photo_timestamp=datetime(2024, 1, day, hour, 0, tzinfo=UTC),
        started_at=datetime(2024, 1, day, started_hour, 0, tzinfo=UTC),
    )


def sample():
    return [
        photo(1, 9),
        photo(2, 10),
        photo(3, 9, task="t2"),
        photo(4, 11, qr="q2", area="Bathroom"),
        photo(5, 9, day=16),
        photo(6, 12, qr="q2", task="t9", area="Bathroom"),
    ]


def _membership(groups):
    return sorted(
        sorted(p.id for p in task.photos)
        for area in groups
        for task in area.tasks
    )


def test_groups_are_disjoint_and_cover_all_photos():
    groups = group_task_photos(sample())
    ids = [p.id for area in groups for task in area.tasks for p in task.photos]
    assert sorted(ids) == [1, 2, 3, 4, 5, 6]
    assert len(ids) == len(set(ids))
    assert sum(a.photo_count for a in groups) == 6


def test_grouping_is_order_independent():
    photos = sample()
    expected = _membership(group_task_photos(photos))
    shuffled = list(photos)
    random.Random(3).shuffle(shuffled)
    assert _membership(group_task_photos(shuffled)) == expected
    assert [g.key for g in group_task_photos(shuffled)] == [g.key for g in group_task_photos(photos)]


def test_task_sessions_split_by_task_and_day():
    groups = group_task_photos(sample())
    assert _membership(groups) == [[1, 2], [3], [4], [5], [6]]


def test_areas_sorted_newest_first():
    groups = group_task_photos(sample())
    assert [g.area_label for g in groups] == ["Kitchen", "Bathroom"]
    assert groups[0].photo_count == 4
    assert groups[0].tasks[0].day == "2024-01-16"
    assert groups[1].tasks[0].task_id == "t9"


def test_photos_newest_first_within_task():
    groups = group_task_photos([photo(1, 9), photo(2, 10)])
    assert [p.id for p in groups[0].tasks[0].photos] == [2, 1]


def test_group_photos_by_date():
    buckets = group_photos_by_date(sample())
    assert [b.key for b in buckets] == ["2024-01-16", "2024-01-15"]
    assert buckets[0].label == "Tue, Jan 16"
    assert len(buckets[1].items) == 5


def test_photo_without_timestamp_is_unsorted():
    record = TaskPhotoRecord(id=9, cleaner_id="c1")
    buckets = group_photos_by_date([record])
    assert buckets[0].key == "unknown"
    assert buckets[0].label == "Unsorted"
