from datetime import date, datetime

import pytz

from cleanops.services.time_rules import (
    date_key,
    day_bounds,
    ensure_utc,
    hours_between,
    is_same_local_day,
    minutes_between,
    parse_task_list,
    range_for_days,
    week_start,
)

UTC = pytz.UTC


def test_ensure_utc_treats_naive_as_utc():
    value = ensure_utc(datetime(2024, 1, 15, 9, 0))
    assert value == datetime(2024, 1, 15, 9, 0, tzinfo=UTC)


def test_ensure_utc_parses_iso_strings():
    assert ensure_utc("2024-07-01T10:00:00Z") == datetime(2024, 7, 1, 10, 0, tzinfo=UTC)
    assert ensure_utc("not a date") is None
    assert ensure_utc("") is None


def test_date_key_uses_local_calendar_day():
    # 23:30 UTC in July is 00:30 the next day in London
    assert date_key("2024-07-01T23:30:00Z") == "2024-07-02"
    assert date_key(None) == "unknown"


def test_day_bounds_follow_dst():
    summer = day_bounds(date(2024, 7, 1))
    assert summer.start == datetime(2024, 6, 30, 23, 0, tzinfo=UTC)
    winter = day_bounds(date(2024, 1, 15))
    assert winter.start == datetime(2024, 1, 15, 0, 0, tzinfo=UTC)
    assert winter.end == datetime(2024, 1, 15, 23, 59, 59, 999000, tzinfo=UTC)


def test_range_for_days_spans_both_ends():
    r = range_for_days(date(2024, 1, 15), date(2024, 1, 21))
    assert r.start == day_bounds(date(2024, 1, 15)).start
    assert r.end == day_bounds(date(2024, 1, 21)).end


def test_is_same_local_day():
    assert is_same_local_day("2024-07-01T23:30:00Z", "2024-07-02T10:00:00Z")
    assert not is_same_local_day(None, "2024-07-02T10:00:00Z")


def test_minutes_between_basic_and_missing():
    start = datetime(2024, 1, 15, 9, 0, tzinfo=UTC)
    end = datetime(2024, 1, 15, 10, 30, tzinfo=UTC)
    assert minutes_between(start, end) == 90
    assert minutes_between(None, end) is None
    assert minutes_between(start, None) is None


def test_minutes_between_fallback_and_clamp():
    start = datetime(2024, 1, 15, 9, 0, tzinfo=UTC)
    fallback = datetime(2024, 1, 15, 9, 45, tzinfo=UTC)
    assert minutes_between(start, None, fallback_end=fallback) == 45
    clamp = datetime(2024, 1, 15, 9, 30, tzinfo=UTC)
    assert minutes_between(start, fallback, clamp_end=clamp) == 30
    assert minutes_between(start, fallback, clamp_end=start) is None


def test_minutes_between_non_positive_is_none():
    start = datetime(2024, 1, 15, 9, 0, tzinfo=UTC)
    assert minutes_between(start, start) is None


def test_hours_between():
    start = datetime(2024, 1, 15, 9, 0, tzinfo=UTC)
    end = datetime(2024, 1, 15, 17, 0, tzinfo=UTC)
    assert hours_between(start, end) == 8.0


def test_parse_task_list():
    assert parse_task_list('["a", 1, "b"]') == ["a", "b"]
    assert parse_task_list("not json") == []
    assert parse_task_list('{"a": 1}') == []
    assert parse_task_list(None) == []
    assert parse_task_list(["x"]) == ["x"]


def test_week_start_is_monday():
    assert week_start(date(2024, 1, 17)) == date(2024, 1, 15)
    assert week_start(date(2024, 1, 15)) == date(2024, 1, 15)
