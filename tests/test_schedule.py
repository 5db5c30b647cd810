from datetime import date, datetime
from types import SimpleNamespace

import pytz

from cleanops.services.schedule import (
    ALL_DAYS,
    CLEANER_SCHEDULES,
    ScheduleEntry,
    build_schedule_label,
    get_schedule_for_cleaner,
    get_schedules_for_cleaner,
    is_clock_in_on_time,
    parse_day_tokens,
    visits_for_week,
    weekly_visits,
)

UTC = pytz.UTC


def test_parse_day_tokens():
    assert parse_day_tokens("Mon Wed") == [1, 3]
    assert parse_day_tokens("MWF") == [1, 3, 5]
    assert parse_day_tokens("Daily") == ALL_DAYS
    assert parse_day_tokens("Every day") == ALL_DAYS
    assert parse_day_tokens("gibberish") == ALL_DAYS
    assert parse_day_tokens("Tuesday, Thursday") == [2, 4]


def test_schedule_lookup_exact_then_first_name_prefix():
    assert len(get_schedules_for_cleaner("  jackie   palmer ")) == 1
    harry = get_schedule_for_cleaner("Harry")
    assert harry is not None and harry.cleaner == "Harry Newton"
    assert get_schedule_for_cleaner("Zed Nobody") is None
    assert len(get_schedules_for_cleaner("Mosleen")) == 3


def test_on_time_within_grace():
    # 2024-01-15 is a Monday; London is on UTC in January
    assert is_clock_in_on_time(datetime(2024, 1, 15, 9, 5, tzinfo=UTC), "Danica") is True
    assert is_clock_in_on_time(datetime(2024, 1, 15, 9, 6, tzinfo=UTC), "Danica") is False


def test_on_time_unknown_cases_are_none():
    assert is_clock_in_on_time(None, "Danica") is None
    assert is_clock_in_on_time(datetime(2024, 1, 15, 9, 0, tzinfo=UTC), "Zed Nobody") is None
    # Saturday, Danica works weekdays only
    assert is_clock_in_on_time(datetime(2024, 1, 20, 9, 0, tzinfo=UTC), "Danica") is None


def test_on_time_picks_closest_start():
    # Mosleen has 08:30 and 18:00 on Mondays
    assert is_clock_in_on_time(datetime(2024, 1, 15, 17, 58, tzinfo=UTC), "Mosleen") is True
    assert is_clock_in_on_time(datetime(2024, 1, 15, 8, 40, tzinfo=UTC), "Mosleen") is False


def test_on_time_uses_local_time_in_summer():
    # 08:04 UTC is 09:04 BST
    assert is_clock_in_on_time(datetime(2024, 7, 1, 8, 4, tzinfo=UTC), "Danica") is True


def test_build_schedule_label():
    assert build_schedule_label(CLEANER_SCHEDULES[0]) == "Danica • Mon, Tue, Wed, Thu, Fri • 09:00 - 13:00"


def _entry():
    return ScheduleEntry(
        cleaner="Ava",
        normalized_cleaner="Ava",
        site="Metalex",
        days=[1, 3],
        start_time="09:00",
        end_time="12:00",
    )


def test_visits_for_week():
    visits = visits_for_week(date(2024, 1, 17), [_entry()])
    assert [v["date"] for v in visits] == ["2024-01-15", "2024-01-17"]
    assert all(v["attendance_id"] is None for v in visits)


def test_weekly_visits_matches_attendance():
    row = SimpleNamespace(
        id=7,
        cleaner_name="ava",
        site_name="Metalex HQ",
        customer_name=None,
        clock_in=datetime(2024, 1, 17, 9, 2, tzinfo=UTC),
        clock_out=datetime(2024, 1, 17, 12, 0, tzinfo=UTC),
    )
    visits = weekly_visits([row], date(2024, 1, 15), [_entry()])
    monday, wednesday = visits
    assert monday["attendance_id"] is None
    assert wednesday["attendance_id"] == 7
    assert wednesday["clock_out"] == row.clock_out
