"""
Static weekly cleaner schedule.
Used to judge on-time clock-ins and to lay out the week's expected visits.
"""
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import List, Optional, Iterable, Any

from ..config import settings
from .identity import normalize_cleaner_name
from .time_rules import to_local, js_weekday, week_start

ALL_DAYS = [0, 1, 2, 3, 4, 5, 6]
DAY_LABELS = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]
DAY_MAP = {"sun": 0, "mon": 1, "tue": 2, "wed": 3, "thu": 4, "fri": 5, "sat": 6}


@dataclass(frozen=True)
class ScheduleEntry:
    cleaner: str
    normalized_cleaner: str
    site: str
    days: List[int] = field(default_factory=list)  # Sunday=0
    start_time: str = "00:00"
    end_time: str = "00:00"


def parse_day_tokens(value: str) -> List[int]:
    """
    Resolve a free-text day list ("Mon Tue", "Daily", "MWF", "Every day") to weekday numbers.
    Anything unrecognised means every day.
    """
    tokens = [t.strip() for t in re.split(r"[^a-z]", (value or "").lower()) if t.strip()]
    if not tokens:
        return list(ALL_DAYS)
    resolved = set()
    for token in tokens:
        if "every" in token:
            resolved.update(ALL_DAYS)
            continue
        if token == "mwf":
            resolved.update([DAY_MAP["mon"], DAY_MAP["wed"], DAY_MAP["fri"]])
            continue
        day = DAY_MAP.get(token[:3])
        if day is not None:
            resolved.add(day)
    return sorted(resolved) if resolved else list(ALL_DAYS)


def _entry(cleaner: str, site: str, days_token: str, start: str, end: str) -> ScheduleEntry:
    return ScheduleEntry(
        cleaner=cleaner,
        normalized_cleaner=normalize_cleaner_name(cleaner),
        site=site,
        days=parse_day_tokens(days_token),
        start_time=start,
        end_time=end,
    )


CLEANER_SCHEDULES: List[ScheduleEntry] = [
    _entry("Danica", "General", "Mon Tue Wed Thu Fri", "09:00", "13:00"),
    _entry("Mosleen", "Avtrade", "Mon Tue Thu Fri", "08:30", "16:00"),
    _entry("Mosleen", "Avtrade", "Wed", "08:30", "15:30"),
    _entry("Mosleen", "PSM Marine", "Mon Wed Fri", "18:00", "21:00"),
    _entry("Harry Newton", "General", "Mon Tue Wed Thu Fri", "08:30", "17:00"),
    _entry("Jackie Palmer", "General", "Mon Tue Wed Thu Fri", "18:00", "20:00"),
    _entry("Edyta", "General", "Mon Tue Wed Thu Fri", "18:00", "20:00"),
    _entry("Gill", "Adam's", "Daily", "10:30", "19:30"),
    _entry("Sienna", "RDP", "Fri", "15:00", "19:00"),
]


def parse_time_to_minutes(value: str) -> int:
    try:
        hours, minutes = value.split(":")[:2]
        return int(hours) * 60 + int(minutes)
    except (ValueError, AttributeError):
        return 0


def get_schedules_for_cleaner(
    cleaner_name: Optional[str], schedules: Optional[List[ScheduleEntry]] = None
) -> List[ScheduleEntry]:
    table = CLEANER_SCHEDULES if schedules is None else schedules
    normalized = normalize_cleaner_name(cleaner_name).lower()
    direct = [e for e in table if e.normalized_cleaner.lower() == normalized]
    if direct:
        return direct
    first_token = normalized.split(" ")[0] if normalized else ""
    if not first_token:
        return []
    return [e for e in table if e.normalized_cleaner.lower().startswith(first_token)]


def get_schedule_for_cleaner(cleaner_name: Optional[str]) -> Optional[ScheduleEntry]:
    matches = get_schedules_for_cleaner(cleaner_name)
    return matches[0] if matches else None


def has_schedule(cleaner_name: Optional[str]) -> bool:
    return bool(get_schedules_for_cleaner(cleaner_name))


def is_clock_in_on_time(
    clock_in: Any,
    cleaner_name: Optional[str],
    grace_minutes: Optional[int] = None,
) -> Optional[bool]:
    """
    Compare a clock-in to the closest scheduled start on that weekday.

    Returns None when there is no clock-in, no schedule for the cleaner or no
    entry for that weekday. Otherwise True when the local clock-in minute is
    at most `grace_minutes` (default ON_TIME_GRACE_MIN) after the start.
    """
    local = to_local(clock_in)
    if local is None:
        return None
    schedules = get_schedules_for_cleaner(cleaner_name)
    if not schedules:
        return None
    weekday = js_weekday(local)
    day_matches = [e for e in schedules if weekday in e.days]
    if not day_matches:
        return None
    minutes = local.hour * 60 + local.minute
    closest = None
    closest_diff = None
    for e in day_matches:
        diff = abs(minutes - parse_time_to_minutes(e.start_time))
        if closest is None or diff < closest_diff:
            closest, closest_diff = e, diff
    grace = settings.on_time_grace_min if grace_minutes is None else grace_minutes
    return minutes <= parse_time_to_minutes(closest.start_time) + grace


def build_schedule_label(entry: ScheduleEntry) -> str:
    days_label = ", ".join(DAY_LABELS[d] for d in entry.days)
    return f"{entry.cleaner} • {days_label} • {entry.start_time} - {entry.end_time}"


def visits_for_week(week_of: date, schedules: Optional[List[ScheduleEntry]] = None) -> List[dict]:
    """Expected visits (one per schedule entry and scheduled day) for the Monday-based week containing week_of."""
    monday = week_start(week_of)
    table = CLEANER_SCHEDULES if schedules is None else schedules
    visits = []
    for idx, e in enumerate(table):
        for offset in range(7):
            day = monday + timedelta(days=offset)
            weekday = (day.weekday() + 1) % 7
            if weekday not in e.days:
                continue
            visits.append({
                "id": f"visit-{idx}-{day.isoformat()}",
                "cleaner_name": e.normalized_cleaner,
                "site_name": e.site,
                "date": day.isoformat(),
                "day_of_week": weekday,
                "start_time": e.start_time,
                "end_time": e.end_time,
                "clock_in": None,
                "clock_out": None,
                "attendance_id": None,
            })
    visits.sort(key=lambda v: (v["date"], v["start_time"], v["cleaner_name"]))
    return visits


def map_attendance_to_visits(visits: List[dict], attendance: Iterable[Any]) -> List[dict]:
    """
    Attach the first matching attendance row to each visit.
    A row matches on normalized cleaner name, site substring and weekday of its clock-in.
    """
    rows = list(attendance)
    out = []
    for visit in visits:
        match = None
        for row in rows:
            name = normalize_cleaner_name(getattr(row, "cleaner_name", None)).lower()
            if name != visit["cleaner_name"].lower():
                continue
            site = (getattr(row, "site_name", None) or getattr(row, "customer_name", None) or "").lower()
            if visit["site_name"].lower() not in site:
                continue
            local = to_local(getattr(row, "clock_in", None))
            if local is None or js_weekday(local) != visit["day_of_week"]:
                continue
            match = row
            break
        if match is not None:
            visit = dict(visit)
            visit["clock_in"] = match.clock_in
            visit["clock_out"] = match.clock_out
            visit["attendance_id"] = match.id
        out.append(visit)
    return out


def weekly_visits(attendance: Iterable[Any], week_of: date, schedules: Optional[List[ScheduleEntry]] = None) -> List[dict]:
    return map_attendance_to_visits(visits_for_week(week_of, schedules), attendance)
