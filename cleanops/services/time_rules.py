"""
Time rules for attendance and analytics.
Handles site-local day keys, day bounds, shift durations and timezone conversions.
"""
import json
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional, Union, List, Any

import pytz
import structlog

from ..config import settings

log = structlog.get_logger(__name__)

DateLike = Union[datetime, str, None]


@dataclass(frozen=True)
class DateRange:
    start: datetime
    end: datetime


def local_tz(timezone_str: Optional[str] = None):
    return pytz.timezone(timezone_str or settings.tz_default)


def ensure_utc(value: DateLike) -> Optional[datetime]:
    """
    Coerce a datetime or ISO string to an aware UTC datetime.

    Naive values are treated as UTC (SQLite drops tzinfo on the way back).
    Unparseable strings return None.
    """
    if value is None:
        return None
    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            return None
        try:
            value = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=pytz.UTC)
    return value.astimezone(pytz.UTC)


def utcnow() -> datetime:
    return datetime.now(pytz.UTC)


def to_local(value: DateLike, timezone_str: Optional[str] = None) -> Optional[datetime]:
    """
    Convert a UTC timestamp to the site timezone.

    Args:
        value: datetime or ISO string (naive values are UTC)
        timezone_str: Timezone string (defaults to TZ_DEFAULT)

    Returns:
        Local datetime (timezone-aware) or None
    """
    dt = ensure_utc(value)
    if dt is None:
        return None
    return dt.astimezone(local_tz(timezone_str))


def date_key(value: DateLike, timezone_str: Optional[str] = None) -> str:
    local = to_local(value, timezone_str)
    if local is None:
        return "unknown"
    return local.date().isoformat()


def local_today(now: Optional[datetime] = None, timezone_str: Optional[str] = None) -> date:
    return to_local(now or utcnow(), timezone_str).date()


def day_bounds(day: date, timezone_str: Optional[str] = None) -> DateRange:
    """
    Local 00:00:00.000 to 23:59:59.999 of a calendar day, as UTC.

    Args:
        day: Calendar date in the site timezone
        timezone_str: Timezone string

    Returns:
        DateRange with aware UTC bounds
    """
    tz = local_tz(timezone_str)
    start = tz.localize(datetime.combine(day, time.min))
    end = tz.localize(datetime.combine(day, time(23, 59, 59, 999000)))
    return DateRange(start=start.astimezone(pytz.UTC), end=end.astimezone(pytz.UTC))


def range_for_days(start_day: date, end_day: date, timezone_str: Optional[str] = None) -> DateRange:
    if end_day < start_day:
        start_day, end_day = end_day, start_day
    return DateRange(
        start=day_bounds(start_day, timezone_str).start,
        end=day_bounds(end_day, timezone_str).end,
    )


def is_same_local_day(time1: DateLike, time2: DateLike, timezone_str: Optional[str] = None) -> bool:
    local1 = to_local(time1, timezone_str)
    local2 = to_local(time2, timezone_str)
    if local1 is None or local2 is None:
        return False
    return local1.date() == local2.date()


def js_weekday(value: datetime) -> int:
    """Sunday=0 .. Saturday=6."""
    return (value.weekday() + 1) % 7


def minutes_between(
    start: DateLike,
    end: DateLike,
    fallback_end: DateLike = None,
    clamp_end: DateLike = None,
) -> Optional[float]:
    """
    Minutes from start to end.

    An open end (None) uses fallback_end when given. The end is clamped to
    clamp_end. Returns None when start is missing, no end can be resolved,
    the clamp is at or before start, or the result is not positive.
    """
    start_dt = ensure_utc(start)
    if start_dt is None:
        return None
    end_dt = ensure_utc(end) or ensure_utc(fallback_end)
    if end_dt is None:
        return None
    clamp_dt = ensure_utc(clamp_end)
    if clamp_dt is not None:
        if clamp_dt <= start_dt:
            return None
        if end_dt > clamp_dt:
            end_dt = clamp_dt
    diff = (end_dt - start_dt).total_seconds() / 60.0
    if diff <= 0:
        return None
    return diff


def hours_between(
    start: DateLike,
    end: DateLike,
    fallback_end: DateLike = None,
    clamp_end: DateLike = None,
) -> Optional[float]:
    minutes = minutes_between(start, end, fallback_end=fallback_end, clamp_end=clamp_end)
    if minutes is None:
        return None
    return minutes / 60.0


def parse_task_list(value: Any) -> List[str]:
    """Decode a serialized task-id list; bad payloads yield an empty list."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        items = value
    else:
        raw = str(value).strip()
        if not raw:
            return []
        try:
            items = json.loads(raw)
        except ValueError as e:
            log.warning("task_list_parse_failed", value=raw[:200], error=str(e))
            return []
    if not isinstance(items, list):
        return []
    out: List[str] = []
    for item in items:
        if isinstance(item, str):
            out.append(item)
    return out


def week_start(day: date) -> date:
    """Monday of the week containing day."""
    return day - timedelta(days=day.weekday())
