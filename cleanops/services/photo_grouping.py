"""
Task-photo grouping for the manager review screens.

Photos are grouped first into task sessions (QR code, task id, local day and
session start) and then into areas (QR code, area label, customer). Input order
never affects membership: photos are put in a canonical order before grouping.
"""
from datetime import datetime
from typing import List, Dict, Iterable, Optional, Tuple

import pytz

from ..schemas.analytics import TaskPhotoRecord
from ..schemas.manager import TaskPhotoGroup, AreaPhotoGroup, DatePhotoBucket
from .time_rules import date_key, ensure_utc, to_local

_MIN = datetime.min.replace(tzinfo=pytz.UTC)


def photo_time(photo: TaskPhotoRecord) -> Optional[datetime]:
    return ensure_utc(photo.photo_timestamp) or ensure_utc(photo.created_at)


def _canonical(photos: Iterable[TaskPhotoRecord]) -> List[TaskPhotoRecord]:
    # newest first, id breaks ties
    return sorted(photos, key=lambda p: (-(photo_time(p) or _MIN).timestamp(), p.id))


def task_group_key(photo: TaskPhotoRecord) -> Tuple[str, str, str, str]:
    started = ensure_utc(photo.started_at)
    return (
        photo.qr_code_id or "",
        photo.task_id or "",
        date_key(photo_time(photo)),
        started.isoformat() if started else "",
    )


def area_group_key(photo: TaskPhotoRecord) -> Tuple[str, str, str]:
    return (
        photo.qr_code_id or "",
        photo.area_name or photo.area_type or "",
        photo.customer_name or "",
    )


def _key_str(parts: Tuple[str, ...]) -> str:
    return "|".join(parts)


def group_task_photos(photos: Iterable[TaskPhotoRecord]) -> List[AreaPhotoGroup]:
    ordered = _canonical(photos)

    tasks: Dict[Tuple[str, ...], List[TaskPhotoRecord]] = {}
    for photo in ordered:
        tasks.setdefault(task_group_key(photo), []).append(photo)

    task_groups: List[TaskPhotoGroup] = []
    for key, items in tasks.items():
        latest = items[0]
        task_groups.append(TaskPhotoGroup(
            key=_key_str(key),
            qr_code_id=latest.qr_code_id,
            task_id=latest.task_id,
            day=key[2],
            session_started_at=ensure_utc(latest.started_at),
            latest_at=photo_time(latest),
            photos=items,
        ))

    # a task group belongs to the area of its latest photo
    areas: Dict[Tuple[str, ...], List[TaskPhotoGroup]] = {}
    area_heads: Dict[Tuple[str, ...], TaskPhotoRecord] = {}
    for group in task_groups:
        head = group.photos[0]
        key = area_group_key(head)
        areas.setdefault(key, []).append(group)
        area_heads.setdefault(key, head)

    out: List[AreaPhotoGroup] = []
    for key, groups in areas.items():
        groups.sort(key=_group_order)
        head = area_heads[key]
        out.append(AreaPhotoGroup(
            key=_key_str(key),
            qr_code_id=head.qr_code_id,
            area_label=head.area_name or head.area_type,
            customer_name=head.customer_name,
            latest_at=groups[0].latest_at,
            photo_count=sum(len(g.photos) for g in groups),
            tasks=groups,
        ))
    out.sort(key=_group_order)
    return out


def _group_order(group) -> Tuple[float, str]:
    return (-(group.latest_at or _MIN).timestamp(), group.key)


def group_photos_by_date(photos: Iterable[TaskPhotoRecord]) -> List[DatePhotoBucket]:
    buckets: Dict[str, DatePhotoBucket] = {}
    for photo in _canonical(photos):
        local = to_local(photo.photo_timestamp)
        key = local.date().isoformat() if local else "unknown"
        label = local.strftime("%a, %b %d").replace(" 0", " ") if local else "Unsorted"
        bucket = buckets.get(key)
        if bucket is None:
            bucket = buckets[key] = DatePhotoBucket(key=key, label=label, items=[])
        bucket.items.append(photo)
    return [buckets[k] for k in sorted(buckets, reverse=True)]
