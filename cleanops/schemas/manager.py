from datetime import datetime
from typing import Optional, List, Dict, Literal

from pydantic import BaseModel, ConfigDict

from .analytics import TaskPhotoRecord, AttendanceRecord


class TaskPhotoGroup(BaseModel):
    key: str
    qr_code_id: Optional[str] = None
    task_id: Optional[str] = None
    day: str
    session_started_at: Optional[datetime] = None
    latest_at: Optional[datetime] = None
    photos: List[TaskPhotoRecord]


class AreaPhotoGroup(BaseModel):
    key: str
    qr_code_id: Optional[str] = None
    area_label: Optional[str] = None
    customer_name: Optional[str] = None
    latest_at: Optional[datetime] = None
    photo_count: int
    tasks: List[TaskPhotoGroup]


class DatePhotoBucket(BaseModel):
    key: str
    label: str
    items: List[TaskPhotoRecord]


class TaskSummary(BaseModel):
    id: int
    area: Optional[str] = None
    total: int
    completed: int
    timestamp: Optional[datetime] = None


class CleanerListItem(BaseModel):
    cleaner_id: str
    cleaner_name: str
    customer_name: Optional[str] = None
    site_area: Optional[str] = None
    event_type: Optional[str] = None
    timestamp: Optional[datetime] = None
    is_active: bool = False


class ActivityEntry(BaseModel):
    id: str
    cleaner_id: Optional[str] = None
    cleaner_name: Optional[str] = None
    action: str
    timestamp: Optional[datetime] = None
    detail: Optional[str] = None
    site: Optional[str] = None
    area: Optional[str] = None
    comments: Optional[str] = None
    photo_url: Optional[str] = None
    entry_type: Literal["log", "photo"]


class PhotoFeedbackRequest(BaseModel):
    feedback: Optional[Literal["up", "down"]] = None


class PhotoFeedbackResponse(BaseModel):
    photo_id: int
    feedback: Optional[Literal["up", "down"]] = None


class CleanerLogRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    cleaner_id: Optional[str] = None
    cleaner_name: Optional[str] = None
    action: str
    qr_code_id: Optional[str] = None
    customer_name: Optional[str] = None
    site_area: Optional[str] = None
    comments: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    timestamp: Optional[datetime] = None


class CleanerDetail(BaseModel):
    cleaner_id: Optional[str] = None
    cleaner_name: str
    attendance: List[AttendanceRecord]
    logs: List[CleanerLogRecord]
    task_summaries: List[TaskSummary]
    areas_today: int
    photos_today: int
    records_today: int
    photo_groups: List[AreaPhotoGroup]
    photos_by_date: List[DatePhotoBucket]
    feedback: Dict[int, str]


class ScheduleVisit(BaseModel):
    id: str
    cleaner_name: str
    site_name: str
    date: str
    day_of_week: int
    start_time: str
    end_time: str
    clock_in: Optional[datetime] = None
    clock_out: Optional[datetime] = None
    attendance_id: Optional[int] = None


class ScheduleLabel(BaseModel):
    cleaner_name: str
    site_name: str
    label: str


class MessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    recipient: str
    type: str
    content: str
    cleaner_id: Optional[str] = None
    cleaner_name: Optional[str] = None
    customer_name: Optional[str] = None
    created_at: Optional[datetime] = None
