from datetime import date, datetime
from typing import Optional, List, Union, Literal

from pydantic import BaseModel, ConfigDict, field_validator

from ..services.time_rules import parse_task_list


AnalyticsRole = Literal["manager", "ops_manager", "admin"]


class _Record(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class CleanerSummary(_Record):
    id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    mobile_number: Optional[str] = None
    is_active: Optional[bool] = True
    created_at: Optional[datetime] = None


class AttendanceRecord(_Record):
    id: int
    cleaner_id: Optional[Union[int, str]] = None
    cleaner_uuid: Optional[str] = None
    cleaner_name: Optional[str] = None
    customer_name: Optional[str] = None
    site_name: Optional[str] = None
    clock_in: Optional[datetime] = None
    clock_out: Optional[datetime] = None


class TaskSelectionRecord(_Record):
    id: int
    cleaner_id: str
    cleaner_name: Optional[str] = None
    qr_code_id: Optional[str] = None
    area_type: Optional[str] = None
    selected_tasks: List[str] = []
    completed_tasks: List[str] = []
    timestamp: Optional[datetime] = None

    @field_validator("selected_tasks", "completed_tasks", mode="before")
    @classmethod
    def decode_task_list(cls, v):
        return parse_task_list(v)


class TaskPhotoRecord(_Record):
    id: int
    cleaner_id: str
    cleaner_name: Optional[str] = None
    qr_code_id: Optional[str] = None
    task_id: Optional[str] = None
    area_type: Optional[str] = None
    area_name: Optional[str] = None
    customer_name: Optional[str] = None
    photo_data: Optional[str] = None
    photo_timestamp: Optional[datetime] = None
    started_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class ComplianceTrendPoint(BaseModel):
    date: str
    compliance: int
    total: int
    completed: int


class CleanerRate(BaseModel):
    cleaner_id: str
    cleaner_name: str
    rate: Optional[int] = None  # None when the cleaner has no schedule
    total: int
    value: int


class AreaDuration(BaseModel):
    label: str
    avg_minutes: float
    samples: int


class DailyHoursPoint(BaseModel):
    date: str
    hours: float


class PhotoComplianceBreakdown(BaseModel):
    with_photo: int = 0
    without_photo: int = 0


class AnalyticsTotals(BaseModel):
    compliance_rate: Optional[float] = None
    on_time_rate: Optional[float] = None
    photo_compliance_rate: Optional[float] = None
    total_hours_worked: float = 0.0


class AnalyticsSummary(BaseModel):
    roster: List[CleanerSummary]
    totals: AnalyticsTotals
    trend: List[ComplianceTrendPoint]
    on_time_by_cleaner: List[CleanerRate]
    task_completion_by_area: List[AreaDuration]
    photo_compliance_breakdown: PhotoComplianceBreakdown
    hours_by_date: List[DailyHoursPoint]


class HoursBreakdownEntry(BaseModel):
    cleaner_name: str
    site_name: str
    hours: float


class DashboardSnapshot(BaseModel):
    date: date
    is_current_day: bool
    cleaners_online: Optional[int] = None
    areas_cleaned: int
    photos_taken: int
    hours_worked: float
    attendance_count: int
    hours_breakdown: List[HoursBreakdownEntry] = []
    refresh_interval_s: int
