from datetime import datetime, date
from typing import Optional, List, Literal, Dict, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

QRType = Literal["CLOCK_IN", "CLOCK_OUT", "AREA", "TASK", "FEEDBACK"]


class QRCodeData(BaseModel):
    """Decoded QR payload. Accepts camelCase (printed codes) and snake_case keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    type: QRType
    site_id: Optional[str] = None
    area_id: Optional[str] = None
    task_id: Optional[str] = None
    customer_name: Optional[str] = None
    area_type: Optional[str] = None
    metadata: Dict[str, Any] = {}

    @field_validator("metadata", mode="before")
    @classmethod
    def none_to_dict(cls, v):
        return v if isinstance(v, dict) else {}

    def payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class TaskDefinition(BaseModel):
    id: str
    name: str
    category: str
    description: Optional[str] = None
    is_required: Optional[bool] = None


class ScanRequest(BaseModel):
    payload: str = Field(min_length=1)
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    mobile_number: Optional[str] = None


class ScanResponse(BaseModel):
    success: bool = True
    action: str
    message: Optional[str] = None
    qr: QRCodeData
    attendance_id: Optional[int] = None
    area_type: Optional[str] = None


class AreaTasksResponse(BaseModel):
    area_type: str
    source: Literal["area_tasks", "catalog"]
    tasks: List[TaskDefinition]


class TaskPhotoIn(BaseModel):
    task_id: str
    photo: str = Field(min_length=1)
    timestamp: Optional[datetime] = None


class TaskSelectionCreate(BaseModel):
    qr_code_id: str = Field(min_length=1)
    area_type: str = Field(min_length=1)
    selected_tasks: List[str] = Field(min_length=1)
    completed_tasks: Optional[List[str]] = None
    timestamp: Optional[datetime] = None
    area_name: Optional[str] = None
    customer_name: Optional[str] = None
    started_at: Optional[datetime] = None
    photos: List[TaskPhotoIn] = []


class CompletedTasksUpdate(BaseModel):
    qr_code_id: str = Field(min_length=1)
    completed_tasks: List[str]


class OpsInspectionPhoto(BaseModel):
    slot: int
    photo: str
    timestamp: Optional[datetime] = None


class OpsInspectionCreate(BaseModel):
    photos: List[OpsInspectionPhoto] = []
    site_name: Optional[str] = None
    customer_name: Optional[str] = None
    clock_in_time: Optional[datetime] = None
    qr_code_id: Optional[str] = None


class ManualQRCreate(BaseModel):
    type: str = "AREA"
    customer_id: Optional[str] = None
    customer_name: Optional[str] = None
    site_name: Optional[str] = None
    site_id: Optional[str] = None
    area_name: Optional[str] = None
    area_id: Optional[str] = None
    description: Optional[str] = None
    floor: Optional[str] = None
    category: Optional[str] = None
    label: Optional[str] = None
    notes: Optional[str] = None
    metadata: Dict[str, Any] = {}
    raw_value: Optional[str] = None

    @field_validator(
        "customer_id", "customer_name", "site_name", "site_id", "area_name", "area_id",
        "description", "floor", "category", "label", "notes", "raw_value",
        mode="before",
    )
    @classmethod
    def empty_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class ManualQRResult(BaseModel):
    qr_data: QRCodeData
    data_url: str
    storage_url: str
    storage_path: str


class BuildingQRCodeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    qr_code_id: str
    customer_name: str
    building_area: str
    area_description: Optional[str] = None
    qr_code_url: Optional[str] = None
    qr_code_image_path: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None


class CleanerStatus(BaseModel):
    clocked_in: bool
    attendance_id: Optional[int] = None
    clock_in: Optional[datetime] = None
    site_name: Optional[str] = None
    customer_name: Optional[str] = None
    day: Optional[date] = None
