from datetime import datetime
from typing import Optional, List, Literal, Dict, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

ISSUE_TYPES = {
    "toilet_blocked": "Toilet blocked",
    "floor_wet": "Floor is wet",
    "supplies_low": "Low supplies (paper, soap, etc.)",
    "bad_smell": "Odour issue",
    "maintenance": "Maintenance issue (door, lights, etc.)",
    "other": "Something else",
}


def _blank_to_none(v):
    if v is None:
        return None
    v = str(v).strip()
    return v or None


class AssistMedia(BaseModel):
    type: Literal["before", "after"] = "before"
    url: str
    name: Optional[str] = None
    size: Optional[int] = None

    @field_validator("type", mode="before")
    @classmethod
    def default_type(cls, v):
        return v or "before"


class AssistCreate(BaseModel):
    qr_code_id: Optional[str] = None
    customer_name: str = Field(min_length=1)
    location_label: str = Field(min_length=1)
    issue_type: str = Field(min_length=1)
    issue_description: Optional[str] = Field(default=None, max_length=600)
    reported_by: Optional[str] = None
    reported_contact: Optional[str] = None
    before_media: List[AssistMedia] = []
    metadata: Dict[str, Any] = {}
    escalate_after: Optional[datetime] = None

    @field_validator("customer_name", "location_label", "issue_type", mode="before")
    @classmethod
    def strip_required(cls, v):
        return str(v).strip() if v is not None else v

    @field_validator("qr_code_id", "issue_description", "reported_by", "reported_contact", mode="before")
    @classmethod
    def empty_to_none(cls, v):
        return _blank_to_none(v)


class AssistAccept(BaseModel):
    cleaner_id: Optional[str] = None
    cleaner_name: Optional[str] = None


class AssistResolve(BaseModel):
    cleaner_id: Optional[str] = None
    cleaner_name: Optional[str] = None
    notes: Optional[str] = None
    materials_used: Optional[str] = None
    after_media: List[AssistMedia] = []

    @field_validator("notes", "materials_used", mode="before")
    @classmethod
    def empty_to_none(cls, v):
        return _blank_to_none(v)


class AssistEscalationRun(BaseModel):
    reason: Optional[str] = None


class AssistRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    qr_code_id: Optional[str] = None
    customer_name: str
    location_label: str
    issue_type: str
    issue_description: Optional[str] = None
    reported_by: Optional[str] = None
    reported_contact: Optional[str] = None
    status: str
    reported_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    accepted_by: Optional[str] = None
    accepted_by_name: Optional[str] = None
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None
    resolved_by_name: Optional[str] = None
    escalated_at: Optional[datetime] = None
    escalation_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    escalate_after: Optional[datetime] = None
    before_media: List[AssistMedia] = []
    after_media: List[AssistMedia] = []
    notes: Optional[str] = None
    materials_used: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict, validation_alias="request_metadata")

    @field_validator("before_media", "after_media", mode="before")
    @classmethod
    def none_to_list(cls, v):
        return v or []

    @field_validator("metadata", mode="before")
    @classmethod
    def none_to_dict(cls, v):
        return v or {}


class AssistEventOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    request_id: str
    event_type: str
    actor_role: Optional[str] = None
    actor_id: Optional[str] = None
    actor_name: Optional[str] = None
    payload: Dict[str, Any] = {}
    created_at: Optional[datetime] = None

    @field_validator("payload", mode="before")
    @classmethod
    def none_to_dict(cls, v):
        return v or {}
