from datetime import datetime
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _strip(v):
    return str(v).strip() if v is not None else v


def _empty_to_none(v):
    if v is None:
        return None
    v = str(v).strip()
    return v or None


class CustomerCreate(BaseModel):
    name: str = Field(min_length=1)
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    address: Optional[str] = None

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        return _strip(v)

    @field_validator("contact_email", "contact_phone", "address", mode="before")
    @classmethod
    def empty_to_none(cls, v):
        return _empty_to_none(v)


class CustomerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    address: Optional[str] = None
    is_active: bool = True
    deleted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class AreaCreate(BaseModel):
    customer_id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    description: Optional[str] = None

    @field_validator("customer_id", "name", mode="before")
    @classmethod
    def strip_required(cls, v):
        return _strip(v)

    @field_validator("description", mode="before")
    @classmethod
    def empty_to_none(cls, v):
        return _empty_to_none(v)


class AreaResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    customer_id: str
    name: str
    description: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None


class CustomerAreaRow(BaseModel):
    """One customer x area row; customers without areas appear once with area fields null."""
    customer_id: str
    customer_name: str
    area_id: Optional[str] = None
    area_name: Optional[str] = None
    area_description: Optional[str] = None


class AreaTaskCreate(BaseModel):
    customer_name: str = Field(min_length=1)
    area: str = Field(min_length=1)
    task_description: str = Field(min_length=1)
    task_type: Optional[str] = None
    qr_code: Optional[str] = None
    active: bool = True
    sort_order: Optional[int] = None

    @field_validator("customer_name", "area", "task_description", mode="before")
    @classmethod
    def strip_required(cls, v):
        return _strip(v)

    @field_validator("task_type", "qr_code", mode="before")
    @classmethod
    def empty_to_none(cls, v):
        return _empty_to_none(v)


class AreaTaskUpdate(BaseModel):
    customer_name: Optional[str] = None
    area: Optional[str] = None
    task_description: Optional[str] = None
    task_type: Optional[str] = None
    qr_code: Optional[str] = None
    active: Optional[bool] = None
    sort_order: Optional[int] = None

    @field_validator("customer_name", "area", "task_description", mode="before")
    @classmethod
    def no_blank_required(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class AreaTaskResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    customer_name: str
    area: str
    task_description: str
    task_type: Optional[str] = None
    qr_code: Optional[str] = None
    active: bool = True
    sort_order: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AreaTaskReorder(BaseModel):
    customer_name: str
    area: str
    order: List[str]


class AreaTaskAreaNode(BaseModel):
    area: str
    tasks: List[AreaTaskResponse] = []


class AreaTaskCustomerNode(BaseModel):
    customer_name: str
    areas: List[AreaTaskAreaNode] = []
