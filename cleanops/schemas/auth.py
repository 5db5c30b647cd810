from typing import Optional, Literal

from pydantic import BaseModel, EmailStr, Field, field_validator


class RegisterRequest(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: Optional[str] = None
    mobile_number: str = Field(min_length=5)
    email: Optional[EmailStr] = None
    password: str = Field(min_length=8)

    @field_validator("first_name", "mobile_number", mode="before")
    @classmethod
    def strip_text(cls, v):
        return str(v).strip() if v is not None else v

    @field_validator("last_name", mode="before")
    @classmethod
    def blank_last_name(cls, v):
        if v is None:
            return None
        return str(v).strip() or None


class ManagerRegisterRequest(RegisterRequest):
    role: Literal["manager", "ops_manager"] = "manager"


class LoginRequest(BaseModel):
    identifier: str  # mobile number or email (cleaners/managers), username (admins)
    password: str


class SessionOut(BaseModel):
    user_id: str
    name: str
    role: str


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    session: SessionOut
