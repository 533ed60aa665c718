"""Identity schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class LoginRequest(BaseModel):
    """Student credentials: external ID plus email."""

    student_id: str = Field(min_length=1, max_length=32)
    email: EmailStr

    @field_validator("student_id")
    @classmethod
    def normalize_student_id(cls, value: str) -> str:
        return value.strip().upper()


class StudentCreate(BaseModel):
    """Instructor request to register a student."""

    id: str = Field(min_length=1, max_length=32)
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    phone_number: str | None = Field(default=None, max_length=32)

    @field_validator("id")
    @classmethod
    def normalize_id(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("phone_number")
    @classmethod
    def blank_phone_is_none(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return value.strip()


class StudentRead(BaseModel):
    """Student output schema."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: EmailStr
    phone_number: str | None
    created_at: datetime
    updated_at: datetime


class AccessToken(BaseModel):
    """Login response: token plus the authenticated student."""

    access_token: str
    token_type: str = "bearer"
    student: StudentRead
