"""Instructor dashboard schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from app.core.enums import DayOfWeekEnum, TimeSlotEnum
from app.modules.catalog.schemas import SessionRead


class EnrolledStudentRead(BaseModel):
    id: str
    name: str
    email: str
    phone_number: str | None
    booking_id: UUID
    booked_at: datetime


class SessionEnrollmentRead(BaseModel):
    """Session with its enrolled students."""

    id: UUID
    day: DayOfWeekEnum
    day_name: str
    time_slot: TimeSlotEnum
    time_slot_name: str
    capacity: int
    enrolled_count: int
    available_spots: int
    fill_percentage: int
    is_enabled: bool
    students: list[EnrolledStudentRead]


class SessionPopularityRead(BaseModel):
    day_name: str
    time_slot_name: str
    fill_rate: int


class GroupFillRead(BaseModel):
    """Enrollment totals for one day or one time slot."""

    key: str
    name: str
    enrolled: int
    capacity: int
    fill_rate: int


class CatalogAnalyticsRead(BaseModel):
    """Enrollment analytics over enabled sessions."""

    total_sessions: int
    disabled_sessions_count: int
    disabled_sessions_enrolled: int
    total_capacity: int
    total_enrolled: int
    available_spots: int
    overall_fill_rate: int
    unique_student_count: int
    average_sessions_per_student: float
    most_popular_session: SessionPopularityRead | None
    least_popular_session: SessionPopularityRead | None
    day_popularity: list[GroupFillRead]
    time_slot_popularity: list[GroupFillRead]


class InstructorSessionsRead(BaseModel):
    sessions: list[SessionEnrollmentRead]
    analytics: CatalogAnalyticsRead


class StudentBookingRead(BaseModel):
    id: UUID
    session_id: UUID
    day: DayOfWeekEnum
    day_name: str
    time_slot: TimeSlotEnum
    time_slot_name: str
    created_at: datetime


class StudentWithBookingsRead(BaseModel):
    id: str
    name: str
    email: str
    phone_number: str | None
    created_at: datetime
    updated_at: datetime
    bookings: list[StudentBookingRead]
    booking_count: int
    booked_days: str


class SessionUpdatedResponse(BaseModel):
    session: SessionRead
    message: str


class InstructorBookingCreate(BaseModel):
    """Enroll a student in a session on the instructor's behalf."""

    student_id: str = Field(min_length=1, max_length=32)
    session_id: UUID

    @field_validator("student_id")
    @classmethod
    def normalize_student_id(cls, value: str) -> str:
        return value.strip().upper()
