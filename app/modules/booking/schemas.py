"""Booking schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from app.core.enums import DayOfWeekEnum, TimeSlotEnum


class BookingCreateRequest(BaseModel):
    """Create booking request."""

    session_id: UUID


class DeletedBookingRead(BaseModel):
    """Session reference of a cancelled booking."""

    id: UUID
    session_id: UUID
    day: DayOfWeekEnum
    time_slot: TimeSlotEnum


class BookingRead(DeletedBookingRead):
    """Booking response schema."""

    created_at: datetime


class BookingCreatedResponse(BaseModel):
    booking: BookingRead
    message: str = "Your session has been successfully booked!"


class BookingCancelledResponse(BaseModel):
    deleted_booking: DeletedBookingRead
    message: str = "Your session booking has been cancelled."


class BookingListResponse(BaseModel):
    bookings: list[BookingRead]


class SessionAvailabilityRead(BaseModel):
    """Advisory per-session availability; never used to decide a booking."""

    id: UUID
    day: DayOfWeekEnum
    time_slot: TimeSlotEnum
    capacity: int
    available_spots: int
    is_available: bool
    is_booked: bool
    is_enabled: bool


class DayAvailabilityRead(BaseModel):
    day: DayOfWeekEnum
    is_day_booked: bool


class AvailabilityRead(BaseModel):
    """Availability grid for one viewer (or anonymous)."""

    sessions: list[SessionAvailabilityRead]
    days: list[DayAvailabilityRead]
    booked_days: int
    max_days_per_student: int
    remaining_days: int
    generated_at: datetime


class BookingResetRead(BaseModel):
    deleted: int
    timestamp: datetime
