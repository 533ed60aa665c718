"""Booking API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status

from app.modules.booking.models import Booking
from app.modules.booking.schemas import (
    AvailabilityRead,
    BookingCancelledResponse,
    BookingCreatedResponse,
    BookingCreateRequest,
    BookingListResponse,
    BookingRead,
    DeletedBookingRead,
)
from app.modules.booking.service import BookingService, get_booking_service
from app.modules.identity.rate_limit import enforce_booking_rate_limit
from app.modules.identity.service import get_current_student, get_optional_student

router = APIRouter(tags=["booking"])


def booking_read(booking: Booking) -> BookingRead:
    return BookingRead(
        id=booking.id,
        session_id=booking.session_id,
        day=booking.session.day,
        time_slot=booking.session.time_slot,
        created_at=booking.created_at,
    )


@router.get("/sessions", response_model=AvailabilityRead)
async def get_availability(
    service: BookingService = Depends(get_booking_service),
    current_student=Depends(get_optional_student),
) -> AvailabilityRead:
    """Weekly session grid with spots left and the viewer's own bookings."""
    student_id = current_student.id if current_student is not None else None
    return await service.get_availability(student_id)


@router.get("/bookings", response_model=BookingListResponse)
async def list_my_bookings(
    service: BookingService = Depends(get_booking_service),
    current_student=Depends(get_current_student),
) -> BookingListResponse:
    """List bookings of the current student."""
    bookings = await service.list_student_bookings(current_student.id)
    return BookingListResponse(bookings=[booking_read(booking) for booking in bookings])


@router.post("/bookings", response_model=BookingCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: BookingCreateRequest,
    service: BookingService = Depends(get_booking_service),
    current_student=Depends(enforce_booking_rate_limit),
) -> BookingCreatedResponse:
    """Book a session for the current student."""
    booking = await service.create_booking(current_student.id, payload.session_id)
    return BookingCreatedResponse(booking=booking_read(booking))


@router.delete("/bookings/{booking_id}", response_model=BookingCancelledResponse)
async def cancel_booking(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
    current_student=Depends(enforce_booking_rate_limit),
) -> BookingCancelledResponse:
    """Cancel one of the current student's bookings."""
    booking = await service.cancel_booking(current_student.id, booking_id)
    return BookingCancelledResponse(
        deleted_booking=DeletedBookingRead(
            id=booking.id,
            session_id=booking.session_id,
            day=booking.session.day,
            time_slot=booking.session.time_slot,
        ),
    )
