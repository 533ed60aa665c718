"""Instructor API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from app.modules.booking.router import booking_read
from app.modules.booking.schemas import BookingCreatedResponse, BookingResetRead
from app.modules.booking.service import BookingService, get_booking_service
from app.modules.catalog.schemas import SessionRead, SessionUpdate
from app.modules.catalog.service import CatalogService, get_catalog_service
from app.modules.identity.schemas import StudentCreate, StudentRead
from app.modules.identity.service import IdentityService, get_identity_service, require_instructor
from app.modules.instructor.schemas import (
    InstructorBookingCreate,
    InstructorSessionsRead,
    SessionEnrollmentRead,
    SessionUpdatedResponse,
    StudentWithBookingsRead,
)
from app.modules.instructor.service import InstructorService, get_instructor_service
from app.shared.pagination import Page, build_page, get_pagination_params
from app.shared.utils import utc_now

router = APIRouter(
    prefix="/instructor",
    tags=["instructor"],
    dependencies=[Depends(require_instructor)],
)


@router.get("/sessions", response_model=InstructorSessionsRead)
async def list_sessions(
    service: InstructorService = Depends(get_instructor_service),
) -> InstructorSessionsRead:
    """All sessions with enrolled students and enrollment analytics."""
    return await service.list_enrollments()


@router.get("/sessions/{session_id}", response_model=SessionEnrollmentRead)
async def get_session(
    session_id: UUID,
    service: InstructorService = Depends(get_instructor_service),
) -> SessionEnrollmentRead:
    return await service.get_session_enrollment(session_id)


@router.patch("/sessions/{session_id}", response_model=SessionUpdatedResponse)
async def update_session(
    session_id: UUID,
    payload: SessionUpdate,
    service: CatalogService = Depends(get_catalog_service),
) -> SessionUpdatedResponse:
    """Enable/disable a session or change its capacity."""
    updated: SessionRead = await service.update_session(session_id, payload)
    return SessionUpdatedResponse(session=updated, message="Session updated successfully")


@router.get("/students", response_model=Page[StudentWithBookingsRead])
async def list_students(
    search: str | None = Query(default=None, max_length=128),
    session_id: UUID | None = Query(default=None),
    pagination=Depends(get_pagination_params),
    service: InstructorService = Depends(get_instructor_service),
) -> Page[StudentWithBookingsRead]:
    """List students with their bookings, newest registrations first.

    With ``session_id`` only students not yet enrolled in that session are
    returned, for the add-participant picker.
    """
    items, total = await service.list_students(
        search,
        pagination.limit,
        pagination.offset,
        candidates_for_session=session_id,
    )
    return build_page(items, total, pagination)


@router.post("/bookings", response_model=BookingCreatedResponse, status_code=status.HTTP_201_CREATED)
async def enroll_student(
    payload: InstructorBookingCreate,
    service: InstructorService = Depends(get_instructor_service),
) -> BookingCreatedResponse:
    """Add a participant to a session."""
    booking = await service.enroll_student(payload.student_id, payload.session_id)
    return BookingCreatedResponse(booking=booking_read(booking), message="Participant added successfully")


@router.post("/students", response_model=StudentRead, status_code=status.HTTP_201_CREATED)
async def create_student(
    payload: StudentCreate,
    service: IdentityService = Depends(get_identity_service),
) -> StudentRead:
    """Register a student."""
    student = await service.create_student(payload)
    return StudentRead.model_validate(student)


@router.get("/export")
async def export_enrollments(
    service: InstructorService = Depends(get_instructor_service),
) -> Response:
    """Download current enrollments as CSV."""
    content = await service.export_enrollments_csv()
    filename = f"session_enrollments_{utc_now().date().isoformat()}.csv"
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.post("/bookings/reset", response_model=BookingResetRead)
async def reset_bookings(
    service: BookingService = Depends(get_booking_service),
) -> BookingResetRead:
    """Weekly reset: delete every booking."""
    deleted = await service.reset_all_bookings()
    return BookingResetRead(deleted=deleted, timestamp=utc_now())
