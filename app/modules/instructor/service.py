"""Instructor dashboard: enrollment listings, analytics, CSV export and enrolling students."""

from __future__ import annotations

import csv
import io
import logging
from collections.abc import Sequence
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db_session
from app.modules.booking.models import Booking
from app.modules.booking.service import BookingService, get_booking_service
from app.modules.catalog.models import ClassSession
from app.modules.catalog.repository import CatalogRepository
from app.modules.identity.models import Student
from app.modules.identity.repository import IdentityRepository
from app.modules.instructor.schemas import (
    CatalogAnalyticsRead,
    EnrolledStudentRead,
    GroupFillRead,
    InstructorSessionsRead,
    SessionEnrollmentRead,
    SessionPopularityRead,
    StudentBookingRead,
    StudentWithBookingsRead,
)
from app.shared.exceptions import NotFoundException, SessionNotFoundException
from app.shared.utils import percentage

logger = logging.getLogger(__name__)

CSV_HEADER = (
    "Day",
    "Time",
    "Capacity",
    "Enrolled",
    "Available",
    "Student ID",
    "Student Name",
    "Student Email",
    "Student Phone",
)


def build_session_enrollment(class_session: ClassSession) -> SessionEnrollmentRead:
    enrolled = len(class_session.bookings)
    return SessionEnrollmentRead(
        id=class_session.id,
        day=class_session.day,
        day_name=class_session.day.display_name,
        time_slot=class_session.time_slot,
        time_slot_name=class_session.time_slot.display_name,
        capacity=class_session.capacity,
        enrolled_count=enrolled,
        available_spots=max(class_session.capacity - enrolled, 0),
        fill_percentage=percentage(enrolled, class_session.capacity),
        is_enabled=class_session.is_enabled,
        students=[
            EnrolledStudentRead(
                id=booking.student.id,
                name=booking.student.name,
                email=booking.student.email,
                phone_number=booking.student.phone_number,
                booking_id=booking.id,
                booked_at=booking.created_at,
            )
            for booking in class_session.bookings
        ],
    )


def _group_fill(
    sessions: Sequence[SessionEnrollmentRead],
    *,
    by_day: bool,
) -> list[GroupFillRead]:
    groups: dict[str, GroupFillRead] = {}
    for item in sessions:
        key = item.day.value if by_day else item.time_slot.value
        name = item.day_name if by_day else item.time_slot_name
        group = groups.setdefault(key, GroupFillRead(key=key, name=name, enrolled=0, capacity=0, fill_rate=0))
        group.enrolled += item.enrolled_count
        group.capacity += item.capacity

    for group in groups.values():
        group.fill_rate = percentage(group.enrolled, group.capacity)
    return sorted(groups.values(), key=lambda group: group.fill_rate, reverse=True)


def _popularity(item: SessionEnrollmentRead) -> SessionPopularityRead:
    return SessionPopularityRead(
        day_name=item.day_name,
        time_slot_name=item.time_slot_name,
        fill_rate=item.fill_percentage,
    )


def build_catalog_analytics(sessions: Sequence[SessionEnrollmentRead]) -> CatalogAnalyticsRead:
    """Aggregate enrollment over enabled sessions.

    Disabled sessions are left out of every total and only counted in
    ``disabled_sessions_count`` / ``disabled_sessions_enrolled``.
    """
    enabled = [item for item in sessions if item.is_enabled]
    disabled = [item for item in sessions if not item.is_enabled]

    total_capacity = sum(item.capacity for item in enabled)
    total_enrolled = sum(item.enrolled_count for item in enabled)
    unique_students = {student.id for item in enabled for student in item.students}
    by_fill = sorted(enabled, key=lambda item: item.fill_percentage, reverse=True)

    return CatalogAnalyticsRead(
        total_sessions=len(enabled),
        disabled_sessions_count=len(disabled),
        disabled_sessions_enrolled=sum(item.enrolled_count for item in disabled),
        total_capacity=total_capacity,
        total_enrolled=total_enrolled,
        available_spots=total_capacity - total_enrolled,
        overall_fill_rate=percentage(total_enrolled, total_capacity),
        unique_student_count=len(unique_students),
        average_sessions_per_student=(
            round(total_enrolled / len(unique_students), 2) if unique_students else 0.0
        ),
        most_popular_session=_popularity(by_fill[0]) if by_fill else None,
        least_popular_session=_popularity(by_fill[-1]) if by_fill else None,
        day_popularity=_group_fill(enabled, by_day=True),
        time_slot_popularity=_group_fill(enabled, by_day=False),
    )


def build_student_with_bookings(student: Student) -> StudentWithBookingsRead:
    bookings = [
        StudentBookingRead(
            id=booking.id,
            session_id=booking.session_id,
            day=booking.session.day,
            day_name=booking.session.day.display_name,
            time_slot=booking.session.time_slot,
            time_slot_name=booking.session.time_slot.display_name,
            created_at=booking.created_at,
        )
        for booking in student.bookings
    ]
    return StudentWithBookingsRead(
        id=student.id,
        name=student.name,
        email=student.email,
        phone_number=student.phone_number,
        created_at=student.created_at,
        updated_at=student.updated_at,
        bookings=bookings,
        booking_count=len(bookings),
        booked_days=", ".join(booking.day_name for booking in bookings) or "No bookings",
    )


def render_enrollment_csv(sessions: Sequence[SessionEnrollmentRead]) -> str:
    """One row per enrolled student; session columns only on the session's first row."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for item in sessions:
        session_columns = [
            item.day_name,
            item.time_slot_name,
            item.capacity,
            item.enrolled_count,
            item.available_spots,
        ]
        if not item.students:
            writer.writerow([*session_columns, "", "", "", ""])
            continue
        for index, student in enumerate(item.students):
            prefix = session_columns if index == 0 else [""] * len(session_columns)
            writer.writerow([*prefix, student.id, student.name, student.email, student.phone_number or ""])
    return buffer.getvalue()


class InstructorService:
    """Instructor dashboard: reads, plus enrollment through the booking rules."""

    def __init__(
        self,
        catalog_repository: CatalogRepository,
        identity_repository: IdentityRepository,
        booking_service: BookingService | None = None,
    ) -> None:
        self.catalog_repository = catalog_repository
        self.identity_repository = identity_repository
        self.booking_service = booking_service

    async def list_enrollments(self) -> InstructorSessionsRead:
        """All sessions with enrolled students plus analytics."""
        sessions = [
            build_session_enrollment(item)
            for item in await self.catalog_repository.list_sessions_with_students()
        ]
        return InstructorSessionsRead(sessions=sessions, analytics=build_catalog_analytics(sessions))

    async def get_session_enrollment(self, session_id: UUID) -> SessionEnrollmentRead:
        class_session = await self.catalog_repository.get_session_with_students(session_id)
        if class_session is None:
            raise SessionNotFoundException("Session not found")
        return build_session_enrollment(class_session)

    async def list_students(
        self,
        search: str | None,
        limit: int,
        offset: int,
        candidates_for_session: UUID | None = None,
    ) -> tuple[list[StudentWithBookingsRead], int]:
        """Students with bookings; with a session id, only those not enrolled in it."""
        students, total = await self.identity_repository.list_students(
            search,
            limit,
            offset,
            exclude_session_id=candidates_for_session,
        )
        return [build_student_with_bookings(student) for student in students], total

    async def enroll_student(self, student_id: str, session_id: UUID) -> Booking:
        """Book a session for a student; capacity and day limits apply as for self-service."""
        if self.booking_service is None:
            raise RuntimeError("InstructorService was built without a booking service")
        if await self.identity_repository.get_student_by_id(student_id) is None:
            raise NotFoundException("Student not found")

        booking = await self.booking_service.create_booking(student_id, session_id)
        logger.info("Instructor enrolled student %s in session %s", student_id, session_id)
        return booking

    async def export_enrollments_csv(self) -> str:
        sessions = [
            build_session_enrollment(item)
            for item in await self.catalog_repository.list_sessions_with_students()
        ]
        return render_enrollment_csv(sessions)


async def get_instructor_service(session: AsyncSession = Depends(get_db_session)) -> InstructorService:
    """Dependency provider for instructor service."""
    return InstructorService(
        catalog_repository=CatalogRepository(session),
        identity_repository=IdentityRepository(session),
        booking_service=await get_booking_service(session),
    )
