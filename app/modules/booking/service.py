"""Booking business logic layer.

Every mutation runs check-then-act inside one unit of work: the student row
and the session row are locked (in that order), the state the validator sees
is read after the locks are held, and the insert or delete happens in the
same transaction.
"""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import Depends
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import UnitOfWork, get_db_session
from app.core.enums import DenialReasonEnum
from app.core.metrics import observe_booking_transaction, record_booking_outcome
from app.modules.booking.models import Booking
from app.modules.booking.projector import project_availability
from app.modules.booking.repository import BookingRepository
from app.modules.booking.schemas import AvailabilityRead
from app.modules.booking.validator import (
    BookingSnapshot,
    CancellationSnapshot,
    HeldBooking,
    SessionState,
    validate_booking,
    validate_cancellation,
)
from app.modules.catalog.models import ClassSession
from app.modules.catalog.repository import CatalogRepository
from app.modules.identity.repository import IdentityRepository
from app.shared.exceptions import (
    AppException,
    AuthenticationRequiredException,
    BookingDeniedException,
    ConcurrencyConflictException,
    TransientStorageException,
)

settings = get_settings()
logger = logging.getLogger(__name__)


def denial_message(reason: DenialReasonEnum) -> str:
    """User-facing text for a denial reason."""
    messages = {
        DenialReasonEnum.SESSION_NOT_FOUND: "Session not found.",
        DenialReasonEnum.SESSION_DISABLED: "This session is currently not available for booking.",
        DenialReasonEnum.SESSION_FULL: "This session is already at full capacity.",
        DenialReasonEnum.DAY_ALREADY_BOOKED: "You already have a session booked for this day.",
        DenialReasonEnum.MAX_DAYS_REACHED: (
            f"You can only select up to {settings.max_days_per_student} days."
        ),
        DenialReasonEnum.DUPLICATE_BOOKING: "You have already booked this session.",
        DenialReasonEnum.NOT_FOUND_OR_UNAUTHORIZED: "Booking not found or not authorized.",
    }
    return messages[reason]


def _held(booking: Booking) -> HeldBooking:
    return HeldBooking(
        id=booking.id,
        student_id=booking.student_id,
        session_id=booking.session_id,
        day=booking.day,
    )


class BookingService:
    """Transactional create/cancel against the booking ledger."""

    def __init__(
        self,
        booking_repository: BookingRepository,
        catalog_repository: CatalogRepository,
        identity_repository: IdentityRepository,
        unit_of_work: UnitOfWork,
    ) -> None:
        self.booking_repository = booking_repository
        self.catalog_repository = catalog_repository
        self.identity_repository = identity_repository
        self.unit_of_work = unit_of_work

    async def _booking_snapshot(
        self,
        student_id: str,
        class_session: ClassSession | None,
    ) -> BookingSnapshot:
        student_bookings = tuple(
            _held(booking) for booking in await self.booking_repository.list_for_student(student_id)
        )
        if class_session is None:
            return BookingSnapshot(session=None, student_bookings=student_bookings)

        booking_count = await self.booking_repository.count_for_session(class_session.id)
        return BookingSnapshot(
            session=SessionState(
                id=class_session.id,
                day=class_session.day,
                time_slot=class_session.time_slot,
                capacity=class_session.capacity,
                is_enabled=class_session.is_enabled,
                booking_count=booking_count,
            ),
            student_bookings=student_bookings,
        )

    async def create_booking(self, student_id: str, session_id: UUID) -> Booking:
        """Reserve a session for a student, or raise the reason it is refused."""
        try:
            with observe_booking_transaction("create"):
                async with self.unit_of_work.transaction():
                    await self.booking_repository.apply_lock_timeout(settings.booking_lock_timeout_ms)

                    student = await self.identity_repository.get_student_for_update(student_id)
                    if student is None:
                        raise AuthenticationRequiredException("Student not found")
                    class_session = await self.catalog_repository.get_session_for_update(session_id)

                    snapshot = await self._booking_snapshot(student_id, class_session)
                    decision = validate_booking(
                        student_id,
                        session_id,
                        snapshot,
                        max_days_per_student=settings.max_days_per_student,
                    )
                    if not decision.allowed:
                        logger.info(
                            "Booking denied for student %s on session %s: %s",
                            student_id,
                            session_id,
                            decision.reason,
                        )
                        raise BookingDeniedException(decision.reason, denial_message(decision.reason))

                    booking = await self.booking_repository.create_booking(
                        student_id=student_id,
                        session_id=session_id,
                        day=class_session.day,
                    )
        except AppException as exc:
            record_booking_outcome("create", exc.code)
            raise
        except IntegrityError as exc:
            logger.warning(
                "Booking for student %s on session %s lost a concurrent race",
                student_id,
                session_id,
            )
            record_booking_outcome("create", ConcurrencyConflictException.code)
            raise ConcurrencyConflictException(
                "This booking conflicted with a concurrent request. Refresh availability and try again.",
            ) from exc
        except DBAPIError as exc:
            logger.warning("Storage error while booking session %s: %s", session_id, exc)
            record_booking_outcome("create", TransientStorageException.code)
            raise TransientStorageException(
                "Booking could not be completed right now. Please try again.",
            ) from exc

        record_booking_outcome("create", "created")
        logger.info(
            "Student %s booked session %s (%s %s)",
            student_id,
            session_id,
            booking.session.day,
            booking.session.time_slot,
        )
        return booking

    async def cancel_booking(self, student_id: str, booking_id: UUID) -> Booking:
        """Delete the student's own booking and return it with its session reference."""
        try:
            with observe_booking_transaction("cancel"):
                async with self.unit_of_work.transaction():
                    await self.booking_repository.apply_lock_timeout(settings.booking_lock_timeout_ms)

                    booking = await self.booking_repository.get_for_student(
                        booking_id,
                        student_id,
                        for_update=True,
                    )
                    snapshot = CancellationSnapshot(booking=_held(booking) if booking is not None else None)
                    decision = validate_cancellation(student_id, booking_id, snapshot)
                    if not decision.allowed:
                        raise BookingDeniedException(decision.reason, denial_message(decision.reason))

                    await self.booking_repository.delete_booking(booking)
        except AppException as exc:
            record_booking_outcome("cancel", exc.code)
            raise
        except DBAPIError as exc:
            logger.warning("Storage error while cancelling booking %s: %s", booking_id, exc)
            record_booking_outcome("cancel", TransientStorageException.code)
            raise TransientStorageException(
                "Cancellation could not be completed right now. Please try again.",
            ) from exc

        record_booking_outcome("cancel", "cancelled")
        logger.info("Student %s cancelled booking %s", student_id, booking_id)
        return booking

    async def list_student_bookings(self, student_id: str) -> list[Booking]:
        """Bookings held by the student, oldest first."""
        return await self.booking_repository.list_for_student(student_id)

    async def get_availability(self, student_id: str | None) -> AvailabilityRead:
        """Advisory availability grid for the viewer (anonymous when None)."""
        sessions = await self.catalog_repository.list_sessions()
        booking_counts = await self.booking_repository.counts_by_session()
        student_bookings = (
            await self.booking_repository.list_for_student(student_id) if student_id else []
        )
        return project_availability(
            sessions,
            booking_counts,
            student_bookings,
            max_days_per_student=settings.max_days_per_student,
        )

    async def reset_all_bookings(self) -> int:
        """Bulk weekly reset: delete every booking."""
        try:
            with observe_booking_transaction("reset"):
                async with self.unit_of_work.transaction():
                    await self.booking_repository.apply_lock_timeout(settings.booking_lock_timeout_ms)
                    deleted = await self.booking_repository.delete_all()
        except DBAPIError as exc:
            logger.warning("Storage error while resetting bookings: %s", exc)
            record_booking_outcome("reset", TransientStorageException.code)
            raise TransientStorageException("Reset could not be completed right now. Please try again.") from exc

        record_booking_outcome("reset", "reset")
        logger.info("Booking ledger reset, %s bookings deleted", deleted)
        return deleted


async def get_booking_service(session: AsyncSession = Depends(get_db_session)) -> BookingService:
    """Dependency provider for booking service."""
    return BookingService(
        booking_repository=BookingRepository(session),
        catalog_repository=CatalogRepository(session),
        identity_repository=IdentityRepository(session),
        unit_of_work=UnitOfWork(session),
    )
