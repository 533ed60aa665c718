"""Pure booking constraint checks.

Functions here only look at the snapshot they are handed; reading that
snapshot inside the right transaction is the caller's job.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID

from app.core.enums import DayOfWeekEnum, DenialReasonEnum, TimeSlotEnum


@dataclass(frozen=True, slots=True)
class SessionState:
    """Target session as seen inside the transaction."""

    id: UUID
    day: DayOfWeekEnum
    time_slot: TimeSlotEnum
    capacity: int
    is_enabled: bool
    booking_count: int


@dataclass(frozen=True, slots=True)
class HeldBooking:
    """One booking currently held by a student."""

    id: UUID
    student_id: str
    session_id: UUID
    day: DayOfWeekEnum


@dataclass(frozen=True, slots=True)
class BookingSnapshot:
    """Point-in-time catalog and ledger state for one booking decision."""

    session: SessionState | None
    student_bookings: tuple[HeldBooking, ...] = ()


@dataclass(frozen=True, slots=True)
class CancellationSnapshot:
    """The booking found for a cancellation lookup, if any."""

    booking: HeldBooking | None


@dataclass(frozen=True, slots=True)
class BookingDecision:
    allowed: bool
    reason: DenialReasonEnum | None = field(default=None)

    @classmethod
    def allow(cls) -> "BookingDecision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: DenialReasonEnum) -> "BookingDecision":
        return cls(allowed=False, reason=reason)


def validate_booking(
    student_id: str,
    session_id: UUID,
    snapshot: BookingSnapshot,
    *,
    max_days_per_student: int,
) -> BookingDecision:
    """Decide whether ``student_id`` may book ``session_id``.

    Checks run in a fixed order and the first failure is reported:
    session exists and is enabled, capacity, one session per day,
    total days, exact duplicate.
    """
    session = snapshot.session
    if session is None or session.id != session_id:
        return BookingDecision.deny(DenialReasonEnum.SESSION_NOT_FOUND)
    if not session.is_enabled:
        return BookingDecision.deny(DenialReasonEnum.SESSION_DISABLED)

    if session.booking_count >= session.capacity:
        return BookingDecision.deny(DenialReasonEnum.SESSION_FULL)

    held = [booking for booking in snapshot.student_bookings if booking.student_id == student_id]

    if any(booking.day == session.day for booking in held):
        return BookingDecision.deny(DenialReasonEnum.DAY_ALREADY_BOOKED)

    if len(held) >= max_days_per_student:
        return BookingDecision.deny(DenialReasonEnum.MAX_DAYS_REACHED)

    if any(booking.session_id == session_id for booking in held):
        return BookingDecision.deny(DenialReasonEnum.DUPLICATE_BOOKING)

    return BookingDecision.allow()


def validate_cancellation(
    student_id: str,
    booking_id: UUID,
    snapshot: CancellationSnapshot,
) -> BookingDecision:
    """A student may cancel only a booking that exists and is their own."""
    booking = snapshot.booking
    if booking is None or booking.id != booking_id or booking.student_id != student_id:
        return BookingDecision.deny(DenialReasonEnum.NOT_FOUND_OR_UNAUTHORIZED)
    return BookingDecision.allow()
