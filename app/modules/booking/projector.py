"""Availability view derived from catalog and ledger state."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Protocol
from uuid import UUID

from app.core.enums import DayOfWeekEnum, TimeSlotEnum
from app.modules.booking.schemas import (
    AvailabilityRead,
    DayAvailabilityRead,
    SessionAvailabilityRead,
)
from app.shared.utils import grid_sort_key, utc_now


class CatalogEntry(Protocol):
    id: UUID
    day: DayOfWeekEnum
    time_slot: TimeSlotEnum
    capacity: int
    is_enabled: bool


class LedgerEntry(Protocol):
    session_id: UUID
    day: DayOfWeekEnum


def project_availability(
    sessions: Iterable[CatalogEntry],
    booking_counts: Mapping[UUID, int],
    student_bookings: Iterable[LedgerEntry],
    *,
    max_days_per_student: int,
    generated_at: datetime | None = None,
) -> AvailabilityRead:
    """Build the availability grid.

    Bookings on a disabled session still occupy spots; the session itself is
    reported unavailable.
    """
    ordered = sorted(sessions, key=lambda item: grid_sort_key(item.day, item.time_slot))
    held = list(student_bookings)
    booked_session_ids = {booking.session_id for booking in held}
    booked_days = {booking.day for booking in held}

    session_views: list[SessionAvailabilityRead] = []
    for item in ordered:
        available_spots = max(item.capacity - booking_counts.get(item.id, 0), 0)
        session_views.append(
            SessionAvailabilityRead(
                id=item.id,
                day=item.day,
                time_slot=item.time_slot,
                capacity=item.capacity,
                available_spots=available_spots,
                is_available=available_spots > 0 and item.is_enabled,
                is_booked=item.id in booked_session_ids,
                is_enabled=item.is_enabled,
            ),
        )

    days = list(dict.fromkeys(item.day for item in ordered))
    return AvailabilityRead(
        sessions=session_views,
        days=[DayAvailabilityRead(day=day, is_day_booked=day in booked_days) for day in days],
        booked_days=len(held),
        max_days_per_student=max_days_per_student,
        remaining_days=max(max_days_per_student - len(held), 0),
        generated_at=generated_at or utc_now(),
    )
