"""Shared utility functions."""

from __future__ import annotations

from datetime import datetime, timezone

from app.core.enums import DAY_ORDER, TIME_SLOT_ORDER, DayOfWeekEnum, TimeSlotEnum


def utc_now() -> datetime:
    """Return aware UTC datetime."""
    return datetime.now(timezone.utc)


def grid_sort_key(day: DayOfWeekEnum, time_slot: TimeSlotEnum) -> tuple[int, int]:
    """Order sessions the way the weekly grid shows them."""
    return DAY_ORDER[day], TIME_SLOT_ORDER[time_slot]


def percentage(part: int, whole: int) -> int:
    """Rounded integer percentage, 0 when ``whole`` is empty."""
    if whole <= 0:
        return 0
    return round(part * 100 / whole)
