"""Core enums used across modules."""

from enum import StrEnum


class DayOfWeekEnum(StrEnum):
    """Day of the weekly session grid."""

    MONDAY = "MONDAY"
    TUESDAY = "TUESDAY"
    WEDNESDAY = "WEDNESDAY"
    THURSDAY = "THURSDAY"
    FRIDAY = "FRIDAY"
    SATURDAY = "SATURDAY"
    SUNDAY = "SUNDAY"

    @property
    def is_weekend(self) -> bool:
        return self in (DayOfWeekEnum.SATURDAY, DayOfWeekEnum.SUNDAY)

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


class TimeSlotEnum(StrEnum):
    """Two-hour time slot of a session."""

    # Weekdays
    SLOT_8_10 = "SLOT_8_10"
    SLOT_10_12 = "SLOT_10_12"
    SLOT_13_15 = "SLOT_13_15"
    SLOT_15_17 = "SLOT_15_17"

    # Weekends
    SLOT_9_11 = "SLOT_9_11"
    SLOT_11_13 = "SLOT_11_13"
    SLOT_14_16 = "SLOT_14_16"
    SLOT_16_18 = "SLOT_16_18"

    @property
    def display_name(self) -> str:
        return TIME_SLOT_NAMES[self]


TIME_SLOT_NAMES: dict[TimeSlotEnum, str] = {
    TimeSlotEnum.SLOT_8_10: "8:00 AM - 10:00 AM",
    TimeSlotEnum.SLOT_10_12: "10:00 AM - 12:00 PM",
    TimeSlotEnum.SLOT_13_15: "1:00 PM - 3:00 PM",
    TimeSlotEnum.SLOT_15_17: "3:00 PM - 5:00 PM",
    TimeSlotEnum.SLOT_9_11: "9:00 AM - 11:00 AM",
    TimeSlotEnum.SLOT_11_13: "11:00 AM - 1:00 PM",
    TimeSlotEnum.SLOT_14_16: "2:00 PM - 4:00 PM",
    TimeSlotEnum.SLOT_16_18: "4:00 PM - 6:00 PM",
}

WEEKDAY_TIME_SLOTS: tuple[TimeSlotEnum, ...] = (
    TimeSlotEnum.SLOT_8_10,
    TimeSlotEnum.SLOT_10_12,
    TimeSlotEnum.SLOT_13_15,
    TimeSlotEnum.SLOT_15_17,
)

WEEKEND_TIME_SLOTS: tuple[TimeSlotEnum, ...] = (
    TimeSlotEnum.SLOT_9_11,
    TimeSlotEnum.SLOT_11_13,
    TimeSlotEnum.SLOT_14_16,
    TimeSlotEnum.SLOT_16_18,
)


def time_slots_for_day(day: DayOfWeekEnum) -> tuple[TimeSlotEnum, ...]:
    """Return the slots offered on the given day."""
    return WEEKEND_TIME_SLOTS if day.is_weekend else WEEKDAY_TIME_SLOTS


DAY_ORDER: dict[DayOfWeekEnum, int] = {day: index for index, day in enumerate(DayOfWeekEnum)}
TIME_SLOT_ORDER: dict[TimeSlotEnum, int] = {slot: index for index, slot in enumerate(TimeSlotEnum)}


class DenialReasonEnum(StrEnum):
    """Machine-readable reasons for a refused booking mutation."""

    SESSION_NOT_FOUND = "session_not_found"
    SESSION_DISABLED = "session_disabled"
    SESSION_FULL = "session_full"
    DAY_ALREADY_BOOKED = "day_already_booked"
    MAX_DAYS_REACHED = "max_days_reached"
    DUPLICATE_BOOKING = "duplicate_booking"
    NOT_FOUND_OR_UNAUTHORIZED = "not_found_or_unauthorized"
