"""Session catalog schemas."""

from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from app.core.enums import DayOfWeekEnum, TimeSlotEnum


class SessionUpdate(BaseModel):
    """Instructor update of a session's enabled flag and/or capacity."""

    is_enabled: bool | None = None
    capacity: int | None = Field(default=None, ge=1)

    @model_validator(mode="after")
    def require_change(self) -> "SessionUpdate":
        if self.is_enabled is None and self.capacity is None:
            raise ValueError("Provide is_enabled and/or capacity")
        return self


class SessionRead(BaseModel):
    """Catalog view of a session with its current enrollment."""

    id: UUID
    day: DayOfWeekEnum
    time_slot: TimeSlotEnum
    capacity: int
    enrolled_count: int
    is_enabled: bool
