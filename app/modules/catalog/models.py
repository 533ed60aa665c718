"""Session catalog ORM models."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import Boolean, CheckConstraint, Enum as SAEnum, Integer, UniqueConstraint, true
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base, BaseModelMixin
from app.core.enums import DayOfWeekEnum, TimeSlotEnum

if TYPE_CHECKING:
    from app.modules.booking.models import Booking


class ClassSession(BaseModelMixin, Base):
    """One bookable (day, time slot) cell of the weekly grid."""

    __tablename__ = "sessions"
    __table_args__ = (
        UniqueConstraint("day", "time_slot", name="uq_sessions_day_time_slot"),
        CheckConstraint("capacity > 0", name="capacity_positive"),
    )

    day: Mapped[DayOfWeekEnum] = mapped_column(
        SAEnum(DayOfWeekEnum, name="day_of_week_enum", native_enum=False),
        nullable=False,
        index=True,
    )
    time_slot: Mapped[TimeSlotEnum] = mapped_column(
        SAEnum(TimeSlotEnum, name="time_slot_enum", native_enum=False),
        nullable=False,
    )
    capacity: Mapped[int] = mapped_column(Integer, default=4, nullable=False)
    is_enabled: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        server_default=true(),
        nullable=False,
    )

    bookings: Mapped[list["Booking"]] = relationship(
        back_populates="session",
        order_by="Booking.created_at",
    )
