"""Booking ORM models."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Enum as SAEnum, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base, BaseModelMixin
from app.core.enums import DayOfWeekEnum

if TYPE_CHECKING:
    from app.modules.catalog.models import ClassSession
    from app.modules.identity.models import Student


class Booking(BaseModelMixin, Base):
    """Reservation of one catalog session by one student.

    ``day`` mirrors the session's day so the one-session-per-day rule is also
    backed by a unique constraint.
    """

    __tablename__ = "bookings"
    __table_args__ = (
        UniqueConstraint("student_id", "session_id", name="uq_bookings_student_id_session_id"),
        UniqueConstraint("student_id", "day", name="uq_bookings_student_id_day"),
    )

    student_id: Mapped[str] = mapped_column(
        String(32),
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    session_id: Mapped[UUID] = mapped_column(
        ForeignKey("sessions.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    day: Mapped[DayOfWeekEnum] = mapped_column(
        SAEnum(DayOfWeekEnum, name="day_of_week_enum", native_enum=False),
        nullable=False,
    )

    student: Mapped["Student"] = relationship(back_populates="bookings")
    session: Mapped["ClassSession"] = relationship(back_populates="bookings")
