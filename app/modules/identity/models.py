"""Identity ORM models."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base, TimestampMixin

if TYPE_CHECKING:
    from app.modules.booking.models import Booking


class Student(TimestampMixin, Base):
    """Student keyed by the externally issued ID (``DR-1234-25``)."""

    __tablename__ = "students"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    phone_number: Mapped[str | None] = mapped_column(String(32), nullable=True)

    bookings: Mapped[list["Booking"]] = relationship(
        back_populates="student",
        order_by="Booking.created_at",
    )
