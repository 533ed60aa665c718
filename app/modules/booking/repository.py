"""Booking ledger repository layer."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.enums import DayOfWeekEnum
from app.modules.booking.models import Booking


class BookingRepository:
    """Authoritative store of bookings."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def apply_lock_timeout(self, timeout_ms: int) -> None:
        """Bound row-lock waits for the rest of the current transaction."""
        bind = self.session.get_bind()
        if bind.dialect.name != "postgresql" or timeout_ms <= 0:
            return
        await self.session.execute(
            select(func.set_config("lock_timeout", f"{timeout_ms}ms", True)),
        )

    async def count_for_session(self, session_id: UUID) -> int:
        stmt = select(func.count()).select_from(Booking).where(Booking.session_id == session_id)
        return int((await self.session.scalar(stmt)) or 0)

    async def counts_by_session(self) -> dict[UUID, int]:
        stmt = select(Booking.session_id, func.count()).group_by(Booking.session_id)
        rows = await self.session.execute(stmt)
        return {session_id: int(count) for session_id, count in rows.all()}

    async def list_for_student(self, student_id: str) -> list[Booking]:
        stmt = (
            select(Booking)
            .options(selectinload(Booking.session))
            .where(Booking.student_id == student_id)
            .order_by(Booking.created_at.asc())
        )
        return list((await self.session.scalars(stmt)).all())

    async def get_for_student(
        self,
        booking_id: UUID,
        student_id: str,
        *,
        for_update: bool = False,
    ) -> Booking | None:
        """Look up a booking only if it belongs to ``student_id``."""
        stmt = (
            select(Booking)
            .options(selectinload(Booking.session))
            .where(Booking.id == booking_id, Booking.student_id == student_id)
        )
        if for_update:
            stmt = stmt.with_for_update(of=Booking)
        return await self.session.scalar(stmt)

    async def create_booking(
        self,
        student_id: str,
        session_id: UUID,
        day: DayOfWeekEnum,
    ) -> Booking:
        booking = Booking(student_id=student_id, session_id=session_id, day=day)
        self.session.add(booking)
        await self.session.flush()
        await self.session.refresh(booking, attribute_names=["session"])
        return booking

    async def delete_booking(self, booking: Booking) -> None:
        await self.session.delete(booking)
        await self.session.flush()

    async def delete_all(self) -> int:
        result = await self.session.execute(delete(Booking))
        return int(result.rowcount or 0)
