"""Session catalog repository layer."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.enums import DayOfWeekEnum, TimeSlotEnum
from app.modules.booking.models import Booking
from app.modules.catalog.models import ClassSession
from app.shared.utils import grid_sort_key


class CatalogRepository:
    """DB access for the session catalog."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_session(
        self,
        day: DayOfWeekEnum,
        time_slot: TimeSlotEnum,
        capacity: int,
    ) -> ClassSession:
        class_session = ClassSession(day=day, time_slot=time_slot, capacity=capacity, is_enabled=True)
        self.session.add(class_session)
        await self.session.flush()
        return class_session

    async def get_session_by_id(self, session_id: UUID) -> ClassSession | None:
        return await self.session.get(ClassSession, session_id)

    async def get_session_for_update(self, session_id: UUID) -> ClassSession | None:
        """Read the session row and hold its lock until the transaction ends."""
        stmt = (
            select(ClassSession)
            .where(ClassSession.id == session_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return await self.session.scalar(stmt)

    async def get_session_with_students(self, session_id: UUID) -> ClassSession | None:
        stmt = (
            select(ClassSession)
            .options(selectinload(ClassSession.bookings).selectinload(Booking.student))
            .where(ClassSession.id == session_id)
        )
        return await self.session.scalar(stmt)

    async def list_sessions(self) -> list[ClassSession]:
        items = (await self.session.scalars(select(ClassSession))).all()
        return sorted(items, key=lambda item: grid_sort_key(item.day, item.time_slot))

    async def list_sessions_with_students(self) -> list[ClassSession]:
        stmt = select(ClassSession).options(
            selectinload(ClassSession.bookings).selectinload(Booking.student),
        )
        items = (await self.session.scalars(stmt)).all()
        return sorted(items, key=lambda item: grid_sort_key(item.day, item.time_slot))

    async def existing_grid_cells(self) -> set[tuple[DayOfWeekEnum, TimeSlotEnum]]:
        rows = await self.session.execute(select(ClassSession.day, ClassSession.time_slot))
        return {(day, time_slot) for day, time_slot in rows.all()}

    async def save(self, class_session: ClassSession) -> ClassSession:
        await self.session.flush()
        return class_session
