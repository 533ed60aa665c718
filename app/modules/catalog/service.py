"""Session catalog business logic layer."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import Depends
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import UnitOfWork, get_db_session
from app.core.enums import time_slots_for_day
from app.modules.booking.repository import BookingRepository
from app.modules.catalog.models import ClassSession
from app.modules.catalog.repository import CatalogRepository
from app.modules.catalog.schemas import SessionRead, SessionUpdate
from app.shared.exceptions import BusinessRuleException, SessionNotFoundException, TransientStorageException

settings = get_settings()
logger = logging.getLogger(__name__)


def build_session_read(class_session: ClassSession, enrolled_count: int) -> SessionRead:
    return SessionRead(
        id=class_session.id,
        day=class_session.day,
        time_slot=class_session.time_slot,
        capacity=class_session.capacity,
        enrolled_count=enrolled_count,
        is_enabled=class_session.is_enabled,
    )


class CatalogService:
    """Weekly session grid: seeding and instructor mutations."""

    def __init__(
        self,
        repository: CatalogRepository,
        booking_repository: BookingRepository,
        unit_of_work: UnitOfWork,
    ) -> None:
        self.repository = repository
        self.booking_repository = booking_repository
        self.unit_of_work = unit_of_work

    async def ensure_catalog(self) -> int:
        """Create any grid cell missing from the catalog; returns how many were added."""
        created = 0
        async with self.unit_of_work.transaction():
            existing = await self.repository.existing_grid_cells()
            for day in settings.seeded_days:
                for time_slot in time_slots_for_day(day):
                    if (day, time_slot) in existing:
                        continue
                    await self.repository.create_session(
                        day=day,
                        time_slot=time_slot,
                        capacity=settings.session_capacity_default,
                    )
                    created += 1
        if created:
            logger.info("Seeded %s catalog sessions", created)
        return created

    async def list_sessions(self) -> list[ClassSession]:
        """Return all sessions in grid order."""
        return await self.repository.list_sessions()

    async def update_session(self, session_id: UUID, payload: SessionUpdate) -> SessionRead:
        """Apply instructor changes under the session row lock."""
        try:
            async with self.unit_of_work.transaction():
                await self.booking_repository.apply_lock_timeout(settings.booking_lock_timeout_ms)
                class_session = await self.repository.get_session_for_update(session_id)
                if class_session is None:
                    raise SessionNotFoundException("Session not found")

                enrolled_count = await self.booking_repository.count_for_session(session_id)

                if payload.capacity is not None:
                    if payload.capacity > settings.session_capacity_max:
                        raise BusinessRuleException(
                            f"Capacity cannot exceed {settings.session_capacity_max}",
                        )
                    if payload.capacity < enrolled_count:
                        raise BusinessRuleException(
                            f"Capacity cannot be lower than current enrollment ({enrolled_count})",
                        )
                    class_session.capacity = payload.capacity

                if payload.is_enabled is not None:
                    class_session.is_enabled = payload.is_enabled

                await self.repository.save(class_session)
        except DBAPIError as exc:
            logger.warning("Storage error while updating session %s: %s", session_id, exc)
            raise TransientStorageException(
                "Session could not be updated right now. Please try again.",
            ) from exc

        logger.info(
            "Session %s updated: enabled=%s capacity=%s",
            class_session.id,
            class_session.is_enabled,
            class_session.capacity,
        )
        return build_session_read(class_session, enrolled_count)

    async def set_session_enabled(self, session_id: UUID, enabled: bool) -> SessionRead:
        """Enable or disable a session; existing bookings are kept."""
        return await self.update_session(session_id, SessionUpdate(is_enabled=enabled))

    async def set_session_capacity(self, session_id: UUID, capacity: int) -> SessionRead:
        return await self.update_session(session_id, SessionUpdate(capacity=capacity))


async def get_catalog_service(session: AsyncSession = Depends(get_db_session)) -> CatalogService:
    """Dependency provider for catalog service."""
    return CatalogService(
        repository=CatalogRepository(session),
        booking_repository=BookingRepository(session),
        unit_of_work=UnitOfWork(session),
    )
