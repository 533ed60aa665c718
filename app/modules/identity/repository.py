"""Identity repository layer."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.modules.booking.models import Booking
from app.modules.identity.models import Student


class IdentityRepository:
    """DB operations for student records."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_student_by_id(self, student_id: str) -> Student | None:
        return await self.session.get(Student, student_id)

    async def get_student_for_update(self, student_id: str) -> Student | None:
        """Lock the student row so the student's bookings change one request at a time."""
        stmt = select(Student).where(Student.id == student_id).with_for_update()
        return await self.session.scalar(stmt)

    async def get_student_by_email(self, email: str) -> Student | None:
        stmt = select(Student).where(func.lower(Student.email) == email.lower())
        return await self.session.scalar(stmt)

    async def create_student(
        self,
        student_id: str,
        name: str,
        email: str,
        phone_number: str | None = None,
    ) -> Student:
        student = Student(id=student_id, name=name, email=email, phone_number=phone_number)
        self.session.add(student)
        await self.session.flush()
        return student

    async def list_students(
        self,
        search: str | None,
        limit: int,
        offset: int,
        exclude_session_id: UUID | None = None,
    ) -> tuple[list[Student], int]:
        base_stmt: Select[tuple[Student]] = select(Student)
        if search:
            pattern = f"%{search.strip()}%"
            base_stmt = base_stmt.where(
                or_(
                    Student.id.ilike(pattern),
                    Student.name.ilike(pattern),
                    Student.email.ilike(pattern),
                    Student.phone_number.ilike(pattern),
                ),
            )
        if exclude_session_id is not None:
            # Candidates for a session: students not already enrolled in it.
            enrolled = select(Booking.id).where(
                Booking.student_id == Student.id,
                Booking.session_id == exclude_session_id,
            )
            base_stmt = base_stmt.where(~enrolled.exists())

        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = int((await self.session.scalar(count_stmt)) or 0)

        stmt = (
            base_stmt.options(selectinload(Student.bookings).selectinload(Booking.session))
            .order_by(Student.created_at.desc(), Student.id.asc())
            .limit(limit)
            .offset(offset)
        )
        items = list((await self.session.scalars(stmt)).all())
        return items, total
