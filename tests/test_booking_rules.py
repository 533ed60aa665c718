from __future__ import annotations

import asyncio
from collections import defaultdict
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from uuid import UUID, uuid4

import pytest
from sqlalchemy.exc import DBAPIError, IntegrityError

import app.modules.booking.service as booking_service_module
from app.core.enums import DayOfWeekEnum, DenialReasonEnum, TimeSlotEnum
from app.modules.booking.service import BookingService
from app.shared.exceptions import (
    AuthenticationRequiredException,
    BookingDeniedException,
    ConcurrencyConflictException,
    TransientStorageException,
)

BASE_TIME = datetime(2026, 10, 12, 9, 0, tzinfo=UTC)


@dataclass
class FakeStudent:
    id: str


@dataclass
class FakeClassSession:
    id: UUID
    day: DayOfWeekEnum
    time_slot: TimeSlotEnum
    capacity: int = 4
    is_enabled: bool = True


@dataclass
class FakeBooking:
    id: UUID
    student_id: str
    session_id: UUID
    day: DayOfWeekEnum
    session: FakeClassSession
    created_at: datetime


@dataclass
class FakeDatabase:
    """Shared store; row locks are per-key asyncio locks held until the unit of work ends."""

    students: dict[str, FakeStudent] = field(default_factory=dict)
    sessions: dict[UUID, FakeClassSession] = field(default_factory=dict)
    bookings: dict[UUID, FakeBooking] = field(default_factory=dict)
    locks: defaultdict[tuple[str, object], asyncio.Lock] = field(
        default_factory=lambda: defaultdict(asyncio.Lock),
    )
    insert_error: Exception | None = None
    delete_all_error: Exception | None = None
    clock: int = 0

    def ledger(self) -> set[tuple[str, UUID]]:
        return {(booking.student_id, booking.session_id) for booking in self.bookings.values()}


class FakeConnection:
    def __init__(self, db: FakeDatabase) -> None:
        self.db = db
        self.held_locks: list[asyncio.Lock] = []
        self.inserted: list[UUID] = []
        self.deleted: list[FakeBooking] = []
        self.lock_timeout_ms: int | None = None

    async def lock(self, key: tuple[str, object]) -> None:
        row_lock = self.db.locks[key]
        if row_lock in self.held_locks:
            return
        await row_lock.acquire()
        self.held_locks.append(row_lock)

    def release(self) -> None:
        for row_lock in reversed(self.held_locks):
            row_lock.release()
        self.held_locks.clear()


class FakeUnitOfWork:
    def __init__(self, connection: FakeConnection) -> None:
        self.connection = connection
        self.commits = 0
        self.rollbacks = 0

    @asynccontextmanager
    async def transaction(self):
        try:
            yield self.connection
            self.commits += 1
        except BaseException:
            for booking_id in self.connection.inserted:
                self.connection.db.bookings.pop(booking_id, None)
            for booking in self.connection.deleted:
                self.connection.db.bookings[booking.id] = booking
            self.rollbacks += 1
            raise
        finally:
            self.connection.inserted.clear()
            self.connection.deleted.clear()
            self.connection.release()


class FakeBookingRepository:
    def __init__(self, connection: FakeConnection) -> None:
        self.connection = connection
        self.db = connection.db

    async def apply_lock_timeout(self, timeout_ms: int) -> None:
        self.connection.lock_timeout_ms = timeout_ms

    async def count_for_session(self, session_id: UUID) -> int:
        await asyncio.sleep(0)
        return sum(1 for booking in self.db.bookings.values() if booking.session_id == session_id)

    async def counts_by_session(self) -> dict[UUID, int]:
        counts: dict[UUID, int] = defaultdict(int)
        for booking in self.db.bookings.values():
            counts[booking.session_id] += 1
        return dict(counts)

    async def list_for_student(self, student_id: str) -> list[FakeBooking]:
        items = [booking for booking in self.db.bookings.values() if booking.student_id == student_id]
        return sorted(items, key=lambda booking: booking.created_at)

    async def get_for_student(
        self,
        booking_id: UUID,
        student_id: str,
        *,
        for_update: bool = False,
    ) -> FakeBooking | None:
        if for_update:
            await self.connection.lock(("booking", booking_id))
        booking = self.db.bookings.get(booking_id)
        if booking is None or booking.student_id != student_id:
            return None
        return booking

    async def create_booking(self, student_id: str, session_id: UUID, day: DayOfWeekEnum) -> FakeBooking:
        await asyncio.sleep(0)
        if self.db.insert_error is not None:
            raise self.db.insert_error
        for existing in self.db.bookings.values():
            if existing.student_id == student_id and (
                existing.session_id == session_id or existing.day == day
            ):
                raise IntegrityError("INSERT INTO bookings", {}, Exception("unique violation"))

        self.db.clock += 1
        booking = FakeBooking(
            id=uuid4(),
            student_id=student_id,
            session_id=session_id,
            day=day,
            session=self.db.sessions[session_id],
            created_at=BASE_TIME + timedelta(seconds=self.db.clock),
        )
        self.db.bookings[booking.id] = booking
        self.connection.inserted.append(booking.id)
        return booking

    async def delete_booking(self, booking: FakeBooking) -> None:
        self.db.bookings.pop(booking.id)
        self.connection.deleted.append(booking)

    async def delete_all(self) -> int:
        if self.db.delete_all_error is not None:
            raise self.db.delete_all_error
        removed = list(self.db.bookings.values())
        self.db.bookings.clear()
        self.connection.deleted.extend(removed)
        return len(removed)


class FakeCatalogRepository:
    def __init__(self, connection: FakeConnection) -> None:
        self.connection = connection
        self.db = connection.db

    async def get_session_for_update(self, session_id: UUID) -> FakeClassSession | None:
        await self.connection.lock(("session", session_id))
        return self.db.sessions.get(session_id)

    async def list_sessions(self) -> list[FakeClassSession]:
        return list(self.db.sessions.values())


class FakeIdentityRepository:
    def __init__(self, connection: FakeConnection) -> None:
        self.connection = connection
        self.db = connection.db

    async def get_student_for_update(self, student_id: str) -> FakeStudent | None:
        await self.connection.lock(("student", student_id))
        return self.db.students.get(student_id)


def make_service(db: FakeDatabase) -> tuple[BookingService, FakeUnitOfWork]:
    """One service per simulated request, each with its own connection."""
    connection = FakeConnection(db)
    unit_of_work = FakeUnitOfWork(connection)
    service = BookingService(
        booking_repository=FakeBookingRepository(connection),
        catalog_repository=FakeCatalogRepository(connection),
        identity_repository=FakeIdentityRepository(connection),
        unit_of_work=unit_of_work,
    )
    return service, unit_of_work


def add_session(
    db: FakeDatabase,
    day: DayOfWeekEnum = DayOfWeekEnum.MONDAY,
    time_slot: TimeSlotEnum = TimeSlotEnum.SLOT_8_10,
    *,
    capacity: int = 4,
    is_enabled: bool = True,
) -> FakeClassSession:
    class_session = FakeClassSession(
        id=uuid4(),
        day=day,
        time_slot=time_slot,
        capacity=capacity,
        is_enabled=is_enabled,
    )
    db.sessions[class_session.id] = class_session
    return class_session


def add_students(db: FakeDatabase, count: int) -> list[str]:
    student_ids = [f"DR-{index:04d}-25" for index in range(1, count + 1)]
    for student_id in student_ids:
        db.students[student_id] = FakeStudent(id=student_id)
    return student_ids


def spots_for(availability, session_id: UUID):
    return next(item for item in availability.sessions if item.id == session_id)


@pytest.fixture(autouse=True)
def _booking_limits(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(booking_service_module.settings, "max_days_per_student", 2)
    monkeypatch.setattr(booking_service_module.settings, "booking_lock_timeout_ms", 5000)


@pytest.mark.asyncio
async def test_session_fills_up_and_fifth_student_is_denied() -> None:
    db = FakeDatabase()
    monday = add_session(db, DayOfWeekEnum.MONDAY, TimeSlotEnum.SLOT_8_10, capacity=4)
    students = add_students(db, 5)

    service, unit_of_work = make_service(db)
    booking = await service.create_booking(students[0], monday.id)

    assert booking.session_id == monday.id
    assert booking.session.time_slot == TimeSlotEnum.SLOT_8_10
    assert unit_of_work.commits == 1
    availability = await service.get_availability(students[0])
    assert spots_for(availability, monday.id).available_spots == 3
    assert spots_for(availability, monday.id).is_booked is True

    for student_id in students[1:4]:
        await make_service(db)[0].create_booking(student_id, monday.id)

    availability = await service.get_availability(None)
    view = spots_for(availability, monday.id)
    assert view.available_spots == 0
    assert view.is_available is False

    with pytest.raises(BookingDeniedException) as exc:
        await make_service(db)[0].create_booking(students[4], monday.id)
    assert exc.value.reason == DenialReasonEnum.SESSION_FULL
    assert exc.value.status_code == 409
    assert len(db.bookings) == 4


@pytest.mark.asyncio
async def test_second_session_on_same_day_is_denied_despite_free_capacity() -> None:
    db = FakeDatabase()
    early = add_session(db, DayOfWeekEnum.MONDAY, TimeSlotEnum.SLOT_8_10)
    late = add_session(db, DayOfWeekEnum.MONDAY, TimeSlotEnum.SLOT_10_12)
    (student_id,) = add_students(db, 1)

    await make_service(db)[0].create_booking(student_id, early.id)

    with pytest.raises(BookingDeniedException) as exc:
        await make_service(db)[0].create_booking(student_id, late.id)
    assert exc.value.code == "day_already_booked"
    assert exc.value.status_code == 422


@pytest.mark.asyncio
async def test_max_days_reached_on_distinct_day() -> None:
    db = FakeDatabase()
    monday = add_session(db, DayOfWeekEnum.MONDAY)
    tuesday = add_session(db, DayOfWeekEnum.TUESDAY)
    saturday = add_session(db, DayOfWeekEnum.SATURDAY, TimeSlotEnum.SLOT_9_11)
    (student_id,) = add_students(db, 1)

    await make_service(db)[0].create_booking(student_id, monday.id)
    await make_service(db)[0].create_booking(student_id, tuesday.id)

    with pytest.raises(BookingDeniedException) as exc:
        await make_service(db)[0].create_booking(student_id, saturday.id)
    assert exc.value.reason == DenialReasonEnum.MAX_DAYS_REACHED
    assert "2 days" in exc.value.message

    availability = await make_service(db)[0].get_availability(student_id)
    assert availability.booked_days == 2
    assert availability.remaining_days == 0


@pytest.mark.asyncio
async def test_denials_leave_ledger_unchanged_and_roll_back() -> None:
    db = FakeDatabase()
    disabled = add_session(db, DayOfWeekEnum.MONDAY, is_enabled=False)
    full = add_session(db, DayOfWeekEnum.TUESDAY, capacity=1)
    first, second = add_students(db, 2)
    await make_service(db)[0].create_booking(first, full.id)
    before = db.ledger()

    for session_id, reason in (
        (uuid4(), DenialReasonEnum.SESSION_NOT_FOUND),
        (disabled.id, DenialReasonEnum.SESSION_DISABLED),
        (full.id, DenialReasonEnum.SESSION_FULL),
    ):
        service, unit_of_work = make_service(db)
        with pytest.raises(BookingDeniedException) as exc:
            await service.create_booking(second, session_id)
        assert exc.value.reason == reason
        assert unit_of_work.commits == 0
        assert unit_of_work.rollbacks == 1
        assert db.ledger() == before

    assert all(not row_lock.locked() for row_lock in db.locks.values())


@pytest.mark.asyncio
async def test_unknown_student_cannot_book() -> None:
    db = FakeDatabase()
    monday = add_session(db)

    with pytest.raises(AuthenticationRequiredException):
        await make_service(db)[0].create_booking("DR-9999-25", monday.id)
    assert db.bookings == {}


@pytest.mark.asyncio
async def test_student_cannot_cancel_another_students_booking() -> None:
    db = FakeDatabase()
    monday = add_session(db)
    owner, intruder = add_students(db, 2)
    booking = await make_service(db)[0].create_booking(owner, monday.id)
    before = db.ledger()

    with pytest.raises(BookingDeniedException) as exc:
        await make_service(db)[0].cancel_booking(intruder, booking.id)
    assert exc.value.reason == DenialReasonEnum.NOT_FOUND_OR_UNAUTHORIZED
    assert exc.value.status_code == 404
    assert db.ledger() == before

    with pytest.raises(BookingDeniedException) as missing:
        await make_service(db)[0].cancel_booking(owner, uuid4())
    assert missing.value.reason == DenialReasonEnum.NOT_FOUND_OR_UNAUTHORIZED


@pytest.mark.asyncio
async def test_book_then_cancel_restores_previous_state() -> None:
    db = FakeDatabase()
    monday = add_session(db, capacity=4)
    (student_id,) = add_students(db, 1)
    service = make_service(db)[0]
    before = await service.get_availability(student_id)

    booking = await make_service(db)[0].create_booking(student_id, monday.id)
    deleted = await make_service(db)[0].cancel_booking(student_id, booking.id)

    assert deleted.id == booking.id
    assert deleted.session.day == DayOfWeekEnum.MONDAY
    assert deleted.session.time_slot == TimeSlotEnum.SLOT_8_10
    after = await service.get_availability(student_id)
    assert db.bookings == {}
    assert spots_for(after, monday.id).available_spots == spots_for(before, monday.id).available_spots
    assert after.booked_days == before.booked_days == 0


@pytest.mark.asyncio
@pytest.mark.parametrize(("requests", "capacity"), [(10, 3), (6, 1), (4, 4)])
async def test_concurrent_bookings_never_exceed_capacity(requests: int, capacity: int) -> None:
    db = FakeDatabase()
    target = add_session(db, capacity=capacity)
    students = add_students(db, requests)

    results = await asyncio.gather(
        *(make_service(db)[0].create_booking(student_id, target.id) for student_id in students),
        return_exceptions=True,
    )

    succeeded = [result for result in results if not isinstance(result, Exception)]
    failed = [result for result in results if isinstance(result, Exception)]
    assert len(succeeded) == capacity
    assert len(failed) == requests - capacity
    assert all(
        isinstance(error, ConcurrencyConflictException)
        or (isinstance(error, BookingDeniedException) and error.reason == DenialReasonEnum.SESSION_FULL)
        for error in failed
    )
    assert sum(1 for booking in db.bookings.values() if booking.session_id == target.id) == capacity


@pytest.mark.asyncio
async def test_concurrent_requests_from_one_student_book_at_most_one_session_per_day() -> None:
    db = FakeDatabase()
    sessions = [
        add_session(db, DayOfWeekEnum.MONDAY, time_slot)
        for time_slot in (TimeSlotEnum.SLOT_8_10, TimeSlotEnum.SLOT_10_12, TimeSlotEnum.SLOT_13_15)
    ]
    (student_id,) = add_students(db, 1)

    results = await asyncio.gather(
        *(make_service(db)[0].create_booking(student_id, item.id) for item in sessions),
        return_exceptions=True,
    )

    assert sum(1 for result in results if not isinstance(result, Exception)) == 1
    assert len(db.bookings) == 1


@pytest.mark.asyncio
async def test_lost_race_at_insert_surfaces_as_concurrency_conflict() -> None:
    db = FakeDatabase()
    monday = add_session(db)
    (student_id,) = add_students(db, 1)
    db.insert_error = IntegrityError("INSERT INTO bookings", {}, Exception("unique violation"))

    service, unit_of_work = make_service(db)
    with pytest.raises(ConcurrencyConflictException) as exc:
        await service.create_booking(student_id, monday.id)

    assert exc.value.status_code == 409
    assert exc.value.code == "concurrency_conflict"
    assert unit_of_work.rollbacks == 1
    assert db.bookings == {}


@pytest.mark.asyncio
async def test_storage_failure_surfaces_as_transient_error() -> None:
    db = FakeDatabase()
    monday = add_session(db)
    (student_id,) = add_students(db, 1)
    db.insert_error = DBAPIError("INSERT INTO bookings", {}, Exception("lock timeout"))

    service, unit_of_work = make_service(db)
    with pytest.raises(TransientStorageException) as exc:
        await service.create_booking(student_id, monday.id)

    assert exc.value.status_code == 503
    assert unit_of_work.connection.lock_timeout_ms == 5000
    assert db.bookings == {}


@pytest.mark.asyncio
async def test_bookings_on_disabled_session_still_count_against_spots() -> None:
    db = FakeDatabase()
    monday = add_session(db, capacity=4)
    first, second = add_students(db, 2)
    await make_service(db)[0].create_booking(first, monday.id)
    monday.is_enabled = False

    availability = await make_service(db)[0].get_availability(first)
    view = spots_for(availability, monday.id)
    assert view.available_spots == 3
    assert view.is_available is False
    assert view.is_booked is True

    with pytest.raises(BookingDeniedException) as exc:
        await make_service(db)[0].create_booking(second, monday.id)
    assert exc.value.reason == DenialReasonEnum.SESSION_DISABLED


@pytest.mark.asyncio
async def test_reset_deletes_every_booking() -> None:
    db = FakeDatabase()
    monday = add_session(db)
    tuesday = add_session(db, DayOfWeekEnum.TUESDAY)
    students = add_students(db, 3)
    for student_id in students:
        await make_service(db)[0].create_booking(student_id, monday.id)
    await make_service(db)[0].create_booking(students[0], tuesday.id)

    deleted = await make_service(db)[0].reset_all_bookings()

    assert deleted == 4
    assert db.bookings == {}


@pytest.mark.asyncio
async def test_reset_lock_timeout_surfaces_as_transient_error() -> None:
    db = FakeDatabase()
    monday = add_session(db)
    (student_id,) = add_students(db, 1)
    await make_service(db)[0].create_booking(student_id, monday.id)
    db.delete_all_error = DBAPIError("DELETE FROM bookings", {}, Exception("lock timeout"))

    service, unit_of_work = make_service(db)
    with pytest.raises(TransientStorageException) as exc:
        await service.reset_all_bookings()

    assert exc.value.code == "transient_storage_error"
    assert unit_of_work.connection.lock_timeout_ms == 5000
    assert unit_of_work.rollbacks == 1
    assert len(db.bookings) == 1
