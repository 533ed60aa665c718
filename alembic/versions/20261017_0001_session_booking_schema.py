"""Session booking schema

Revision ID: 20261017_0001
Revises:
Create Date: 2026-10-17 09:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "20261017_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


day_of_week_enum = sa.Enum(
    "MONDAY",
    "TUESDAY",
    "WEDNESDAY",
    "THURSDAY",
    "FRIDAY",
    "SATURDAY",
    "SUNDAY",
    name="day_of_week_enum",
    native_enum=False,
)
time_slot_enum = sa.Enum(
    "SLOT_8_10",
    "SLOT_10_12",
    "SLOT_13_15",
    "SLOT_15_17",
    "SLOT_9_11",
    "SLOT_11_13",
    "SLOT_14_16",
    "SLOT_16_18",
    name="time_slot_enum",
    native_enum=False,
)


def _id_col() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False)


def _created_col() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)


def _updated_col() -> sa.Column:
    return sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False)


def upgrade() -> None:
    op.create_table(
        "students",
        sa.Column("id", sa.String(length=32), primary_key=True, nullable=False),
        _created_col(),
        _updated_col(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("phone_number", sa.String(length=32), nullable=True),
    )
    op.create_index("ix_students_email", "students", ["email"], unique=True)

    op.create_table(
        "sessions",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("day", day_of_week_enum, nullable=False),
        sa.Column("time_slot", time_slot_enum, nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("is_enabled", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.UniqueConstraint("day", "time_slot", name="uq_sessions_day_time_slot"),
        sa.CheckConstraint("capacity > 0", name="ck_sessions_capacity_positive"),
    )
    op.create_index("ix_sessions_day", "sessions", ["day"], unique=False)

    op.create_table(
        "bookings",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("student_id", sa.String(length=32), nullable=False),
        sa.Column("session_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("day", day_of_week_enum, nullable=False),
        sa.ForeignKeyConstraint(
            ["student_id"],
            ["students.id"],
            name="fk_bookings_student_id_students",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["session_id"],
            ["sessions.id"],
            name="fk_bookings_session_id_sessions",
            ondelete="RESTRICT",
        ),
        sa.UniqueConstraint("student_id", "session_id", name="uq_bookings_student_id_session_id"),
        sa.UniqueConstraint("student_id", "day", name="uq_bookings_student_id_day"),
    )
    op.create_index("ix_bookings_student_id", "bookings", ["student_id"], unique=False)
    op.create_index("ix_bookings_session_id", "bookings", ["session_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_bookings_session_id", table_name="bookings")
    op.drop_index("ix_bookings_student_id", table_name="bookings")
    op.drop_table("bookings")

    op.drop_index("ix_sessions_day", table_name="sessions")
    op.drop_table("sessions")

    op.drop_index("ix_students_email", table_name="students")
    op.drop_table("students")
