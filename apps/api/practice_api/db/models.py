"""SQLAlchemy ORM models."""

from __future__ import annotations

import uuid
from datetime import datetime, time

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from practice_api.db.base import Base
from practice_api.db.enums import AppointmentStatus, Role

# JSONB on Postgres, plain JSON elsewhere (local sqlite runs)
JSONList = JSON().with_variant(JSONB(), "postgresql")


# =============================================================================
# Tenancy & Identity
# =============================================================================

class Practice(Base):
    """
    Tenant organization.

    Every other row belongs to exactly one practice.
    """

    __tablename__ = "practices"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    timezone: Mapped[str] = mapped_column(String(50), default="UTC", nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)


class User(Base):
    """Account identity. Role and practice live on the membership."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    token_version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)


class Membership(Base):
    """
    User's role inside a practice.

    One membership per user (a user belongs to a single practice).
    """

    __tablename__ = "memberships"
    __table_args__ = (
        UniqueConstraint("user_id", name="uq_membership_user"),
        Index("idx_memberships_practice_role", "practice_id", "role"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    practice_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("practices.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[str] = mapped_column(String(20), default=Role.STAFF.value, nullable=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)

    user: Mapped["User"] = relationship()
    practice: Mapped["Practice"] = relationship()


class RolePermission(Base):
    """
    Practice-level edit of a role's default permissions.

    is_granted=True adds the permission, False revokes it.
    """

    __tablename__ = "role_permissions"
    __table_args__ = (
        UniqueConstraint("practice_id", "role", "permission", name="uq_role_permission"),
        Index("idx_role_permissions_practice_role", "practice_id", "role"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    practice_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("practices.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    permission: Mapped[str] = mapped_column(String(100), nullable=False)
    is_granted: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    updated_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )


class Client(Base):
    """Client record referenced by appointments."""

    __tablename__ = "clients"
    __table_args__ = (Index("idx_clients_practice", "practice_id"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    practice_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("practices.id", ondelete="CASCADE"), nullable=False
    )
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    is_archived: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)


# =============================================================================
# Assignments
# =============================================================================

class PractitionerAssignment(Base):
    """
    Authorizes one assistant to act for one practitioner.

    Replaced wholesale per assistant by the bulk endpoint.
    """

    __tablename__ = "practitioner_assignments"
    __table_args__ = (
        UniqueConstraint("assistant_id", "practitioner_id", name="uq_assignment_pair"),
        Index("idx_assignments_assistant", "assistant_id"),
        Index("idx_assignments_practitioner", "practitioner_id"),
        Index("idx_assignments_practice", "practice_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    assistant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    practitioner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    practice_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("practices.id", ondelete="CASCADE"), nullable=False
    )
    created_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)

    practitioner: Mapped["User"] = relationship(foreign_keys=[practitioner_id])


# =============================================================================
# Availability
# =============================================================================

class AvailabilitySlot(Base):
    """
    Weekly availability for one appointment type (e.g., "Monday in-person 9am-5pm").

    Uses Sunday=0 .. Saturday=6 (see DayOfWeek).
    One row per (practitioner, day, appointment type); writes upsert on that key.
    """

    __tablename__ = "practitioner_availability"
    __table_args__ = (
        UniqueConstraint(
            "practitioner_id", "day_of_week", "appointment_type",
            name="uq_availability_practitioner_day_type",
        ),
        Index("idx_availability_practitioner", "practitioner_id", "is_active"),
        Index("idx_availability_practice", "practice_id"),
        CheckConstraint("day_of_week >= 0 AND day_of_week <= 6", name="ck_valid_day_of_week"),
        CheckConstraint("end_time > start_time", name="ck_availability_time_order"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    practice_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("practices.id", ondelete="CASCADE"), nullable=False
    )
    practitioner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    appointment_type: Mapped[str] = mapped_column(String(50), nullable=False)

    # Local wall-clock time in the practice timezone
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )


class AvailabilityException(Base):
    """
    Date-range override of the weekly schedule.

    Overlapping exceptions are allowed; the booking check resolves them
    (time_off beats everything else).
    """

    __tablename__ = "availability_exceptions"
    __table_args__ = (
        Index("idx_availability_exceptions_practitioner", "practitioner_id", "is_active"),
        Index("idx_availability_exceptions_dates", "start_datetime", "end_datetime"),
        Index("idx_availability_exceptions_practice", "practice_id"),
        CheckConstraint("end_datetime > start_datetime", name="ck_exception_range_order"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    practice_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("practices.id", ondelete="CASCADE"), nullable=False
    )
    practitioner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    exception_type: Mapped[str] = mapped_column(String(20), nullable=False)

    # Stored in UTC
    start_datetime: Mapped[datetime] = mapped_column(nullable=False)
    end_datetime: Mapped[datetime] = mapped_column(nullable=False)

    # modified_hours only
    modified_start_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    modified_end_time: Mapped[time | None] = mapped_column(Time, nullable=True)

    # type_only only
    allowed_appointment_types: Mapped[list[str] | None] = mapped_column(JSONList, nullable=True)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )


# =============================================================================
# Appointments
# =============================================================================

class Appointment(Base):
    """
    Booked appointment.

    Lifecycle: scheduled → confirmed → completed/cancelled/no_show
    Non-cancelled appointments of one practitioner never overlap; the booking
    check enforces this at write time.
    """

    __tablename__ = "appointments"
    __table_args__ = (
        Index("idx_appointments_practitioner_start", "practitioner_id", "start_time"),
        Index("idx_appointments_practice_status", "practice_id", "status"),
        Index("idx_appointments_client", "client_id"),
        CheckConstraint("end_time > start_time", name="ck_appointment_time_order"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    practice_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("practices.id", ondelete="CASCADE"), nullable=False
    )
    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False
    )
    practitioner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    appointment_type: Mapped[str] = mapped_column(String(50), nullable=False)

    # Stored in UTC
    start_time: Mapped[datetime] = mapped_column(nullable=False)
    end_time: Mapped[datetime] = mapped_column(nullable=False)

    status: Mapped[str] = mapped_column(
        String(20), default=AppointmentStatus.SCHEDULED.value, nullable=False
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )

    client: Mapped["Client"] = relationship()
