"""Appointment schemas - Pydantic models for appointments API."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from practice_api.db.enums import AppointmentStatus, AppointmentType


class AppointmentCreate(BaseModel):
    """Schema for booking an appointment.

    practitioner_id defaults to the caller; practitioners cannot override it.
    """
    client_id: UUID
    practitioner_id: UUID | None = None
    appointment_type: AppointmentType
    start_time: datetime
    end_time: datetime
    notes: str | None = Field(None, max_length=2000)


class AppointmentUpdate(BaseModel):
    """Schema for updating an appointment. Time changes are re-checked."""
    appointment_type: AppointmentType | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    status: AppointmentStatus | None = None
    notes: str | None = Field(None, max_length=2000)


class AppointmentRead(BaseModel):
    """Schema for reading an appointment."""
    id: UUID
    practice_id: UUID
    client_id: UUID
    practitioner_id: UUID
    appointment_type: str
    start_time: datetime
    end_time: datetime
    status: str
    notes: str | None
    created_by: UUID | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AppointmentStats(BaseModel):
    """Counts per status for the caller's accessible practitioners."""
    total: int
    by_status: dict[str, int]
