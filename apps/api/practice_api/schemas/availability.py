"""Pydantic schemas for weekly availability, exceptions, and booking checks."""

from datetime import datetime, time
from uuid import UUID

from pydantic import BaseModel, Field

from practice_api.db.enums import AppointmentType, ExceptionType


# =============================================================================
# Weekly Slots
# =============================================================================

class SlotInput(BaseModel):
    """One weekly slot keyed by (day_of_week, appointment_type)."""
    day_of_week: int = Field(..., ge=0, le=6, description="0=Sunday .. 6=Saturday")
    appointment_type: AppointmentType
    start_time: time
    end_time: time
    is_active: bool = True


class SlotsUpsertRequest(BaseModel):
    practitioner_id: UUID | None = None
    slots: list[SlotInput] = Field(..., min_length=1)


class BulkAvailabilityRequest(BaseModel):
    """Same hours on several days for one appointment type."""
    practitioner_id: UUID | None = None
    days: list[int] = Field(..., min_length=1)
    appointment_type: AppointmentType
    start_time: time
    end_time: time


class SlotUpdate(BaseModel):
    start_time: time | None = None
    end_time: time | None = None
    is_active: bool | None = None


class SlotRead(BaseModel):
    id: UUID
    practitioner_id: UUID
    day_of_week: int
    appointment_type: str
    start_time: time
    end_time: time
    is_active: bool

    model_config = {"from_attributes": True}


class DayAvailability(BaseModel):
    day_of_week: int
    day_name: str
    slots: list[SlotRead]


# =============================================================================
# Exceptions
# =============================================================================

class ExceptionCreate(BaseModel):
    practitioner_id: UUID | None = None
    exception_type: ExceptionType
    start_datetime: datetime
    end_datetime: datetime
    modified_start_time: time | None = None
    modified_end_time: time | None = None
    allowed_appointment_types: list[AppointmentType] | None = None
    description: str | None = Field(None, max_length=500)


class ExceptionUpdate(BaseModel):
    exception_type: ExceptionType | None = None
    start_datetime: datetime | None = None
    end_datetime: datetime | None = None
    modified_start_time: time | None = None
    modified_end_time: time | None = None
    allowed_appointment_types: list[AppointmentType] | None = None
    description: str | None = Field(None, max_length=500)
    is_active: bool | None = None


class ExceptionRead(BaseModel):
    id: UUID
    practitioner_id: UUID
    exception_type: str
    start_datetime: datetime
    end_datetime: datetime
    modified_start_time: time | None
    modified_end_time: time | None
    allowed_appointment_types: list[str] | None
    description: str | None
    is_active: bool

    model_config = {"from_attributes": True}


class AvailabilityOverview(BaseModel):
    practitioner_id: UUID
    timezone: str
    days: list[DayAvailability]
    exceptions: list[ExceptionRead]


# =============================================================================
# Booking Check
# =============================================================================

class AvailabilityCheckRequest(BaseModel):
    practitioner_id: UUID | None = None
    appointment_type: AppointmentType
    start_time: datetime
    end_time: datetime
    exclude_appointment_id: UUID | None = None


class AvailabilityCheckResponse(BaseModel):
    """Reason-coded bookability result."""
    available: bool
    reason: str | None = None
    message: str | None = None
    has_conflict: bool = False
