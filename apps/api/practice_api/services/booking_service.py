"""Booking check - can this practitioner take this appointment?

Two independent checks:
1. Schedule: weekly slot for the local weekday and type, narrowed or blocked
   by overlapping exceptions (time_off > type_only > modified_hours).
2. Overlap: non-cancelled appointments of the practitioner, half-open
   intervals, so back-to-back bookings do not collide.

Both always run. The reported reason is the schedule failure when there is
one, with ``has_conflict`` carrying the overlap result.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, time
from enum import Enum
from uuid import UUID

from sqlalchemy.orm import Session

from practice_api.core.errors import ValidationError
from practice_api.core.structured_logging import build_log_context
from practice_api.core.timezones import localize, normalize_input
from practice_api.db.enums import AppointmentStatus, AppointmentType, DayOfWeek, ExceptionType
from practice_api.db.models import Appointment, AvailabilityException
from practice_api.services import availability_service

logger = logging.getLogger(__name__)


class UnavailableReason(str, Enum):
    """Why a candidate interval cannot be booked."""

    NO_SCHEDULE = "no_schedule"
    CROSSES_DAY_BOUNDARY = "crosses_day_boundary"
    TIME_OFF = "time_off"
    TYPE_RESTRICTED = "type_restricted"
    OUTSIDE_MODIFIED_HOURS = "outside_modified_hours"
    OUTSIDE_WORKING_HOURS = "outside_working_hours"
    CONFLICT = "conflict"


REASON_MESSAGES = {
    UnavailableReason.NO_SCHEDULE: "Practitioner has no availability for this day and appointment type",
    UnavailableReason.CROSSES_DAY_BOUNDARY: "Appointments must start and end on the same day",
    UnavailableReason.TIME_OFF: "Practitioner is on time off",
    UnavailableReason.TYPE_RESTRICTED: "This appointment type is not offered during this period",
    UnavailableReason.OUTSIDE_MODIFIED_HOURS: "Outside the practitioner's modified hours",
    UnavailableReason.OUTSIDE_WORKING_HOURS: "Outside the practitioner's working hours",
    UnavailableReason.CONFLICT: "Practitioner already has an appointment at this time",
}


@dataclass(frozen=True)
class AvailabilityCheckResult:
    """Reason-coded bookability result."""

    available: bool
    reason: UnavailableReason | None = None
    has_conflict: bool = False

    @property
    def message(self) -> str | None:
        return REASON_MESSAGES.get(self.reason) if self.reason else None

    def to_dict(self) -> dict:
        return {
            "available": self.available,
            "reason": self.reason.value if self.reason else None,
            "message": self.message,
            "has_conflict": self.has_conflict,
        }


# =============================================================================
# Overlap
# =============================================================================

def find_conflicting_appointments(
    db: Session,
    practice_id: UUID,
    practitioner_id: UUID,
    start: datetime,
    end: datetime,
    exclude_appointment_id: UUID | None = None,
) -> list[Appointment]:
    """Non-cancelled appointments with existing.start < end and existing.end > start."""
    query = db.query(Appointment).filter(
        Appointment.practice_id == practice_id,
        Appointment.practitioner_id == practitioner_id,
        Appointment.status != AppointmentStatus.CANCELLED.value,
        Appointment.start_time < end,
        Appointment.end_time > start,
    )
    if exclude_appointment_id:
        query = query.filter(Appointment.id != exclude_appointment_id)
    return query.order_by(Appointment.start_time).all()


# =============================================================================
# Schedule
# =============================================================================

def _modified_window(exceptions: list[AvailabilityException]) -> tuple[time, time] | None:
    """Intersection of every overlapping modified_hours window, or None."""
    windows = [
        (e.modified_start_time, e.modified_end_time)
        for e in exceptions
        if e.exception_type == ExceptionType.MODIFIED_HOURS.value
        and e.modified_start_time is not None
        and e.modified_end_time is not None
    ]
    if not windows:
        return None
    return max(w[0] for w in windows), min(w[1] for w in windows)


def _fits(start: time, end: time, window_start: time, window_end: time) -> bool:
    return window_start <= start and end <= window_end


def _schedule_reason(
    db: Session,
    practice_id: UUID,
    practitioner_id: UUID,
    appointment_type: str,
    start_utc: datetime,
    end_utc: datetime,
) -> UnavailableReason | None:
    tz = availability_service.get_practice_timezone(db, practice_id)
    local_start = localize(start_utc, tz)
    local_end = localize(end_utc, tz)

    # One interval is evaluated against one weekday schedule only
    if local_start.date() != local_end.date():
        return UnavailableReason.CROSSES_DAY_BOUNDARY

    day = DayOfWeek.from_date(local_start)
    slot = availability_service.get_slot(
        db, practice_id, practitioner_id, day, appointment_type
    )
    if not slot:
        return UnavailableReason.NO_SCHEDULE

    exceptions = availability_service.find_overlapping(
        db, practice_id, practitioner_id, start_utc, end_utc
    )
    if any(e.exception_type == ExceptionType.TIME_OFF.value for e in exceptions):
        return UnavailableReason.TIME_OFF

    for e in exceptions:
        if (
            e.exception_type == ExceptionType.TYPE_ONLY.value
            and appointment_type not in (e.allowed_appointment_types or [])
        ):
            return UnavailableReason.TYPE_RESTRICTED

    start_local_time = local_start.time()
    end_local_time = local_end.time()

    window = _modified_window(exceptions)
    if window is not None:
        if not _fits(start_local_time, end_local_time, *window):
            return UnavailableReason.OUTSIDE_MODIFIED_HOURS
        return None

    if not _fits(start_local_time, end_local_time, slot.start_time, slot.end_time):
        return UnavailableReason.OUTSIDE_WORKING_HOURS
    return None


# =============================================================================
# Public API
# =============================================================================

def check_availability(
    db: Session,
    practice_id: UUID,
    practitioner_id: UUID,
    appointment_type: AppointmentType | str,
    start: datetime,
    end: datetime,
    exclude_appointment_id: UUID | None = None,
) -> AvailabilityCheckResult:
    """
    Check whether [start, end) is bookable for the practitioner.

    Naive datetimes are read as practice-local wall-clock times.
    """
    try:
        type_value = AppointmentType(appointment_type).value
    except ValueError:
        raise ValidationError(f"Invalid appointment type: {appointment_type}")

    tz = availability_service.get_practice_timezone(db, practice_id)
    start_utc = normalize_input(start, tz)
    end_utc = normalize_input(end, tz)
    if end_utc <= start_utc:
        raise ValidationError("end_time must be after start_time")

    reason = _schedule_reason(
        db, practice_id, practitioner_id, type_value, start_utc, end_utc
    )
    conflicts = find_conflicting_appointments(
        db, practice_id, practitioner_id, start_utc, end_utc,
        exclude_appointment_id=exclude_appointment_id,
    )
    has_conflict = bool(conflicts)

    if reason is None and has_conflict:
        reason = UnavailableReason.CONFLICT

    result = AvailabilityCheckResult(
        available=reason is None,
        reason=reason,
        has_conflict=has_conflict,
    )
    if not result.available:
        logger.info(
            "booking_unavailable reason=%s has_conflict=%s",
            reason.value,
            has_conflict,
            extra=build_log_context(practice_id=practice_id, practitioner_id=practitioner_id),
        )
    return result


def is_bookable(
    db: Session,
    practice_id: UUID,
    practitioner_id: UUID,
    appointment_type: AppointmentType | str,
    start: datetime,
    end: datetime,
    exclude_appointment_id: UUID | None = None,
) -> bool:
    return check_availability(
        db, practice_id, practitioner_id, appointment_type, start, end,
        exclude_appointment_id=exclude_appointment_id,
    ).available
