"""Availability service - weekly slots and date-range exceptions.

Handles:
- Weekly slots per (practitioner, day_of_week, appointment_type), upserted on that key
- Bulk day selection and reset to the default working week
- Exceptions (time_off, modified_hours, type_only) with type-specific validation
- Overlap lookup used by the booking check
"""

import logging
import uuid
from datetime import datetime, time
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy import func
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from practice_api.core.errors import NotFoundError, ValidationError, storage_transaction
from practice_api.core.structured_logging import build_log_context
from practice_api.core.timezones import ensure_utc, get_timezone, normalize_input
from practice_api.db.enums import (
    WORKING_DAYS,
    AppointmentType,
    DayOfWeek,
    ExceptionType,
)
from practice_api.db.models import AvailabilityException, AvailabilitySlot, Practice
from practice_api.schemas.availability import ExceptionCreate, ExceptionUpdate, SlotInput

logger = logging.getLogger(__name__)

DEFAULT_START_TIME = time(9, 0)
DEFAULT_END_TIME = time(17, 0)

SLOT_CONFLICT_KEYS = ["practitioner_id", "day_of_week", "appointment_type"]


# =============================================================================
# Helpers
# =============================================================================

def get_practice_timezone(db: Session, practice_id: UUID) -> ZoneInfo:
    """Timezone that weekly slots and modified hours are expressed in."""
    tz_name = db.query(Practice.timezone).filter(Practice.id == practice_id).scalar()
    return get_timezone(tz_name)


def _appointment_type_value(value: AppointmentType | str) -> str:
    try:
        return AppointmentType(value).value
    except ValueError:
        raise ValidationError(f"Invalid appointment type: {value}")


def _validate_day(day_of_week: int) -> int:
    if not 0 <= int(day_of_week) <= 6:
        raise ValidationError(f"day_of_week must be 0-6, got {day_of_week}")
    return int(day_of_week)


def _validate_times(start_time: time, end_time: time) -> None:
    if end_time <= start_time:
        raise ValidationError("end_time must be after start_time")


def _insert_for(db: Session):
    """Dialect insert construct with ON CONFLICT support."""
    if db.get_bind().dialect.name == "sqlite":
        return sqlite_insert
    return pg_insert


# =============================================================================
# Weekly Slots
# =============================================================================

def list_slots(
    db: Session,
    practice_id: UUID,
    practitioner_id: UUID,
    active_only: bool = True,
) -> list[AvailabilitySlot]:
    """Slots for a practitioner, ordered by day then type."""
    query = db.query(AvailabilitySlot).filter(
        AvailabilitySlot.practice_id == practice_id,
        AvailabilitySlot.practitioner_id == practitioner_id,
    )
    if active_only:
        query = query.filter(AvailabilitySlot.is_active == True)
    return query.order_by(
        AvailabilitySlot.day_of_week, AvailabilitySlot.appointment_type
    ).all()


def get_slot(
    db: Session,
    practice_id: UUID,
    practitioner_id: UUID,
    day_of_week: int,
    appointment_type: AppointmentType | str,
    active_only: bool = True,
) -> AvailabilitySlot | None:
    """The slot for (practitioner, day, type), or None."""
    query = db.query(AvailabilitySlot).filter(
        AvailabilitySlot.practice_id == practice_id,
        AvailabilitySlot.practitioner_id == practitioner_id,
        AvailabilitySlot.day_of_week == int(day_of_week),
        AvailabilitySlot.appointment_type == _appointment_type_value(appointment_type),
    )
    if active_only:
        query = query.filter(AvailabilitySlot.is_active == True)
    return query.first()


def get_slot_by_id(db: Session, practice_id: UUID, slot_id: UUID) -> AvailabilitySlot:
    slot = db.query(AvailabilitySlot).filter(
        AvailabilitySlot.id == slot_id,
        AvailabilitySlot.practice_id == practice_id,
    ).first()
    if not slot:
        raise NotFoundError("Availability slot not found")
    return slot


def _slot_rows(slots: list[SlotInput]) -> list[dict]:
    rows = []
    for slot in slots:
        _validate_times(slot.start_time, slot.end_time)
        rows.append({
            "day_of_week": _validate_day(slot.day_of_week),
            "appointment_type": _appointment_type_value(slot.appointment_type),
            "start_time": slot.start_time,
            "end_time": slot.end_time,
            "is_active": slot.is_active,
        })
    return rows


def _execute_upserts(
    db: Session,
    practice_id: UUID,
    practitioner_id: UUID,
    rows: list[dict],
) -> None:
    """Issue one ON CONFLICT upsert per row. Caller commits."""
    insert = _insert_for(db)
    for row in rows:
        stmt = insert(AvailabilitySlot).values(
            id=uuid.uuid4(),
            practice_id=practice_id,
            practitioner_id=practitioner_id,
            **row,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=SLOT_CONFLICT_KEYS,
            set_={
                "start_time": stmt.excluded.start_time,
                "end_time": stmt.excluded.end_time,
                "is_active": stmt.excluded.is_active,
                "updated_at": func.now(),
            },
        )
        db.execute(stmt)


def _delete_slots(db: Session, practice_id: UUID, practitioner_id: UUID) -> int:
    return db.query(AvailabilitySlot).filter(
        AvailabilitySlot.practice_id == practice_id,
        AvailabilitySlot.practitioner_id == practitioner_id,
    ).delete(synchronize_session=False)


def upsert_slots(
    db: Session,
    practice_id: UUID,
    practitioner_id: UUID,
    slots: list[SlotInput],
) -> list[AvailabilitySlot]:
    """
    Insert or overwrite slots keyed by (practitioner, day_of_week, type).

    A later entry with the same key overwrites times and active flag.
    """
    rows = _slot_rows(slots)
    log_context = build_log_context(practice_id=practice_id, practitioner_id=practitioner_id)
    with storage_transaction(db, "save availability", log_context):
        _execute_upserts(db, practice_id, practitioner_id, rows)

    keys = {(row["day_of_week"], row["appointment_type"]) for row in rows}
    return [
        slot for slot in list_slots(db, practice_id, practitioner_id, active_only=False)
        if (slot.day_of_week, slot.appointment_type) in keys
    ]


def set_bulk_availability(
    db: Session,
    practice_id: UUID,
    practitioner_id: UUID,
    days: list[int],
    appointment_type: AppointmentType | str,
    start_time: time,
    end_time: time,
) -> list[AvailabilitySlot]:
    """Apply the same hours to several days for one appointment type."""
    slots = [
        SlotInput(
            day_of_week=_validate_day(day),
            appointment_type=_appointment_type_value(appointment_type),
            start_time=start_time,
            end_time=end_time,
        )
        for day in dict.fromkeys(days)
    ]
    return upsert_slots(db, practice_id, practitioner_id, slots)


def update_slot(
    db: Session,
    practice_id: UUID,
    slot_id: UUID,
    start_time: time | None = None,
    end_time: time | None = None,
    is_active: bool | None = None,
) -> AvailabilitySlot:
    """Update a single slot's hours or active flag."""
    slot = get_slot_by_id(db, practice_id, slot_id)
    new_start = start_time if start_time is not None else slot.start_time
    new_end = end_time if end_time is not None else slot.end_time
    _validate_times(new_start, new_end)

    with storage_transaction(
        db, "update availability slot", build_log_context(practice_id=practice_id),
    ):
        slot.start_time = new_start
        slot.end_time = new_end
        if is_active is not None:
            slot.is_active = is_active
    db.refresh(slot)
    return slot


def deactivate_slot(db: Session, practice_id: UUID, slot_id: UUID) -> AvailabilitySlot:
    """Soft-disable a slot; it stays in storage but stops matching bookings."""
    return update_slot(db, practice_id, slot_id, is_active=False)


def delete_slot(db: Session, practice_id: UUID, slot_id: UUID) -> None:
    slot = get_slot_by_id(db, practice_id, slot_id)
    with storage_transaction(
        db, "delete availability slot", build_log_context(practice_id=practice_id),
    ):
        db.delete(slot)


def delete_all_slots(db: Session, practice_id: UUID, practitioner_id: UUID) -> int:
    """Remove every slot of a practitioner. Returns the number removed."""
    log_context = build_log_context(practice_id=practice_id, practitioner_id=practitioner_id)
    with storage_transaction(db, "delete availability", log_context):
        deleted = _delete_slots(db, practice_id, practitioner_id)
    return deleted


def reset_to_defaults(
    db: Session,
    practice_id: UUID,
    practitioner_id: UUID,
) -> list[AvailabilitySlot]:
    """
    Replace the schedule with Mon-Fri 09:00-17:00 for every appointment type.

    Delete and inserts share one transaction; on failure the previous
    schedule stays.
    """
    rows = _slot_rows([
        SlotInput(
            day_of_week=day,
            appointment_type=appointment_type,
            start_time=DEFAULT_START_TIME,
            end_time=DEFAULT_END_TIME,
        )
        for day in WORKING_DAYS
        for appointment_type in AppointmentType
    ])
    log_context = build_log_context(practice_id=practice_id, practitioner_id=practitioner_id)
    with storage_transaction(db, "reset availability", log_context):
        _delete_slots(db, practice_id, practitioner_id)
        _execute_upserts(db, practice_id, practitioner_id, rows)

    created = list_slots(db, practice_id, practitioner_id, active_only=False)
    logger.info("availability_reset slots=%d", len(created), extra=log_context)
    return created


def get_availability_overview(
    db: Session,
    practice_id: UUID,
    practitioner_id: UUID,
) -> dict:
    """Active slots grouped per day (Sunday first) plus active exceptions."""
    slots = list_slots(db, practice_id, practitioner_id)
    tz = get_practice_timezone(db, practice_id)
    days = [
        {
            "day_of_week": day.value,
            "day_name": day.label,
            "slots": [s for s in slots if s.day_of_week == day.value],
        }
        for day in DayOfWeek
    ]
    return {
        "practitioner_id": practitioner_id,
        "timezone": tz.key,
        "days": days,
        "exceptions": list_exceptions(db, practice_id, practitioner_id),
    }


# =============================================================================
# Exceptions
# =============================================================================

def list_exceptions(
    db: Session,
    practice_id: UUID,
    practitioner_id: UUID,
    active_only: bool = True,
) -> list[AvailabilityException]:
    """Exceptions for a practitioner ordered by start."""
    query = db.query(AvailabilityException).filter(
        AvailabilityException.practice_id == practice_id,
        AvailabilityException.practitioner_id == practitioner_id,
    )
    if active_only:
        query = query.filter(AvailabilityException.is_active == True)
    return query.order_by(AvailabilityException.start_datetime).all()


def find_overlapping(
    db: Session,
    practice_id: UUID,
    practitioner_id: UUID,
    start: datetime,
    end: datetime,
) -> list[AvailabilityException]:
    """
    Active exceptions intersecting [start, end].

    Closed-interval test: an exception ending exactly at ``start`` still
    overlaps.
    """
    tz = get_practice_timezone(db, practice_id)
    start_utc = normalize_input(start, tz)
    end_utc = normalize_input(end, tz)
    return db.query(AvailabilityException).filter(
        AvailabilityException.practice_id == practice_id,
        AvailabilityException.practitioner_id == practitioner_id,
        AvailabilityException.is_active == True,
        AvailabilityException.start_datetime <= end_utc,
        AvailabilityException.end_datetime >= start_utc,
    ).order_by(AvailabilityException.start_datetime).all()


def get_exception(db: Session, practice_id: UUID, exception_id: UUID) -> AvailabilityException:
    exception = db.query(AvailabilityException).filter(
        AvailabilityException.id == exception_id,
        AvailabilityException.practice_id == practice_id,
    ).first()
    if not exception:
        raise NotFoundError("Availability exception not found")
    return exception


def _validate_exception_fields(fields: dict) -> dict:
    """
    Enforce type-specific rules and clear fields the type does not use.

    - modified_hours: both modified times, end after start
    - type_only: non-empty list of known appointment types
    - all: end_datetime after start_datetime
    """
    try:
        exception_type = ExceptionType(fields["exception_type"])
    except ValueError:
        raise ValidationError(f"Invalid exception type: {fields['exception_type']}")
    fields["exception_type"] = exception_type.value

    if fields["end_datetime"] <= fields["start_datetime"]:
        raise ValidationError("end_datetime must be after start_datetime")

    if exception_type == ExceptionType.MODIFIED_HOURS:
        start_time = fields.get("modified_start_time")
        end_time = fields.get("modified_end_time")
        if start_time is None or end_time is None:
            raise ValidationError("modified_hours requires modified_start_time and modified_end_time")
        _validate_times(start_time, end_time)
    else:
        fields["modified_start_time"] = None
        fields["modified_end_time"] = None

    if exception_type == ExceptionType.TYPE_ONLY:
        allowed = fields.get("allowed_appointment_types") or []
        if not allowed:
            raise ValidationError("type_only requires at least one allowed appointment type")
        fields["allowed_appointment_types"] = list(
            dict.fromkeys(_appointment_type_value(t) for t in allowed)
        )
    else:
        fields["allowed_appointment_types"] = None

    return fields


def create_exception(
    db: Session,
    practice_id: UUID,
    practitioner_id: UUID,
    data: ExceptionCreate,
) -> AvailabilityException:
    """Create an exception. Overlaps with existing exceptions are allowed."""
    tz = get_practice_timezone(db, practice_id)
    fields = data.model_dump(exclude={"practitioner_id"})
    fields["start_datetime"] = normalize_input(fields["start_datetime"], tz)
    fields["end_datetime"] = normalize_input(fields["end_datetime"], tz)
    fields = _validate_exception_fields(fields)

    exception = AvailabilityException(
        practice_id=practice_id,
        practitioner_id=practitioner_id,
        **fields,
    )
    log_context = build_log_context(practice_id=practice_id, practitioner_id=practitioner_id)
    with storage_transaction(db, "create availability exception", log_context):
        db.add(exception)
    db.refresh(exception)
    return exception


def update_exception(
    db: Session,
    practice_id: UUID,
    exception_id: UUID,
    data: ExceptionUpdate,
) -> AvailabilityException:
    """Patch an exception and re-validate the merged result."""
    exception = get_exception(db, practice_id, exception_id)
    tz = get_practice_timezone(db, practice_id)
    updates = data.model_dump(exclude_unset=True)

    is_active = updates.pop("is_active", None)
    if updates.get("exception_type") is None:
        updates.pop("exception_type", None)
    for key in ("start_datetime", "end_datetime"):
        if updates.get(key) is not None:
            updates[key] = normalize_input(updates[key], tz)
        else:
            updates.pop(key, None)

    fields = {
        "exception_type": exception.exception_type,
        "start_datetime": ensure_utc(exception.start_datetime),
        "end_datetime": ensure_utc(exception.end_datetime),
        "modified_start_time": exception.modified_start_time,
        "modified_end_time": exception.modified_end_time,
        "allowed_appointment_types": exception.allowed_appointment_types,
        "description": exception.description,
    }
    fields.update(updates)
    fields = _validate_exception_fields(fields)

    with storage_transaction(
        db, "update availability exception", build_log_context(practice_id=practice_id),
    ):
        for key, value in fields.items():
            setattr(exception, key, value)
        if is_active is not None:
            exception.is_active = is_active
    db.refresh(exception)
    return exception


def deactivate_exception(
    db: Session,
    practice_id: UUID,
    exception_id: UUID,
) -> AvailabilityException:
    exception = get_exception(db, practice_id, exception_id)
    with storage_transaction(
        db, "deactivate availability exception", build_log_context(practice_id=practice_id),
    ):
        exception.is_active = False
    db.refresh(exception)
    return exception


def delete_exception(db: Session, practice_id: UUID, exception_id: UUID) -> None:
    exception = get_exception(db, practice_id, exception_id)
    with storage_transaction(
        db, "delete availability exception", build_log_context(practice_id=practice_id),
    ):
        db.delete(exception)
