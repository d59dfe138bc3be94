"""Appointment service - booking writes behind the authorization gate.

Every write resolves the target practitioner, runs the gate, and then the
booking check. Reads apply the same gate: an assistant never sees an
unassigned practitioner's appointments.
"""

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from practice_api.core.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
    storage_transaction,
)
from practice_api.core.structured_logging import build_log_context
from practice_api.core.timezones import ensure_utc, normalize_input
from practice_api.db.enums import DEFAULT_APPOINTMENT_STATUS, AppointmentStatus, AppointmentType
from practice_api.db.models import Appointment, Client
from practice_api.schemas.appointment import AppointmentCreate, AppointmentUpdate
from practice_api.services import authorization_service, availability_service, booking_service
from practice_api.services.authorization_service import Actor

logger = logging.getLogger(__name__)


# =============================================================================
# Helpers
# =============================================================================

def _get_client(db: Session, practice_id: UUID, client_id: UUID) -> Client:
    client = db.query(Client).filter(
        Client.id == client_id,
        Client.practice_id == practice_id,
        Client.is_archived == False,
    ).first()
    if not client:
        raise NotFoundError("Client not found")
    return client


def _ensure_bookable(
    db: Session,
    actor: Actor,
    practitioner_id: UUID,
    appointment_type: str,
    start: datetime,
    end: datetime,
    exclude_appointment_id: UUID | None = None,
) -> None:
    result = booking_service.check_availability(
        db,
        actor.practice_id,
        practitioner_id,
        appointment_type,
        start,
        end,
        exclude_appointment_id=exclude_appointment_id,
    )
    if not result.available:
        logger.info(
            "appointment_rejected reason=%s",
            result.reason.value,
            extra=build_log_context(
                user_id=actor.user_id,
                practice_id=actor.practice_id,
                practitioner_id=practitioner_id,
            ),
        )
        raise ConflictError(
            result.message,
            reason=result.reason.value,
            has_conflict=result.has_conflict,
        )


# =============================================================================
# Reads
# =============================================================================

def get_appointment(db: Session, actor: Actor, appointment_id: UUID) -> Appointment:
    """Get one appointment; the gate applies to reads too."""
    appointment = db.query(Appointment).filter(
        Appointment.id == appointment_id,
        Appointment.practice_id == actor.practice_id,
    ).first()
    if not appointment:
        raise NotFoundError("Appointment not found")
    authorization_service.ensure_can_act_on_practitioner(
        db, actor, appointment.practitioner_id
    )
    return appointment


def list_appointments(
    db: Session,
    actor: Actor,
    practitioner_id: UUID | None = None,
    client_id: UUID | None = None,
    status: AppointmentStatus | None = None,
    date_start: datetime | None = None,
    date_end: datetime | None = None,
) -> list[Appointment]:
    """List appointments for the practitioners the actor can access."""
    accessible = authorization_service.get_accessible_practitioner_ids(db, actor)
    if practitioner_id is not None:
        if practitioner_id not in accessible:
            raise ForbiddenError("Not authorized to view this practitioner's appointments")
        accessible = {practitioner_id}
    if not accessible:
        return []

    tz = availability_service.get_practice_timezone(db, actor.practice_id)
    query = db.query(Appointment).filter(
        Appointment.practice_id == actor.practice_id,
        Appointment.practitioner_id.in_(accessible),
    )
    if client_id:
        query = query.filter(Appointment.client_id == client_id)
    if status:
        query = query.filter(Appointment.status == AppointmentStatus(status).value)
    if date_start:
        query = query.filter(Appointment.end_time > normalize_input(date_start, tz))
    if date_end:
        query = query.filter(Appointment.start_time < normalize_input(date_end, tz))
    return query.order_by(Appointment.start_time).all()


def get_appointment_stats(db: Session, actor: Actor) -> dict:
    """Appointment counts per status across accessible practitioners."""
    accessible = authorization_service.get_accessible_practitioner_ids(db, actor)
    by_status = {s.value: 0 for s in AppointmentStatus}
    if accessible:
        rows = db.query(Appointment.status, func.count(Appointment.id)).filter(
            Appointment.practice_id == actor.practice_id,
            Appointment.practitioner_id.in_(accessible),
        ).group_by(Appointment.status).all()
        for status, count in rows:
            by_status[status] = count
    return {"total": sum(by_status.values()), "by_status": by_status}


# =============================================================================
# Writes
# =============================================================================

def create_appointment(db: Session, actor: Actor, data: AppointmentCreate) -> Appointment:
    """
    Book an appointment.

    Raises:
        ForbiddenError: gate rejected the practitioner
        NotFoundError: practitioner or client not in this practice
        ConflictError: booking check failed (carries the reason code)
    """
    practitioner_id = authorization_service.resolve_practitioner_id(
        actor, data.practitioner_id
    )
    authorization_service.ensure_can_act_on_practitioner(db, actor, practitioner_id)
    authorization_service.require_practitioner(db, actor.practice_id, practitioner_id)
    _get_client(db, actor.practice_id, data.client_id)

    tz = availability_service.get_practice_timezone(db, actor.practice_id)
    start = normalize_input(data.start_time, tz)
    end = normalize_input(data.end_time, tz)
    appointment_type = AppointmentType(data.appointment_type).value

    _ensure_bookable(db, actor, practitioner_id, appointment_type, start, end)

    appointment = Appointment(
        practice_id=actor.practice_id,
        client_id=data.client_id,
        practitioner_id=practitioner_id,
        appointment_type=appointment_type,
        start_time=start,
        end_time=end,
        status=DEFAULT_APPOINTMENT_STATUS.value,
        notes=data.notes,
        created_by=actor.user_id,
    )
    log_context = build_log_context(
        user_id=actor.user_id,
        practice_id=actor.practice_id,
        practitioner_id=practitioner_id,
    )
    with storage_transaction(db, "create appointment", log_context):
        db.add(appointment)
    db.refresh(appointment)

    logger.info("appointment_created appointment_id=%s", appointment.id, extra=log_context)
    return appointment


def update_appointment(
    db: Session,
    actor: Actor,
    appointment_id: UUID,
    data: AppointmentUpdate,
) -> Appointment:
    """
    Update an appointment.

    Changing the type or times, or bringing a cancelled appointment back,
    re-runs the booking check with this appointment excluded.
    """
    appointment = get_appointment(db, actor, appointment_id)
    updates = data.model_dump(exclude_unset=True)
    tz = availability_service.get_practice_timezone(db, actor.practice_id)

    appointment_type = appointment.appointment_type
    if updates.get("appointment_type") is not None:
        appointment_type = AppointmentType(updates["appointment_type"]).value
    start = ensure_utc(appointment.start_time)
    if updates.get("start_time") is not None:
        start = normalize_input(updates["start_time"], tz)
    end = ensure_utc(appointment.end_time)
    if updates.get("end_time") is not None:
        end = normalize_input(updates["end_time"], tz)
    status = appointment.status
    if updates.get("status") is not None:
        status = AppointmentStatus(updates["status"]).value

    if end <= start:
        raise ValidationError("end_time must be after start_time")

    schedule_changed = (
        appointment_type != appointment.appointment_type
        or start != ensure_utc(appointment.start_time)
        or end != ensure_utc(appointment.end_time)
    )
    reactivated = (
        appointment.status == AppointmentStatus.CANCELLED.value
        and status != AppointmentStatus.CANCELLED.value
    )
    if status != AppointmentStatus.CANCELLED.value and (schedule_changed or reactivated):
        _ensure_bookable(
            db, actor, appointment.practitioner_id, appointment_type, start, end,
            exclude_appointment_id=appointment.id,
        )

    log_context = build_log_context(user_id=actor.user_id, practice_id=actor.practice_id)
    with storage_transaction(db, "update appointment", log_context):
        appointment.appointment_type = appointment_type
        appointment.start_time = start
        appointment.end_time = end
        appointment.status = status
        if "notes" in updates:
            appointment.notes = updates["notes"]
    db.refresh(appointment)
    return appointment


def cancel_appointment(db: Session, actor: Actor, appointment_id: UUID) -> Appointment:
    """Cancel an appointment; its time becomes bookable again."""
    appointment = get_appointment(db, actor, appointment_id)
    log_context = build_log_context(user_id=actor.user_id, practice_id=actor.practice_id)
    with storage_transaction(db, "cancel appointment", log_context):
        appointment.status = AppointmentStatus.CANCELLED.value
    db.refresh(appointment)
    return appointment


def delete_appointment(db: Session, actor: Actor, appointment_id: UUID) -> None:
    appointment = get_appointment(db, actor, appointment_id)
    log_context = build_log_context(user_id=actor.user_id, practice_id=actor.practice_id)
    with storage_transaction(db, "delete appointment", log_context):
        db.delete(appointment)
