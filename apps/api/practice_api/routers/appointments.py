"""Appointments API router.

All endpoints sit behind manage_appointments; the per-practitioner gate runs
inside appointment_service.
"""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from practice_api.core.deps import get_db, require_csrf_header, require_permission
from practice_api.core.permissions import PermissionKey as P
from practice_api.db.enums import AppointmentStatus
from practice_api.schemas.appointment import (
    AppointmentCreate,
    AppointmentRead,
    AppointmentStats,
    AppointmentUpdate,
)
from practice_api.schemas.auth import UserSession
from practice_api.services import appointment_service

router = APIRouter()


@router.get("", response_model=list[AppointmentRead])
def list_appointments(
    practitioner_id: UUID | None = Query(None),
    client_id: UUID | None = Query(None),
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    date_start: datetime | None = Query(None),
    date_end: datetime | None = Query(None),
    session: UserSession = Depends(require_permission(P.APPOINTMENTS_MANAGE)),
    db: Session = Depends(get_db),
):
    """List appointments for the practitioners the caller may access."""
    return appointment_service.list_appointments(
        db,
        session,
        practitioner_id=practitioner_id,
        client_id=client_id,
        status=status_filter,
        date_start=date_start,
        date_end=date_end,
    )


@router.get("/stats", response_model=AppointmentStats)
def get_stats(
    session: UserSession = Depends(require_permission(P.APPOINTMENTS_MANAGE)),
    db: Session = Depends(get_db),
):
    return appointment_service.get_appointment_stats(db, session)


@router.get("/{appointment_id}", response_model=AppointmentRead)
def get_appointment(
    appointment_id: UUID,
    session: UserSession = Depends(require_permission(P.APPOINTMENTS_MANAGE)),
    db: Session = Depends(get_db),
):
    return appointment_service.get_appointment(db, session, appointment_id)


@router.post(
    "",
    response_model=AppointmentRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_csrf_header)],
)
def create_appointment(
    data: AppointmentCreate,
    session: UserSession = Depends(require_permission(P.APPOINTMENTS_MANAGE)),
    db: Session = Depends(get_db),
):
    """
    Book an appointment.

    403 when the caller may not act for the practitioner, 409 with a reason
    code when the slot is unavailable or taken.
    """
    return appointment_service.create_appointment(db, session, data)


@router.patch(
    "/{appointment_id}",
    response_model=AppointmentRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_appointment(
    appointment_id: UUID,
    data: AppointmentUpdate,
    session: UserSession = Depends(require_permission(P.APPOINTMENTS_MANAGE)),
    db: Session = Depends(get_db),
):
    return appointment_service.update_appointment(db, session, appointment_id, data)


@router.post(
    "/{appointment_id}/cancel",
    response_model=AppointmentRead,
    dependencies=[Depends(require_csrf_header)],
)
def cancel_appointment(
    appointment_id: UUID,
    session: UserSession = Depends(require_permission(P.APPOINTMENTS_MANAGE)),
    db: Session = Depends(get_db),
):
    return appointment_service.cancel_appointment(db, session, appointment_id)


@router.delete(
    "/{appointment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_csrf_header)],
)
def delete_appointment(
    appointment_id: UUID,
    session: UserSession = Depends(require_permission(P.APPOINTMENTS_MANAGE)),
    db: Session = Depends(get_db),
):
    appointment_service.delete_appointment(db, session, appointment_id)
