"""Availability endpoints - weekly schedule, exceptions, and booking checks."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from practice_api.core.deps import get_current_session, get_db, require_csrf_header
from practice_api.core.errors import ForbiddenError
from practice_api.schemas.auth import UserSession
from practice_api.schemas.availability import (
    AvailabilityCheckRequest,
    AvailabilityCheckResponse,
    AvailabilityOverview,
    BulkAvailabilityRequest,
    ExceptionCreate,
    ExceptionRead,
    ExceptionUpdate,
    SlotRead,
    SlotsUpsertRequest,
    SlotUpdate,
)
from practice_api.services import (
    authorization_service,
    availability_service,
    booking_service,
)

router = APIRouter(prefix="/availability", tags=["availability"])


def _viewable_practitioner(
    db: Session,
    session: UserSession,
    requested: UUID | None,
) -> UUID:
    """Practitioner whose schedule the caller may read."""
    practitioner_id = authorization_service.resolve_practitioner_id(session, requested)
    authorization_service.require_practitioner(db, session.practice_id, practitioner_id)
    if practitioner_id != session.user_id and not authorization_service.can_act_on_practitioner(
        db, session, practitioner_id
    ):
        raise ForbiddenError("Not authorized to view this practitioner's availability")
    return practitioner_id


def _editable_practitioner(
    db: Session,
    session: UserSession,
    requested: UUID | None,
) -> UUID:
    """Practitioner whose schedule the caller may edit."""
    practitioner_id = authorization_service.resolve_practitioner_id(session, requested)
    authorization_service.ensure_can_manage_availability(db, session, practitioner_id)
    authorization_service.require_practitioner(db, session.practice_id, practitioner_id)
    return practitioner_id


# =============================================================================
# Weekly Slots
# =============================================================================

@router.get("", response_model=AvailabilityOverview)
def get_overview(
    practitioner_id: UUID | None = Query(None),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Slots grouped per day plus active exceptions."""
    target = _viewable_practitioner(db, session, practitioner_id)
    return availability_service.get_availability_overview(db, session.practice_id, target)


@router.put(
    "/slots",
    response_model=list[SlotRead],
    dependencies=[Depends(require_csrf_header)],
)
def upsert_slots(
    data: SlotsUpsertRequest,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    target = _editable_practitioner(db, session, data.practitioner_id)
    return availability_service.upsert_slots(db, session.practice_id, target, data.slots)


@router.post(
    "/bulk",
    response_model=list[SlotRead],
    dependencies=[Depends(require_csrf_header)],
)
def set_bulk_availability(
    data: BulkAvailabilityRequest,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Same hours on several days for one appointment type."""
    target = _editable_practitioner(db, session, data.practitioner_id)
    return availability_service.set_bulk_availability(
        db,
        session.practice_id,
        target,
        data.days,
        data.appointment_type,
        data.start_time,
        data.end_time,
    )


@router.patch(
    "/slots/{slot_id}",
    response_model=SlotRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_slot(
    slot_id: UUID,
    data: SlotUpdate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    slot = availability_service.get_slot_by_id(db, session.practice_id, slot_id)
    authorization_service.ensure_can_manage_availability(db, session, slot.practitioner_id)
    return availability_service.update_slot(
        db,
        session.practice_id,
        slot_id,
        start_time=data.start_time,
        end_time=data.end_time,
        is_active=data.is_active,
    )


@router.delete(
    "/slots/{slot_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_csrf_header)],
)
def delete_slot(
    slot_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    slot = availability_service.get_slot_by_id(db, session.practice_id, slot_id)
    authorization_service.ensure_can_manage_availability(db, session, slot.practitioner_id)
    availability_service.delete_slot(db, session.practice_id, slot_id)


@router.post(
    "/reset",
    response_model=list[SlotRead],
    dependencies=[Depends(require_csrf_header)],
)
def reset_to_defaults(
    practitioner_id: UUID | None = Query(None),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Replace the schedule with the default Mon-Fri working week."""
    target = _editable_practitioner(db, session, practitioner_id)
    return availability_service.reset_to_defaults(db, session.practice_id, target)


# =============================================================================
# Booking Check
# =============================================================================

@router.post(
    "/check",
    response_model=AvailabilityCheckResponse,
    dependencies=[Depends(require_csrf_header)],
)
def check_availability(
    data: AvailabilityCheckRequest,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Reason-coded bookability for a candidate interval."""
    target = authorization_service.resolve_practitioner_id(session, data.practitioner_id)
    authorization_service.ensure_can_act_on_practitioner(db, session, target)
    authorization_service.require_practitioner(db, session.practice_id, target)
    result = booking_service.check_availability(
        db,
        session.practice_id,
        target,
        data.appointment_type,
        data.start_time,
        data.end_time,
        exclude_appointment_id=data.exclude_appointment_id,
    )
    return result.to_dict()


# =============================================================================
# Exceptions
# =============================================================================

@router.get("/exceptions", response_model=list[ExceptionRead])
def list_exceptions(
    practitioner_id: UUID | None = Query(None),
    active_only: bool = Query(True),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    target = _viewable_practitioner(db, session, practitioner_id)
    return availability_service.list_exceptions(
        db, session.practice_id, target, active_only=active_only
    )


@router.post(
    "/exceptions",
    response_model=ExceptionRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_csrf_header)],
)
def create_exception(
    data: ExceptionCreate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    target = _editable_practitioner(db, session, data.practitioner_id)
    return availability_service.create_exception(db, session.practice_id, target, data)


@router.patch(
    "/exceptions/{exception_id}",
    response_model=ExceptionRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_exception(
    exception_id: UUID,
    data: ExceptionUpdate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    exception = availability_service.get_exception(db, session.practice_id, exception_id)
    authorization_service.ensure_can_manage_availability(db, session, exception.practitioner_id)
    return availability_service.update_exception(db, session.practice_id, exception_id, data)


@router.delete(
    "/exceptions/{exception_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_csrf_header)],
)
def delete_exception(
    exception_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    exception = availability_service.get_exception(db, session.practice_id, exception_id)
    authorization_service.ensure_can_manage_availability(db, session, exception.practitioner_id)
    availability_service.delete_exception(db, session.practice_id, exception_id)
