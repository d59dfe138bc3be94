"""Appointment authorization - who may act for which practitioner.

Rules (after the role's effective permissions include manage_appointments):
- admin, staff: any practitioner in the practice
- practitioner: only themselves
- assistant: only assigned practitioners
- anything else: nobody
"""

from uuid import UUID

from sqlalchemy.orm import Session

from practice_api.core.errors import ForbiddenError, NotFoundError
from practice_api.core.permissions import PermissionKey
from practice_api.db.enums import (
    ROLES_ACT_FOR_ANY_PRACTITIONER,
    ROLES_BOOKABLE,
    ROLES_CAN_CHOOSE_PRACTITIONER,
    Role,
)
from practice_api.db.models import Membership
from practice_api.schemas.auth import UserSession
from practice_api.services import assignment_service, permission_service

BOOKABLE_ROLE_VALUES = [r.value for r in ROLES_BOOKABLE]

# The authenticated actor every check runs against
Actor = UserSession


def can_act_on_practitioner(db: Session, actor: Actor, practitioner_id: UUID) -> bool:
    """True iff the actor may manage appointments for this practitioner."""
    if not permission_service.check_permission(
        db, actor.practice_id, actor.role, PermissionKey.APPOINTMENTS_MANAGE
    ):
        return False

    if actor.role in ROLES_ACT_FOR_ANY_PRACTITIONER:
        return True
    if actor.role == Role.PRACTITIONER:
        return practitioner_id == actor.user_id
    if actor.role == Role.ASSISTANT:
        return assignment_service.is_assigned(
            db, actor.practice_id, actor.user_id, practitioner_id
        )
    return False


def ensure_can_act_on_practitioner(db: Session, actor: Actor, practitioner_id: UUID) -> None:
    """Raise ForbiddenError unless ``can_act_on_practitioner`` approves."""
    if not can_act_on_practitioner(db, actor, practitioner_id):
        raise ForbiddenError("Not authorized to manage appointments for this practitioner")


def resolve_practitioner_id(actor: Actor, requested: UUID | None) -> UUID:
    """
    Pick the practitioner an action targets.

    Practitioners are pinned to themselves. Other roles default to their own
    id and may name another one; the gate still has to approve it.
    """
    if actor.role == Role.PRACTITIONER:
        return actor.user_id
    if requested is not None and actor.role in ROLES_CAN_CHOOSE_PRACTITIONER:
        return requested
    return actor.user_id


def require_practitioner(db: Session, practice_id: UUID, practitioner_id: UUID) -> Membership:
    """The practitioner's membership in this practice, or NotFoundError."""
    membership = db.query(Membership).filter(
        Membership.practice_id == practice_id,
        Membership.user_id == practitioner_id,
        Membership.role.in_(BOOKABLE_ROLE_VALUES),
    ).first()
    if not membership:
        raise NotFoundError("Practitioner not found")
    return membership


def list_practitioner_ids(db: Session, practice_id: UUID) -> set[UUID]:
    rows = db.query(Membership.user_id).filter(
        Membership.practice_id == practice_id,
        Membership.role.in_(BOOKABLE_ROLE_VALUES),
    ).all()
    return {row[0] for row in rows}


def get_accessible_practitioner_ids(db: Session, actor: Actor) -> set[UUID]:
    """Practitioners whose appointments the actor may see and manage."""
    if not permission_service.check_permission(
        db, actor.practice_id, actor.role, PermissionKey.APPOINTMENTS_MANAGE
    ):
        return set()

    if actor.role in ROLES_ACT_FOR_ANY_PRACTITIONER:
        return list_practitioner_ids(db, actor.practice_id)
    if actor.role == Role.PRACTITIONER:
        return {actor.user_id}
    if actor.role == Role.ASSISTANT:
        return assignment_service.get_assigned_practitioner_ids(
            db, actor.practice_id, actor.user_id
        )
    return set()


def ensure_can_manage_availability(db: Session, actor: Actor, practitioner_id: UUID) -> None:
    """
    Schedules are edited by the practitioner themselves or an admin,
    and only with manage_availability.
    """
    if not permission_service.check_permission(
        db, actor.practice_id, actor.role, PermissionKey.AVAILABILITY_MANAGE
    ):
        raise ForbiddenError("Missing permission: manage_availability")
    if actor.role == Role.ADMIN or practitioner_id == actor.user_id:
        return
    raise ForbiddenError("Not authorized to manage this practitioner's availability")
