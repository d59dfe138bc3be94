"""Practitioner assignment endpoints.

Admins manage which practitioners each assistant may book for; assistants
read their own list.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from practice_api.core.deps import (
    get_current_session,
    get_db,
    require_csrf_header,
    require_roles,
)
from practice_api.core.errors import ForbiddenError
from practice_api.db.enums import ROLES_CAN_MANAGE_ASSIGNMENTS, Role
from practice_api.db.models import Membership, PractitionerAssignment, User
from practice_api.schemas.assignment import (
    AssignedPractitioner,
    AssignmentCreate,
    AssignmentRead,
    AssignmentReplace,
)
from practice_api.schemas.auth import UserSession
from practice_api.services import assignment_service

router = APIRouter(prefix="/practitioner-assignments", tags=["assignments"])

require_assignment_admin = require_roles(list(ROLES_CAN_MANAGE_ASSIGNMENTS))


def _to_read(assignment: PractitionerAssignment) -> AssignmentRead:
    return AssignmentRead(
        id=assignment.id,
        assistant_id=assignment.assistant_id,
        practitioner_id=assignment.practitioner_id,
        practice_id=assignment.practice_id,
        practitioner_name=assignment.practitioner.display_name if assignment.practitioner else None,
        created_by=assignment.created_by,
        created_at=assignment.created_at,
    )


# =============================================================================
# Reads
# =============================================================================

@router.get("", response_model=list[AssignmentRead])
def list_assignments(
    session: UserSession = Depends(require_assignment_admin),
    db: Session = Depends(get_db),
):
    """Every assignment in the practice."""
    return [_to_read(a) for a in assignment_service.list_by_practice(db, session.practice_id)]


@router.get("/my-practitioners", response_model=list[AssignedPractitioner])
def list_my_practitioners(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Practitioners the calling assistant is assigned to."""
    if session.role != Role.ASSISTANT:
        raise ForbiddenError("Only assistants have assigned practitioners")
    ids = assignment_service.get_assigned_practitioner_ids(
        db, session.practice_id, session.user_id
    )
    if not ids:
        return []
    users = (
        db.query(User)
        .join(Membership, Membership.user_id == User.id)
        .filter(
            Membership.practice_id == session.practice_id,
            User.id.in_(ids),
        )
        .order_by(User.display_name)
        .all()
    )
    return [
        AssignedPractitioner(practitioner_id=u.id, display_name=u.display_name, email=u.email)
        for u in users
    ]


@router.get("/assistant/{assistant_id}", response_model=list[AssignmentRead])
def list_assistant_assignments(
    assistant_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Assignments of one assistant. Assistants may read only their own."""
    if session.role not in ROLES_CAN_MANAGE_ASSIGNMENTS and session.user_id != assistant_id:
        raise ForbiddenError("Not authorized to view these assignments")
    return [
        _to_read(a)
        for a in assignment_service.list_by_assistant(db, session.practice_id, assistant_id)
    ]


# =============================================================================
# Mutations (admin only)
# =============================================================================

@router.post(
    "",
    response_model=AssignmentRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_csrf_header)],
)
def create_assignment(
    data: AssignmentCreate,
    session: UserSession = Depends(require_assignment_admin),
    db: Session = Depends(get_db),
):
    assignment = assignment_service.create_assignment(
        db,
        session.practice_id,
        data.assistant_id,
        data.practitioner_id,
        actor_id=session.user_id,
    )
    return _to_read(assignment)


@router.put(
    "/assistant/{assistant_id}",
    response_model=list[AssignmentRead],
    dependencies=[Depends(require_csrf_header)],
)
def replace_assistant_assignments(
    assistant_id: UUID,
    data: AssignmentReplace,
    session: UserSession = Depends(require_assignment_admin),
    db: Session = Depends(get_db),
):
    """Replace an assistant's assignments with exactly the given practitioners."""
    assignments = assignment_service.replace_assignments(
        db,
        session.practice_id,
        assistant_id,
        data.practitioner_ids,
        actor_id=session.user_id,
    )
    return [_to_read(a) for a in assignments]


@router.delete(
    "/{assignment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_csrf_header)],
)
def delete_assignment(
    assignment_id: UUID,
    session: UserSession = Depends(require_assignment_admin),
    db: Session = Depends(get_db),
):
    assignment_service.delete_assignment(db, session.practice_id, assignment_id)
