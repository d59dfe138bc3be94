"""Assignment service - which practitioners an assistant may act for.

Assignments are scoped to one practice. The bulk replace used by the admin
screen deletes and re-inserts in a single transaction, so a failure leaves
the previous set untouched.
"""

import logging
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from practice_api.core.errors import (
    ConflictError,
    NotFoundError,
    ValidationError,
    storage_error_from,
    storage_transaction,
)
from practice_api.core.structured_logging import build_log_context
from practice_api.db.enums import Role
from practice_api.db.models import Membership, PractitionerAssignment

logger = logging.getLogger(__name__)


# =============================================================================
# Queries
# =============================================================================

def list_by_assistant(
    db: Session,
    practice_id: UUID,
    assistant_id: UUID,
) -> list[PractitionerAssignment]:
    """List assignments for one assistant."""
    return db.query(PractitionerAssignment).filter(
        PractitionerAssignment.practice_id == practice_id,
        PractitionerAssignment.assistant_id == assistant_id,
    ).order_by(PractitionerAssignment.created_at).all()


def list_by_practitioner(
    db: Session,
    practice_id: UUID,
    practitioner_id: UUID,
) -> list[PractitionerAssignment]:
    """List assistants assigned to one practitioner."""
    return db.query(PractitionerAssignment).filter(
        PractitionerAssignment.practice_id == practice_id,
        PractitionerAssignment.practitioner_id == practitioner_id,
    ).order_by(PractitionerAssignment.created_at).all()


def list_by_practice(db: Session, practice_id: UUID) -> list[PractitionerAssignment]:
    """List every assignment in the practice."""
    return db.query(PractitionerAssignment).filter(
        PractitionerAssignment.practice_id == practice_id,
    ).order_by(PractitionerAssignment.created_at).all()


def get_assigned_practitioner_ids(
    db: Session,
    practice_id: UUID,
    assistant_id: UUID,
) -> set[UUID]:
    """Practitioner ids an assistant is assigned to (empty set if none)."""
    rows = db.query(PractitionerAssignment.practitioner_id).filter(
        PractitionerAssignment.practice_id == practice_id,
        PractitionerAssignment.assistant_id == assistant_id,
    ).all()
    return {row[0] for row in rows}


def is_assigned(
    db: Session,
    practice_id: UUID,
    assistant_id: UUID,
    practitioner_id: UUID,
) -> bool:
    """True iff an assignment exists for the pair."""
    return db.query(PractitionerAssignment.id).filter(
        PractitionerAssignment.practice_id == practice_id,
        PractitionerAssignment.assistant_id == assistant_id,
        PractitionerAssignment.practitioner_id == practitioner_id,
    ).first() is not None


# =============================================================================
# Validation
# =============================================================================

def _require_member_role(
    db: Session,
    practice_id: UUID,
    user_id: UUID,
    role: Role,
) -> Membership:
    membership = db.query(Membership).filter(
        Membership.practice_id == practice_id,
        Membership.user_id == user_id,
    ).first()
    if not membership:
        raise NotFoundError(f"User {user_id} is not a member of this practice")
    if membership.role != role.value:
        raise ValidationError(f"User {user_id} is not a {role.value}")
    return membership


def _validate_pairs(
    db: Session,
    practice_id: UUID,
    assistant_id: UUID,
    practitioner_ids: list[UUID],
) -> None:
    _require_member_role(db, practice_id, assistant_id, Role.ASSISTANT)
    for practitioner_id in practitioner_ids:
        _require_member_role(db, practice_id, practitioner_id, Role.PRACTITIONER)


# =============================================================================
# Mutations
# =============================================================================

def create_assignment(
    db: Session,
    practice_id: UUID,
    assistant_id: UUID,
    practitioner_id: UUID,
    actor_id: UUID | None = None,
) -> PractitionerAssignment:
    """Assign one practitioner to an assistant."""
    _validate_pairs(db, practice_id, assistant_id, [practitioner_id])

    if is_assigned(db, practice_id, assistant_id, practitioner_id):
        raise ConflictError("Assistant is already assigned to this practitioner")

    assignment = PractitionerAssignment(
        practice_id=practice_id,
        assistant_id=assistant_id,
        practitioner_id=practitioner_id,
        created_by=actor_id,
    )
    db.add(assignment)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("Assistant is already assigned to this practitioner") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise storage_error_from(exc, "create assignment") from exc
    db.refresh(assignment)
    return assignment


def delete_assignment(db: Session, practice_id: UUID, assignment_id: UUID) -> None:
    """Delete one assignment by id."""
    assignment = db.query(PractitionerAssignment).filter(
        PractitionerAssignment.id == assignment_id,
        PractitionerAssignment.practice_id == practice_id,
    ).first()
    if not assignment:
        raise NotFoundError("Assignment not found")
    with storage_transaction(db, "delete assignment", build_log_context(practice_id=practice_id)):
        db.delete(assignment)


def delete_by_pair(
    db: Session,
    practice_id: UUID,
    assistant_id: UUID,
    practitioner_id: UUID,
) -> bool:
    """Delete the assignment for a pair. Returns False if there was none."""
    with storage_transaction(db, "delete assignment", build_log_context(practice_id=practice_id)):
        deleted = db.query(PractitionerAssignment).filter(
            PractitionerAssignment.practice_id == practice_id,
            PractitionerAssignment.assistant_id == assistant_id,
            PractitionerAssignment.practitioner_id == practitioner_id,
        ).delete(synchronize_session=False)
    return deleted > 0


def delete_by_assistant(db: Session, practice_id: UUID, assistant_id: UUID) -> int:
    """Remove every assignment of an assistant. Returns the number removed."""
    with storage_transaction(db, "delete assignments", build_log_context(practice_id=practice_id)):
        deleted = db.query(PractitionerAssignment).filter(
            PractitionerAssignment.practice_id == practice_id,
            PractitionerAssignment.assistant_id == assistant_id,
        ).delete(synchronize_session=False)
    return deleted


def replace_assignments(
    db: Session,
    practice_id: UUID,
    assistant_id: UUID,
    practitioner_ids: list[UUID],
    actor_id: UUID | None = None,
) -> list[PractitionerAssignment]:
    """
    Replace an assistant's assignments with exactly ``practitioner_ids``.

    Delete and insert run in one transaction. Any database error (including
    a duplicate id in the input) rolls back and raises StorageError with the
    previous assignments intact.
    """
    _validate_pairs(db, practice_id, assistant_id, list(dict.fromkeys(practitioner_ids)))

    log_context = build_log_context(user_id=actor_id, practice_id=practice_id)
    created: list[PractitionerAssignment] = []
    try:
        # Bulk delete executes immediately, ahead of the inserts below
        db.query(PractitionerAssignment).filter(
            PractitionerAssignment.practice_id == practice_id,
            PractitionerAssignment.assistant_id == assistant_id,
        ).delete(synchronize_session=False)

        for practitioner_id in practitioner_ids:
            assignment = PractitionerAssignment(
                practice_id=practice_id,
                assistant_id=assistant_id,
                practitioner_id=practitioner_id,
                created_by=actor_id,
            )
            db.add(assignment)
            created.append(assignment)

        db.flush()
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(
            "assignment_replace_failed assistant_id=%s",
            assistant_id,
            extra=log_context,
        )
        raise storage_error_from(exc, "replace assignments") from exc

    for assignment in created:
        db.refresh(assignment)

    logger.info(
        "assignments_replaced assistant_id=%s count=%d",
        assistant_id,
        len(created),
        extra=log_context,
    )
    return created
