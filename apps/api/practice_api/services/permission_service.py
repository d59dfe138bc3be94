"""Permission service for practice-level RBAC.

Resolution: role defaults, then the practice's role_permissions rows
(grant adds, revoke removes). Rows are re-read on every call so an admin's
edit applies to the very next request.
Missing permission: defaults to False (deny)
"""

import logging
import uuid

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from practice_api.core.errors import ValidationError, storage_error_from
from practice_api.core.permissions import (
    PermissionKey,
    is_valid_permission,
    permissions_for,
)
from practice_api.core.structured_logging import build_log_context
from practice_api.db.enums import Role
from practice_api.db.models import RolePermission

logger = logging.getLogger(__name__)


def _key(permission: PermissionKey | str) -> str:
    return permission.value if isinstance(permission, PermissionKey) else permission


def _role_value(role: Role | str) -> str:
    return role.value if isinstance(role, Role) else str(role)


# =============================================================================
# Permission Resolution
# =============================================================================

def get_effective_permissions(
    db: Session,
    practice_id: uuid.UUID,
    role: Role | str,
) -> set[str]:
    """
    Get effective permissions for a role inside one practice.

    Resolution: role_defaults + grants - revokes
    Unknown roles resolve to an empty set and ignore overrides.
    """
    role_value = _role_value(role)
    if not Role.has_value(role_value):
        return set()

    effective = set(permissions_for(role_value))

    role_perms = db.query(RolePermission).filter(
        RolePermission.practice_id == practice_id,
        RolePermission.role == role_value,
    ).all()

    for rp in role_perms:
        if rp.is_granted:
            effective.add(rp.permission)
        else:
            effective.discard(rp.permission)

    return effective


def check_permission(
    db: Session,
    practice_id: uuid.UUID,
    role: Role | str,
    permission: PermissionKey | str,
) -> bool:
    """Check if a role has a specific permission in this practice."""
    return _key(permission) in get_effective_permissions(db, practice_id, role)


# =============================================================================
# Permission Modification
# =============================================================================

def set_role_permission(
    db: Session,
    practice_id: uuid.UUID,
    role: Role | str,
    permission: PermissionKey | str,
    is_granted: bool,
    actor_user_id: uuid.UUID | None = None,
) -> RolePermission:
    """
    Set a practice-specific override of a role's default permission.

    Admin keeps manage_practice_settings so a practice cannot lock itself out.
    """
    role_value = _role_value(role)
    key = _key(permission)
    if not Role.has_value(role_value):
        raise ValidationError(f"Invalid role: {role_value}")
    if not is_valid_permission(key):
        raise ValidationError(f"Invalid permission: {key}")
    if (
        role_value == Role.ADMIN.value
        and key == PermissionKey.PRACTICE_SETTINGS_MANAGE.value
        and not is_granted
    ):
        raise ValidationError("Admin cannot lose manage_practice_settings")

    existing = db.query(RolePermission).filter(
        RolePermission.practice_id == practice_id,
        RolePermission.role == role_value,
        RolePermission.permission == key,
    ).first()

    try:
        if existing:
            existing.is_granted = is_granted
            existing.updated_by = actor_user_id
            override = existing
        else:
            override = RolePermission(
                practice_id=practice_id,
                role=role_value,
                permission=key,
                is_granted=is_granted,
                updated_by=actor_user_id,
            )
            db.add(override)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(
            "role_permission_update_failed",
            extra=build_log_context(user_id=actor_user_id, practice_id=practice_id),
        )
        raise storage_error_from(exc, "update role permission") from exc

    db.refresh(override)
    logger.info(
        "role_permission_updated role=%s permission=%s granted=%s",
        role_value,
        key,
        is_granted,
        extra=build_log_context(user_id=actor_user_id, practice_id=practice_id),
    )
    return override


def list_role_permission_matrix(
    db: Session,
    practice_id: uuid.UUID,
) -> dict[str, list[str]]:
    """Effective permissions for every role in the practice."""
    return {
        role.value: sorted(get_effective_permissions(db, practice_id, role))
        for role in Role
    }
