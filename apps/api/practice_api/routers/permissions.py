"""Permissions router - effective permissions and per-practice role overrides."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from practice_api.core.deps import (
    get_current_session,
    get_db,
    require_csrf_header,
    require_permission,
)
from practice_api.core.errors import ValidationError
from practice_api.core.permissions import PermissionKey as P, get_all_permissions
from practice_api.db.enums import Role
from practice_api.schemas.auth import UserSession
from practice_api.schemas.permission import (
    MyPermissionsResponse,
    PermissionInfo,
    RolePermissionMatrix,
    RolePermissionUpdate,
)
from practice_api.services import permission_service

router = APIRouter(prefix="/permissions", tags=["permissions"])


@router.get("/me", response_model=MyPermissionsResponse)
def get_my_permissions(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Effective permissions for the caller's role in their practice."""
    permissions = permission_service.get_effective_permissions(
        db, session.practice_id, session.role
    )
    return MyPermissionsResponse(role=session.role, permissions=sorted(permissions))


@router.get("/roles", response_model=RolePermissionMatrix)
def get_role_matrix(
    session: UserSession = Depends(require_permission(P.PRACTICE_SETTINGS_MANAGE)),
    db: Session = Depends(get_db),
):
    """Effective permission set of every role, with registry labels."""
    return RolePermissionMatrix(
        roles=permission_service.list_role_permission_matrix(db, session.practice_id),
        available=[
            PermissionInfo(
                key=p.key,
                label=p.label,
                description=p.description,
                category=p.category.value,
            )
            for p in get_all_permissions()
        ],
    )


@router.put(
    "/roles/{role}",
    response_model=MyPermissionsResponse,
    dependencies=[Depends(require_csrf_header)],
)
def update_role_permission(
    role: str,
    data: RolePermissionUpdate,
    session: UserSession = Depends(require_permission(P.PRACTICE_SETTINGS_MANAGE)),
    db: Session = Depends(get_db),
):
    """Grant or revoke one permission for a role in this practice."""
    if not Role.has_value(role):
        raise ValidationError(f"Invalid role: {role}")
    permission_service.set_role_permission(
        db,
        session.practice_id,
        role,
        data.permission,
        data.is_granted,
        actor_user_id=session.user_id,
    )
    permissions = permission_service.get_effective_permissions(db, session.practice_id, role)
    return MyPermissionsResponse(role=Role(role), permissions=sorted(permissions))
