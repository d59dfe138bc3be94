"""Authentication endpoints.

Session cookies are issued by the identity layer in front of this service;
here we only read them back.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from practice_api.core.deps import get_current_session, get_db
from practice_api.db.models import Practice, User
from practice_api.schemas.auth import MeResponse, UserSession
from practice_api.services import permission_service

router = APIRouter()


@router.get("/me")
def get_me(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
) -> MeResponse:
    """
    Get current authenticated user info.

    Returns user profile, practice details, role, and effective permissions.
    Used by frontend to bootstrap auth state on page load.
    """
    user = db.query(User).filter(User.id == session.user_id).first()
    practice = db.query(Practice).filter(Practice.id == session.practice_id).first()
    permissions = permission_service.get_effective_permissions(
        db, session.practice_id, session.role
    )

    return MeResponse(
        user_id=user.id,
        email=user.email,
        display_name=user.display_name,
        practice_id=practice.id,
        practice_name=practice.name,
        practice_slug=practice.slug,
        practice_timezone=practice.timezone,
        role=session.role,
        permissions=sorted(permissions),
    )
