"""FastAPI dependencies for authentication, authorization, and database access."""

from typing import Generator
from uuid import UUID

import jwt
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from practice_api.core.errors import ForbiddenError, UnauthorizedError
from practice_api.core.permissions import PermissionKey
from practice_api.core.security import decode_session_token
from practice_api.db.session import SessionLocal
from practice_api.schemas.auth import UserSession


# Cookie and header names
COOKIE_NAME = "practice_session"
CSRF_HEADER = "X-Requested-With"
CSRF_HEADER_VALUE = "XMLHttpRequest"


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(
    request: Request,
    db: Session = Depends(get_db)
):
    """
    Get authenticated user from session cookie.

    Validates:
    - Session cookie exists
    - JWT is valid and not expired
    - User exists and is active
    - Token version matches (for revocation support)

    Raises:
        UnauthorizedError: Authentication failed
    """
    # Import here to avoid circular imports
    from practice_api.db.models import User

    token = request.cookies.get(COOKIE_NAME)
    if not token:
        raise UnauthorizedError("Not authenticated")

    try:
        payload = decode_session_token(token)
    except jwt.InvalidTokenError:
        raise UnauthorizedError("Invalid session")

    user = db.query(User).filter(User.id == _parse_uuid(payload.get("sub"))).first()
    if not user:
        raise UnauthorizedError("User not found")

    if not user.is_active:
        raise UnauthorizedError("Account disabled")

    # Token version check (revocation support)
    if user.token_version != payload.get("token_version"):
        raise UnauthorizedError("Session revoked")

    return user


def _parse_uuid(value) -> UUID:
    try:
        return UUID(str(value))
    except ValueError:
        raise UnauthorizedError("Invalid session")


def get_current_session(
    request: Request,
    db: Session = Depends(get_db)
) -> UserSession:
    """
    Get full session context: user_id, practice_id, role.

    This is the PRIMARY auth dependency for most endpoints.

    Raises:
        UnauthorizedError: Not authenticated
        ForbiddenError: No membership or unknown role
    """
    from practice_api.db.enums import Role
    from practice_api.db.models import Membership

    user = get_current_user(request, db)

    membership = db.query(Membership).filter(
        Membership.user_id == user.id
    ).first()

    if not membership:
        raise ForbiddenError("No practice membership")

    # Validate role is a known enum value - return 403 not 500
    if not Role.has_value(membership.role):
        raise ForbiddenError(
            f"Unknown role '{membership.role}'. Contact administrator."
        )

    return UserSession(
        user_id=user.id,
        practice_id=membership.practice_id,
        role=Role(membership.role),
        email=user.email,
        display_name=user.display_name,
    )


def require_roles(allowed_roles: list):
    """
    Dependency factory for role-based authorization.

    Uses enum values (not strings) to prevent drift.

    Usage:
        @router.post("/admin", dependencies=[Depends(require_roles([Role.ADMIN]))])
    """
    def dependency(request: Request, db: Session = Depends(get_db)):
        session = get_current_session(request, db)
        if session.role not in allowed_roles:
            raise ForbiddenError(
                f"Role '{session.role.value}' not authorized for this action"
            )
        return session
    return dependency


def require_permission(permission: PermissionKey | str):
    """
    Dependency factory for permission-based authorization.

    Resolves the caller's effective permissions (role defaults plus the
    practice's overrides) on every request.
    """
    def dependency(request: Request, db: Session = Depends(get_db)):
        from practice_api.services import permission_service

        session = get_current_session(request, db)
        if not permission_service.check_permission(
            db, session.practice_id, session.role, permission
        ):
            key = permission.value if isinstance(permission, PermissionKey) else permission
            raise ForbiddenError(f"Missing permission: {key}")
        return session
    return dependency


def require_csrf_header(request: Request) -> None:
    """
    Verify CSRF header on mutations.

    Apply to state-changing endpoints (POST, PUT, PATCH, DELETE).

    Raises:
        ForbiddenError: Missing or invalid CSRF header
    """
    if request.headers.get(CSRF_HEADER) != CSRF_HEADER_VALUE:
        raise ForbiddenError(
            f"Missing CSRF header. Include '{CSRF_HEADER}: {CSRF_HEADER_VALUE}'"
        )
