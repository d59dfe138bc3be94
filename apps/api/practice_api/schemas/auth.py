"""Authentication-related Pydantic schemas."""

from uuid import UUID

from pydantic import BaseModel

from practice_api.db.enums import Role


class TokenPayload(BaseModel):
    """Decoded JWT payload structure."""
    sub: UUID  # user_id
    practice_id: UUID
    role: str
    token_version: int


class UserSession(BaseModel):
    """
    Full session context for authenticated requests.

    This is returned by get_current_session dependency
    and is the actor every authorization check runs against.
    """
    user_id: UUID
    practice_id: UUID
    role: Role  # Validated enum
    email: str
    display_name: str


class MeResponse(BaseModel):
    """Response schema for GET /auth/me endpoint."""
    user_id: UUID
    email: str
    display_name: str
    practice_id: UUID
    practice_name: str
    practice_slug: str
    practice_timezone: str
    role: Role
    permissions: list[str]
