"""Permission schemas."""

from pydantic import BaseModel

from practice_api.db.enums import Role


class PermissionInfo(BaseModel):
    key: str
    label: str
    description: str
    category: str


class MyPermissionsResponse(BaseModel):
    role: Role
    permissions: list[str]


class RolePermissionMatrix(BaseModel):
    """Effective permissions per role, plus the registry for labels."""
    roles: dict[str, list[str]]
    available: list[PermissionInfo]


class RolePermissionUpdate(BaseModel):
    permission: str
    is_granted: bool
