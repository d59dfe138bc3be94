"""Permission registry and role defaults.

All permissions are defined here with labels, descriptions, and categories.
Roles are data: each maps to a set of permission codes, and practices may edit
that mapping through role_permissions rows (see permission_service).

Unknown role: empty permission set (deny)
"""

from dataclasses import dataclass
from enum import Enum

from practice_api.db.enums import Role


class PermissionKey(str, Enum):
    """Permission codes."""

    CLIENTS_MANAGE = "manage_clients"
    APPOINTMENTS_MANAGE = "manage_appointments"
    SESSIONS_VIEW = "view_sessions"
    SESSIONS_MANAGE = "manage_sessions"
    MEDICAL_DATA_VIEW = "view_medical_data"
    AVAILABILITY_MANAGE = "manage_availability"
    PRACTICE_SETTINGS_MANAGE = "manage_practice_settings"


class PermissionCategory(str, Enum):
    """Permission categories for UI grouping."""
    CLIENTS = "Clients"
    SCHEDULING = "Scheduling"
    SESSIONS = "Sessions"
    SETTINGS = "Settings"


@dataclass(frozen=True)
class PermissionDef:
    """Permission definition with metadata."""
    key: str
    label: str
    description: str
    category: PermissionCategory


P = PermissionKey


# =============================================================================
# Permission Registry
# =============================================================================

PERMISSION_REGISTRY: dict[str, PermissionDef] = {
    P.CLIENTS_MANAGE.value: PermissionDef(
        P.CLIENTS_MANAGE.value, "Manage Clients",
        "Create, view, edit, and archive client records", PermissionCategory.CLIENTS
    ),
    P.APPOINTMENTS_MANAGE.value: PermissionDef(
        P.APPOINTMENTS_MANAGE.value, "Manage Appointments",
        "Create, view, edit, and cancel appointments", PermissionCategory.SCHEDULING
    ),
    P.SESSIONS_VIEW.value: PermissionDef(
        P.SESSIONS_VIEW.value, "View Sessions",
        "View session details and notes", PermissionCategory.SESSIONS
    ),
    P.SESSIONS_MANAGE.value: PermissionDef(
        P.SESSIONS_MANAGE.value, "Manage Sessions",
        "Create and edit session records", PermissionCategory.SESSIONS
    ),
    P.MEDICAL_DATA_VIEW.value: PermissionDef(
        P.MEDICAL_DATA_VIEW.value, "View Medical Data",
        "Access sensitive medical and session notes", PermissionCategory.SESSIONS
    ),
    P.AVAILABILITY_MANAGE.value: PermissionDef(
        P.AVAILABILITY_MANAGE.value, "Manage Availability",
        "Edit practitioner availability and schedule", PermissionCategory.SCHEDULING
    ),
    P.PRACTICE_SETTINGS_MANAGE.value: PermissionDef(
        P.PRACTICE_SETTINGS_MANAGE.value, "Manage Practice Settings",
        "Edit practice information and settings", PermissionCategory.SETTINGS
    ),
}


# =============================================================================
# Default Role Permissions
# =============================================================================

ROLE_DEFAULTS: dict[str, frozenset[str]] = {
    Role.ADMIN.value: frozenset(PERMISSION_REGISTRY.keys()),
    Role.PRACTITIONER.value: frozenset({
        P.CLIENTS_MANAGE.value,
        P.APPOINTMENTS_MANAGE.value,
        P.SESSIONS_VIEW.value,
        P.SESSIONS_MANAGE.value,
        P.MEDICAL_DATA_VIEW.value,
        P.AVAILABILITY_MANAGE.value,
    }),
    Role.STAFF.value: frozenset({
        P.CLIENTS_MANAGE.value,
        P.APPOINTMENTS_MANAGE.value,
    }),
    # No sessions, no medical data, no availability
    Role.ASSISTANT.value: frozenset({
        P.CLIENTS_MANAGE.value,
        P.APPOINTMENTS_MANAGE.value,
    }),
}


# =============================================================================
# Helper Functions
# =============================================================================

def _role_value(role: Role | str) -> str:
    return role.value if isinstance(role, Role) else str(role)


def permissions_for(role: Role | str) -> frozenset[str]:
    """Get default permissions for a role. Unknown roles get nothing."""
    return ROLE_DEFAULTS.get(_role_value(role), frozenset())


def has_permission(role: Role | str, permission: PermissionKey | str) -> bool:
    """Check a role's default permissions."""
    key = permission.value if isinstance(permission, PermissionKey) else permission
    return key in permissions_for(role)


def is_admin(role: Role | str) -> bool:
    return _role_value(role) == Role.ADMIN.value


def get_all_permissions() -> list[PermissionDef]:
    """Get all permissions sorted by category."""
    return sorted(PERMISSION_REGISTRY.values(), key=lambda p: (p.category, p.key))


def is_valid_permission(key: str) -> bool:
    """Check if permission key exists."""
    return key in PERMISSION_REGISTRY
