"""Enum definitions for application constants."""

from practice_api.db.enums.appointments import (
    DEFAULT_APPOINTMENT_STATUS,
    WORKING_DAYS,
    AppointmentStatus,
    AppointmentType,
    DayOfWeek,
    ExceptionType,
)
from practice_api.db.enums.auth import Role
from practice_api.db.enums.permissions import (
    ROLES_ACT_FOR_ANY_PRACTITIONER,
    ROLES_BOOKABLE,
    ROLES_CAN_CHOOSE_PRACTITIONER,
    ROLES_CAN_MANAGE_ASSIGNMENTS,
)

__all__ = [
    "AppointmentStatus",
    "AppointmentType",
    "DayOfWeek",
    "DEFAULT_APPOINTMENT_STATUS",
    "ExceptionType",
    "Role",
    "ROLES_ACT_FOR_ANY_PRACTITIONER",
    "ROLES_BOOKABLE",
    "ROLES_CAN_CHOOSE_PRACTITIONER",
    "ROLES_CAN_MANAGE_ASSIGNMENTS",
    "WORKING_DAYS",
]
