"""Pydantic schemas for API request/response models."""

from practice_api.schemas.auth import MeResponse, TokenPayload, UserSession
from practice_api.schemas.appointment import (
    AppointmentCreate,
    AppointmentRead,
    AppointmentStats,
    AppointmentUpdate,
)
from practice_api.schemas.assignment import (
    AssignedPractitioner,
    AssignmentCreate,
    AssignmentRead,
    AssignmentReplace,
)
from practice_api.schemas.availability import (
    AvailabilityCheckRequest,
    AvailabilityCheckResponse,
    AvailabilityOverview,
    BulkAvailabilityRequest,
    ExceptionCreate,
    ExceptionRead,
    ExceptionUpdate,
    SlotInput,
    SlotRead,
    SlotsUpsertRequest,
    SlotUpdate,
)
from practice_api.schemas.permission import (
    MyPermissionsResponse,
    PermissionInfo,
    RolePermissionMatrix,
    RolePermissionUpdate,
)

__all__ = [
    "AppointmentCreate",
    "AppointmentRead",
    "AppointmentStats",
    "AppointmentUpdate",
    "AssignedPractitioner",
    "AssignmentCreate",
    "AssignmentRead",
    "AssignmentReplace",
    "AvailabilityCheckRequest",
    "AvailabilityCheckResponse",
    "AvailabilityOverview",
    "BulkAvailabilityRequest",
    "ExceptionCreate",
    "ExceptionRead",
    "ExceptionUpdate",
    "MeResponse",
    "MyPermissionsResponse",
    "PermissionInfo",
    "RolePermissionMatrix",
    "RolePermissionUpdate",
    "SlotInput",
    "SlotRead",
    "SlotsUpsertRequest",
    "SlotUpdate",
    "TokenPayload",
    "UserSession",
]
