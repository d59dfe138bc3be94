"""Auth-related enums."""

from enum import Enum


class Role(str, Enum):
    """
    Practice member roles.

    - ADMIN: Practice admin (settings, assistants, assignments)
    - PRACTITIONER: Bookable calendar owner; acts only for themselves
    - STAFF: Front desk; books for any practitioner in the practice
    - ASSISTANT: Books only for explicitly assigned practitioners
    """

    ADMIN = "admin"
    PRACTITIONER = "practitioner"
    STAFF = "staff"
    ASSISTANT = "assistant"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid role."""
        return value in cls._value2member_map_
