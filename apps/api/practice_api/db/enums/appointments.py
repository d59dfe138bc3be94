"""Appointment and scheduling enums."""

from datetime import date, datetime
from enum import Enum, IntEnum


class AppointmentStatus(str, Enum):
    """
    Appointment lifecycle status.

    Flow: scheduled → confirmed → completed
              ↘ cancelled
              ↘ no_show
    """

    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class AppointmentType(str, Enum):
    """How the appointment takes place."""

    IN_PERSON = "in_person"
    ONLINE = "online"


class ExceptionType(str, Enum):
    """Kinds of date-range overrides to the weekly schedule."""

    TIME_OFF = "time_off"  # Practitioner unavailable
    MODIFIED_HOURS = "modified_hours"  # Different hours than usual
    TYPE_ONLY = "type_only"  # Only listed appointment types bookable


class DayOfWeek(IntEnum):
    """
    Day-of-week numbering shared by slot storage and booking checks.

    Sunday=0 .. Saturday=6. Python's ``weekday()`` is Monday=0, so always
    convert through ``from_date``.
    """

    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6

    @classmethod
    def from_date(cls, value: date | datetime) -> "DayOfWeek":
        return cls((value.weekday() + 1) % 7)

    @property
    def label(self) -> str:
        return self.name.capitalize()


# Weekdays used when resetting a schedule to defaults
WORKING_DAYS = (
    DayOfWeek.MONDAY,
    DayOfWeek.TUESDAY,
    DayOfWeek.WEDNESDAY,
    DayOfWeek.THURSDAY,
    DayOfWeek.FRIDAY,
)

DEFAULT_APPOINTMENT_STATUS = AppointmentStatus.SCHEDULED
