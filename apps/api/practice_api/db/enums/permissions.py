"""Role permission helper sets."""

from practice_api.db.enums.auth import Role

# Roles that may act for any practitioner in their practice
ROLES_ACT_FOR_ANY_PRACTITIONER = {Role.ADMIN, Role.STAFF}

# Roles that may pick a practitioner other than themselves when booking
ROLES_CAN_CHOOSE_PRACTITIONER = {Role.ADMIN, Role.STAFF, Role.ASSISTANT}

# Roles that can manage assistant assignments and role overrides
ROLES_CAN_MANAGE_ASSIGNMENTS = {Role.ADMIN}

# Roles whose calendar can be booked
ROLES_BOOKABLE = {Role.PRACTITIONER}
