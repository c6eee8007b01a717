"""
User roles enumeration.

Defines the role types for the tuition center management system.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        ADMIN: Platform operator, onboards centers and their users
        CENTER: Center front office, runs day-to-day finance
        PRINCIPAL: Center head, same finance rights as CENTER
        TEACHER: Teaching staff (no finance access)
        PARENT: Sees invoices and balances of linked students
        VENDOR: External supplier account
    """
    ADMIN = "ADMIN"
    CENTER = "CENTER"
    PRINCIPAL = "PRINCIPAL"
    TEACHER = "TEACHER"
    PARENT = "PARENT"
    VENDOR = "VENDOR"


# Roles allowed to read and write center finances
FINANCE_ROLES = [UserRole.CENTER, UserRole.PRINCIPAL]
