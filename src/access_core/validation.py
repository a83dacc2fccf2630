"""
Input validation utilities.
"""

from access_core.constants import AccessLevel, KeyStatus, Roles, ShipmentStatus
from access_core.errors import ValidationError

MIN_PASSWORD_LENGTH = 8


def validate_password(password: str) -> None:
    """
    Validate password rules.

    Requirements:
    - At least 8 characters
    - Must not contain the word "password" in any casing
    """
    if not password:
        raise ValidationError("Password is required")

    if len(password.strip()) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    if "password" in password.lower():
        raise ValidationError('Password cannot contain "password"')


def validate_role(role: str) -> None:
    if role not in Roles.all_values():
        allowed = ", ".join(sorted(Roles.all_values()))
        raise ValidationError(f"Invalid role '{role}'. Allowed roles: {allowed}")


def validate_choice(value: str, allowed: set[str], label: str) -> None:
    if value not in allowed:
        raise ValidationError(f"Invalid {label} '{value}'. Allowed: {', '.join(sorted(allowed))}")


def validate_shipment_status(status: str) -> None:
    validate_choice(status, ShipmentStatus.all_values(), "status")


def validate_key_status(status: str) -> None:
    validate_choice(status, KeyStatus.all_values(), "status")


def validate_access_level(level: str) -> None:
    validate_choice(level, AccessLevel.all_values(), "access level")
