"""Field-level rules shared by entity and parameter models."""

import re

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PLATE_PATTERN = re.compile(r"^[A-Z0-9][A-Z0-9 -]{0,19}$")


def validate_email(value: str | None, field: str = "email") -> str | None:
    """Validate and normalize an email address.

    Args:
        value: Email address to validate. Empty values pass through as None.
        field: Field name used in the error message.

    Returns:
        Lower-cased, stripped email, or None when empty.

    Raises:
        ValueError: If the value is not a well-formed address.
    """
    if value is None or not value.strip():
        return None
    value = value.strip().lower()
    if not EMAIL_PATTERN.match(value):
        raise ValueError(f"Invalid {field.replace('_', ' ')}")
    return value


def normalize_plate(value: str) -> str:
    """Normalize a vehicle plate to upper case with single spaces."""
    if not isinstance(value, str):
        raise ValueError("Vehicle plate must be a string")
    normalized = " ".join(value.upper().split())
    if not PLATE_PATTERN.match(normalized):
        raise ValueError("Vehicle plate must be 1-20 letters, digits, spaces or dashes")
    return normalized


def require_min_length(value: str | None, minimum: int, label: str) -> str:
    """Strip a string and check it carries at least ``minimum`` characters."""
    value = (value or "").strip()
    if len(value) < minimum:
        raise ValueError(f"{label} must be at least {minimum} characters")
    return value
