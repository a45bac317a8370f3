"""Shared validation utilities"""

import re
from typing import Optional

from ..models_billing import PAYMENT_STATUSES

CLIENT_STATUSES = ["active", "inactive", "pending"]
CLIENT_STAGES = ["intake", "assessment", "psychotherapy"]
CLIENT_TYPES = ["individual", "couple", "family", "group"]
GENDERS = ["male", "female", "non_binary", "prefer_not_to_say"]
SESSION_TYPES = ["assessment", "psychotherapy", "consultation"]
SESSION_STATUSES = ["scheduled", "completed", "cancelled", "no_show"]
TASK_STATUSES = ["pending", "in_progress", "completed", "overdue"]
TASK_PRIORITIES = ["low", "medium", "high", "urgent"]
USER_ROLES = ["admin", "supervisor", "therapist"]


def validate_choice(value: Optional[str], choices: list[str], field_name: str) -> Optional[str]:
    """Validate that a value is one of the allowed choices (None passes through)"""
    if value is None:
        return value
    if value not in choices:
        raise ValueError(f"Invalid {field_name} '{value}'. Must be one of: {', '.join(choices)}")
    return value


def validate_phone(phone: Optional[str]) -> Optional[str]:
    """
    Normalize phone numbers.

    10-digit (or 1 + 10-digit) North American numbers are stored in E.164
    format (+1XXXXXXXXXX). Other numbers are kept as entered once they have
    between 7 and 15 digits.

    Raises:
        ValueError: If phone number is invalid
    """
    if not phone:
        return phone

    digits = re.sub(r"\D", "", phone)

    if digits.startswith("1") and len(digits) == 11:
        digits = digits[1:]

    if len(digits) == 10:
        return f"+1{digits}"

    if 7 <= len(digits) <= 15:
        return phone.strip()

    raise ValueError("Invalid phone number")


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()

    email_pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"

    if not re.match(email_pattern, email):
        raise ValueError("Invalid email format")

    return email


def validate_payment_status(value: Optional[str]) -> Optional[str]:
    return validate_choice(value, PAYMENT_STATUSES, "payment status")


def slugify(value: str) -> str:
    """Lowercase, hyphen-separated slug"""
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")
    return slug[:200] or "guide"
