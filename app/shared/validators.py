"""Shared validation utilities"""

import re
from typing import Optional


def validate_phone(phone: Optional[str]) -> Optional[str]:
    """
    Validate and normalize a phone number to E.164 format.

    Ten-digit numbers are treated as US numbers. Numbers written with a
    leading + keep their country code.

    Raises:
        ValueError: If phone number is invalid
    """
    if not phone:
        return phone

    phone = phone.strip()
    if not re.match(r"^\+?[\d\s\-\(\)\.]+$", phone):
        raise ValueError("Phone number must contain only digits, spaces, hyphens, and parentheses")

    digits = re.sub(r"\D", "", phone)

    if phone.startswith("+"):
        if not 10 <= len(digits) <= 15:
            raise ValueError("Phone number must have between 10 and 15 digits")
        return f"+{digits}"

    # Handle 1 prefix on US numbers
    if digits.startswith("1") and len(digits) == 11:
        digits = digits[1:]

    if len(digits) != 10:
        raise ValueError("Phone number must be 10 digits for US numbers")

    return f"+1{digits}"


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


def validate_string_list(values: list[str], field: str, min_length: int = 2, max_length: int = 100) -> list[str]:
    """Validate a non-empty list of short strings (qualifications, specializations)"""
    cleaned = [v.strip() for v in values if v and v.strip()]
    if not cleaned:
        raise ValueError(f"At least one {field} is required")
    for value in cleaned:
        if not min_length <= len(value) <= max_length:
            raise ValueError(f"Each {field} must be between {min_length} and {max_length} characters")
    return cleaned
