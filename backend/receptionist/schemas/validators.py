"""Reusable validators for onboarding form payloads.

Provides:
- Email validation
- URL validation (empty string allowed, the website field is optional)
- ZIP code / area code checks
- HH:MM time-of-day parsing
"""

import re
from datetime import time


# Regex patterns
EMAIL_REGEX = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
URL_REGEX = re.compile(
    r"^https?://"  # http:// or https://
    r"(?:(?:[A-Z0-9](?:[A-Z0-9-]{0,61}[A-Z0-9])?\.)+[A-Z]{2,6}\.?|"  # domain
    r"localhost|"  # localhost
    r"\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3})"  # IP
    r"(?::\d+)?"  # optional port
    r"(?:/?|[/?]\S+)$",
    re.IGNORECASE,
)
ZIP_REGEX = re.compile(r"^\d{5}(-\d{4})?$")
AREA_CODE_REGEX = re.compile(r"^\d{3}$")
TIME_REGEX = re.compile(r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$")


def validate_email(value: str) -> str:
    """Validate email address.

    Args:
        value: Email address

    Returns:
        Trimmed email address

    Raises:
        ValueError: If email is invalid
    """
    if not value:
        raise ValueError("Email is required")

    value = value.strip()

    if len(value) > 254:  # RFC 5321
        raise ValueError("Email address too long")

    if not EMAIL_REGEX.match(value):
        raise ValueError("Please enter a valid email address")

    return value


def validate_optional_url(value: str | None) -> str | None:
    if value is None or value == "":
        return value
    value = value.strip()
    if not URL_REGEX.match(value):
        raise ValueError("Please enter a valid URL")
    return value


def validate_zip_code(value: str | None) -> str | None:
    if value is None:
        return value
    if not ZIP_REGEX.match(value):
        raise ValueError("Please enter a valid ZIP code")
    return value


def validate_area_code(value: str | None) -> str | None:
    if value is None:
        return value
    if not AREA_CODE_REGEX.match(value):
        raise ValueError("Area code must be 3 digits")
    return value


def parse_time_of_day(value: str) -> time:
    """Parse an "HH:MM" string (24h clock) into a time."""
    if not TIME_REGEX.match(value or ""):
        raise ValueError("Invalid time format (HH:MM)")
    hours, minutes = value.split(":")
    return time(int(hours), int(minutes))
