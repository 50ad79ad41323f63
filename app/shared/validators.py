"""Shared validation utilities"""

import re
import uuid
from datetime import datetime, timezone
from typing import Optional

from .errors import DomainValidationError


def validate_uuid(value: str) -> bool:
    """Validate UUID format"""
    try:
        uuid.UUID(value)
        return True
    except (ValueError, AttributeError, TypeError):
        return False


def parse_id(value: str, label: str = "id") -> str:
    """
    Normalize an identifier taken from a path or query parameter.

    Raises:
        DomainValidationError: If the value is not a UUID
    """
    if not validate_uuid(value):
        raise DomainValidationError(f"{label} is invalid")
    return str(uuid.UUID(value))


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Args:
        email: Email address string

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()

    # Basic email validation pattern
    email_pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"

    if not re.match(email_pattern, email):
        raise ValueError("Invalid email format")

    return email


def validate_latitude(lat: Optional[float]) -> Optional[float]:
    if lat is not None and not -90.0 <= lat <= 90.0:
        raise ValueError("Latitude must be between -90 and 90")
    return lat


def validate_longitude(long: Optional[float]) -> Optional[float]:
    if long is not None and not -180.0 <= long <= 180.0:
        raise ValueError("Longitude must be between -180 and 180")
    return long


def to_utc_naive(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime for storage: aware values are converted to UTC,
    naive values are taken to already be UTC. The result is naive.
    """
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
