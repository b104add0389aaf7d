"""Shared validation utilities"""

import uuid
from datetime import date, datetime, time
from typing import Optional, Union


def validate_uuid(value: str) -> bool:
    """Validate UUID format"""
    try:
        uuid.UUID(value)
        return True
    except (ValueError, AttributeError, TypeError):
        return False


def as_day(value: Union[date, datetime]) -> date:
    """Reduce a date or datetime to its calendar day"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raise TypeError(f"Expected date or datetime, got {type(value).__name__}")


def start_of_day(value: Optional[Union[date, datetime]]) -> Optional[datetime]:
    """Promote a plain date to midnight; datetimes pass through unchanged"""
    if value is None or isinstance(value, datetime):
        return value
    return datetime.combine(value, time.min)


def validate_title(title: Optional[str]) -> Optional[str]:
    """
    Validate and normalize a task title.

    Args:
        title: Raw title string

    Returns:
        Stripped title

    Raises:
        ValueError: If the title is empty or longer than 200 characters
    """
    if title is None:
        return title

    title = title.strip()
    if not title:
        raise ValueError("Title is required")
    if len(title) > 200:
        raise ValueError("Title must be 200 characters or fewer")
    return title
