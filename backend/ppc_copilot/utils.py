"""
Shared utility functions.
"""

import logging
from datetime import date, datetime, timezone
from typing import Optional
from fastapi import HTTPException

logger = logging.getLogger(__name__)


def safe_error_detail(exc: Exception, fallback: str = "An internal error occurred. Please try again later.") -> str:
    """
    Return a sanitized error message safe for client consumption.
    Logs the real exception detail server-side.
    """
    logger.error(f"Operation failed: {exc}", exc_info=True)
    return fallback


def utcnow() -> datetime:
    """Return the current UTC time as an aware datetime."""
    return datetime.now(timezone.utc)


def utc_isoformat() -> str:
    """Current UTC time as ISO-8601 with a Z suffix, e.g. 2024-05-01T12:00:00.000Z."""
    return utcnow().isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso_date(value: Optional[str], field_name: str = "date") -> Optional[date]:
    """
    Parse a YYYY-MM-DD query value, raising a 400 HTTPException on invalid input
    instead of letting a bare ValueError bubble up as a 500.
    """
    if value is None or value == "":
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid date for '{field_name}': {value!r} (expected YYYY-MM-DD)",
        )
