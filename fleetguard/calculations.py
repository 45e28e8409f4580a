"""Helper functions for expiry date calculations."""

import math
from datetime import date, datetime
from typing import Optional, Union

from dateutil.parser import isoparse

from .status import Status

EXPIRING_WINDOW_DAYS = 30
LICENSE_EXPIRING_WINDOW_DAYS = 45

DateLike = Union[date, str, None]


def parse_date(value: DateLike) -> Optional[date]:
    """
    Parse an ISO date (or datetime) into a calendar date.

    Returns None for empty or malformed input; time of day is dropped.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return isoparse(value.strip()).date()
    except (ValueError, OverflowError):
        return None


def days_until(expiry: DateLike, today: Optional[date] = None) -> Optional[int]:
    """Whole calendar days from today to expiry (negative once passed)."""
    expiry_date = parse_date(expiry)
    if expiry_date is None:
        return None
    today = parse_date(today) or date.today()
    return (expiry_date - today).days


def check_expiry(
    expiry: DateLike, window_days: int, today: Optional[date] = None
) -> Status:
    """Classify an expiry date against an expiring window (inclusive)."""
    days = days_until(expiry, today)
    if days is None:
        return Status.MISSING
    if days < 0:
        return Status.EXPIRED
    if days <= window_days:
        return Status.EXPIRING
    return Status.VALID


def classify(
    expiry: DateLike,
    today: Optional[date] = None,
    window_days: int = EXPIRING_WINDOW_DAYS,
) -> Status:
    """Lifecycle status of a vehicle document."""
    return check_expiry(expiry, window_days, today)


def classify_license(
    expiry: DateLike,
    today: Optional[date] = None,
    window_days: int = LICENSE_EXPIRING_WINDOW_DAYS,
) -> Status:
    """Lifecycle status of a driver license (longer lead time than documents)."""
    return check_expiry(expiry, window_days, today)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))
