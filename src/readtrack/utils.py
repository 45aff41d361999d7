"""Utility functions for readtrack."""

import math
from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_iso(moment: datetime) -> str:
    """
    Format a datetime as a fixed-width ISO-8601 UTC string.

    All timestamps are stored in this form so that lexicographic
    ordering in the database matches chronological ordering.

    Args:
        moment: Aware or naive datetime (naive is assumed to be UTC)

    Returns:
        String like '2025-01-15T10:30:00.000000+00:00'

    Example:
        >>> to_iso(datetime(2025, 1, 15, 10, 30, tzinfo=timezone.utc))
        '2025-01-15T10:30:00.000000+00:00'
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_iso(value: Optional[str]) -> Optional[datetime]:
    """Parse a stored ISO-8601 string back to an aware datetime."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def reference_date(moment: datetime, tz_name: str = "UTC") -> date:
    """
    Normalize a moment to a calendar day in the reference timezone.

    Args:
        moment: Point in time
        tz_name: IANA timezone name used for day boundaries

    Returns:
        The calendar date of the moment in that timezone
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(ZoneInfo(tz_name)).date()


def round_half_up(value: float) -> int:
    """
    Round a non-negative number to the nearest integer, halves going up.

    Python's round() uses banker's rounding (round(12.5) == 12); progress
    percentages round 12.5 to 13.

    Example:
        >>> round_half_up(12.5)
        13
        >>> round_half_up(12.49)
        12
    """
    return int(math.floor(value + 0.5))


def percentage(current: float, target: float, cap: float = 100.0) -> float:
    """
    Calculate a percentage rounded to 1 decimal and capped.

    Args:
        current: Achieved amount
        target: Target amount (<= 0 yields 0.0)
        cap: Upper bound for the result

    Returns:
        Percentage between 0 and cap
    """
    if target <= 0:
        return 0.0
    return min(cap, round((current / target) * 100, 1))
