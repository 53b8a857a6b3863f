# ============================================================================
# CALENDAR DATE HELPERS
# ============================================================================
# EPOCH: 1 - JOB CYCLE ENGINE
# STATUS: Core - Whole-day date arithmetic
# PURPOSE: Parse ISO dates and compute day offsets without timezone shifts
# CREATED: 18 OCT 2026
# ============================================================================
"""
Dates in the engine are whole calendar days (``datetime.date``), never
timestamps. Offsets are plain day counts.
"""

from datetime import date, datetime, timedelta
from typing import Optional, Union

DateLike = Union[date, datetime, str]


def as_date(value: DateLike) -> date:
    """Coerce a date, datetime or ``YYYY-MM-DD`` string to a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        # Accept full ISO timestamps too; only the calendar part matters.
        return date.fromisoformat(value.strip()[:10])
    raise TypeError(f"Expected date or ISO date string, got {type(value).__name__}")


def add_days(anchor: date, days: int) -> date:
    return anchor + timedelta(days=days)


def days_between(base: date, target: Optional[date]) -> int:
    """Whole days from ``base`` to ``target`` (0 when target is missing)."""
    if target is None:
        return 0
    return (target - base).days
