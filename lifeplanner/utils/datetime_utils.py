"""
Timezone-aware datetime utilities.

All recurrence arithmetic runs on UTC-aware datetimes. Local timezones are
only used when rendering labels for display.
"""

import calendar
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

# UTC timezone constant
UTC = timezone.utc


def now_utc() -> datetime:
    """
    Get current UTC datetime (timezone-aware).

    Returns:
        datetime: Current UTC time with tzinfo set to UTC
    """
    return datetime.now(UTC)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Ensure datetime is timezone-aware and in UTC.

    Args:
        dt: datetime to convert (can be None, naive, or timezone-aware)

    Returns:
        Optional[datetime]: UTC timezone-aware datetime, or None if input is None
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        # Naive datetime - assume UTC
        return dt.replace(tzinfo=UTC)

    return dt.astimezone(UTC)


def to_naive_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Convert to a naive UTC datetime for storage in SQLite DATETIME columns."""
    if dt is None:
        return None
    return ensure_utc(dt).replace(tzinfo=None)


def add_months(dt: datetime, months: int) -> datetime:
    """
    Add calendar months, clamping the day to the target month's length.

    Example:
        >>> add_months(datetime(2024, 1, 31), 1)
        datetime(2024, 2, 29)
    """
    month_index = dt.year * 12 + (dt.month - 1) + months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def add_years(dt: datetime, years: int) -> datetime:
    """Add calendar years; Feb 29 clamps to Feb 28 in non-leap years."""
    return add_months(dt, years * 12)


def format_month_day(dt: datetime, display_timezone: str = "UTC") -> str:
    """
    Render a short "Mon D" label, e.g. "Feb 5".

    Args:
        dt: Instant to render
        display_timezone: IANA timezone name the label is shown in
    """
    local = ensure_utc(dt).astimezone(ZoneInfo(display_timezone))
    return f"{local.strftime('%b')} {local.day}"
