# File: utils/dt_utils.py
"""Date and time utilities for RoutineTracker.

Pure Python date/time functions with ZERO Home Assistant dependencies.
All functions here can be unit tested without Home Assistant mocking.

Functions:
    - set_default_timezone: Local reference timezone
    - dt_now_utc: Current instant (managers only, never engines)
    - as_utc / as_local: Timezone conversion
    - start_of_local_day: Local midnight for an instant
    - dt_parse_date / dt_to_utc: Normalize stored datetime inputs
    - dt_to_iso_utc: Storage formatting
"""

from __future__ import annotations

from datetime import UTC, date, datetime
import logging
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

if TYPE_CHECKING:
    from datetime import tzinfo

# Module-level logger (no HA dependency)
_LOGGER = logging.getLogger(__name__)

# Default timezone - overridden during integration setup
DEFAULT_TIME_ZONE: ZoneInfo = ZoneInfo("UTC")


# ==============================================================================
# Timezone Configuration
# ==============================================================================


def set_default_timezone(tz: ZoneInfo) -> None:
    """Set the default timezone for all dt_utils functions.

    Call this during integration setup to configure the user's timezone.

    Args:
        tz: ZoneInfo object representing the default timezone
    """
    global DEFAULT_TIME_ZONE  # noqa: PLW0603
    DEFAULT_TIME_ZONE = tz
    _LOGGER.debug("Default timezone set to %s", tz)


def dt_now_utc() -> datetime:
    """Return the current datetime in UTC (timezone-aware)."""
    return datetime.now(UTC)


# ==============================================================================
# Timezone Conversion
# ==============================================================================


def as_utc(dt_obj: datetime) -> datetime:
    """Convert a datetime to UTC timezone.

    Naive datetimes are assumed to be in DEFAULT_TIME_ZONE.
    """
    if dt_obj.tzinfo is None:
        dt_obj = dt_obj.replace(tzinfo=DEFAULT_TIME_ZONE)
    return dt_obj.astimezone(UTC)


def as_local(dt_obj: datetime, tz: tzinfo | None = None) -> datetime:
    """Convert a datetime to local timezone.

    Args:
        dt_obj: Datetime object. Naive values are assumed to be UTC.
        tz: Optional timezone override. Uses DEFAULT_TIME_ZONE if not provided.

    Returns:
        Datetime in local timezone
    """
    tz_info = tz or DEFAULT_TIME_ZONE
    if dt_obj.tzinfo is None:
        dt_obj = dt_obj.replace(tzinfo=UTC)
    return dt_obj.astimezone(tz_info)


def start_of_local_day(dt_obj: datetime, tz: tzinfo | None = None) -> datetime:
    """Get the start of day (00:00:00) for a datetime in local timezone.

    The instant is converted to the local zone first, so an instant late in the
    UTC evening can belong to the next local day (or the previous one).

    Args:
        dt_obj: Datetime object (can be in any timezone)
        tz: Optional timezone override. Uses DEFAULT_TIME_ZONE if not provided.

    Returns:
        Datetime at 00:00:00 in local timezone (timezone-aware)
    """
    tz_info = tz or DEFAULT_TIME_ZONE
    local_dt = as_local(dt_obj, tz_info)
    return local_dt.replace(hour=0, minute=0, second=0, microsecond=0)


# ==============================================================================
# Date/Time Parsing
# ==============================================================================


def dt_parse_date(date_str: str | None) -> date | None:
    """Safely parse an ISO date string ("2025-04-07") into a `datetime.date`.

    Returns:
        datetime.date or None if parsing fails.
    """
    if not date_str or not isinstance(date_str, str):
        return None

    try:
        return date.fromisoformat(date_str)
    except ValueError:
        return None


def dt_to_utc(dt_input: str | date | datetime | None) -> datetime | None:
    """Parse a datetime string (or date/datetime), apply timezone if naive, convert to UTC.

    Bare ISO dates resolve to local midnight. Unparseable input returns None.

    Example:
        "2025-04-07T14:30:00-05:00" → datetime.datetime(2025, 4, 7, 19, 30, tzinfo=UTC)
    """
    if not dt_input:
        return None

    if isinstance(dt_input, str):
        try:
            result = datetime.fromisoformat(dt_input)
        except ValueError:
            parsed_date = dt_parse_date(dt_input)
            if parsed_date is None:
                _LOGGER.debug("Unparseable datetime input: %s", dt_input)
                return None
            result = datetime.combine(parsed_date, datetime.min.time())
    elif isinstance(dt_input, datetime):
        result = dt_input
    elif isinstance(dt_input, date):
        result = datetime.combine(dt_input, datetime.min.time())
    else:
        return None

    return as_utc(result)


# ==============================================================================
# Date/Time Formatting
# ==============================================================================


def dt_to_iso_utc(dt_obj: datetime) -> str:
    """Serialize an instant as a UTC ISO 8601 string (storage format)."""
    return as_utc(dt_obj).isoformat()
