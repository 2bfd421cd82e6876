"""
Time Filter Parsing
===================

Converts the optional `start` / `end` request parameters into a TimeRange.

Accepted formats:
    - YYYY-MM-DD: a whole UTC day. As a start bound it means 00:00:00,
      as an end bound it means 23:59:59.999999, so the day is inclusive.
    - ISO-8601 / RFC 3339 timestamp with offset, e.g.
      2024-03-01T12:00:00Z or 2024-03-01T12:00:00+02:00

Timestamps without an offset are rejected rather than guessed.
"""

import re
from datetime import date, datetime, time, timezone
from typing import Optional

from heatmap_tiles.errors import InvalidTimeRange
from heatmap_tiles.models.tile import TimeRange


_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_instant(value: str, end_of_day: bool = False) -> datetime:
    """
    Parse one time bound.

    Args:
        value: Date or timestamp string
        end_of_day: Expand a bare date to its last microsecond

    Returns:
        tz-aware UTC datetime

    Raises:
        InvalidTimeRange: If the value is malformed or cannot be expressed in UTC
    """
    text = value.strip()

    if _DATE_ONLY.match(text):
        try:
            day = date.fromisoformat(text)
        except ValueError as e:
            raise InvalidTimeRange(f"Invalid date {value!r}: {e}") from e
        return datetime.combine(day, time.max if end_of_day else time.min, tzinfo=timezone.utc)

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as e:
        raise InvalidTimeRange(
            f"Invalid timestamp {value!r}: expected YYYY-MM-DD or ISO-8601 with offset"
        ) from e

    if parsed.tzinfo is None:
        raise InvalidTimeRange(f"Timestamp {value!r} must include a UTC offset")

    try:
        return parsed.astimezone(timezone.utc)
    except (ValueError, OverflowError) as e:
        raise InvalidTimeRange(f"Timestamp {value!r} is outside the supported range: {e}") from e


def parse_time_range(start: Optional[str] = None, end: Optional[str] = None) -> Optional[TimeRange]:
    """
    Build a TimeRange from request parameters.

    Empty strings count as absent bounds.

    Returns:
        TimeRange, or None when neither bound is given

    Raises:
        InvalidTimeRange: If a bound is malformed or start is after end
    """
    start_dt = parse_instant(start) if start else None
    end_dt = parse_instant(end, end_of_day=True) if end else None

    if start_dt is None and end_dt is None:
        return None

    if start_dt is not None and end_dt is not None and start_dt > end_dt:
        raise InvalidTimeRange(
            f"start {start_dt.isoformat()} is after end {end_dt.isoformat()}"
        )

    return TimeRange(start=start_dt, end=end_dt)
