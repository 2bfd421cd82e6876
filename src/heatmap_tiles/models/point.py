"""
Point Models
============

The Point Record is the unit of data produced by ingestion and
referenced by the spatial index.

Timestamps are carried as tz-aware datetimes on records and as integer
microseconds since the UNIX epoch (UTC) inside the columnar store.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MICROSECOND = timedelta(microseconds=1)


def to_epoch_micros(value: datetime) -> int:
    """Convert a tz-aware datetime to microseconds since the epoch."""
    if value.tzinfo is None:
        raise ValueError(f"Timestamp must carry a UTC offset: {value.isoformat()}")
    return (value - EPOCH) // _ONE_MICROSECOND


def from_epoch_micros(micros: int) -> datetime:
    """Convert microseconds since the epoch to a UTC datetime."""
    return EPOCH + timedelta(microseconds=int(micros))


@dataclass(frozen=True, slots=True)
class PointRecord:
    """
    A single observed location.

    Created once during ingestion and never mutated.

    Attributes:
        longitude: Degrees east, expected in [-180, 180]
        latitude: Degrees north, expected in [-90, 90]
        timestamp: Observation time (tz-aware), or None when unknown
    """

    longitude: float
    latitude: float
    timestamp: Optional[datetime] = None

    def __post_init__(self) -> None:
        """Validate invariants."""
        if self.timestamp is not None and self.timestamp.tzinfo is None:
            raise ValueError("timestamp must be timezone-aware")

    @property
    def is_valid(self) -> bool:
        """Whether the coordinates can be placed on the map."""
        return (
            math.isfinite(self.longitude)
            and math.isfinite(self.latitude)
            and -180.0 <= self.longitude <= 180.0
            and -90.0 <= self.latitude <= 90.0
        )

    def __repr__(self) -> str:
        ts = self.timestamp.isoformat() if self.timestamp else None
        return (
            f"PointRecord(lon={self.longitude:.6f}, "
            f"lat={self.latitude:.6f}, ts={ts})"
        )
