"""
Point Store
===========

Flat, immutable, columnar storage for every ingested point.

The store keeps four parallel numpy arrays:
    - lon: float64 degrees
    - lat: float64 degrees
    - ts: int64 microseconds since the UNIX epoch (UTC), 0 when unknown
    - has_ts: bool, whether ts carries a real timestamp

Arrays are flagged read-only after construction. The spatial index keeps
integer references into these arrays rather than copies of records.
"""

import logging
from typing import Iterable, Iterator, Optional, Tuple

import numpy as np

from heatmap_tiles.models.point import (
    PointRecord,
    from_epoch_micros,
    to_epoch_micros,
)


logger = logging.getLogger(__name__)


def _freeze(array: np.ndarray) -> np.ndarray:
    array.setflags(write=False)
    return array


class PointStore:
    """
    Immutable columnar point collection.

    Attributes:
        lon: Longitudes (read-only)
        lat: Latitudes (read-only)
        ts: Timestamps in epoch microseconds (read-only)
        has_ts: Timestamp presence mask (read-only)

    Example:
        store = PointStore.from_records([
            PointRecord(0.0, 0.0),
            PointRecord(10.0, 10.0, datetime(2024, 1, 1, tzinfo=timezone.utc)),
        ])
        len(store)   # 2
        store[1]     # PointRecord(lon=10.0, ...)
    """

    __slots__ = ("lon", "lat", "ts", "has_ts")

    def __init__(
        self,
        lon: np.ndarray,
        lat: np.ndarray,
        ts: np.ndarray,
        has_ts: np.ndarray,
    ) -> None:
        n = len(lon)
        if not (len(lat) == len(ts) == len(has_ts) == n):
            raise ValueError("PointStore columns must have equal length")

        self.lon = _freeze(np.ascontiguousarray(lon, dtype=np.float64))
        self.lat = _freeze(np.ascontiguousarray(lat, dtype=np.float64))
        self.ts = _freeze(np.ascontiguousarray(ts, dtype=np.int64))
        self.has_ts = _freeze(np.ascontiguousarray(has_ts, dtype=bool))

    @classmethod
    def from_arrays(
        cls,
        lon: np.ndarray,
        lat: np.ndarray,
        ts: Optional[np.ndarray] = None,
        has_ts: Optional[np.ndarray] = None,
    ) -> "PointStore":
        """
        Build a store from column arrays.

        Args:
            lon: Longitudes
            lat: Latitudes
            ts: Epoch microseconds, or None when no point has a timestamp
            has_ts: Presence mask; defaults to all-True when ts is given

        Returns:
            PointStore (arrays are copied)
        """
        lon = np.array(lon, dtype=np.float64)
        lat = np.array(lat, dtype=np.float64)
        if ts is None:
            ts = np.zeros(len(lon), dtype=np.int64)
            has_ts = np.zeros(len(lon), dtype=bool)
        else:
            ts = np.array(ts, dtype=np.int64)
            if has_ts is None:
                has_ts = np.ones(len(lon), dtype=bool)
            else:
                has_ts = np.array(has_ts, dtype=bool)
            ts[~has_ts] = 0
        return cls(lon, lat, ts, has_ts)

    @classmethod
    def from_records(cls, records: Iterable[PointRecord]) -> "PointStore":
        """Build a store from Point Records."""
        lon, lat, ts, has_ts = [], [], [], []
        for record in records:
            lon.append(record.longitude)
            lat.append(record.latitude)
            if record.timestamp is None:
                ts.append(0)
                has_ts.append(False)
            else:
                ts.append(to_epoch_micros(record.timestamp))
                has_ts.append(True)

        return cls(
            np.array(lon, dtype=np.float64),
            np.array(lat, dtype=np.float64),
            np.array(ts, dtype=np.int64),
            np.array(has_ts, dtype=bool),
        )

    def __len__(self) -> int:
        return len(self.lon)

    def __getitem__(self, i: int) -> PointRecord:
        return PointRecord(
            longitude=float(self.lon[i]),
            latitude=float(self.lat[i]),
            timestamp=from_epoch_micros(self.ts[i]) if self.has_ts[i] else None,
        )

    def __iter__(self) -> Iterator[PointRecord]:
        for i in range(len(self)):
            yield self[i]

    def valid_mask(self) -> np.ndarray:
        """Points with finite, in-range coordinates."""
        return (
            np.isfinite(self.lon)
            & np.isfinite(self.lat)
            & (self.lon >= -180.0)
            & (self.lon <= 180.0)
            & (self.lat >= -90.0)
            & (self.lat <= 90.0)
        )

    def time_span(self) -> Optional[Tuple[int, int]]:
        """(min, max) epoch microseconds over timestamped points, or None."""
        if not self.has_ts.any():
            return None
        stamped = self.ts[self.has_ts]
        return int(stamped.min()), int(stamped.max())

    def __repr__(self) -> str:
        return f"PointStore(points={len(self)}, timestamped={int(self.has_ts.sum())})"
