"""
Tile Models
===========

Request-scoped value types: tile coordinates, geographic bounding boxes
and the optional time window.

Boundary Rule:
    A point (lon, lat) belongs to a bounding box when

        min_lon <= lon < max_lon   and   min_lat < lat <= max_lat

    i.e. the west and north edges are closed, the east and south edges
    are open. In pixel space this is "inclusive on the left/top edge,
    exclusive on the right/bottom edge", so neighbouring tiles share no
    points. Tiles on the east or south border of the world close that
    edge (closed_east / closed_south) so no point falls off the map.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from heatmap_tiles.models.point import to_epoch_micros


@dataclass(frozen=True, slots=True)
class TileCoordinate:
    """
    Slippy-map tile address.

    Attributes:
        zoom: Zoom level (0 = whole world in one tile)
        x: Column, increasing eastward, in [0, 2**zoom)
        y: Row, increasing southward, in [0, 2**zoom)
    """

    zoom: int
    x: int
    y: int

    @property
    def tiles_per_axis(self) -> int:
        return 1 << self.zoom

    def __str__(self) -> str:
        return f"{self.zoom}/{self.x}/{self.y}"


@dataclass(frozen=True, slots=True)
class BoundingBox:
    """
    Geographic bounding box in degrees.

    Attributes:
        min_lon: West edge (closed)
        min_lat: South edge (open unless closed_south)
        max_lon: East edge (open unless closed_east)
        max_lat: North edge (closed)
        closed_east: Include points exactly on max_lon
        closed_south: Include points exactly on min_lat
    """

    min_lon: float
    min_lat: float
    max_lon: float
    max_lat: float
    closed_east: bool = False
    closed_south: bool = False

    def __post_init__(self) -> None:
        """Validate invariants."""
        if self.min_lon > self.max_lon:
            raise ValueError("min_lon must not exceed max_lon")
        if self.min_lat > self.max_lat:
            raise ValueError("min_lat must not exceed max_lat")

    def contains(self, lon: float, lat: float) -> bool:
        """Apply the boundary rule to a single coordinate."""
        if lon < self.min_lon or lat > self.max_lat:
            return False
        if lon > self.max_lon or (lon == self.max_lon and not self.closed_east):
            return False
        if lat < self.min_lat or (lat == self.min_lat and not self.closed_south):
            return False
        return True

    def to_dict(self) -> dict:
        """Export as dictionary for logging/serialization."""
        return {
            "min_lon": self.min_lon,
            "min_lat": self.min_lat,
            "max_lon": self.max_lon,
            "max_lat": self.max_lat,
        }


@dataclass(frozen=True, slots=True)
class TimeRange:
    """
    Inclusive time window; a missing bound is unbounded on that side.

    Attributes:
        start: Earliest accepted timestamp (tz-aware) or None
        end: Latest accepted timestamp (tz-aware) or None
    """

    start: Optional[datetime] = None
    end: Optional[datetime] = None

    def __post_init__(self) -> None:
        """Validate invariants."""
        if self.start is not None and self.end is not None and self.start > self.end:
            raise ValueError("start must not be after end")

    @property
    def start_us(self) -> Optional[int]:
        return to_epoch_micros(self.start) if self.start is not None else None

    @property
    def end_us(self) -> Optional[int]:
        return to_epoch_micros(self.end) if self.end is not None else None

    @property
    def is_unbounded(self) -> bool:
        return self.start is None and self.end is None

    def contains(self, timestamp: Optional[datetime]) -> bool:
        """Records without a timestamp are never excluded."""
        if timestamp is None:
            return True
        if self.start is not None and timestamp < self.start:
            return False
        if self.end is not None and timestamp > self.end:
            return False
        return True
