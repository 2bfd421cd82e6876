"""
Data Models
===========

Value types shared across the tile pipeline.

Models:
    Point:
        - PointRecord: One observed location with optional timestamp

    Tile:
        - TileCoordinate: zoom/x/y address
        - BoundingBox: Geographic extent with the shared boundary rule
        - TimeRange: Optional inclusive time window

    Output:
        - TileResult: Rendered bytes plus statistics
        - ErrorResponse: Error body for the HTTP layer
"""

from heatmap_tiles.models.point import (
    PointRecord,
    from_epoch_micros,
    to_epoch_micros,
)
from heatmap_tiles.models.tile import BoundingBox, TileCoordinate, TimeRange
from heatmap_tiles.models.output import ErrorResponse, TileResult

__all__ = [
    # Point
    "PointRecord",
    "to_epoch_micros",
    "from_epoch_micros",
    # Tile
    "TileCoordinate",
    "BoundingBox",
    "TimeRange",
    # Output
    "TileResult",
    "ErrorResponse",
]
