"""
Tile Geometry
=============

Web Mercator (EPSG:3857) tile math for the slippy-map scheme.

    - Zoom z -> 2**z x 2**z tiles
    - Tile (0, 0) is the north-west corner
    - x increases eastward, y increases southward

All functions are pure and stateless. Pixel projection is vectorised with
numpy; the scalar helper delegates to the vectorised one so both give the
same pixel for the same input.

Pixel Boundary Rule:
    Projected pixels are floored and clamped to [0, tile_size). The left
    and top edges of a tile are inclusive, the right and bottom edges are
    exclusive (see BoundingBox for the matching geographic rule).
"""

import math
from typing import Tuple

import numpy as np

from heatmap_tiles.errors import InvalidTileCoordinate
from heatmap_tiles.models.tile import BoundingBox, TileCoordinate


TILE_SIZE = 256
DEFAULT_MAX_ZOOM = 22

# Latitude of the top edge of tile row 0: atan(sinh(pi)) in degrees
MAX_LATITUDE = 85.0511287798066


def validate_tile(zoom: int, x: int, y: int, max_zoom: int = DEFAULT_MAX_ZOOM) -> TileCoordinate:
    """
    Validate a tile address against the pyramid.

    Args:
        zoom: Zoom level
        x: Tile column
        y: Tile row
        max_zoom: Highest zoom level served

    Returns:
        TileCoordinate for the address

    Raises:
        InvalidTileCoordinate: If any component is out of range
    """
    for name, value in (("zoom", zoom), ("x", x), ("y", y)):
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidTileCoordinate(f"{name} must be an integer, got {value!r}")

    if zoom < 0 or zoom > max_zoom:
        raise InvalidTileCoordinate(f"zoom {zoom} outside [0, {max_zoom}]")

    n = 1 << zoom
    if not 0 <= x < n:
        raise InvalidTileCoordinate(f"x {x} outside [0, {n}) at zoom {zoom}")
    if not 0 <= y < n:
        raise InvalidTileCoordinate(f"y {y} outside [0, {n}) at zoom {zoom}")

    return TileCoordinate(zoom=zoom, x=x, y=y)


def _tile_edge_latitude(y: int, n: int) -> float:
    """Latitude of the north edge of tile row y (row n is the world's south edge)."""
    return math.degrees(math.atan(math.sinh(math.pi * (1.0 - 2.0 * y / n))))


def tile_to_bbox(zoom: int, x: int, y: int, max_zoom: int = DEFAULT_MAX_ZOOM) -> BoundingBox:
    """
    Convert a tile address to its geographic bounding box.

    Args:
        zoom: Zoom level
        x: Tile column
        y: Tile row
        max_zoom: Highest zoom level served

    Returns:
        BoundingBox in degrees

    Raises:
        InvalidTileCoordinate: If the address is outside the pyramid
    """
    tile = validate_tile(zoom, x, y, max_zoom)
    n = tile.tiles_per_axis

    return BoundingBox(
        min_lon=x / n * 360.0 - 180.0,
        min_lat=_tile_edge_latitude(y + 1, n),
        max_lon=(x + 1) / n * 360.0 - 180.0,
        max_lat=_tile_edge_latitude(y, n),
        closed_east=(x == n - 1),
        closed_south=(y == n - 1),
    )


def lonlat_to_tile(lon: float, lat: float, zoom: int) -> TileCoordinate:
    """Tile containing a coordinate at the given zoom, clamped to the pyramid."""
    n = 1 << zoom
    lat = max(-MAX_LATITUDE, min(MAX_LATITUDE, lat))
    x = int(math.floor((lon + 180.0) / 360.0 * n))
    lat_rad = math.radians(lat)
    y = int(math.floor((1.0 - math.asinh(math.tan(lat_rad)) / math.pi) / 2.0 * n))
    x = max(0, min(n - 1, x))
    y = max(0, min(n - 1, y))
    return TileCoordinate(zoom=zoom, x=x, y=y)


def _mercator_y(lats: np.ndarray) -> np.ndarray:
    """Unscaled Mercator northing; latitudes are clipped to the projection's range."""
    clipped = np.clip(lats, -MAX_LATITUDE, MAX_LATITUDE)
    return np.log(np.tan(np.pi / 4.0 + np.radians(clipped) / 2.0))


def project_to_pixels(
    lons: np.ndarray,
    lats: np.ndarray,
    bbox: BoundingBox,
    tile_size: int = TILE_SIZE,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Project coordinates into pixel space of the tile covering bbox.

    Args:
        lons: Longitudes in degrees
        lats: Latitudes in degrees
        bbox: Tile bounding box
        tile_size: Raster width and height

    Returns:
        (px, py) int64 arrays, each clamped to [0, tile_size)
    """
    lons = np.asarray(lons, dtype=np.float64)
    lats = np.asarray(lats, dtype=np.float64)

    width = bbox.max_lon - bbox.min_lon
    if width <= 0 or bbox.max_lat <= bbox.min_lat:
        raise ValueError(f"Degenerate bounding box: {bbox}")

    top, bottom = _mercator_y(np.array([bbox.max_lat, bbox.min_lat]))

    fx = (lons - bbox.min_lon) / width * tile_size
    fy = (top - _mercator_y(lats)) / (top - bottom) * tile_size

    px = np.clip(np.floor(fx), 0, tile_size - 1).astype(np.int64)
    py = np.clip(np.floor(fy), 0, tile_size - 1).astype(np.int64)
    return px, py


def lonlat_to_pixel(
    lon: float,
    lat: float,
    bbox: BoundingBox,
    tile_size: int = TILE_SIZE,
) -> Tuple[int, int]:
    """
    Project one coordinate into pixel space of the tile covering bbox.

    Returns:
        (px, py), each in [0, tile_size)
    """
    px, py = project_to_pixels(np.array([lon]), np.array([lat]), bbox, tile_size)
    return int(px[0]), int(py[0])
