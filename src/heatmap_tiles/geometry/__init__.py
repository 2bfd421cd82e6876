"""
Geometry Module
===============

Web Mercator tile math: tile address <-> bounding box, and coordinate
-> pixel projection within a tile.
"""

from heatmap_tiles.geometry.tiles import (
    DEFAULT_MAX_ZOOM,
    MAX_LATITUDE,
    TILE_SIZE,
    lonlat_to_pixel,
    lonlat_to_tile,
    project_to_pixels,
    tile_to_bbox,
    validate_tile,
)

__all__ = [
    "TILE_SIZE",
    "DEFAULT_MAX_ZOOM",
    "MAX_LATITUDE",
    "validate_tile",
    "tile_to_bbox",
    "lonlat_to_tile",
    "project_to_pixels",
    "lonlat_to_pixel",
]
