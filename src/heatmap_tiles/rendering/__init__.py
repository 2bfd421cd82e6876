"""
Rendering Module
================

Count-to-colour mapping and PNG encoding for density tiles.

Components:
    - ColorScale: Monotonic log/linear colour ramp, transparent at zero
    - TileRenderer: DensityGrid -> PNG bytes (OpenCV encoder)
"""

from heatmap_tiles.rendering.colors import ColorScale, DEFAULT_STOPS, TRANSPARENT
from heatmap_tiles.rendering.renderer import PNG_MEDIA_TYPE, TileRenderer

__all__ = [
    "ColorScale",
    "DEFAULT_STOPS",
    "TRANSPARENT",
    "TileRenderer",
    "PNG_MEDIA_TYPE",
]
