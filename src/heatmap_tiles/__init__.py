"""
heatmap_tiles
=============

On-demand density heatmap tiles over large point datasets.

This package builds an in-memory spatial index over a fixed snapshot of
point records and renders slippy-map tiles (zoom/x/y) as PNG density
images, optionally restricted to a time window.

Components:
    - index: Point store and STR-packed R-tree
    - geometry: Web Mercator tile math
    - aggregation: Per-pixel density grids
    - rendering: Count-to-colour scale and PNG encoding
    - service: Per-request orchestration and time filter parsing
    - ingest: Parquet directory loader (startup only)

Example:
    from heatmap_tiles.index import PointStore, SpatialIndex
    from heatmap_tiles.service import TileService

    index = SpatialIndex.build(store)
    service = TileService(index)
    result = service.render_tile(zoom=3, x=4, y=2)
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
