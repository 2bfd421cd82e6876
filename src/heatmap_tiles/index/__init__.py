"""
Index Module
============

In-memory point storage and the spatial index built over it.

Components:
    - PointStore: Immutable columnar point collection
    - SpatialIndex: STR-packed R-tree with time-span pruning
    - QueryResult: Lazy sequence of matched Point Records

The index is built once at startup and shared read-only by all requests.
"""

from heatmap_tiles.index.store import PointStore
from heatmap_tiles.index.rtree import (
    DEFAULT_NODE_CAPACITY,
    QueryResult,
    SpatialIndex,
)

__all__ = [
    "PointStore",
    "SpatialIndex",
    "QueryResult",
    "DEFAULT_NODE_CAPACITY",
]
