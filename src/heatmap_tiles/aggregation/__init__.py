"""
Aggregation Module
==================

Per-request density grids built from spatial index query results.
"""

from heatmap_tiles.aggregation.density import (
    COUNTER_MAX,
    DensityAggregator,
    DensityGrid,
)

__all__ = [
    "DensityAggregator",
    "DensityGrid",
    "COUNTER_MAX",
]
