"""
Service Module
==============

Request orchestration: validation, index query, aggregation, rendering.

Components:
    - TileService: Stateless-per-request tile pipeline
    - ServiceMetrics: Lock-protected cross-request counters
    - parse_time_range: start/end parameters -> TimeRange
"""

from heatmap_tiles.service.timefilter import parse_instant, parse_time_range
from heatmap_tiles.service.tile_service import ServiceMetrics, TileService

__all__ = [
    "TileService",
    "ServiceMetrics",
    "parse_time_range",
    "parse_instant",
]
