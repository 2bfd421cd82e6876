"""
Density Aggregation
===================

Bins matched points into a per-pixel count grid for one tile.

This aggregator:
    - Projects each point with the tile geometry (same rule as rendering)
    - Counts points per pixel with numpy.bincount
    - Saturates counts at the uint32 maximum instead of wrapping

Grids are created fresh for every request and never shared. An empty
input yields an all-zero grid, which renders as an empty tile.
"""

import itertools
import logging
from typing import Iterable

import numpy as np

from heatmap_tiles.geometry.tiles import TILE_SIZE, project_to_pixels
from heatmap_tiles.index.rtree import QueryResult
from heatmap_tiles.models.point import PointRecord
from heatmap_tiles.models.tile import BoundingBox


logger = logging.getLogger(__name__)


COUNTER_MAX = int(np.iinfo(np.uint32).max)


class DensityGrid:
    """
    Per-pixel point counts for one tile.

    Attributes:
        counts: uint32 array of shape (tile_size, tile_size), indexed [py, px]
    """

    __slots__ = ("counts",)

    def __init__(self, counts: np.ndarray) -> None:
        if counts.ndim != 2 or counts.shape[0] != counts.shape[1]:
            raise ValueError(f"Density grid must be square, got {counts.shape}")
        self.counts = counts

    @classmethod
    def zeros(cls, tile_size: int = TILE_SIZE) -> "DensityGrid":
        return cls(np.zeros((tile_size, tile_size), dtype=np.uint32))

    @property
    def tile_size(self) -> int:
        return self.counts.shape[0]

    @property
    def total(self) -> int:
        """Sum over all pixels."""
        return int(self.counts.sum(dtype=np.uint64))

    @property
    def max_count(self) -> int:
        return int(self.counts.max()) if self.counts.size else 0

    @property
    def is_empty(self) -> bool:
        return self.max_count == 0

    def count_at(self, px: int, py: int) -> int:
        return int(self.counts[py, px])

    def __repr__(self) -> str:
        return (
            f"DensityGrid(size={self.tile_size}, "
            f"total={self.total}, max={self.max_count})"
        )

    def to_dict(self) -> dict:
        """Export summary for logging/serialization."""
        return {
            "tile_size": self.tile_size,
            "total": self.total,
            "max_count": self.max_count,
            "nonzero_pixels": int(np.count_nonzero(self.counts)),
        }


class DensityAggregator:
    """
    Builds DensityGrids from matched points.

    Stateless apart from its configuration, so one instance can serve
    concurrent requests.

    Example:
        aggregator = DensityAggregator(tile_size=256)
        grid = aggregator.aggregate(index.query(bbox), bbox)
        print(grid.total)
    """

    def __init__(self, tile_size: int = TILE_SIZE, chunk_size: int = 65536) -> None:
        """
        Initialize density aggregator.

        Args:
            tile_size: Grid width and height in pixels
            chunk_size: Records projected per batch when consuming a plain iterable
        """
        if tile_size < 1:
            raise ValueError("tile_size must be positive")
        if chunk_size < 1:
            raise ValueError("chunk_size must be positive")

        self.tile_size = tile_size
        self.chunk_size = chunk_size

    def aggregate(self, points: Iterable[PointRecord], bbox: BoundingBox) -> DensityGrid:
        """
        Aggregate Point Records into a grid.

        Query results are projected in one vectorised pass; any other
        iterable is consumed lazily in chunks.

        Args:
            points: Matched points
            bbox: Tile bounding box

        Returns:
            DensityGrid (all zeros when points is empty)
        """
        if isinstance(points, QueryResult):
            return self.aggregate_arrays(points.lons, points.lats, bbox)

        counts = self._new_counts()
        iterator = iter(points)
        while True:
            chunk = list(itertools.islice(iterator, self.chunk_size))
            if not chunk:
                break
            lons = np.fromiter((p.longitude for p in chunk), dtype=np.float64, count=len(chunk))
            lats = np.fromiter((p.latitude for p in chunk), dtype=np.float64, count=len(chunk))
            self._accumulate(counts, lons, lats, bbox)

        return self._finish(counts)

    def aggregate_arrays(
        self,
        lons: np.ndarray,
        lats: np.ndarray,
        bbox: BoundingBox,
    ) -> DensityGrid:
        """Aggregate coordinate arrays into a grid."""
        counts = self._new_counts()
        self._accumulate(counts, np.asarray(lons), np.asarray(lats), bbox)
        return self._finish(counts)

    def _new_counts(self) -> np.ndarray:
        return np.zeros(self.tile_size * self.tile_size, dtype=np.uint64)

    def _accumulate(
        self,
        counts: np.ndarray,
        lons: np.ndarray,
        lats: np.ndarray,
        bbox: BoundingBox,
    ) -> None:
        if len(lons) == 0:
            return
        px, py = project_to_pixels(lons, lats, bbox, self.tile_size)
        flat = py * self.tile_size + px
        counts += np.bincount(flat, minlength=counts.size).astype(np.uint64)

    def _finish(self, counts: np.ndarray) -> DensityGrid:
        saturated = np.minimum(counts, COUNTER_MAX).astype(np.uint32)
        return DensityGrid(saturated.reshape(self.tile_size, self.tile_size))

