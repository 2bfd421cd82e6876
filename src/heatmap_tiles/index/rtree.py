"""
Spatial Index
=============

Sort-Tile-Recursive (STR) packed R-tree over a PointStore.

Structure:
    The tree is stored level by level as parallel numpy arrays. Each node
    has a bounding box, a time span, and a contiguous range of children in
    the level below. The bottom level's children are positions in
    `_order`, the permutation of point ids in leaf order, so leaves only
    reference points held by the store.

Time Spans:
    Every node records the min/max timestamp beneath it. A point without a
    timestamp widens its node's span to the full int64 range, so a time
    filter never prunes it.

Query:
    Traversal is breadth-first and vectorised per level. Nodes are pruned
    by bbox intersection (closed intervals) and time overlap; surviving
    leaf entries are then exact-filtered with the half-open boundary rule
    from BoundingBox. Only exact matches are returned.

The index is built once and never mutated. All arrays are read-only, so
concurrent queries need no locking.
"""

import logging
import math
import time
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Iterator, List, Optional

import numpy as np

from heatmap_tiles.errors import IndexBuildError
from heatmap_tiles.index.store import PointStore
from heatmap_tiles.models.point import PointRecord
from heatmap_tiles.models.tile import BoundingBox, TimeRange


logger = logging.getLogger(__name__)


_TS_MIN = np.iinfo(np.int64).min
_TS_MAX = np.iinfo(np.int64).max

DEFAULT_NODE_CAPACITY = 16


@dataclass(frozen=True, slots=True)
class _Level:
    """One tree level; child ranges index into the level below."""

    min_x: np.ndarray
    min_y: np.ndarray
    max_x: np.ndarray
    max_y: np.ndarray
    min_t: np.ndarray
    max_t: np.ndarray
    child_start: np.ndarray
    child_end: np.ndarray

    def __len__(self) -> int:
        return len(self.min_x)

    def take(self, perm: np.ndarray) -> "_Level":
        return _Level(*(getattr(self, name)[perm] for name in self.__slots__))

    def freeze(self) -> "_Level":
        for name in self.__slots__:
            getattr(self, name).setflags(write=False)
        return self


def _str_order(x: np.ndarray, y: np.ndarray, capacity: int) -> np.ndarray:
    """
    Sort-Tile-Recursive ordering.

    Entries are cut into ceil(sqrt(ceil(n / capacity))) vertical slabs by x,
    then sorted by y inside each slab. Consecutive runs of `capacity`
    entries in the returned order form the nodes of the next level.
    """
    n = len(x)
    node_count = math.ceil(n / capacity)
    slab_count = math.ceil(math.sqrt(node_count))
    slab_size = slab_count * capacity

    by_x = np.argsort(x, kind="stable")
    slab = np.empty(n, dtype=np.int64)
    slab[by_x] = np.arange(n, dtype=np.int64) // slab_size
    return np.lexsort((y, slab))


def _group(values: np.ndarray, starts: np.ndarray, reducer: np.ufunc) -> np.ndarray:
    return reducer.reduceat(values, starts)


def _expand_ranges(starts: np.ndarray, ends: np.ndarray) -> np.ndarray:
    """Concatenate arange(start, end) for every (start, end) pair."""
    lengths = ends - starts
    total = int(lengths.sum())
    if total == 0:
        return np.empty(0, dtype=np.int64)
    offsets = np.repeat(starts - np.cumsum(lengths) + lengths, lengths)
    return np.arange(total, dtype=np.int64) + offsets


class QueryResult(Sequence):
    """
    Points matched by a query.

    A read-only sequence of PointRecord backed by the store. Records are
    materialised lazily; aggregation uses the `lons` / `lats` arrays.
    """

    __slots__ = ("_store", "indices")

    def __init__(self, store: PointStore, indices: np.ndarray) -> None:
        self._store = store
        self.indices = indices

    def __len__(self) -> int:
        return len(self.indices)

    def __getitem__(self, i):
        if isinstance(i, slice):
            return QueryResult(self._store, self.indices[i])
        return self._store[int(self.indices[i])]

    def __iter__(self) -> Iterator[PointRecord]:
        for idx in self.indices:
            yield self._store[int(idx)]

    @property
    def lons(self) -> np.ndarray:
        return self._store.lon[self.indices]

    @property
    def lats(self) -> np.ndarray:
        return self._store.lat[self.indices]

    def __repr__(self) -> str:
        return f"QueryResult(points={len(self)})"


class SpatialIndex:
    """
    Immutable R-tree over a PointStore.

    Attributes:
        store: The indexed points
        node_capacity: Maximum children per node

    Example:
        index = SpatialIndex.build(store, node_capacity=16)
        result = index.query(bbox, TimeRange(start=..., end=...))
        print(len(result))
    """

    def __init__(
        self,
        store: PointStore,
        levels: List[_Level],
        order: np.ndarray,
        node_capacity: int,
        skipped: int,
    ) -> None:
        """Use SpatialIndex.build() instead of calling this directly."""
        self.store = store
        self.node_capacity = node_capacity
        self._levels = levels
        self._order = order
        self._skipped = skipped

    @classmethod
    def build(
        cls,
        store: PointStore,
        node_capacity: int = DEFAULT_NODE_CAPACITY,
    ) -> "SpatialIndex":
        """
        Bulk-load an R-tree over every valid point in the store.

        Args:
            store: Fully loaded point store
            node_capacity: Maximum children per node (>= 2)

        Returns:
            Built SpatialIndex

        Raises:
            IndexBuildError: If the store is empty or has no valid coordinates
        """
        if node_capacity < 2:
            raise ValueError("node_capacity must be >= 2")
        if len(store) == 0:
            raise IndexBuildError("Cannot build index: no points supplied")

        start_time = time.time()

        valid_ids = np.flatnonzero(store.valid_mask())
        skipped = len(store) - len(valid_ids)
        if len(valid_ids) == 0:
            raise IndexBuildError(
                f"Cannot build index: all {len(store)} points have invalid coordinates"
            )
        if skipped:
            logger.warning(f"Skipping {skipped} points with invalid coordinates")

        # Leaf level
        order = valid_ids[
            _str_order(store.lon[valid_ids], store.lat[valid_ids], node_capacity)
        ]
        x = store.lon[order]
        y = store.lat[order]
        stamped = store.has_ts[order]
        t_lo = np.where(stamped, store.ts[order], _TS_MIN)
        t_hi = np.where(stamped, store.ts[order], _TS_MAX)

        n = len(order)
        starts = np.arange(0, n, node_capacity, dtype=np.int64)
        ends = np.minimum(starts + node_capacity, n)
        level = _Level(
            min_x=_group(x, starts, np.minimum),
            min_y=_group(y, starts, np.minimum),
            max_x=_group(x, starts, np.maximum),
            max_y=_group(y, starts, np.maximum),
            min_t=_group(t_lo, starts, np.minimum),
            max_t=_group(t_hi, starts, np.maximum),
            child_start=starts,
            child_end=ends,
        )
        levels = [level]

        # Pack upward until a single root remains
        while len(level) > 1:
            centers_x = (level.min_x + level.max_x) / 2.0
            centers_y = (level.min_y + level.max_y) / 2.0
            level = level.take(_str_order(centers_x, centers_y, node_capacity))
            levels[-1] = level

            k = len(level)
            starts = np.arange(0, k, node_capacity, dtype=np.int64)
            ends = np.minimum(starts + node_capacity, k)
            level = _Level(
                min_x=_group(level.min_x, starts, np.minimum),
                min_y=_group(level.min_y, starts, np.minimum),
                max_x=_group(level.max_x, starts, np.maximum),
                max_y=_group(level.max_y, starts, np.maximum),
                min_t=_group(level.min_t, starts, np.minimum),
                max_t=_group(level.max_t, starts, np.maximum),
                child_start=starts,
                child_end=ends,
            )
            levels.append(level)

        levels.reverse()
        for lvl in levels:
            lvl.freeze()
        order.setflags(write=False)

        index = cls(store, levels, order, node_capacity, skipped)

        elapsed_ms = (time.time() - start_time) * 1000
        logger.info(
            f"SpatialIndex built: points={n}, depth={index.depth}, "
            f"nodes={index.node_count}, capacity={node_capacity}, "
            f"elapsed={elapsed_ms:.1f}ms"
        )
        return index

    @property
    def depth(self) -> int:
        """Number of node levels, root included."""
        return len(self._levels)

    @property
    def node_count(self) -> int:
        return sum(len(level) for level in self._levels)

    def __len__(self) -> int:
        """Number of indexed points."""
        return len(self._order)

    def query_indices(
        self,
        bbox: BoundingBox,
        time_range: Optional[TimeRange] = None,
    ) -> np.ndarray:
        """
        Store positions of points inside bbox and time_range.

        Args:
            bbox: Geographic extent (half-open, see BoundingBox)
            time_range: Optional inclusive time window

        Returns:
            int64 array of store positions, unspecified order
        """
        t_start = _TS_MIN
        t_end = _TS_MAX
        filter_time = time_range is not None and not time_range.is_unbounded
        if filter_time:
            if time_range.start is not None:
                t_start = time_range.start_us
            if time_range.end is not None:
                t_end = time_range.end_us

        nodes = np.arange(len(self._levels[0]), dtype=np.int64)
        for level in self._levels:
            keep = (
                (level.min_x[nodes] <= bbox.max_lon)
                & (level.max_x[nodes] >= bbox.min_lon)
                & (level.min_y[nodes] <= bbox.max_lat)
                & (level.max_y[nodes] >= bbox.min_lat)
            )
            if filter_time:
                keep &= (level.max_t[nodes] >= t_start) & (level.min_t[nodes] <= t_end)

            nodes = nodes[keep]
            if nodes.size == 0:
                return np.empty(0, dtype=np.int64)
            nodes = _expand_ranges(level.child_start[nodes], level.child_end[nodes])

        candidates = self._order[nodes]
        lon = self.store.lon[candidates]
        lat = self.store.lat[candidates]

        east = (lon < bbox.max_lon) | ((lon == bbox.max_lon) & bbox.closed_east)
        south = (lat > bbox.min_lat) | ((lat == bbox.min_lat) & bbox.closed_south)
        match = (lon >= bbox.min_lon) & east & (lat <= bbox.max_lat) & south

        if filter_time:
            ts = self.store.ts[candidates]
            in_window = (ts >= t_start) & (ts <= t_end)
            match &= ~self.store.has_ts[candidates] | in_window

        return candidates[match]

    def query(
        self,
        bbox: BoundingBox,
        time_range: Optional[TimeRange] = None,
    ) -> QueryResult:
        """
        Points inside bbox whose timestamp satisfies time_range.

        Points without a timestamp always satisfy the time filter.
        """
        return QueryResult(self.store, self.query_indices(bbox, time_range))

    def stats(self) -> dict:
        """Index statistics for observability."""
        span = self.store.time_span()
        return {
            "points": len(self),
            "skipped_invalid": self._skipped,
            "depth": self.depth,
            "node_count": self.node_count,
            "node_capacity": self.node_capacity,
            "time_span_us": list(span) if span else None,
        }

    def __repr__(self) -> str:
        return f"SpatialIndex(points={len(self)}, depth={self.depth})"
