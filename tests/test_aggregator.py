"""
Density Aggregator Tests
========================

Per-pixel counting, projection consistency and counter saturation.
"""

import numpy as np
import pytest

from heatmap_tiles.aggregation import COUNTER_MAX, DensityAggregator, DensityGrid
from heatmap_tiles.geometry import lonlat_to_pixel, tile_to_bbox
from heatmap_tiles.models import PointRecord


class TestDensityGrid:
    """Tests for the grid value type."""

    def test_zeros(self):
        """A fresh grid is empty."""
        grid = DensityGrid.zeros(64)
        assert grid.tile_size == 64
        assert grid.total == 0
        assert grid.max_count == 0
        assert grid.is_empty

    def test_must_be_square(self):
        """Non-square count arrays are rejected."""
        with pytest.raises(ValueError):
            DensityGrid(np.zeros((4, 8), dtype=np.uint32))

    def test_to_dict(self):
        """Summary counts nonzero pixels."""
        counts = np.zeros((4, 4), dtype=np.uint32)
        counts[0, 0] = 3
        counts[2, 1] = 1
        summary = DensityGrid(counts).to_dict()
        assert summary == {"tile_size": 4, "total": 4, "max_count": 3, "nonzero_pixels": 2}


class TestAggregate:
    """Tests for DensityAggregator.aggregate."""

    def test_empty_input(self):
        """No points yield an all-zero grid."""
        grid = DensityAggregator().aggregate([], tile_to_bbox(0, 0, 0))
        assert grid.tile_size == 256
        assert grid.is_empty

    def test_total_matches_point_count(self, three_point_index):
        """Every matched point lands in exactly one pixel."""
        bbox = tile_to_bbox(0, 0, 0)
        matched = three_point_index.query(bbox)
        grid = DensityAggregator().aggregate(matched, bbox)
        assert grid.total == len(matched) == 3

    def test_pixel_matches_geometry(self, three_points):
        """Counts sit at the pixel the projection assigns."""
        bbox = tile_to_bbox(0, 0, 0)
        grid = DensityAggregator().aggregate(three_points, bbox)
        for point in three_points:
            px, py = lonlat_to_pixel(point.longitude, point.latitude, bbox)
            assert grid.count_at(px, py) == 1

    def test_duplicates_accumulate(self):
        """Points sharing a pixel add up."""
        bbox = tile_to_bbox(2, 2, 1)
        points = [PointRecord(10.0, 10.0)] * 5 + [PointRecord(80.0, 60.0)]
        grid = DensityAggregator().aggregate(points, bbox)
        px, py = lonlat_to_pixel(10.0, 10.0, bbox)
        assert grid.count_at(px, py) == 5
        assert grid.max_count == 5
        assert grid.total == 6

    def test_query_result_and_list_agree(self, random_index):
        """The vectorised and chunked paths build identical grids."""
        bbox = tile_to_bbox(2, 1, 1)
        matched = random_index.query(bbox)
        aggregator = DensityAggregator()
        fast = aggregator.aggregate(matched, bbox)
        slow = aggregator.aggregate(list(matched), bbox)
        np.testing.assert_array_equal(fast.counts, slow.counts)

    def test_small_chunks(self, random_index):
        """Chunk size does not change the result."""
        bbox = tile_to_bbox(1, 0, 1)
        points = list(random_index.query(bbox))
        whole = DensityAggregator().aggregate(points, bbox)
        chunked = DensityAggregator(chunk_size=7).aggregate(iter(points), bbox)
        np.testing.assert_array_equal(whole.counts, chunked.counts)

    def test_custom_tile_size(self, three_point_index):
        """Grid dimensions follow the configured tile size."""
        bbox = tile_to_bbox(0, 0, 0)
        grid = DensityAggregator(tile_size=32).aggregate(three_point_index.query(bbox), bbox)
        assert grid.counts.shape == (32, 32)
        assert grid.total == 3

    def test_aggregate_arrays(self):
        """Raw coordinate arrays are accepted."""
        bbox = tile_to_bbox(0, 0, 0)
        grid = DensityAggregator(tile_size=16).aggregate_arrays(
            np.array([-179.0, 179.0]), np.array([1.0, -1.0]), bbox
        )
        assert grid.count_at(0, 7) == 1
        assert grid.count_at(15, 8) == 1

    def test_saturates_instead_of_wrapping(self):
        """Counts above the uint32 range clamp to its maximum."""
        aggregator = DensityAggregator(tile_size=2)
        counts = aggregator._new_counts()
        counts[0] = 2 ** 40
        counts[3] = 7
        grid = aggregator._finish(counts)
        assert grid.counts.dtype == np.uint32
        assert grid.count_at(0, 0) == COUNTER_MAX
        assert grid.count_at(1, 1) == 7

    @pytest.mark.parametrize("tile_size,chunk_size", [(0, 10), (256, 0)])
    def test_invalid_configuration(self, tile_size, chunk_size):
        """Non-positive sizes are rejected."""
        with pytest.raises(ValueError):
            DensityAggregator(tile_size=tile_size, chunk_size=chunk_size)
