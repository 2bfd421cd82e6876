"""
Model Tests
===========

Point Records, the columnar store, bounding boxes and time ranges.
"""

from datetime import datetime

import numpy as np
import pytest

from conftest import utc
from heatmap_tiles.index import PointStore
from heatmap_tiles.models import (
    BoundingBox,
    PointRecord,
    TimeRange,
    from_epoch_micros,
    to_epoch_micros,
)


class TestPointRecord:
    def test_naive_timestamp_rejected(self):
        with pytest.raises(ValueError):
            PointRecord(0.0, 0.0, datetime(2024, 1, 1))

    @pytest.mark.parametrize(
        "lon,lat,valid",
        [(0.0, 0.0, True), (180.0, -90.0, True), (180.1, 0.0, False), (0.0, float("nan"), False)],
    )
    def test_is_valid(self, lon, lat, valid):
        assert PointRecord(lon, lat).is_valid is valid

    def test_epoch_micros(self):
        moment = utc(2024, 1, 1, 0, 0, 0, 1)
        assert to_epoch_micros(moment) == 1_704_067_200_000_001
        assert from_epoch_micros(1_704_067_200_000_001) == moment


class TestPointStore:
    def test_from_records(self, three_points):
        store = PointStore.from_records(three_points)
        assert len(store) == 3
        assert list(store) == three_points
        assert store.time_span() == (
            to_epoch_micros(three_points[0].timestamp),
            to_epoch_micros(three_points[2].timestamp),
        )

    def test_untimed(self):
        store = PointStore.from_arrays([1.0, 2.0], [1.0, 2.0])
        assert store[0].timestamp is None
        assert store.time_span() is None

    def test_presence_mask(self):
        store = PointStore.from_arrays([1.0, 2.0], [1.0, 2.0], [5, 7], [False, True])
        assert store[0].timestamp is None
        assert store.ts[0] == 0
        assert store[1].timestamp == from_epoch_micros(7)

    def test_inputs_copied(self):
        lon = np.array([1.0, 2.0])
        store = PointStore.from_arrays(lon, [1.0, 2.0])
        lon[0] = 99.0
        assert store.lon[0] == 1.0

    def test_column_lengths(self):
        with pytest.raises(ValueError):
            PointStore(np.zeros(2), np.zeros(3), np.zeros(2), np.zeros(2, dtype=bool))

    def test_valid_mask(self):
        store = PointStore.from_arrays([0.0, np.inf, -181.0], [0.0, 0.0, 0.0])
        assert store.valid_mask().tolist() == [True, False, False]


class TestBoundingBox:
    def test_half_open(self):
        bbox = BoundingBox(0.0, 0.0, 10.0, 10.0)
        assert bbox.contains(0.0, 10.0)
        assert not bbox.contains(10.0, 5.0)
        assert not bbox.contains(5.0, 0.0)

    def test_closed_edges(self):
        bbox = BoundingBox(0.0, 0.0, 10.0, 10.0, closed_east=True, closed_south=True)
        assert bbox.contains(10.0, 0.0)

    def test_inverted(self):
        with pytest.raises(ValueError):
            BoundingBox(10.0, 0.0, 0.0, 10.0)


class TestTimeRange:
    def test_inverted(self):
        with pytest.raises(ValueError):
            TimeRange(start=utc(2024, 2, 1), end=utc(2024, 1, 1))

    def test_inclusive(self):
        window = TimeRange(start=utc(2024, 1, 1), end=utc(2024, 1, 2))
        assert window.contains(utc(2024, 1, 1))
        assert window.contains(utc(2024, 1, 2))
        assert not window.contains(utc(2024, 1, 2, 0, 0, 0, 1))

    def test_untimed_always_contained(self):
        assert TimeRange(start=utc(2024, 1, 1)).contains(None)

    def test_unbounded(self):
        assert TimeRange().is_unbounded
        assert TimeRange().start_us is None
