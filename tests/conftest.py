"""
Test Configuration
==================

Pytest fixtures and test configuration for heatmap_tiles.
"""

from datetime import datetime, timezone

import numpy as np
import pytest


def utc(*args) -> datetime:
    """Shorthand for a UTC datetime."""
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def three_points():
    """The three-point dataset: (0,0), (10,10), (-170,-80), all timestamped."""
    from heatmap_tiles.models.point import PointRecord

    return [
        PointRecord(0.0, 0.0, utc(2024, 1, 1, 0, 0, 0)),
        PointRecord(10.0, 10.0, utc(2024, 1, 2, 12, 0, 0)),
        PointRecord(-170.0, -80.0, utc(2024, 1, 3, 23, 59, 59)),
    ]


@pytest.fixture
def three_point_index(three_points):
    """SpatialIndex over the three-point dataset."""
    from heatmap_tiles.index import PointStore, SpatialIndex

    return SpatialIndex.build(PointStore.from_records(three_points))


@pytest.fixture
def tile_service(three_point_index):
    """TileService with default settings over the three-point dataset."""
    from heatmap_tiles.config import Settings
    from heatmap_tiles.service import TileService

    return TileService(three_point_index, Settings())


@pytest.fixture
def random_store():
    """5000 points spread over the Web Mercator world, half of them timestamped."""
    from heatmap_tiles.index import PointStore

    rng = np.random.default_rng(1234)
    n = 5000
    lon = rng.uniform(-180.0, 180.0, size=n)
    lat = rng.uniform(-85.0, 85.0, size=n)
    ts = rng.integers(1_700_000_000, 1_710_000_000, size=n) * 1_000_000
    has_ts = rng.random(n) < 0.5
    return PointStore.from_arrays(lon, lat, ts, has_ts)


@pytest.fixture
def random_index(random_store):
    """Deep SpatialIndex (small node capacity) over random_store."""
    from heatmap_tiles.index import SpatialIndex

    return SpatialIndex.build(random_store, node_capacity=4)
