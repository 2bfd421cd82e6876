#!/usr/bin/env python3
"""
Tile Rendering Benchmark
========================

Standalone script to measure tile latency under concurrent load.

This script:
    1. Builds an index over synthetic points (or a Parquet directory)
    2. Renders random tiles around the densest areas on a thread pool
    3. Reports latency percentiles and throughput

Every worker shares one SpatialIndex, exercising the lock-free read path.

Usage:
    python scripts/benchmark_tiles.py --points 2000000 --tiles 500
    python scripts/benchmark_tiles.py --data-dir ./partition --workers 16
"""

import argparse
import logging
import os
import sys
import time
from concurrent.futures import ThreadPoolExecutor

import numpy as np

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from heatmap_tiles.config import settings
from heatmap_tiles.geometry import lonlat_to_tile
from heatmap_tiles.index import PointStore, SpatialIndex
from heatmap_tiles.ingest import load_points_from_dir
from heatmap_tiles.service import TileService


logger = logging.getLogger(__name__)


def synthetic_store(count: int, seed: int) -> PointStore:
    """Clustered points around a handful of centres, one year of timestamps."""
    rng = np.random.default_rng(seed)
    centres = rng.uniform([-120.0, -40.0], [140.0, 60.0], size=(12, 2))
    which = rng.integers(0, len(centres), size=count)
    spread = rng.normal(0.0, 1.5, size=(count, 2))

    lon = np.clip(centres[which, 0] + spread[:, 0], -180.0, 180.0)
    lat = np.clip(centres[which, 1] + spread[:, 1], -85.0, 85.0)

    year_start_us = 1_704_067_200_000_000  # 2024-01-01T00:00:00Z
    ts = year_start_us + rng.integers(0, 366 * 86_400, size=count) * 1_000_000
    return PointStore.from_arrays(lon, lat, ts)


def sample_tiles(store: PointStore, count: int, min_zoom: int, max_zoom: int, seed: int):
    """Tiles containing randomly chosen points, so most requests hit data."""
    rng = np.random.default_rng(seed)
    picks = rng.integers(0, len(store), size=count)
    zooms = rng.integers(min_zoom, max_zoom + 1, size=count)
    return [
        lonlat_to_tile(float(store.lon[i]), float(store.lat[i]), int(z))
        for i, z in zip(picks, zooms)
    ]


def run_benchmark(service: TileService, tiles: list, workers: int, start: str, end: str) -> dict:
    """
    Render every tile on a thread pool.

    Returns:
        Summary metrics dict
    """
    def render(tile):
        t0 = time.perf_counter()
        result = service.render_tile(tile.zoom, tile.x, tile.y, start=start, end=end)
        return (time.perf_counter() - t0) * 1000, result.point_count

    wall_start = time.perf_counter()
    with ThreadPoolExecutor(max_workers=workers) as pool:
        outcomes = list(pool.map(render, tiles))
    wall_s = time.perf_counter() - wall_start

    latencies = np.array([ms for ms, _ in outcomes])
    points = sum(n for _, n in outcomes)

    return {
        "tiles": len(tiles),
        "workers": workers,
        "wall_seconds": wall_s,
        "tiles_per_second": len(tiles) / wall_s if wall_s > 0 else 0.0,
        "p50_ms": float(np.percentile(latencies, 50)),
        "p95_ms": float(np.percentile(latencies, 95)),
        "p99_ms": float(np.percentile(latencies, 99)),
        "max_ms": float(latencies.max()),
        "points_aggregated": points,
    }


def main():
    parser = argparse.ArgumentParser(description="Concurrent tile rendering benchmark")
    parser.add_argument(
        "--data-dir",
        type=str,
        default=None,
        help="Parquet directory to load instead of synthetic points",
    )
    parser.add_argument("--points", type=int, default=1_000_000, help="Synthetic point count")
    parser.add_argument("--tiles", type=int, default=300, help="Tiles to render")
    parser.add_argument("--workers", type=int, default=settings.server.workers, help="Thread pool size")
    parser.add_argument("--min-zoom", type=int, default=2, help="Lowest zoom sampled")
    parser.add_argument("--max-zoom", type=int, default=12, help="Highest zoom sampled")
    parser.add_argument("--start", type=str, default=None, help="Optional time filter start")
    parser.add_argument("--end", type=str, default=None, help="Optional time filter end")
    parser.add_argument("--seed", type=int, default=7, help="Random seed")

    args = parser.parse_args()

    if args.data_dir:
        store = load_points_from_dir(args.data_dir, settings.data)
    else:
        logger.info(f"Generating {args.points} synthetic points")
        store = synthetic_store(args.points, args.seed)

    index = SpatialIndex.build(store, node_capacity=settings.tiles.node_capacity)
    service = TileService(index, settings)
    tiles = sample_tiles(store, args.tiles, args.min_zoom, args.max_zoom, args.seed)

    summary = run_benchmark(service, tiles, args.workers, args.start, args.end)

    logger.info("=" * 60)
    logger.info("BENCHMARK SUMMARY")
    logger.info("=" * 60)
    for key, value in summary.items():
        logger.info(f"{key}: {value:.2f}" if isinstance(value, float) else f"{key}: {value}")
    logger.info("=" * 60)

    sys.exit(0)


if __name__ == "__main__":
    main()
