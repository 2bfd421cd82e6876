"""
Tile Service
============

Per-request orchestration of the tile pipeline.

Pipeline:
    1. Parse and validate tile address and time bounds  -> InvalidRequest
    2. Tile address -> bounding box                    -> InvalidRequest
    3. Spatial index query (memory only, no I/O)        -> TileServerError
    4. Density aggregation                             -> TileServerError
    5. Colour + PNG encoding                           -> RenderError

Failures in steps 1-2 are client errors; anything raised in steps 3-5 is
surfaced as a TileServerError (RenderError for the encoder). No partial
tile is ever returned.

Concurrency:
    The index, aggregator and renderer are read-only after construction.
    Grids and rasters are request-local. The only cross-request state is
    ServiceMetrics, which is lock-protected.
"""

import logging
import threading
import time
from typing import Optional, Tuple

from heatmap_tiles.aggregation.density import DensityAggregator, DensityGrid
from heatmap_tiles.config import Settings
from heatmap_tiles.errors import InvalidRequest, TileServerError
from heatmap_tiles.geometry.tiles import tile_to_bbox
from heatmap_tiles.index.rtree import SpatialIndex
from heatmap_tiles.models.output import TileResult
from heatmap_tiles.models.tile import BoundingBox, TileCoordinate, TimeRange
from heatmap_tiles.rendering.colors import ColorScale
from heatmap_tiles.rendering.renderer import TileRenderer
from heatmap_tiles.service.timefilter import parse_time_range


logger = logging.getLogger(__name__)


class ServiceMetrics:
    """Cross-request counters for TileService observability."""

    __slots__ = (
        "_lock",
        "tiles_rendered",
        "empty_tiles",
        "points_aggregated",
        "client_errors",
        "server_errors",
        "total_render_ms",
    )

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.tiles_rendered: int = 0
        self.empty_tiles: int = 0
        self.points_aggregated: int = 0
        self.client_errors: int = 0
        self.server_errors: int = 0
        self.total_render_ms: float = 0.0

    def record_success(self, result: TileResult) -> None:
        with self._lock:
            self.tiles_rendered += 1
            self.points_aggregated += result.point_count
            self.total_render_ms += result.elapsed_ms
            if result.point_count == 0:
                self.empty_tiles += 1

    def record_client_error(self) -> None:
        with self._lock:
            self.client_errors += 1

    def record_server_error(self) -> None:
        with self._lock:
            self.server_errors += 1

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        with self._lock:
            mean_ms = self.total_render_ms / self.tiles_rendered if self.tiles_rendered else 0.0
            return {
                "tiles_rendered": self.tiles_rendered,
                "empty_tiles": self.empty_tiles,
                "points_aggregated": self.points_aggregated,
                "client_errors": self.client_errors,
                "server_errors": self.server_errors,
                "mean_render_ms": round(mean_ms, 3),
            }


class TileService:
    """
    Renders density tiles from a shared SpatialIndex.

    Attributes:
        index: Read-only spatial index
        max_zoom: Highest zoom level accepted
        aggregator: Density aggregator
        renderer: Colour mapper and encoder
        metrics: Cross-request counters

    Example:
        service = TileService(SpatialIndex.build(store), settings)
        result = service.render_tile(3, 4, 2, start="2024-01-01", end="2024-01-31")
        result.content     # PNG bytes
        result.media_type  # "image/png"
    """

    def __init__(
        self,
        index: SpatialIndex,
        settings: Optional[Settings] = None,
        aggregator: Optional[DensityAggregator] = None,
        renderer: Optional[TileRenderer] = None,
    ) -> None:
        """
        Initialize tile service.

        Args:
            index: Built spatial index
            settings: Configuration (defaults when None)
            aggregator: Override the aggregator built from settings
            renderer: Override the renderer built from settings
        """
        settings = settings or Settings()
        tile_size = settings.tiles.tile_size

        self.index = index
        self.max_zoom = settings.tiles.max_zoom
        self.aggregator = aggregator or DensityAggregator(tile_size=tile_size)
        self.renderer = renderer or TileRenderer(
            color_scale=ColorScale.from_config(settings.rendering),
            tile_size=tile_size,
            png_compression=settings.rendering.png_compression,
        )
        if self.aggregator.tile_size != self.renderer.tile_size:
            raise ValueError("Aggregator and renderer tile sizes differ")

        self.metrics = ServiceMetrics()

        logger.info(
            f"TileService initialized: tile_size={tile_size}, "
            f"max_zoom={self.max_zoom}, scale={self.renderer.color_scale}"
        )

    @property
    def tile_size(self) -> int:
        return self.renderer.tile_size

    def resolve(
        self,
        zoom: int,
        x: int,
        y: int,
        start: Optional[str] = None,
        end: Optional[str] = None,
    ) -> Tuple[TileCoordinate, BoundingBox, Optional[TimeRange]]:
        """
        Steps 1-2: validate the request and compute its bounding box.

        Raises:
            InvalidRequest: On any malformed or out-of-range input
        """
        time_range = parse_time_range(start, end)
        bbox = tile_to_bbox(zoom, x, y, max_zoom=self.max_zoom)
        return TileCoordinate(zoom=zoom, x=x, y=y), bbox, time_range

    def render_density(
        self,
        zoom: int,
        x: int,
        y: int,
        start: Optional[str] = None,
        end: Optional[str] = None,
    ) -> DensityGrid:
        """
        Steps 1-4: the density grid for a tile, without rendering.

        Raises:
            InvalidRequest: On bad input
            TileServerError: If the query or aggregation fails
        """
        tile, bbox, time_range = self._resolve_counted(zoom, x, y, start, end)
        try:
            return self._aggregate(tile, bbox, time_range)
        except TileServerError:
            self.metrics.record_server_error()
            raise
        except Exception as e:
            self.metrics.record_server_error()
            logger.exception(f"Aggregation failed for tile {tile}")
            raise TileServerError(f"Failed to aggregate tile {tile}: {e}") from e

    def render_tile(
        self,
        zoom: int,
        x: int,
        y: int,
        start: Optional[str] = None,
        end: Optional[str] = None,
    ) -> TileResult:
        """
        Run the full pipeline for one tile.

        Args:
            zoom: Zoom level
            x: Tile column
            y: Tile row
            start: Optional start bound (YYYY-MM-DD or ISO-8601 with offset)
            end: Optional end bound (same formats)

        Returns:
            TileResult with PNG bytes

        Raises:
            InvalidRequest: On bad input (client error)
            TileServerError: On any failure after validation (server error)
        """
        start_time = time.time()
        tile, bbox, time_range = self._resolve_counted(zoom, x, y, start, end)

        try:
            grid = self._aggregate(tile, bbox, time_range)
            content = self.renderer.render(grid)
        except TileServerError:
            self.metrics.record_server_error()
            logger.error(f"Tile {tile} failed", exc_info=True)
            raise
        except Exception as e:
            self.metrics.record_server_error()
            logger.exception(f"Unexpected error rendering tile {tile}")
            raise TileServerError(f"Failed to render tile {tile}: {e}") from e

        result = TileResult(
            content=content,
            media_type=self.renderer.media_type,
            point_count=grid.total,
            max_count=grid.max_count,
            elapsed_ms=(time.time() - start_time) * 1000,
        )
        self.metrics.record_success(result)

        logger.debug(
            f"Tile {tile}: points={result.point_count}, max={result.max_count}, "
            f"bytes={len(content)}, elapsed={result.elapsed_ms:.2f}ms"
        )
        return result

    def _resolve_counted(
        self,
        zoom: int,
        x: int,
        y: int,
        start: Optional[str],
        end: Optional[str],
    ) -> Tuple[TileCoordinate, BoundingBox, Optional[TimeRange]]:
        try:
            return self.resolve(zoom, x, y, start, end)
        except InvalidRequest as e:
            self.metrics.record_client_error()
            logger.info(f"Rejected tile request {zoom}/{x}/{y}: {e}")
            raise

    def _aggregate(
        self,
        tile: TileCoordinate,
        bbox: BoundingBox,
        time_range: Optional[TimeRange],
    ) -> DensityGrid:
        matched = self.index.query(bbox, time_range)
        logger.debug(f"Tile {tile}: bbox={bbox.to_dict()}, matched={len(matched)}")
        return self.aggregator.aggregate(matched, bbox)
