"""
Heatmap Tiles Main Application
==============================

FastAPI entry point for the density tile server.

Startup:
    1. Load every point from the data directory (the only I/O)
    2. Build the spatial index (IndexBuildError aborts startup)
    3. Create the TileService shared by all requests

Endpoints:
    GET  /                             - Service information
    GET  /health                       - Liveness probe
    GET  /ready                        - Readiness probe (index built?)
    GET  /metrics                      - Index and rendering metrics
    GET  /tiles/{zoom}/{x}/{y}.png     - Density tile (?start=&end=)

The tile endpoint is a plain `def`, so FastAPI runs it on its worker
thread pool (sized by server.workers at startup); concurrent requests
read the same index without locking.
"""

import logging
import os
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import anyio.to_thread
from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response

from heatmap_tiles.config import settings
from heatmap_tiles.errors import HeatmapError, InvalidRequest, TileServerError
from heatmap_tiles.index import SpatialIndex
from heatmap_tiles.ingest import load_points_from_dir
from heatmap_tiles.models.output import ErrorResponse
from heatmap_tiles.service import TileService


logger = logging.getLogger(__name__)


# =============================================================================
# Global State
# =============================================================================

# Built once at startup, read-only afterwards
_tile_service: Optional[TileService] = None
_startup_time: float = 0.0


# =============================================================================
# Getters
# =============================================================================

def get_tile_service() -> Optional[TileService]:
    return _tile_service

def set_tile_service(service: Optional[TileService]) -> None:
    """Install a pre-built service (skips loading from disk at startup)."""
    global _tile_service
    _tile_service = service

def is_ready() -> bool:
    return _tile_service is not None


# =============================================================================
# Service Factory
# =============================================================================

def create_tile_service() -> TileService:
    """
    Load points and build the shared TileService.

    Fails fast: DataLoadError or IndexBuildError propagate and stop startup.
    """
    logger.info(f"Loading points from: {settings.data.directory}")
    store = load_points_from_dir(settings.data.directory, settings.data)

    index = SpatialIndex.build(store, node_capacity=settings.tiles.node_capacity)
    return TileService(index, settings)


# =============================================================================
# Lifespan Management
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager."""
    global _startup_time

    _startup_time = time.time()
    logger.info(f"Starting {settings.service.name} {settings.service.version}")

    if _tile_service is None:
        set_tile_service(create_tile_service())
    else:
        logger.info("Using pre-built TileService")

    # Sync endpoints (the tile route) run on this pool
    anyio.to_thread.current_default_thread_limiter().total_tokens = settings.server.workers

    stats = _tile_service.index.stats()
    logger.info(
        f"Ready: {stats['points']} points indexed, depth={stats['depth']}, "
        f"nodes={stats['node_count']}, workers={settings.server.workers}"
    )

    yield

    logger.info("Shutdown complete")


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="HeatmapTiles",
    description="On-demand density heatmap tiles over large point datasets",
    version=settings.service.version,
    lifespan=lifespan,
)


def _error_response(exc: HeatmapError, status_code: int) -> JSONResponse:
    body = ErrorResponse(error=type(exc).__name__, detail=str(exc))
    return JSONResponse(body.model_dump(), status_code=status_code)


@app.exception_handler(InvalidRequest)
async def invalid_request_handler(request: Request, exc: InvalidRequest) -> JSONResponse:
    """Client errors: bad tile address or time range."""
    return _error_response(exc, 400)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Unparseable path or query parameters are reported like other bad input."""
    body = ErrorResponse(error="InvalidRequest", detail=str(exc.errors()))
    return JSONResponse(body.model_dump(), status_code=400)


@app.exception_handler(TileServerError)
async def server_error_handler(request: Request, exc: TileServerError) -> JSONResponse:
    """Server errors: failure after the request was validated."""
    return _error_response(exc, 500)


# =============================================================================
# HTTP Endpoints
# =============================================================================

@app.get("/")
async def root() -> JSONResponse:
    """Service information endpoint."""
    return JSONResponse({
        "service": settings.service.name,
        "version": settings.service.version,
        "status": "running",
        "tile_size": settings.tiles.tile_size,
        "max_zoom": settings.tiles.max_zoom,
        "tiles": "/tiles/{zoom}/{x}/{y}.png",
    })


@app.get("/health")
async def health() -> JSONResponse:
    """
    Liveness probe - is the process alive?

    Always returns 200 if the service is running.
    """
    return JSONResponse({
        "status": "healthy",
        "uptime_seconds": round(time.time() - _startup_time, 1),
    })


@app.get("/ready")
async def ready() -> JSONResponse:
    """
    Readiness probe - has the index been built?

    Returns 503 until the TileService exists.
    """
    if is_ready():
        return JSONResponse({
            "status": "ready",
            "points_indexed": len(_tile_service.index),
        })
    return JSONResponse({"status": "not_ready"}, status_code=503)


@app.get("/metrics")
async def metrics() -> JSONResponse:
    """Index statistics and rendering counters."""
    service = get_tile_service()
    if service is None:
        return JSONResponse({"error": "Index not built yet"}, status_code=503)

    return JSONResponse({
        "uptime_seconds": round(time.time() - _startup_time, 1),
        "index": service.index.stats(),
        "render_workers": anyio.to_thread.current_default_thread_limiter().total_tokens,
        **service.metrics.to_dict(),
    })


@app.get("/tiles/{zoom}/{x}/{y}.png")
def tile(
    zoom: int,
    x: int,
    y: int,
    start: Optional[str] = Query(default=None, description="YYYY-MM-DD or ISO-8601 with offset"),
    end: Optional[str] = Query(default=None, description="YYYY-MM-DD or ISO-8601 with offset"),
) -> Response:
    """Render one density tile."""
    service = get_tile_service()
    if service is None:
        return JSONResponse({"error": "Index not built yet"}, status_code=503)

    result = service.render_tile(zoom, x, y, start=start, end=end)
    return Response(
        content=result.content,
        media_type=result.media_type,
        headers={"X-Point-Count": str(result.point_count)},
    )


# =============================================================================
# Main Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    port = int(os.environ.get("PORT", settings.server.port))

    uvicorn.run(
        "heatmap_tiles.main:app",
        host=settings.server.host,
        port=port,
        reload=False,
    )
