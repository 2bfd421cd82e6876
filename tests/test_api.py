"""
HTTP API Tests
==============

FastAPI endpoints exercised with TestClient over the three-point dataset.
"""

import cv2
import numpy as np
import pytest
from fastapi.testclient import TestClient

from heatmap_tiles import main
from heatmap_tiles.errors import RenderError


@pytest.fixture
def client(tile_service):
    """TestClient with a pre-built TileService (no data directory needed)."""
    main.set_tile_service(tile_service)
    with TestClient(main.app) as test_client:
        yield test_client
    main.set_tile_service(None)


class TestTileEndpoint:
    """Tests for GET /tiles/{zoom}/{x}/{y}.png."""

    def test_world_tile(self, client):
        response = client.get("/tiles/0/0/0.png")
        assert response.status_code == 200
        assert response.headers["content-type"] == "image/png"
        assert response.headers["x-point-count"] == "3"
        image = cv2.imdecode(np.frombuffer(response.content, dtype=np.uint8), cv2.IMREAD_UNCHANGED)
        assert image.shape == (256, 256, 4)

    def test_time_filter(self, client):
        response = client.get("/tiles/0/0/0.png", params={"start": "2024-01-02", "end": "2024-01-02"})
        assert response.status_code == 200
        assert response.headers["x-point-count"] == "1"

    def test_empty_result_is_image(self, client):
        """No matching points still returns a PNG."""
        response = client.get("/tiles/0/0/0.png", params={"start": "2025-01-01"})
        assert response.status_code == 200
        assert response.headers["x-point-count"] == "0"
        assert response.content.startswith(b"\x89PNG")

    def test_out_of_range_tile(self, client):
        response = client.get("/tiles/0/1/0.png")
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidTileCoordinate"

    def test_bad_time(self, client):
        response = client.get("/tiles/0/0/0.png", params={"start": "tomorrow"})
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidTimeRange"

    def test_inverted_time(self, client):
        response = client.get("/tiles/0/0/0.png", params={"start": "2024-02-01", "end": "2024-01-01"})
        assert response.status_code == 400

    @pytest.mark.parametrize(
        "params",
        [{"start": "0001-01-01T00:00:00+01:00"}, {"end": "9999-12-31T23:00:00-05:00"}],
    )
    def test_time_outside_utc_range(self, client, tile_service, params):
        """Bounds that overflow on UTC conversion are reported as bad requests."""
        response = client.get("/tiles/0/0/0.png", params=params)
        assert response.status_code == 400
        assert response.headers["content-type"] == "application/json"
        assert response.json()["error"] == "InvalidTimeRange"
        assert tile_service.metrics.to_dict()["client_errors"] == 1

    def test_non_integer_path(self, client):
        """Unparseable path components are bad requests."""
        response = client.get("/tiles/zero/0/0.png")
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidRequest"

    def test_render_failure(self, client, tile_service, monkeypatch):
        def broken(grid):
            raise RenderError("encoder unavailable")

        monkeypatch.setattr(tile_service.renderer, "render", broken)
        response = client.get("/tiles/0/0/0.png")
        assert response.status_code == 500
        assert response.json() == {"error": "RenderError", "detail": "encoder unavailable"}

    def test_deterministic(self, client):
        first = client.get("/tiles/2/2/1.png")
        second = client.get("/tiles/2/2/1.png")
        assert first.content == second.content


class TestOperationalEndpoints:
    """Tests for info, health, readiness and metrics."""

    def test_root(self, client):
        body = client.get("/").json()
        assert body["status"] == "running"
        assert body["tile_size"] == 256

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_ready(self, client):
        response = client.get("/ready")
        assert response.status_code == 200
        assert response.json() == {"status": "ready", "points_indexed": 3}

    def test_not_ready(self):
        """Without an index the service reports 503."""
        main.set_tile_service(None)
        response = TestClient(main.app).get("/ready")
        assert response.status_code == 503

    def test_metrics(self, client):
        client.get("/tiles/0/0/0.png")
        client.get("/tiles/0/1/0.png")
        body = client.get("/metrics").json()
        assert body["index"]["points"] == 3
        assert body["tiles_rendered"] == 1
        assert body["client_errors"] == 1

    def test_worker_pool_sized_from_settings(self, client):
        """The threadpool serving tile requests follows server.workers."""
        body = client.get("/metrics").json()
        assert body["render_workers"] == main.settings.server.workers
