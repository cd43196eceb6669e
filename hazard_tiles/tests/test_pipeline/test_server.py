"""Tests for the HTTP surface with a mocked hazard fetcher."""

import io
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from conftest import make_snapshot
from hazard_tiles.config.schema import TileServiceConfig
from hazard_tiles.ingest.arcgis_client import ArcGisClient
from hazard_tiles.ingest.hazard_fetcher import HazardFetcher, UpstreamFetchFailed
from hazard_tiles.models.hazard import HazardSnapshot
from hazard_tiles.pipeline.tile_pipeline import TileService
from hazard_tiles.server import create_app
from hazard_tiles.storage.cache import MemoryCache


@pytest.fixture
def fetcher(major_snapshot: HazardSnapshot) -> MagicMock:
    fetcher = MagicMock(spec=HazardFetcher)
    fetcher.fetch.return_value = major_snapshot
    fetcher.client = MagicMock(spec=ArcGisClient)
    fetcher.client.ping.return_value = True
    return fetcher


@pytest.fixture
def http(fetcher: MagicMock) -> TestClient:
    config = TileServiceConfig()
    service = TileService(config, MemoryCache(), fetcher)
    return TestClient(create_app(config, service))


class TestTileRoute:
    def test_rendered_tile(self, http: TestClient):
        resp = http.get("/tiles/1/4/4/5.png")

        assert resp.status_code == 200
        assert resp.headers["content-type"] == "image/png"
        assert resp.headers["cache-control"] == "public, max-age=300, s-maxage=600"
        assert resp.headers["access-control-allow-origin"] == "*"
        assert resp.headers["x-wssi-day"] == "1"
        assert resp.headers["x-wssi-cache"] == "miss"
        assert resp.headers["x-wssi-status"] == "rendered"
        assert float(resp.headers["x-wssi-sigma"]) == pytest.approx(4.09, abs=0.01)
        with Image.open(io.BytesIO(resp.content)) as img:
            assert img.size == (256, 256)
            assert img.getpixel((128, 128)) == (162, 28, 175, 180)

    def test_second_request_hits_cache(self, http: TestClient):
        http.get("/tiles/1/4/4/5")
        resp = http.get("/tiles/1/4/4/5")
        assert resp.headers["x-wssi-cache"] == "hit"
        assert resp.headers["x-wssi-status"] == "cached"

    @pytest.mark.parametrize(
        "path",
        [
            "/tiles/4/4/4/5",
            "/tiles/0/4/4/5",
            "/tiles/1/13/0/0",
            "/tiles/1/2/4/0",
            "/tiles/1/2/0/4.png",
            "/tiles/1/z/0/0",
            "/tiles/one/2/0/0",
            "/tiles/1/1_0/0/0",
        ],
    )
    def test_invalid_input_is_400(self, http: TestClient, fetcher: MagicMock, path: str):
        resp = http.get(path)
        assert resp.status_code == 400
        assert resp.headers["content-type"].startswith("text/plain")
        fetcher.fetch.assert_not_called()

    def test_upstream_failure_serves_transparent(self, http: TestClient, fetcher: MagicMock):
        fetcher.fetch.side_effect = UpstreamFetchFailed("timeout")

        resp = http.get("/tiles/2/4/4/5")

        assert resp.status_code == 200
        assert resp.headers["cache-control"] == "public, max-age=60"
        assert resp.headers["x-wssi-status"] == "fallback"
        with Image.open(io.BytesIO(resp.content)) as img:
            assert img.getextrema()[3] == (0, 0)

    def test_empty_day(self, http: TestClient, fetcher: MagicMock):
        fetcher.fetch.return_value = make_snapshot(3)
        resp = http.get("/tiles/3/0/0/0")
        assert resp.status_code == 200
        assert resp.headers["x-wssi-status"] == "empty"
        assert resp.headers["cache-control"] == "public, max-age=300, s-maxage=600"


class TestHazardsRoute:
    def test_metrics(self, http: TestClient):
        resp = http.get("/api/hazards/1")
        assert resp.status_code == 200
        body = resp.json()
        assert body["day"] == 1
        assert body["polygon_count"] == 1
        assert body["by_category"] == {"major": 1}
        assert body["vertex_count"] == 5

    @pytest.mark.parametrize("day", ["0", "4", "x", "0_1"])
    def test_bad_day(self, http: TestClient, day: str):
        resp = http.get(f"/api/hazards/{day}")
        assert resp.status_code == 400
        assert "error" in resp.json()

    def test_upstream_failure_is_502(self, http: TestClient, fetcher: MagicMock):
        fetcher.fetch.side_effect = UpstreamFetchFailed("WSSI service error: boom")
        resp = http.get("/api/hazards/2")
        assert resp.status_code == 502
        assert "boom" in resp.json()["error"]


class TestHazardsRouteWithParser:
    def _http(self, payload) -> TestClient:
        client = MagicMock(spec=ArcGisClient)
        client.query_layer.return_value = (payload, None)
        client.ping.return_value = True
        fetcher = HazardFetcher(client, MemoryCache(), {1: 1, 2: 2, 3: 3})
        config = TileServiceConfig()
        return TestClient(create_app(config, TileService(config, MemoryCache(), fetcher)))

    def test_feature_without_coordinates_is_skipped(self):
        payload = {
            "features": [
                {"properties": {"impact": "Major"}, "geometry": {"type": "Polygon"}},
                {
                    "properties": {"impact": "Minor"},
                    "geometry": {"type": "Polygon", "coordinates": [[[0, 0], [1, 0], [1, 1], [0, 0]]]},
                },
            ]
        }
        resp = self._http(payload).get("/api/hazards/1")
        assert resp.status_code == 200
        assert resp.json()["by_category"] == {"minor": 1}

    def test_payload_without_features_is_502(self):
        resp = self._http({"type": "FeatureCollection"}).get("/api/hazards/1")
        assert resp.status_code == 502
        assert "feature list" in resp.json()["error"]


class TestHealthRoute:
    def test_health(self, http: TestClient):
        body = http.get("/api/health").json()
        assert body["cache_backend"] == "memory"
        assert body["cache_ok"] is True
        assert body["upstream_reachable"] is True
        assert body["upstream_source"] == "vector"
        assert body["timestamp"]

    def test_upstream_down(self, http: TestClient, fetcher: MagicMock):
        fetcher.client.ping.return_value = False
        assert http.get("/api/health").json()["upstream_reachable"] is False


class TestCors:
    def test_preflight(self, http: TestClient):
        resp = http.options(
            "/tiles/1/4/4/5",
            headers={"Origin": "https://map.example.com", "Access-Control-Request-Method": "GET"},
        )
        assert resp.status_code == 200
        assert resp.headers["access-control-allow-origin"] == "*"
