"""Tests for the health checker."""

from unittest.mock import MagicMock

from hazard_tiles.ingest.arcgis_client import ArcGisClient
from hazard_tiles.reporting.health_checker import HealthChecker
from hazard_tiles.storage.cache import CacheBackend, MemoryCache


class TestHealthChecker:
    def test_all_ok(self):
        client = MagicMock(spec=ArcGisClient)
        client.ping.return_value = True
        status = HealthChecker(MemoryCache(), client, "export").check()
        assert status.cache_backend == "memory"
        assert status.cache_ok
        assert status.upstream_reachable
        assert status.upstream_source == "export"

    def test_cache_down(self):
        cache = MagicMock(spec=CacheBackend)
        cache.name = "sqlite"
        cache.ping.return_value = False
        client = MagicMock(spec=ArcGisClient)
        client.ping.return_value = False

        status = HealthChecker(cache, client).check()
        assert status.cache_backend == "sqlite"
        assert not status.cache_ok
        assert not status.upstream_reachable
