"""Health checker: cache backend and upstream reachability."""

from hazard_tiles.ingest.arcgis_client import ArcGisClient
from hazard_tiles.models.common import utc_now_iso
from hazard_tiles.models.reporting import HealthStatus
from hazard_tiles.storage.cache import CacheBackend


class HealthChecker:
    def __init__(self, cache: CacheBackend, client: ArcGisClient, source: str = "vector"):
        self.cache = cache
        self.client = client
        self.source = source

    def check(self) -> HealthStatus:
        return HealthStatus(
            cache_backend=self.cache.name,
            cache_ok=self.cache.ping(),
            upstream_reachable=self.client.ping(),
            upstream_source=self.source,
            timestamp=utc_now_iso(),
        )
