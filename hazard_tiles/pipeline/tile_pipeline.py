"""Tile pipeline: cache lookup, fetch, rasterize, render, store."""

import logging

from hazard_tiles.config.schema import TileServiceConfig, UpstreamSource
from hazard_tiles.ingest.arcgis_client import ArcGisClient
from hazard_tiles.ingest.export_fetcher import ExportFetcher
from hazard_tiles.ingest.hazard_fetcher import HazardFetcher, UpstreamFetchFailed
from hazard_tiles.models.common import utc_now_iso
from hazard_tiles.models.hazard import SnapshotMetrics
from hazard_tiles.models.tile import (
    PriorityGrid,
    RenderedTile,
    TileAddress,
    TileResult,
    TileStatus,
)
from hazard_tiles.render.rasterizer import rasterize
from hazard_tiles.render.renderer import (
    CanvasPlan,
    encode_png,
    plan_canvas,
    read_rendered_at,
    render_grid,
    transparent_png,
)
from hazard_tiles.storage.cache import (
    CacheBackend,
    CacheBackendUnavailable,
    MemoryCache,
    build_cache,
)

logger = logging.getLogger(__name__)


class TileService:
    def __init__(
        self,
        config: TileServiceConfig,
        cache: CacheBackend,
        fetcher: HazardFetcher,
        export_fetcher: ExportFetcher | None = None,
    ):
        self.config = config
        self.cache = cache
        self.fetcher = fetcher
        self.export_fetcher = export_fetcher

    def get_tile(self, address: TileAddress) -> TileResult:
        """Serve one tile. Never raises for upstream, render or cache trouble;
        those degrade to a transparent tile that is not cached."""
        plan = plan_canvas(address, self.config.render)

        cached = self._cache_get(address)
        if cached is not None:
            logger.debug("Tile cache hit %s", address.cache_key)
            tile = self._tile(address, cached, read_rendered_at(cached))
            return self._result(tile, TileStatus.CACHED, plan)

        try:
            grid = self._build_grid(address, plan)
        except UpstreamFetchFailed as e:
            logger.warning("Upstream fetch failed for %s: %s", address.cache_key, e)
            return self._fallback(address, plan)
        except Exception:
            logger.exception("Rasterization failed for %s", address.cache_key)
            return self._fallback(address, plan)

        if grid is None or grid.is_blank:
            png = transparent_png(self.config.render.tile_size)
            self._cache_set(address, png)
            return self._result(self._tile(address, png, None), TileStatus.EMPTY, plan)

        rendered_at = utc_now_iso()
        try:
            rgba = render_grid(grid, plan, self.config.render)
            png = encode_png(rgba, rendered_at)
        except Exception:
            logger.exception("Render failed for %s", address.cache_key)
            return self._fallback(address, plan)

        self._cache_set(address, png)
        logger.info(
            "Rendered tile day=%d z=%d x=%d y=%d sigma=%.2f factor=%d",
            address.day, address.zoom, address.x, address.y, plan.sigma_px, plan.factor,
        )
        return self._result(self._tile(address, png, rendered_at), TileStatus.RENDERED, plan)

    def snapshot_metrics(self, day: int) -> SnapshotMetrics:
        """Raises UpstreamFetchFailed."""
        return SnapshotMetrics.from_snapshot(self.fetcher.fetch(day))

    def _build_grid(self, address: TileAddress, plan: CanvasPlan) -> PriorityGrid | None:
        """None means the day has no hazard at all."""
        if self.config.upstream.source == UpstreamSource.EXPORT and self.export_fetcher:
            return self.export_fetcher.fetch_grid(
                address.day, plan.mercator_bbox, plan.width, plan.height
            )

        snapshot = self.fetcher.fetch(address.day)
        if snapshot.is_empty:
            return None
        return rasterize(snapshot.polygons, plan.geo_bbox, plan.width, plan.height)

    def _fallback(self, address: TileAddress, plan: CanvasPlan) -> TileResult:
        png = transparent_png(self.config.render.tile_size)
        return TileResult(
            tile=self._tile(address, png, None),
            status=TileStatus.FALLBACK,
            sigma_px=plan.sigma_px,
            max_age=self.config.server.fallback_max_age_seconds,
        )

    def _result(self, tile: RenderedTile, status: TileStatus, plan: CanvasPlan) -> TileResult:
        return TileResult(
            tile=tile,
            status=status,
            sigma_px=plan.sigma_px,
            max_age=self.config.server.tile_max_age_seconds,
        )

    @staticmethod
    def _tile(address: TileAddress, png: bytes, rendered_at: str | None) -> RenderedTile:
        return RenderedTile(
            day=address.day,
            zoom=address.zoom,
            x=address.x,
            y=address.y,
            png=png,
            rendered_at=rendered_at,
        )

    def _cache_get(self, address: TileAddress) -> bytes | None:
        try:
            return self.cache.get(address.cache_key)
        except CacheBackendUnavailable as e:
            logger.warning("Tile cache read failed for %s: %s", address.cache_key, e)
            return None

    def _cache_set(self, address: TileAddress, png: bytes) -> None:
        try:
            self.cache.set(address.cache_key, png, self.config.cache.tile_ttl_seconds)
        except CacheBackendUnavailable as e:
            logger.warning("Tile cache write failed for %s: %s", address.cache_key, e)


def build_client(config: TileServiceConfig) -> ArcGisClient:
    return ArcGisClient(
        base_url=config.upstream.base_url,
        user_agent=config.upstream.user_agent,
        timeout=config.upstream.timeout_seconds,
    )


def build_service(
    config: TileServiceConfig,
    cache: CacheBackend | None = None,
    client: ArcGisClient | None = None,
) -> TileService:
    """Wire the service from config. A cache that cannot be opened falls back
    to process memory."""
    if cache is None:
        try:
            cache = build_cache(config.cache)
        except CacheBackendUnavailable as e:
            logger.warning("Cache backend unavailable, using memory: %s", e)
            cache = MemoryCache()
    client = client or build_client(config)
    fetcher = HazardFetcher(
        client,
        cache,
        config.upstream.layer_ids,
        ttl_seconds=config.cache.snapshot_ttl_seconds,
    )
    export_fetcher = None
    if config.upstream.source == UpstreamSource.EXPORT:
        export_fetcher = ExportFetcher(
            client,
            config.upstream.layer_ids,
            max_distance=config.upstream.export_max_color_distance,
        )
    return TileService(config, cache, fetcher, export_fetcher)
