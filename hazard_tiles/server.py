"""Hazard tile server: FastAPI app serving WSSI raster tiles and diagnostics.

Run with `hazard-tiles serve`, or `uvicorn --factory hazard_tiles.server:create_app`.
"""

import logging
from dataclasses import asdict

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from hazard_tiles.config.loader import config_hash, load_config
from hazard_tiles.config.schema import TileServiceConfig
from hazard_tiles.ingest.hazard_fetcher import UpstreamFetchFailed
from hazard_tiles.models.tile import VALID_DAYS, InvalidTileAddress, TileAddress, TileStatus
from hazard_tiles.pipeline.tile_pipeline import TileService, build_service
from hazard_tiles.reporting.health_checker import HealthChecker

logger = logging.getLogger(__name__)


def create_app(
    config: TileServiceConfig | None = None,
    service: TileService | None = None,
) -> FastAPI:
    config = config or load_config()
    service = service or build_service(config)
    health = HealthChecker(service.cache, service.fetcher.client, config.upstream.source.value)
    logger.info(
        "Tile server configured: source=%s cache=%s config=%s",
        config.upstream.source.value, service.cache.name, config_hash(config),
    )

    app = FastAPI(title="Winter Hazard Tiles", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )
    app.state.config = config
    app.state.service = service

    # ── Tiles ───────────────────────────────────────────────────

    @app.get("/tiles/{day}/{z}/{x}/{y}")
    def get_tile(day: str, z: str, x: str, y: str):
        """One 256×256 transparent PNG of WSSI severity."""
        try:
            address = TileAddress.parse(day, z, x, y)
        except InvalidTileAddress as e:
            return PlainTextResponse(str(e), status_code=400)

        result = service.get_tile(address)
        if result.status == TileStatus.FALLBACK:
            cache_control = f"public, max-age={result.max_age}"
        else:
            cache_control = (
                f"public, max-age={result.max_age}, "
                f"s-maxage={config.server.tile_s_maxage_seconds}"
            )
        headers = {
            "Cache-Control": cache_control,
            "Access-Control-Allow-Origin": "*",
            "X-WSSI-Day": str(address.day),
            "X-WSSI-Sigma": f"{result.sigma_px:.2f}",
            "X-WSSI-Cache": "hit" if result.cache_hit else "miss",
            "X-WSSI-Status": result.status.value,
        }
        return Response(content=result.tile.png, media_type="image/png", headers=headers)

    # ── Diagnostics ─────────────────────────────────────────────

    @app.get("/api/hazards/{day}")
    def get_hazards(day: str):
        """Polygon and vertex counts of the day's current snapshot."""
        day_num = int(day) if day.isascii() and day.isdigit() else 0
        if day_num not in VALID_DAYS:
            return JSONResponse({"error": f"Invalid day: {day}"}, status_code=400)
        try:
            metrics = service.snapshot_metrics(day_num)
        except UpstreamFetchFailed as e:
            logger.warning("Hazard metrics unavailable for day %d: %s", day_num, e)
            return JSONResponse({"error": str(e)}, status_code=502)
        return asdict(metrics)

    @app.get("/api/health")
    def get_health():
        """Cache and upstream reachability."""
        return asdict(health.check())

    return app


if __name__ == "__main__":
    import uvicorn

    cfg = load_config()
    uvicorn.run(create_app(cfg), host=cfg.server.host, port=cfg.server.port)
