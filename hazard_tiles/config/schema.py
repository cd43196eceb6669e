"""Pydantic v2 configuration schema with strict validation."""

from enum import StrEnum

from pydantic import BaseModel, Field, model_validator

from hazard_tiles.config.defaults import (
    DEFAULT_LAYER_IDS,
    DEFAULT_USER_AGENT,
    WSSI_MAPSERVER_URL,
)


class UpstreamSource(StrEnum):
    VECTOR = "vector"  # polygon query + local rasterization
    EXPORT = "export"  # pre-rendered MapServer image, re-classified by color


class CacheBackendKind(StrEnum):
    MEMORY = "memory"
    SQLITE = "sqlite"


class UpstreamConfig(BaseModel):
    model_config = {"extra": "forbid"}

    base_url: str = WSSI_MAPSERVER_URL
    user_agent: str = DEFAULT_USER_AGENT
    timeout_seconds: float = Field(default=15.0, gt=0.0, le=60.0)
    source: UpstreamSource = UpstreamSource.VECTOR
    layer_ids: dict[int, int] = Field(default_factory=lambda: dict(DEFAULT_LAYER_IDS))
    export_max_color_distance: float = Field(default=60.0, gt=0.0)


class RenderConfig(BaseModel):
    model_config = {"extra": "forbid"}

    tile_size: int = Field(default=256, ge=64, le=1024)
    alpha: int = Field(default=180, ge=0, le=255)
    smoothing_km: float = Field(default=40.0, gt=0.0)
    min_sigma_px: float = Field(default=1.0, ge=0.0)
    max_sigma_px: float = Field(default=30.0, gt=0.0)
    sigma_floor_px: float = Field(default=0.5, ge=0.0)
    blur_truncate: float = Field(default=3.0, gt=0.0)
    supersample_4x_max_zoom: int = Field(default=4, ge=-1, le=12)
    supersample_2x_max_zoom: int = Field(default=7, ge=-1, le=12)

    @model_validator(mode="after")
    def _check_sigma_bounds(self) -> "RenderConfig":
        if self.min_sigma_px > self.max_sigma_px:
            raise ValueError(
                f"min_sigma_px ({self.min_sigma_px}) exceeds max_sigma_px ({self.max_sigma_px})"
            )
        return self


class CacheConfig(BaseModel):
    model_config = {"extra": "forbid"}

    backend: CacheBackendKind = CacheBackendKind.MEMORY
    sqlite_path: str = "data/tile_cache.db"
    snapshot_ttl_seconds: int = Field(default=600, ge=1)
    tile_ttl_seconds: int = Field(default=300, ge=1)


class ServerConfig(BaseModel):
    model_config = {"extra": "forbid"}

    host: str = "127.0.0.1"
    port: int = Field(default=8000, ge=1, le=65535)
    tile_max_age_seconds: int = Field(default=300, ge=0)
    tile_s_maxage_seconds: int = Field(default=600, ge=0)
    fallback_max_age_seconds: int = Field(default=60, ge=0)
    log_level: str = "INFO"


class TileServiceConfig(BaseModel):
    model_config = {"extra": "forbid"}

    upstream: UpstreamConfig = UpstreamConfig()
    render: RenderConfig = RenderConfig()
    cache: CacheConfig = CacheConfig()
    server: ServerConfig = ServerConfig()
