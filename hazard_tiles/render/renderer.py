"""Priority grid → smoothed RGBA tile.

The canvas is rasterized over the tile's box grown by the blur radius, so
neighbouring tiles see the same context near their shared edge. Colors are
kept premultiplied by alpha through blur and downsampling so transparent
pixels never darken the edges of a hazard area.

Pipeline per tile: plan_canvas → rasterize → colorize → blur → crop →
downsample → to_rgba8 → encode_png.
"""

import functools
import io
import logging
import math
from dataclasses import dataclass

import numpy as np
from PIL import Image, PngImagePlugin
from scipy.ndimage import gaussian_filter

from hazard_tiles.config.schema import RenderConfig
from hazard_tiles.geo.mercator import (
    blur_sigma,
    expand_mercator_bbox,
    mercator_to_wgs84,
    tile_to_mercator_bbox,
)
from hazard_tiles.models.hazard import CATEGORY_ORDER
from hazard_tiles.models.tile import (
    GeoBoundingBox,
    MercatorBBox,
    PriorityGrid,
    TileAddress,
)

logger = logging.getLogger(__name__)

RENDERED_AT_KEY = "rendered_at"


class RenderFailure(Exception):
    """Raised when a tile cannot be rasterized or rendered."""


@dataclass(frozen=True)
class CanvasPlan:
    address: TileAddress
    tile_size: int
    factor: int  # supersampling factor
    sigma_px: float  # blur sigma in final tile pixels
    pad: int  # canvas pixels added on every side
    mercator_bbox: MercatorBBox  # expanded
    geo_bbox: GeoBoundingBox  # expanded

    @property
    def inner_size(self) -> int:
        return self.tile_size * self.factor

    @property
    def width(self) -> int:
        return self.inner_size + 2 * self.pad

    @property
    def height(self) -> int:
        return self.inner_size + 2 * self.pad

    @property
    def canvas_sigma(self) -> float:
        return self.sigma_px * self.factor


def supersample_factor(zoom: int, config: RenderConfig) -> int:
    if zoom <= config.supersample_4x_max_zoom:
        return 4
    if zoom <= config.supersample_2x_max_zoom:
        return 2
    return 1


def plan_canvas(address: TileAddress, config: RenderConfig) -> CanvasPlan:
    factor = supersample_factor(address.zoom, config)
    sigma = blur_sigma(
        address.zoom,
        config.smoothing_km,
        config.min_sigma_px,
        config.max_sigma_px,
        config.tile_size,
    )
    pad = 0
    if sigma >= config.sigma_floor_px:
        pad = math.ceil(config.blur_truncate * sigma * factor)

    tile_bbox = tile_to_mercator_bbox(address.zoom, address.x, address.y)
    metres_per_canvas_px = tile_bbox.width / (config.tile_size * factor)
    expanded = expand_mercator_bbox(tile_bbox, pad * metres_per_canvas_px)
    return CanvasPlan(
        address=address,
        tile_size=config.tile_size,
        factor=factor,
        sigma_px=sigma,
        pad=pad,
        mercator_bbox=expanded,
        geo_bbox=mercator_to_wgs84(expanded),
    )


@functools.lru_cache(maxsize=8)
def _palette(alpha: int) -> np.ndarray:
    """Premultiplied RGBA lookup indexed by priority."""
    lut = np.zeros((len(CATEGORY_ORDER), 4), dtype=np.float32)
    a = alpha / 255.0
    for category in CATEGORY_ORDER:
        if category.priority == 0:
            continue
        r, g, b = category.color
        lut[category.priority] = (r * a, g * a, b * a, alpha)
    lut.setflags(write=False)
    return lut


def colorize(grid: PriorityGrid, alpha: int) -> np.ndarray:
    """Map priorities to premultiplied float RGBA; priority 0 is transparent."""
    return _palette(alpha)[grid.cells]


def blur(canvas: np.ndarray, sigma: float, truncate: float = 3.0, floor: float = 0.5) -> np.ndarray:
    if sigma < floor:
        return canvas
    return gaussian_filter(canvas, sigma=(sigma, sigma, 0), mode="nearest", truncate=truncate)


def crop(canvas: np.ndarray, pad: int) -> np.ndarray:
    if pad <= 0:
        return canvas
    return canvas[pad:-pad, pad:-pad]


def downsample(canvas: np.ndarray, factor: int) -> np.ndarray:
    """Area-average non-overlapping factor×factor blocks."""
    if factor <= 1:
        return canvas
    h, w, c = canvas.shape
    blocks = canvas.reshape(h // factor, factor, w // factor, factor, c)
    return blocks.mean(axis=(1, 3), dtype=np.float32)


def to_rgba8(canvas: np.ndarray) -> np.ndarray:
    """Un-premultiply and quantize to uint8 RGBA."""
    alpha = canvas[..., 3]
    out = np.zeros(canvas.shape, dtype=np.uint8)
    visible = alpha >= 0.5
    scale = np.zeros_like(alpha)
    scale[visible] = 255.0 / alpha[visible]
    rgb = canvas[..., :3] * scale[..., None]
    out[..., :3] = np.clip(np.rint(rgb), 0, 255).astype(np.uint8)
    out[..., 3] = np.clip(np.rint(alpha), 0, 255).astype(np.uint8)
    out[~visible] = 0
    return out


def render_grid(grid: PriorityGrid, plan: CanvasPlan, config: RenderConfig) -> np.ndarray:
    """Full-canvas priority grid → final tile_size×tile_size uint8 RGBA."""
    if grid.width != plan.width or grid.height != plan.height:
        raise RenderFailure(
            f"Grid {grid.width}x{grid.height} does not match canvas {plan.width}x{plan.height}"
        )
    if grid.is_blank:
        return np.zeros((plan.tile_size, plan.tile_size, 4), dtype=np.uint8)

    logger.debug(
        "Rendering %dx%d canvas: factor=%d sigma=%.2f pad=%d",
        plan.width, plan.height, plan.factor, plan.canvas_sigma, plan.pad,
    )
    canvas = colorize(grid, config.alpha)
    # the floor applies to the tile-pixel sigma, matching the padding decision
    if plan.sigma_px >= config.sigma_floor_px:
        canvas = blur(canvas, plan.canvas_sigma, config.blur_truncate)
    canvas = crop(canvas, plan.pad)
    canvas = downsample(canvas, plan.factor)
    return to_rgba8(canvas)


def encode_png(rgba: np.ndarray, rendered_at: str | None = None) -> bytes:
    info = PngImagePlugin.PngInfo()
    if rendered_at:
        info.add_text(RENDERED_AT_KEY, rendered_at)
    buf = io.BytesIO()
    Image.fromarray(rgba).save(buf, format="PNG", pnginfo=info)
    return buf.getvalue()


def read_rendered_at(png: bytes) -> str | None:
    try:
        with Image.open(io.BytesIO(png)) as img:
            return img.text.get(RENDERED_AT_KEY)
    except (OSError, ValueError):
        return None


@functools.lru_cache(maxsize=4)
def transparent_png(size: int = 256) -> bytes:
    return encode_png(np.zeros((size, size, 4), dtype=np.uint8))
