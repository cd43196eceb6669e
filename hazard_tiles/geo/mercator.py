"""Spherical Web Mercator helpers for XYZ tiles.

Tile bounds are derived from the integer tile index on both edges so that
neighbouring tiles share the exact same boundary coordinate.
"""

import math

from hazard_tiles.models.tile import GeoBoundingBox, MercatorBBox

WORLD_EXTENT_M = 20037508.34
EARTH_CIRCUMFERENCE_KM = 40075.0
TILE_SIZE = 256


def tile_to_mercator_bbox(zoom: int, x: int, y: int) -> MercatorBBox:
    """Web Mercator bounds of tile (zoom, x, y); y counts down from the north."""
    tile_span = 2 * WORLD_EXTENT_M / 2**zoom
    min_x = -WORLD_EXTENT_M + x * tile_span
    max_x = -WORLD_EXTENT_M + (x + 1) * tile_span
    max_y = WORLD_EXTENT_M - y * tile_span
    min_y = WORLD_EXTENT_M - (y + 1) * tile_span
    return MercatorBBox(min_x, min_y, max_x, max_y)


def mercator_x_to_lon(x: float) -> float:
    return x * 180.0 / WORLD_EXTENT_M


def mercator_y_to_lat(y: float) -> float:
    y_deg = y * 180.0 / WORLD_EXTENT_M
    return 180.0 / math.pi * (2 * math.atan(math.exp(y_deg * math.pi / 180.0)) - math.pi / 2)


def lon_to_mercator_x(lon: float) -> float:
    return lon * WORLD_EXTENT_M / 180.0


def lat_to_mercator_y(lat: float) -> float:
    y_deg = math.log(math.tan((90.0 + lat) * math.pi / 360.0)) / (math.pi / 180.0)
    return y_deg * WORLD_EXTENT_M / 180.0


def mercator_to_wgs84(bbox: MercatorBBox) -> GeoBoundingBox:
    return GeoBoundingBox(
        min_lon=mercator_x_to_lon(bbox.min_x),
        min_lat=mercator_y_to_lat(bbox.min_y),
        max_lon=mercator_x_to_lon(bbox.max_x),
        max_lat=mercator_y_to_lat(bbox.max_y),
    )


def tile_to_geo_bbox(zoom: int, x: int, y: int) -> GeoBoundingBox:
    return mercator_to_wgs84(tile_to_mercator_bbox(zoom, x, y))


def expand_mercator_bbox(bbox: MercatorBBox, margin_m: float) -> MercatorBBox:
    return MercatorBBox(
        bbox.min_x - margin_m,
        bbox.min_y - margin_m,
        bbox.max_x + margin_m,
        bbox.max_y + margin_m,
    )


def km_per_pixel(zoom: int, tile_size: int = TILE_SIZE) -> float:
    """Ground distance of one tile pixel at the equator."""
    return EARTH_CIRCUMFERENCE_KM / (tile_size * 2**zoom)


def blur_sigma(
    zoom: int,
    smoothing_km: float = 40.0,
    min_sigma: float = 1.0,
    max_sigma: float = 30.0,
    tile_size: int = TILE_SIZE,
) -> float:
    """Gaussian sigma in tile pixels for a fixed real-world smoothing radius."""
    sigma = smoothing_km / km_per_pixel(zoom, tile_size)
    return max(min_sigma, min(max_sigma, sigma))
