"""Polygon → priority grid rasterization by ray casting.

Pixel centres are laid out on the Web Mercator lattice of the target box:
longitude is linear across columns, latitude is interpolated linearly in
Mercator y across rows (row 0 is the northern edge).
"""

import logging
from collections import defaultdict
from collections.abc import Iterable

import numpy as np

from hazard_tiles.geo.mercator import (
    lat_to_mercator_y,
    lon_to_mercator_x,
    mercator_x_to_lon,
    mercator_y_to_lat,
)
from hazard_tiles.models.common import Ring
from hazard_tiles.models.hazard import CATEGORY_ORDER, HazardPolygon
from hazard_tiles.models.tile import GeoBoundingBox, PriorityGrid

logger = logging.getLogger(__name__)


def pixel_centers(
    bbox: GeoBoundingBox, width: int, height: int
) -> tuple[np.ndarray, np.ndarray]:
    """Longitudes of column centres and latitudes of row centres."""
    min_x = lon_to_mercator_x(bbox.min_lon)
    max_x = lon_to_mercator_x(bbox.max_lon)
    min_y = lat_to_mercator_y(bbox.min_lat)
    max_y = lat_to_mercator_y(bbox.max_lat)

    xs = min_x + (np.arange(width) + 0.5) * (max_x - min_x) / width
    ys = max_y - (np.arange(height) + 0.5) * (max_y - min_y) / height

    lons = np.array([mercator_x_to_lon(x) for x in xs])
    lats = np.array([mercator_y_to_lat(y) for y in ys])
    return lons, lats


def ring_mask(ring: Ring, lons: np.ndarray, lats: np.ndarray) -> np.ndarray:
    """Even-odd ray casting of every pixel centre against one ring.

    For each row a horizontal ray is cast eastwards from each pixel centre;
    the pixel is inside when it crosses an odd number of ring edges.
    """
    mask = np.zeros((len(lats), len(lons)), dtype=bool)
    if len(ring) < 3:
        return mask

    pts = np.asarray(ring, dtype=np.float64)
    x0, y0 = pts[:, 0], pts[:, 1]
    x1, y1 = np.roll(x0, -1), np.roll(y0, -1)

    row_hits = np.nonzero((lats >= y0.min()) & (lats <= y0.max()))[0]
    for r in row_hits:
        lat = lats[r]
        spans = (y0 > lat) != (y1 > lat)
        if not spans.any():
            continue
        xa, ya, xb, yb = x0[spans], y0[spans], x1[spans], y1[spans]
        crossings = np.sort(xa + (lat - ya) * (xb - xa) / (yb - ya))
        # number of crossings strictly east of each pixel centre
        east = len(crossings) - np.searchsorted(crossings, lons, side="right")
        mask[r] = (east % 2) == 1
    return mask


def polygon_mask(polygon: HazardPolygon, lons: np.ndarray, lats: np.ndarray) -> np.ndarray:
    """Inside the outer ring and outside every hole."""
    mask = ring_mask(polygon.outer, lons, lats)
    if not mask.any():
        return mask
    for hole in polygon.holes:
        mask &= ~ring_mask(hole, lons, lats)
    return mask


def point_in_polygon(polygon: HazardPolygon, lon: float, lat: float) -> bool:
    return bool(polygon_mask(polygon, np.array([lon]), np.array([lat]))[0, 0])


def rasterize(
    polygons: Iterable[HazardPolygon],
    bbox: GeoBoundingBox,
    width: int,
    height: int,
) -> PriorityGrid:
    """Composite polygons into one severity priority per pixel.

    Categories are visited in ascending priority and a pixel is only ever
    raised, so the result is the maximum covering priority regardless of
    submission order.
    """
    grid = PriorityGrid.empty(width, height)
    by_category: dict = defaultdict(list)
    for p in polygons:
        if p.category.priority > 0:
            by_category[p.category].append(p)
    if not by_category:
        return grid

    lons, lats = pixel_centers(bbox, width, height)
    cells = grid.cells
    for category in CATEGORY_ORDER:
        priority = category.priority
        for polygon in by_category.get(category, ()):
            if not _overlaps(polygon, bbox):
                continue
            mask = polygon_mask(polygon, lons, lats)
            cells[mask & (cells < priority)] = priority

    logger.debug(
        "Rasterized %d categories onto %dx%d grid",
        len(by_category), width, height,
    )
    return grid


def _overlaps(polygon: HazardPolygon, bbox: GeoBoundingBox) -> bool:
    if not polygon.outer:
        return False
    min_lon, min_lat, max_lon, max_lat = polygon.bounds
    return not (
        max_lon < bbox.min_lon
        or min_lon > bbox.max_lon
        or max_lat < bbox.min_lat
        or min_lat > bbox.max_lat
    )
