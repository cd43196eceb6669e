"""Raster fallback source: re-classify the MapServer's own rendered image."""

import io
import logging
from collections.abc import Mapping

import httpx
import numpy as np
from PIL import Image, UnidentifiedImageError

from hazard_tiles.config.defaults import EXPORT_LEGEND_COLORS
from hazard_tiles.ingest.arcgis_client import ArcGisClient
from hazard_tiles.ingest.classify import classify_rgb
from hazard_tiles.ingest.hazard_fetcher import UpstreamFetchFailed
from hazard_tiles.models.common import RGB
from hazard_tiles.models.hazard import SeverityCategory
from hazard_tiles.models.tile import MercatorBBox, PriorityGrid

logger = logging.getLogger(__name__)


class ExportFetcher:
    """Fetches a priority grid for a canvas box from the export endpoint.

    Grids are not cached here; the finished tile is.
    """

    def __init__(
        self,
        client: ArcGisClient,
        layer_ids: dict[int, int],
        legend: Mapping[SeverityCategory, RGB] = EXPORT_LEGEND_COLORS,
        max_distance: float = 60.0,
    ):
        self.client = client
        self.layer_ids = layer_ids
        self.legend = legend
        self.max_distance = max_distance

    def fetch_grid(self, day: int, bbox: MercatorBBox, width: int, height: int) -> PriorityGrid:
        layer_id = self.layer_ids.get(day)
        if layer_id is None:
            raise UpstreamFetchFailed(f"No upstream layer configured for day {day}")

        try:
            png = self.client.export_layer(layer_id, bbox, width, height)
        except httpx.HTTPError as e:
            raise UpstreamFetchFailed(f"WSSI day {day} export failed: {e}") from e
        except ValueError as e:
            raise UpstreamFetchFailed(f"WSSI day {day} export returned no image: {e}") from e

        try:
            with Image.open(io.BytesIO(png)) as img:
                rgba = np.asarray(img.convert("RGBA"))
        except (UnidentifiedImageError, OSError) as e:
            raise UpstreamFetchFailed(f"WSSI day {day} export is not a readable image: {e}") from e

        if rgba.shape[:2] != (height, width):
            raise UpstreamFetchFailed(
                f"Export size {rgba.shape[1]}x{rgba.shape[0]} != requested {width}x{height}"
            )

        cells = classify_rgb(rgba, self.legend, self.max_distance)
        logger.debug("Export grid day %d: %d hazard pixels", day, int(np.count_nonzero(cells)))
        return PriorityGrid(width=width, height=height, cells=cells)
