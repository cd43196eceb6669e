"""Tests for the raster export fallback source."""

import io
from unittest.mock import MagicMock

import httpx
import numpy as np
import pytest
from PIL import Image

from hazard_tiles.config.defaults import EXPORT_LEGEND_COLORS
from hazard_tiles.ingest.arcgis_client import ArcGisClient
from hazard_tiles.ingest.export_fetcher import ExportFetcher
from hazard_tiles.ingest.hazard_fetcher import UpstreamFetchFailed
from hazard_tiles.models.hazard import SeverityCategory
from hazard_tiles.models.tile import MercatorBBox

BBOX = MercatorBBox(-1e6, -1e6, 1e6, 1e6)


def _png(rgba: np.ndarray) -> bytes:
    buf = io.BytesIO()
    Image.fromarray(rgba).save(buf, format="PNG")
    return buf.getvalue()


def _legend_image(width: int, height: int) -> np.ndarray:
    """Left half MAJOR legend color, right half transparent."""
    rgba = np.zeros((height, width, 4), dtype=np.uint8)
    rgba[:, : width // 2, :3] = EXPORT_LEGEND_COLORS[SeverityCategory.MAJOR]
    rgba[:, : width // 2, 3] = 255
    return rgba


class TestExportFetcher:
    def test_reclassifies_pixels(self):
        client = MagicMock(spec=ArcGisClient)
        client.export_layer.return_value = _png(_legend_image(8, 4))
        fetcher = ExportFetcher(client, {1: 1, 2: 2, 3: 3})

        grid = fetcher.fetch_grid(2, BBOX, 8, 4)

        client.export_layer.assert_called_once_with(2, BBOX, 8, 4)
        assert grid.cells.shape == (4, 8)
        assert (grid.cells[:, :4] == SeverityCategory.MAJOR.priority).all()
        assert (grid.cells[:, 4:] == 0).all()

    def test_rgb_image_accepted(self):
        rgb = np.zeros((3, 3, 3), dtype=np.uint8)
        rgb[...] = EXPORT_LEGEND_COLORS[SeverityCategory.MINOR]
        buf = io.BytesIO()
        Image.fromarray(rgb).save(buf, format="PNG")
        client = MagicMock(spec=ArcGisClient)
        client.export_layer.return_value = buf.getvalue()

        grid = ExportFetcher(client, {1: 1}).fetch_grid(1, BBOX, 3, 3)
        assert (grid.cells == SeverityCategory.MINOR.priority).all()

    def test_http_error(self):
        client = MagicMock(spec=ArcGisClient)
        client.export_layer.side_effect = httpx.ReadTimeout("slow")
        with pytest.raises(UpstreamFetchFailed, match="export failed"):
            ExportFetcher(client, {1: 1}).fetch_grid(1, BBOX, 4, 4)

    def test_non_image_response(self):
        client = MagicMock(spec=ArcGisClient)
        client.export_layer.side_effect = ValueError("Export returned application/json")
        with pytest.raises(UpstreamFetchFailed, match="no image"):
            ExportFetcher(client, {1: 1}).fetch_grid(1, BBOX, 4, 4)

    def test_undecodable_bytes(self):
        client = MagicMock(spec=ArcGisClient)
        client.export_layer.return_value = b"definitely not a png"
        with pytest.raises(UpstreamFetchFailed, match="not a readable image"):
            ExportFetcher(client, {1: 1}).fetch_grid(1, BBOX, 4, 4)

    def test_wrong_size(self):
        client = MagicMock(spec=ArcGisClient)
        client.export_layer.return_value = _png(_legend_image(8, 4))
        with pytest.raises(UpstreamFetchFailed, match="Export size"):
            ExportFetcher(client, {1: 1}).fetch_grid(1, BBOX, 16, 16)

    def test_unknown_day(self):
        client = MagicMock(spec=ArcGisClient)
        with pytest.raises(UpstreamFetchFailed):
            ExportFetcher(client, {1: 1}).fetch_grid(2, BBOX, 4, 4)
        client.export_layer.assert_not_called()
