"""ArcGIS MapServer client for the WPC Winter Storm Severity Index layers."""

import logging

import httpx

from hazard_tiles.config.defaults import DEFAULT_USER_AGENT, WSSI_MAPSERVER_URL
from hazard_tiles.models.tile import MercatorBBox

logger = logging.getLogger(__name__)

WEB_MERCATOR_WKID = "3857"


class ArcGisClient:
    """Single-shot requests with a hard timeout; failures surface immediately."""

    def __init__(
        self,
        base_url: str = WSSI_MAPSERVER_URL,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = 15.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.user_agent = user_agent
        self.timeout = timeout

    def query_layer(self, layer_id: int) -> tuple[dict, str | None]:
        """Fetch every feature of a layer as GeoJSON.

        Returns the decoded payload and the Last-Modified (or Date) header.
        Raises httpx errors on transport failure or non-2xx status, and
        ValueError when the body is not JSON.
        """
        url = f"{self.base_url}/{layer_id}/query"
        params = {
            "where": "1=1",
            "outFields": "*",
            "returnGeometry": "true",
            "f": "geojson",
        }
        headers = {"User-Agent": self.user_agent, "Accept": "application/geo+json"}

        logger.info("Querying WSSI layer %d", layer_id)
        resp = httpx.get(url, params=params, headers=headers, timeout=self.timeout)
        resp.raise_for_status()
        last_modified = resp.headers.get("Last-Modified") or resp.headers.get("Date")
        return resp.json(), last_modified

    def export_layer(
        self, layer_id: int, bbox: MercatorBBox, width: int, height: int
    ) -> bytes:
        """Fetch the server-rendered PNG of one layer for a Web Mercator box."""
        url = f"{self.base_url}/export"
        params = {
            "bbox": ",".join(repr(v) for v in bbox.as_tuple()),
            "bboxSR": WEB_MERCATOR_WKID,
            "imageSR": WEB_MERCATOR_WKID,
            "size": f"{width},{height}",
            "format": "png32",
            "transparent": "true",
            "layers": f"show:{layer_id}",
            "f": "image",
        }
        headers = {"User-Agent": self.user_agent}

        resp = httpx.get(url, params=params, headers=headers, timeout=self.timeout)
        resp.raise_for_status()
        content_type = resp.headers.get("Content-Type", "")
        if not content_type.startswith("image/"):
            # MapServer reports errors as JSON with a 200 status
            raise ValueError(f"Export returned {content_type or 'no content type'}")
        return resp.content

    def ping(self) -> bool:
        """Cheap reachability check against the service root."""
        try:
            resp = httpx.get(
                self.base_url,
                params={"f": "json"},
                headers={"User-Agent": self.user_agent},
                timeout=min(self.timeout, 10.0),
            )
            return resp.status_code == 200
        except httpx.HTTPError:
            return False
