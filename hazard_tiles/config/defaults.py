"""Upstream endpoint defaults and reference legend colors."""

from hazard_tiles.models.common import RGB
from hazard_tiles.models.hazard import SeverityCategory

WSSI_MAPSERVER_URL = (
    "https://mapservices.weather.noaa.gov/vector/rest/services/outlooks/wpc_wssi/MapServer"
)
DEFAULT_USER_AGENT = "hazard-tiles/0.1.0"

# Overall_Impact_Day_N layers on the WSSI MapServer.
DEFAULT_LAYER_IDS: dict[int, int] = {1: 1, 2: 2, 3: 3}

# Approximate colors of the MapServer's own WSSI legend, used only by the
# export (raster re-classification) source.
EXPORT_LEGEND_COLORS: dict[SeverityCategory, RGB] = {
    SeverityCategory.ELEVATED: (166, 204, 255),
    SeverityCategory.MINOR: (255, 255, 0),
    SeverityCategory.MODERATE: (255, 165, 0),
    SeverityCategory.MAJOR: (255, 0, 0),
    SeverityCategory.EXTREME: (170, 0, 170),
}
