"""Tile addressing, grid and rendered tile models."""

from dataclasses import dataclass
from enum import StrEnum

import numpy as np

MAX_ZOOM = 12
VALID_DAYS = (1, 2, 3)


class InvalidTileAddress(ValueError):
    """Raised for an out-of-range or malformed day/zoom/x/y."""


@dataclass(frozen=True)
class TileAddress:
    zoom: int
    x: int
    y: int
    day: int

    def __post_init__(self) -> None:
        if self.day not in VALID_DAYS:
            raise InvalidTileAddress(f"Invalid day: {self.day}")
        if not 0 <= self.zoom <= MAX_ZOOM:
            raise InvalidTileAddress(f"Zoom must be between 0 and {MAX_ZOOM}, got {self.zoom}")
        n = 2**self.zoom
        if not (0 <= self.x < n and 0 <= self.y < n):
            raise InvalidTileAddress(
                f"Tile {self.x},{self.y} outside [0, {n}) for zoom {self.zoom}"
            )

    @classmethod
    def parse(cls, day: str, zoom: str, x: str, y: str) -> "TileAddress":
        """Build an address from raw path segments. `y` may end in `.png`."""
        if y.endswith(".png"):
            y = y[: -len(".png")]
        d, z, tx, ty = (_parse_int(v) for v in (day, zoom, x, y))
        return cls(zoom=z, x=tx, y=ty, day=d)

    @property
    def cache_key(self) -> str:
        return f"wssi:tile:{self.day}:{self.zoom}:{self.x}:{self.y}"


def _parse_int(value: str) -> int:
    """Plain ASCII decimal with an optional leading minus; no spaces or underscores."""
    digits = value[1:] if value.startswith("-") else value
    if not (digits.isascii() and digits.isdigit()):
        raise InvalidTileAddress(f"Invalid tile coordinate: {value!r}")
    return int(value)


@dataclass(frozen=True)
class MercatorBBox:
    """Bounding box in Web Mercator metres (EPSG:3857)."""

    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    def as_tuple(self) -> tuple[float, float, float, float]:
        return (self.min_x, self.min_y, self.max_x, self.max_y)


@dataclass(frozen=True)
class GeoBoundingBox:
    """Bounding box in geographic degrees (EPSG:4326)."""

    min_lon: float
    min_lat: float
    max_lon: float
    max_lat: float


@dataclass
class PriorityGrid:
    width: int
    height: int
    cells: np.ndarray  # uint8, shape (height, width), row 0 = north edge

    @classmethod
    def empty(cls, width: int, height: int) -> "PriorityGrid":
        return cls(width, height, np.zeros((height, width), dtype=np.uint8))

    @property
    def is_blank(self) -> bool:
        return not self.cells.any()


class TileStatus(StrEnum):
    CACHED = "cached"
    RENDERED = "rendered"
    EMPTY = "empty"  # quiet day, no polygons
    FALLBACK = "fallback"  # upstream or render failure


@dataclass(frozen=True)
class RenderedTile:
    day: int
    zoom: int
    x: int
    y: int
    png: bytes
    rendered_at: str | None


@dataclass(frozen=True)
class TileResult:
    tile: RenderedTile
    status: TileStatus
    sigma_px: float
    max_age: int

    @property
    def cache_hit(self) -> bool:
        return self.status == TileStatus.CACHED
