"""WSSI hazard polygon and snapshot models."""

import functools
from dataclasses import dataclass, field
from enum import StrEnum

from hazard_tiles.models.common import RGB, Ring


class SeverityCategory(StrEnum):
    NONE = "none"
    ELEVATED = "elevated"  # Winter Weather Area
    MINOR = "minor"
    MODERATE = "moderate"
    MAJOR = "major"
    EXTREME = "extreme"

    @property
    def priority(self) -> int:
        return _PRIORITY[self]

    @property
    def color(self) -> RGB:
        return _COLORS[self]

    @property
    def label(self) -> str:
        return _LABELS[self]

    @classmethod
    def from_priority(cls, priority: int) -> "SeverityCategory":
        for category in CATEGORY_ORDER:
            if category.priority == priority:
                return category
        raise ValueError(f"Unknown severity priority: {priority}")


# Ascending severity; compositing walks categories in this order.
CATEGORY_ORDER: tuple[SeverityCategory, ...] = (
    SeverityCategory.NONE,
    SeverityCategory.ELEVATED,
    SeverityCategory.MINOR,
    SeverityCategory.MODERATE,
    SeverityCategory.MAJOR,
    SeverityCategory.EXTREME,
)

_PRIORITY: dict[SeverityCategory, int] = {c: i for i, c in enumerate(CATEGORY_ORDER)}

_COLORS: dict[SeverityCategory, RGB] = {
    SeverityCategory.NONE: (0, 0, 0),
    SeverityCategory.ELEVATED: (0x60, 0xA5, 0xFA),
    SeverityCategory.MINOR: (0x25, 0x63, 0xEB),
    SeverityCategory.MODERATE: (0x7C, 0x3A, 0xED),
    SeverityCategory.MAJOR: (0xA2, 0x1C, 0xAF),
    SeverityCategory.EXTREME: (0xDC, 0x26, 0x26),
}

_LABELS: dict[SeverityCategory, str] = {
    SeverityCategory.NONE: "None",
    SeverityCategory.ELEVATED: "Winter Weather Area",
    SeverityCategory.MINOR: "Minor Impacts",
    SeverityCategory.MODERATE: "Moderate Impacts",
    SeverityCategory.MAJOR: "Major Impacts",
    SeverityCategory.EXTREME: "Extreme Impacts",
}


@dataclass(frozen=True)
class HazardPolygon:
    category: SeverityCategory
    rings: list[Ring]  # rings[0] is the outer boundary, the rest are holes

    @property
    def outer(self) -> Ring:
        return self.rings[0]

    @property
    def holes(self) -> list[Ring]:
        return self.rings[1:]

    @functools.cached_property
    def bounds(self) -> tuple[float, float, float, float]:
        """(min_lon, min_lat, max_lon, max_lat) of the outer ring."""
        lons = [p[0] for p in self.outer]
        lats = [p[1] for p in self.outer]
        return min(lons), min(lats), max(lons), max(lats)

    @property
    def vertex_count(self) -> int:
        return sum(len(r) for r in self.rings)


@dataclass(frozen=True)
class HazardSnapshot:
    day: int
    polygons: list[HazardPolygon]
    fetched_at: str
    issued_at: str | None = None
    valid_at: str | None = None
    last_modified: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.polygons

    def category_counts(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for p in self.polygons:
            counts[p.category.value] = counts.get(p.category.value, 0) + 1
        return counts


@dataclass
class SnapshotMetrics:
    day: int
    polygon_count: int = 0
    vertex_count: int = 0
    by_category: dict[str, int] = field(default_factory=dict)
    fetched_at: str = ""
    issued_at: str | None = None
    valid_at: str | None = None
    last_modified: str | None = None

    @classmethod
    def from_snapshot(cls, snapshot: HazardSnapshot) -> "SnapshotMetrics":
        return cls(
            day=snapshot.day,
            polygon_count=len(snapshot.polygons),
            vertex_count=sum(p.vertex_count for p in snapshot.polygons),
            by_category=snapshot.category_counts(),
            fetched_at=snapshot.fetched_at,
            issued_at=snapshot.issued_at,
            valid_at=snapshot.valid_at,
            last_modified=snapshot.last_modified,
        )
