"""Tests for severity categories and hazard snapshots."""

import pytest

from hazard_tiles.models.hazard import (
    CATEGORY_ORDER,
    HazardPolygon,
    HazardSnapshot,
    SeverityCategory,
    SnapshotMetrics,
)


class TestSeverityCategory:
    def test_priorities_ascend(self):
        assert [c.priority for c in CATEGORY_ORDER] == [0, 1, 2, 3, 4, 5]

    def test_colors(self):
        assert SeverityCategory.MAJOR.color == (162, 28, 175)
        assert SeverityCategory.EXTREME.color == (220, 38, 38)
        assert SeverityCategory.ELEVATED.color == (96, 165, 250)

    def test_from_priority(self):
        assert SeverityCategory.from_priority(3) == SeverityCategory.MODERATE

    def test_from_unknown_priority(self):
        with pytest.raises(ValueError):
            SeverityCategory.from_priority(7)

    def test_label(self):
        assert SeverityCategory.ELEVATED.label == "Winter Weather Area"


class TestSnapshot:
    def _snapshot(self) -> HazardSnapshot:
        outer = [(0.0, 0.0), (4.0, 0.0), (4.0, 4.0), (0.0, 4.0), (0.0, 0.0)]
        hole = [(1.0, 1.0), (2.0, 1.0), (2.0, 2.0), (1.0, 1.0)]
        return HazardSnapshot(
            day=2,
            polygons=[
                HazardPolygon(SeverityCategory.MINOR, [outer, hole]),
                HazardPolygon(SeverityCategory.MINOR, [outer]),
                HazardPolygon(SeverityCategory.EXTREME, [outer]),
            ],
            fetched_at="2026-01-24T10:00:00+00:00",
            issued_at="2026-01-24T09:00:00Z",
        )

    def test_outer_and_holes(self):
        poly = self._snapshot().polygons[0]
        assert len(poly.outer) == 5
        assert len(poly.holes) == 1
        assert poly.vertex_count == 9

    def test_bounds_computed_once(self):
        poly = HazardPolygon(SeverityCategory.MINOR, [[(-3.0, 1.0), (2.0, 1.0), (2.0, 4.0), (-3.0, 1.0)]])
        assert poly.bounds == (-3.0, 1.0, 2.0, 4.0)
        assert poly.bounds is poly.bounds

    def test_empty(self):
        snap = HazardSnapshot(day=1, polygons=[], fetched_at="x")
        assert snap.is_empty
        assert snap.category_counts() == {}

    def test_counts(self):
        assert self._snapshot().category_counts() == {"minor": 2, "extreme": 1}

    def test_metrics(self):
        metrics = SnapshotMetrics.from_snapshot(self._snapshot())
        assert metrics.day == 2
        assert metrics.polygon_count == 3
        assert metrics.vertex_count == 19
        assert metrics.issued_at == "2026-01-24T09:00:00Z"
        assert metrics.last_modified is None
