"""Shared test fixtures."""

import json
from pathlib import Path

import pytest
import yaml

from hazard_tiles.config.schema import TileServiceConfig
from hazard_tiles.models.common import utc_now_iso
from hazard_tiles.models.hazard import HazardPolygon, HazardSnapshot, SeverityCategory
from hazard_tiles.storage.cache import MemoryCache

FIXTURE_DIR = Path(__file__).parent / "fixtures"


class FakeClock:
    """Manually advanced clock for cache expiry tests."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def box(min_lon: float, min_lat: float, max_lon: float, max_lat: float) -> list[tuple[float, float]]:
    """Closed counter-clockwise rectangle ring."""
    return [
        (min_lon, min_lat),
        (max_lon, min_lat),
        (max_lon, max_lat),
        (min_lon, max_lat),
        (min_lon, min_lat),
    ]


def make_snapshot(day: int = 1, polygons: list[HazardPolygon] | None = None) -> HazardSnapshot:
    return HazardSnapshot(day=day, polygons=polygons or [], fetched_at=utc_now_iso())


@pytest.fixture
def default_config() -> TileServiceConfig:
    return TileServiceConfig()


@pytest.fixture
def memory_cache() -> MemoryCache:
    return MemoryCache()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def major_snapshot() -> HazardSnapshot:
    """One MAJOR polygon covering most of the central US and Canada."""
    return make_snapshot(
        1, [HazardPolygon(SeverityCategory.MAJOR, [box(-100.0, 30.0, -55.0, 65.0)])]
    )


@pytest.fixture
def config_yaml_path(tmp_path: Path) -> Path:
    """Write a minimal valid config YAML and return its path."""
    data = {
        "render": {"alpha": 180, "smoothing_km": 40},
        "cache": {"backend": "memory", "tile_ttl_seconds": 120},
        "server": {"port": 8123},
    }
    path = tmp_path / "test_config.yaml"
    with open(path, "w") as f:
        yaml.dump(data, f)
    return path


@pytest.fixture
def fixtures_dir() -> Path:
    """Return the path to the test fixtures directory."""
    return FIXTURE_DIR


@pytest.fixture
def wssi_day1() -> dict:
    with open(FIXTURE_DIR / "wssi_day1.geojson") as f:
        return json.load(f)
