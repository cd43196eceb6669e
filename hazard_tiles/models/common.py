"""Common types and helpers shared across models."""

from datetime import UTC, datetime
from typing import TypeAlias

Point: TypeAlias = tuple[float, float]  # (lon, lat)
Ring: TypeAlias = list[Point]
RGB: TypeAlias = tuple[int, int, int]


def utc_now() -> datetime:
    return datetime.now(UTC)


def utc_now_iso() -> str:
    return utc_now().isoformat()

