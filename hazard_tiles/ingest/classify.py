"""Severity classification for heterogeneous upstream attributes.

Upstream schema drift should only ever touch this module.
"""

from collections.abc import Mapping
from typing import Any

import numpy as np

from hazard_tiles.models.common import RGB
from hazard_tiles.models.hazard import CATEGORY_ORDER, SeverityCategory

# Checked in order; the first key holding a recognizable value wins.
TEXT_KEYS: tuple[str, ...] = (
    "impact",
    "idp_wssilabel",
    "label",
    "Label",
    "LABEL",
    "name",
    "Name",
)
CODE_KEYS: tuple[str, ...] = ("gridcode", "impact_code", "category", "cat")

_EXACT: dict[str, SeverityCategory] = {
    "extreme": SeverityCategory.EXTREME,
    "extreme impacts": SeverityCategory.EXTREME,
    "major": SeverityCategory.MAJOR,
    "major impacts": SeverityCategory.MAJOR,
    "moderate": SeverityCategory.MODERATE,
    "moderate impacts": SeverityCategory.MODERATE,
    "minor": SeverityCategory.MINOR,
    "minor impacts": SeverityCategory.MINOR,
    "elevated": SeverityCategory.ELEVATED,
    "winter weather area": SeverityCategory.ELEVATED,
    "wwa": SeverityCategory.ELEVATED,
}

# Most severe first so "major to extreme" reads as extreme.
_CONTAINS: tuple[tuple[str, SeverityCategory], ...] = (
    ("extreme", SeverityCategory.EXTREME),
    ("major", SeverityCategory.MAJOR),
    ("moderate", SeverityCategory.MODERATE),
    ("minor", SeverityCategory.MINOR),
    ("elevated", SeverityCategory.ELEVATED),
    ("winter weather", SeverityCategory.ELEVATED),
    ("wwa", SeverityCategory.ELEVATED),
)


def classify(attributes: Mapping[str, Any] | None) -> SeverityCategory:
    """Map a feature's raw attributes to a severity category (NONE if unknown)."""
    if not attributes:
        return SeverityCategory.NONE

    for key in TEXT_KEYS:
        value = attributes.get(key)
        if value is None or value == "":
            continue
        category = _classify_value(value)
        if category != SeverityCategory.NONE:
            return category

    for key in CODE_KEYS:
        category = _classify_code(attributes.get(key))
        if category is not None:
            return category

    return SeverityCategory.NONE


def _classify_value(value: Any) -> SeverityCategory:
    code = _classify_code(value)
    if code is not None:
        return code
    if not isinstance(value, str):
        return SeverityCategory.NONE

    text = value.lower().strip()
    if text in _EXACT:
        return _EXACT[text]
    for needle, category in _CONTAINS:
        if needle in text:
            return category
    return SeverityCategory.NONE


def _classify_code(value: Any) -> SeverityCategory | None:
    """Small integer codes 0-5 map straight onto priority."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value.isdigit():
            return None
        value = int(value)
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, int) and 0 <= value < len(CATEGORY_ORDER):
        return CATEGORY_ORDER[value]
    return None


def classify_rgb(
    rgba: np.ndarray,
    legend: Mapping[SeverityCategory, RGB],
    max_distance: float,
    min_alpha: int = 128,
) -> np.ndarray:
    """Bucket pixels of a pre-rendered image by nearest legend color.

    Returns a uint8 array of priorities, 0 where the pixel is transparent or
    no legend color is within `max_distance` (Euclidean RGB).
    """
    height, width = rgba.shape[:2]
    out = np.zeros((height, width), dtype=np.uint8)
    if not legend:
        return out

    rgb = rgba[..., :3].astype(np.float32)
    best = np.full((height, width), np.inf, dtype=np.float32)
    for category, color in legend.items():
        dist = np.linalg.norm(rgb - np.asarray(color, dtype=np.float32), axis=-1)
        closer = dist < best
        best[closer] = dist[closer]
        out[closer] = category.priority

    if rgba.shape[2] == 4:
        out[rgba[..., 3] < min_alpha] = 0
    out[best > max_distance] = 0
    return out
