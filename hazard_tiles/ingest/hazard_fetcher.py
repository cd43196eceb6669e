"""Hazard fetcher: retrieves and caches WSSI severity polygons per forecast day."""

import json
import logging

import httpx

from hazard_tiles.ingest.arcgis_client import ArcGisClient
from hazard_tiles.ingest.classify import classify
from hazard_tiles.models.common import Ring, utc_now_iso
from hazard_tiles.models.hazard import HazardPolygon, HazardSnapshot, SeverityCategory
from hazard_tiles.storage.cache import CacheBackend, CacheBackendUnavailable

logger = logging.getLogger(__name__)

SNAPSHOT_TTL_SECONDS = 600


class UpstreamFetchFailed(Exception):
    """Timeout, non-2xx status or malformed payload from the hazard service."""


def snapshot_cache_key(day: int) -> str:
    return f"wssi:snapshot:{day}"


class HazardFetcher:
    def __init__(
        self,
        client: ArcGisClient,
        cache: CacheBackend,
        layer_ids: dict[int, int],
        ttl_seconds: int = SNAPSHOT_TTL_SECONDS,
    ):
        self.client = client
        self.cache = cache
        self.layer_ids = layer_ids
        self.ttl_seconds = ttl_seconds

    def fetch(self, day: int) -> HazardSnapshot:
        """Return the day's polygon set, from cache when fresh.

        A day with no features is a valid, cacheable snapshot. Failures raise
        UpstreamFetchFailed and leave the cache untouched.
        """
        cached = self._cache_get(day)
        if cached is not None:
            return cached

        layer_id = self.layer_ids.get(day)
        if layer_id is None:
            raise UpstreamFetchFailed(f"No upstream layer configured for day {day}")

        try:
            payload, last_modified = self.client.query_layer(layer_id)
        except httpx.HTTPError as e:
            raise UpstreamFetchFailed(f"WSSI day {day} request failed: {e}") from e
        except ValueError as e:
            raise UpstreamFetchFailed(f"WSSI day {day} returned invalid JSON: {e}") from e

        snapshot = parse_snapshot(payload, day, last_modified)
        logger.info(
            "Fetched WSSI day %d: %d polygons %s",
            day, len(snapshot.polygons), snapshot.category_counts(),
        )
        self._cache_set(snapshot)
        return snapshot

    def _cache_get(self, day: int) -> HazardSnapshot | None:
        try:
            blob = self.cache.get(snapshot_cache_key(day))
        except CacheBackendUnavailable as e:
            logger.warning("Snapshot cache read failed for day %d: %s", day, e)
            return None
        if blob is None:
            return None
        try:
            return decode_snapshot(blob)
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Discarding undecodable snapshot for day %d: %s", day, e)
            return None

    def _cache_set(self, snapshot: HazardSnapshot) -> None:
        try:
            self.cache.set(
                snapshot_cache_key(snapshot.day), encode_snapshot(snapshot), self.ttl_seconds
            )
        except CacheBackendUnavailable as e:
            logger.warning("Snapshot cache write failed for day %d: %s", snapshot.day, e)


def parse_snapshot(payload: dict, day: int, last_modified: str | None = None) -> HazardSnapshot:
    """Turn a GeoJSON (or Esri JSON) feature collection into a snapshot."""
    if not isinstance(payload, dict):
        raise UpstreamFetchFailed("WSSI payload is not an object")
    if "error" in payload:
        err = payload["error"] or {}
        message = err.get("message", "unknown error") if isinstance(err, dict) else err
        raise UpstreamFetchFailed(f"WSSI service error: {message}")

    features = payload.get("features")
    if not isinstance(features, list):
        raise UpstreamFetchFailed("WSSI payload has no feature list")

    polygons: list[HazardPolygon] = []
    issued_at: str | None = None
    valid_at: str | None = None

    for feature in features:
        if not isinstance(feature, dict):
            continue
        attrs = feature.get("properties") or feature.get("attributes") or {}
        if not isinstance(attrs, dict):
            logger.warning("Skipping feature with non-object attributes")
            continue
        category = classify(attrs)
        if category == SeverityCategory.NONE:
            continue
        try:
            ring_sets = _extract_ring_sets(feature.get("geometry"))
        except (TypeError, ValueError, IndexError, KeyError) as e:
            logger.warning("Skipping malformed %s feature: %s", category, e)
            continue
        for rings in ring_sets:
            polygons.append(HazardPolygon(category=category, rings=rings))

        issued_at = issued_at or _as_text(attrs.get("issue_time"))
        valid_at = valid_at or _as_text(attrs.get("valid_time"))

    return HazardSnapshot(
        day=day,
        polygons=polygons,
        fetched_at=utc_now_iso(),
        issued_at=issued_at,
        valid_at=valid_at,
        last_modified=last_modified,
    )


def _extract_ring_sets(geometry: dict | None) -> list[list[Ring]]:
    """Split a geometry into [outer, *holes] ring lists, one per polygon."""
    if not geometry:
        return []
    if not isinstance(geometry, dict):
        raise TypeError(f"geometry is a {type(geometry).__name__}, not an object")
    gtype = geometry.get("type")
    if gtype == "Polygon":
        rings = [_to_ring(r) for r in geometry["coordinates"]]
        return [rings] if rings and len(rings[0]) >= 3 else []
    if gtype == "MultiPolygon":
        result = []
        for poly in geometry["coordinates"]:
            rings = [_to_ring(r) for r in poly]
            if rings and len(rings[0]) >= 3:
                result.append(rings)
        return result
    if "rings" in geometry:
        return _group_esri_rings([_to_ring(r) for r in geometry["rings"]])
    return []


def _to_ring(coords: list) -> Ring:
    return [(float(pt[0]), float(pt[1])) for pt in coords]


def _signed_area(ring: Ring) -> float:
    """Shoelace area; negative for clockwise rings."""
    area = 0.0
    n = len(ring)
    for i in range(n):
        x0, y0 = ring[i]
        x1, y1 = ring[(i + 1) % n]
        area += x0 * y1 - x1 * y0
    return area / 2.0


def _point_in_ring(x: float, y: float, ring: Ring) -> bool:
    inside = False
    n = len(ring)
    j = n - 1
    for i in range(n):
        xi, yi = ring[i]
        xj, yj = ring[j]
        if (yi > y) != (yj > y) and x < xi + (y - yi) * (xj - xi) / (yj - yi):
            inside = not inside
        j = i
    return inside


def _group_esri_rings(rings: list[Ring]) -> list[list[Ring]]:
    """Esri polygons list clockwise outer rings and counter-clockwise holes flat."""
    outers: list[list[Ring]] = []
    holes: list[Ring] = []
    for ring in rings:
        if len(ring) < 3:
            continue
        if _signed_area(ring) <= 0:
            outers.append([ring])
        else:
            holes.append(ring)

    for hole in holes:
        x, y = hole[0]
        for group in outers:
            if _point_in_ring(x, y, group[0]):
                group.append(hole)
                break
        else:
            logger.debug("Dropping orphan hole ring with %d vertices", len(hole))
    return outers


def _as_text(value) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def encode_snapshot(snapshot: HazardSnapshot) -> bytes:
    data = {
        "day": snapshot.day,
        "fetched_at": snapshot.fetched_at,
        "issued_at": snapshot.issued_at,
        "valid_at": snapshot.valid_at,
        "last_modified": snapshot.last_modified,
        "polygons": [
            {"category": p.category.value, "rings": [[list(pt) for pt in r] for r in p.rings]}
            for p in snapshot.polygons
        ],
    }
    return json.dumps(data, separators=(",", ":")).encode()


def decode_snapshot(blob: bytes) -> HazardSnapshot:
    data = json.loads(blob)
    return HazardSnapshot(
        day=int(data["day"]),
        polygons=[
            HazardPolygon(
                category=SeverityCategory(p["category"]),
                rings=[_to_ring(r) for r in p["rings"]],
            )
            for p in data["polygons"]
        ],
        fetched_at=data["fetched_at"],
        issued_at=data.get("issued_at"),
        valid_at=data.get("valid_at"),
        last_modified=data.get("last_modified"),
    )
