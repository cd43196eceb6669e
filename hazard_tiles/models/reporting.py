"""Operational health models."""

from dataclasses import dataclass


@dataclass(frozen=True)
class HealthStatus:
    cache_backend: str
    cache_ok: bool
    upstream_reachable: bool
    upstream_source: str
    timestamp: str
