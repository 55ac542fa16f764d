"""
modules/tool_usage/distance_tool.py
-------------------------------------
Spherical-earth distance and walking-time estimates using the Haversine formula.
No external HTTP calls are made.

Walking time is a deliberate approximation, not a routed-path query:
    minutes = km * 12 * 1.2
(12 min/km is ~5 km/h; the 1.2 factor accounts for streets not being straight
lines), rounded half-up to a whole minute.

NaN coordinates are not guarded: they propagate NaN through every result.
"""

from __future__ import annotations
import math
from typing import Sequence

import config
from schemas.planning import Coordinate

# ---------------------------------------------------------------------------
# Pure maths
# ---------------------------------------------------------------------------

_EARTH_RADIUS_KM = 6371.0

WALK_MINUTES_PER_KM: float = 12.0
WALK_PATH_FACTOR:    float = 1.2


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points (Haversine formula) in km."""
    r = _EARTH_RADIUS_KM
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lam = math.radians(lon2 - lon1)
    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lam / 2) ** 2
    )
    return 2 * r * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def distance_km(a: Coordinate, b: Coordinate) -> float:
    """Haversine distance between two coordinates in km."""
    return haversine_km(a.lat, a.lng, b.lat, b.lng)


def _round_half_up(value: float) -> int:
    if math.isnan(value):
        return value  # NaN in, NaN out
    return int(math.floor(value + 0.5))


def walking_time_minutes(a: Coordinate, b: Coordinate) -> int:
    """Estimated walking minutes between two coordinates (whole minutes)."""
    return _round_half_up(distance_km(a, b) * WALK_MINUTES_PER_KM * WALK_PATH_FACTOR)


def driving_minutes(km: float, speed_kmh: float | None = None) -> int:
    """Road minutes for a distance at the configured detour speed."""
    speed = speed_kmh or config.DETOUR_DRIVING_SPEED_KMH
    return _round_half_up(km / speed * 60.0)


# ---------------------------------------------------------------------------
# DistanceTool
# ---------------------------------------------------------------------------


class DistanceTool:
    """
    Object wrapper over the pure functions above so planners can take an
    injectable distance source (tests pass stubs; production uses Haversine).
    """

    def distance_km(self, a: Coordinate, b: Coordinate) -> float:
        return distance_km(a, b)

    def walking_minutes(self, a: Coordinate, b: Coordinate) -> int:
        """Return walking minutes between two points (0 for identical points)."""
        if a == b:
            return 0
        return walking_time_minutes(a, b)

    def walking_matrix(self, coords: Sequence[Coordinate]) -> list[list[int]]:
        """Return a full n x n walking-minutes matrix."""
        n = len(coords)
        if n == 0:
            return []
        return [
            [0 if i == j else self.walking_minutes(coords[i], coords[j]) for j in range(n)]
            for i in range(n)
        ]
