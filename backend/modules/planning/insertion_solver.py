"""
modules/planning/insertion_solver.py
--------------------------------------
Cheapest-insertion solver for splicing one new waypoint into an ordered route.

Full search:
  For every index i in [0, len(route)] build the route with the candidate
  spliced at i, sum consecutive-pair Haversine distances, keep the minimum.
  O(n) positions × O(n) sums = O(n²); routes here are a day's stops or a
  road trip's cities (tens at most), so nothing smarter is needed.
  Exact ties resolve to the lowest index.

Detour mode:
  For a fixed insertion point between two consecutive waypoints the cost is
      d(prev, C) + d(C, next) - d(prev, next)
  which equals the full-search delta whenever prev/next are the neighbours
  the full search picked.

This is not a route optimiser: existing waypoints never change order.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from modules.tool_usage.distance_tool import distance_km, driving_minutes
from schemas.planning import Coordinate


@dataclass(frozen=True)
class Waypoint:
    """Any point (city, landmark, planned stop) on an ordered route."""
    waypoint_id: str
    location:    Coordinate
    name:        str = ""


@dataclass(frozen=True)
class InsertionResult:
    """
    index:             position the candidate should occupy in the new route.
    added_distance_km: new total minus old total.
    total_distance_km: length of the route with the candidate spliced in.
    """
    index:             int
    added_distance_km: float
    total_distance_km: float


@dataclass(frozen=True)
class DetourPreview:
    """Cheapest between-two-stops detour for a landmark."""
    insert_after_index: int
    detour_km:          float
    detour_minutes:     int


def route_length_km(route: Sequence[Waypoint]) -> float:
    """Sum of consecutive-pair distances along the route."""
    return sum(
        distance_km(route[i].location, route[i + 1].location)
        for i in range(len(route) - 1)
    )


def added_distance_between(prev: Waypoint, candidate: Waypoint, next_: Waypoint) -> float:
    """Extra km incurred by visiting ``candidate`` between ``prev`` and ``next_``."""
    return (
        distance_km(prev.location, candidate.location)
        + distance_km(candidate.location, next_.location)
        - distance_km(prev.location, next_.location)
    )


def best_insertion_index(route: Sequence[Waypoint], candidate: Waypoint) -> InsertionResult:
    """
    Return the insertion index minimising total route length.

    Empty route → index 0, nothing added.  A single-waypoint route evaluates
    both ends; there is no direct edge to subtract, so either end adds
    d(A, C) and the tie resolves to index 0.
    """
    if not route:
        return InsertionResult(index=0, added_distance_km=0.0, total_distance_km=0.0)

    base_km = route_length_km(route)
    totals = [
        route_length_km(list(route[:i]) + [candidate] + list(route[i:]))
        for i in range(len(route) + 1)
    ]
    # min() keeps the first minimal index on exact ties
    best_index = min(range(len(totals)), key=totals.__getitem__)
    best_total = totals[best_index]
    return InsertionResult(
        index=best_index,
        added_distance_km=best_total - base_km,
        total_distance_km=best_total,
    )


def cheapest_detour(route: Sequence[Waypoint], candidate: Waypoint) -> Optional[DetourPreview]:
    """
    Landmark preview: cheapest leg (route[i] → route[i+1]) to detour through.

    Only interior legs are considered (a landmark never becomes the new start
    or end of a road trip).  Returns None when the route has fewer than two
    waypoints.
    """
    if len(route) < 2:
        return None

    detours = [added_distance_between(route[i], candidate, route[i + 1]) for i in range(len(route) - 1)]
    best_after = min(range(len(detours)), key=detours.__getitem__)
    best_km = detours[best_after]
    return DetourPreview(
        insert_after_index=best_after,
        detour_km=best_km,
        detour_minutes=driving_minutes(best_km),
    )
