"""
modules/planning/clustering.py
--------------------------------
Proximity clustering for planned items.

Rules:
  1. An item joins the cluster whose centre is the fewest walking minutes away,
     provided that is ≤ config.CLUSTER_MAX_WALK_MINUTES (15).
  2. Equally close clusters: the earliest created (first in the tuple) wins.
  3. Restaurants, bars and cafés first try clusters that already hold
     activities (most activities first), still within the walking threshold.
  4. Otherwise a new cluster is needed, provisionally named after the item's
     area until reverse geocoding supplies a better name.

Within a cluster, items are visited in greedy nearest-neighbour order.
That is a heuristic: on adversarial layouts it can backtrack noticeably more
than the optimal tour.  Clusters are a handful of stops, so responsiveness
wins over optimality here.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

import config
from modules.tool_usage.distance_tool import walking_time_minutes
from schemas.planning import (
    ACTIVITY_CATEGORIES,
    RESTAURANT_CATEGORIES,
    Cluster,
    Coordinate,
    PlannedItem,
)


@dataclass(frozen=True)
class ClusterAssignment:
    """Outcome of find_best_cluster_for_item()."""
    cluster_id:        Optional[str]
    should_create_new: bool
    suggested_name:    str = ""


@dataclass(frozen=True)
class ClusterStats:
    total_duration_minutes: int
    max_walking_minutes:    int
    center:                 Coordinate


# ── Assignment ─────────────────────────────────────────────────────────────────

def find_best_cluster_for_item(
    clusters: Sequence[Cluster],
    new_item: PlannedItem,
    items_by_id: Optional[Mapping[str, PlannedItem]] = None,
) -> ClusterAssignment:
    """
    Decide whether ``new_item`` merges into an existing cluster or needs a new one.

    ``items_by_id`` resolves cluster members; it is only needed for the
    restaurant rule and may be omitted.
    """
    threshold = config.CLUSTER_MAX_WALK_MINUTES
    location = new_item.place.location

    if items_by_id is not None and new_item.place.category in RESTAURANT_CATEGORIES:
        dining = _best_cluster_for_restaurant(clusters, location, items_by_id, threshold)
        if dining is not None:
            return ClusterAssignment(cluster_id=dining.cluster_id, should_create_new=False)

    nearest: Optional[Cluster] = None
    nearest_minutes: Optional[int] = None
    for cluster in clusters:
        minutes = walking_time_minutes(location, cluster.center)
        if minutes > threshold:
            continue
        if nearest_minutes is None or minutes < nearest_minutes:
            nearest = cluster
            nearest_minutes = minutes

    if nearest is not None:
        return ClusterAssignment(cluster_id=nearest.cluster_id, should_create_new=False)

    return ClusterAssignment(
        cluster_id=None,
        should_create_new=True,
        suggested_name=new_item.place.area or config.DEFAULT_CLUSTER_NAME,
    )


def _best_cluster_for_restaurant(
    clusters: Sequence[Cluster],
    location: Coordinate,
    items_by_id: Mapping[str, PlannedItem],
    threshold: int,
) -> Optional[Cluster]:
    ranked = []
    for position, cluster in enumerate(clusters):
        activity_count = sum(
            1 for item_id in cluster.item_ids
            if item_id in items_by_id
            and items_by_id[item_id].place.category in ACTIVITY_CATEGORIES
        )
        if activity_count > 0:
            ranked.append((-activity_count, position, cluster))
    ranked.sort(key=lambda entry: (entry[0], entry[1]))

    for _, _, cluster in ranked:
        if walking_time_minutes(location, cluster.center) <= threshold:
            return cluster
    return None


# ── Ordering ───────────────────────────────────────────────────────────────────

def order_items_optimally(
    items: Sequence[PlannedItem],
    anchor: Optional[Coordinate] = None,
) -> list[PlannedItem]:
    """
    Greedy nearest-neighbour visiting order.

    Without an anchor the first item stays first; with one (e.g. the previous
    slot's last stop) the item nearest the anchor starts the walk.  Each step
    appends the unvisited item fewest walking minutes from the last one placed;
    ties go to the earlier item in the input.
    """
    remaining = list(items)
    if len(remaining) <= 1:
        return remaining

    ordered: list[PlannedItem] = []
    if anchor is None:
        ordered.append(remaining.pop(0))
        current = ordered[0].place.location
    else:
        current = anchor

    while remaining:
        best_pos = 0
        best_minutes = walking_time_minutes(current, remaining[0].place.location)
        for pos in range(1, len(remaining)):
            minutes = walking_time_minutes(current, remaining[pos].place.location)
            if minutes < best_minutes:
                best_pos, best_minutes = pos, minutes
        nxt = remaining.pop(best_pos)
        ordered.append(nxt)
        current = nxt.place.location

    return ordered


# ── Stats ──────────────────────────────────────────────────────────────────────

def cluster_center(items: Sequence[PlannedItem]) -> Optional[Coordinate]:
    """Centroid of member locations, or None for an empty cluster."""
    if not items:
        return None
    lat = sum(item.place.location.lat for item in items) / len(items)
    lng = sum(item.place.location.lng for item in items) / len(items)
    return Coordinate(lat=lat, lng=lng)


def compute_cluster_stats(
    items: Sequence[PlannedItem],
    fallback_center: Optional[Coordinate] = None,
) -> ClusterStats:
    """
    Duration sum, maximum pairwise walking minutes (all pairs, O(n²)), centroid.

    An empty cluster keeps ``fallback_center`` (its previous centre).
    """
    total = sum(item.place.duration_minutes for item in items)

    max_walk = 0
    for i in range(len(items)):
        for j in range(i + 1, len(items)):
            minutes = walking_time_minutes(items[i].place.location, items[j].place.location)
            max_walk = max(max_walk, minutes)

    center = cluster_center(items) or fallback_center or Coordinate(0.0, 0.0)
    return ClusterStats(
        total_duration_minutes=total,
        max_walking_minutes=max_walk,
        center=center,
    )
