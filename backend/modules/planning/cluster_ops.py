"""
modules/planning/cluster_ops.py
---------------------------------
Cluster-layout transitions on a TripPlan.

Two families:

  Logged side effects — attach_item / detach_item.  They return the new plan
  together with the ClusterEffect / UnclusteredEffect records that
  PlanningSession stores on the PlanAction, so undo restores the cluster view
  together with the schedule.

  Direct cluster edits — create / rename / delete / move_item_to_cluster.
  These change only the cluster view and are not part of undo history.

New clusters get a client-side temporary id ("cluster-<hex>") immediately;
the sync reconciler later attaches a server id and, possibly, a better name.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from typing import Optional

from modules.editing import schedule_ops as ops
from modules.editing.errors import InvalidReference
from modules.editing.plan_action import ClusterEffect, UnclusteredEffect
from modules.planning.clustering import (
    compute_cluster_stats,
    find_best_cluster_for_item,
    order_items_optimally,
)
from schemas.planning import Cluster, Coordinate, PlannedItem, TripPlan


@dataclass(frozen=True)
class ClusterChange:
    """Result of attach_item() / detach_item()."""
    plan:                TripPlan
    cluster_effects:     tuple[ClusterEffect, ...] = ()
    unclustered_effects: tuple[UnclusteredEffect, ...] = ()
    cluster_id:          Optional[str] = None
    is_new_cluster:      bool = False
    suggested_name:      str = ""


def new_cluster_id() -> str:
    return f"cluster-{uuid.uuid4().hex[:12]}"


def restat(cluster: Cluster, members: list[PlannedItem], reorder: bool = False) -> Cluster:
    """Rebuild a cluster's membership and derived stats from ``members``."""
    if reorder:
        members = order_items_optimally(members)
    stats = compute_cluster_stats(members, fallback_center=cluster.center)
    return replace(
        cluster,
        item_ids=tuple(m.item_id for m in members),
        total_duration_minutes=stats.total_duration_minutes,
        max_walking_minutes=stats.max_walking_minutes,
        center=stats.center,
    )


def _members(cluster: Cluster, items_by_id: dict[str, PlannedItem]) -> list[PlannedItem]:
    return [items_by_id[i] for i in cluster.item_ids if i in items_by_id]


# ── Logged side effects ───────────────────────────────────────────────────────

def attach_item(
    plan: TripPlan,
    city_id: str,
    item: PlannedItem,
    auto_cluster: bool = True,
) -> ClusterChange:
    """
    File an already-scheduled item into the city's cluster layout.

    auto_cluster=False parks it in ``unclustered``.  Otherwise the clustering
    engine either merges it into the best existing cluster (members are then
    re-ordered and re-statted) or spawns a new cluster under a temporary id.
    """
    city_plan = ops.city_plan_for(plan, city_id)

    if not auto_cluster:
        position = len(city_plan.unclustered)
        plan = ops.set_unclustered(plan, city_id, item.item_id, True)
        effect = UnclusteredEffect(city_id, item.item_id, before=False, after=True, position=position)
        return ClusterChange(plan, unclustered_effects=(effect,))

    items_by_id = plan.items_by_id()
    assignment = find_best_cluster_for_item(city_plan.clusters, item, items_by_id)

    if assignment.should_create_new:
        base = Cluster(
            cluster_id=new_cluster_id(),
            name=assignment.suggested_name,
            center=item.place.location,
        )
        after = restat(base, [item])
        plan = ops.apply_cluster_state(plan, city_id, after.cluster_id, after)
        effect = ClusterEffect(city_id, after.cluster_id, before=None, after=after)
        return ClusterChange(
            plan,
            cluster_effects=(effect,),
            cluster_id=after.cluster_id,
            is_new_cluster=True,
            suggested_name=assignment.suggested_name,
        )

    before = _require_cluster(plan, city_id, assignment.cluster_id)
    after = restat(before, _members(before, items_by_id) + [item], reorder=True)
    plan = ops.apply_cluster_state(plan, city_id, after.cluster_id, after)
    effect = ClusterEffect(city_id, after.cluster_id, before=before, after=after)
    return ClusterChange(plan, cluster_effects=(effect,), cluster_id=after.cluster_id)


def detach_item(plan: TripPlan, city_id: str, item_id: str) -> ClusterChange:
    """
    Take an item out of the city's clusters / unclustered list.

    Call before the item leaves the schedule so member lookups still resolve.
    An emptied cluster is kept (with a zero duration) until deleted.
    """
    if city_id not in plan.city_plans:
        return ClusterChange(plan)
    city_plan = plan.city_plans[city_id]
    items_by_id = plan.items_by_id()

    cluster = city_plan.cluster_of(item_id)
    if cluster is not None:
        remaining = [m for m in _members(cluster, items_by_id) if m.item_id != item_id]
        after = restat(cluster, remaining)
        plan = ops.apply_cluster_state(plan, city_id, cluster.cluster_id, after)
        effect = ClusterEffect(city_id, cluster.cluster_id, before=cluster, after=after)
        return ClusterChange(plan, cluster_effects=(effect,), cluster_id=cluster.cluster_id)

    if item_id in city_plan.unclustered:
        position = city_plan.unclustered.index(item_id)
        plan = ops.set_unclustered(plan, city_id, item_id, False)
        effect = UnclusteredEffect(city_id, item_id, before=True, after=False, position=position)
        return ClusterChange(plan, unclustered_effects=(effect,))

    return ClusterChange(plan)


# ── Direct cluster edits ──────────────────────────────────────────────────────

def _require_cluster(plan: TripPlan, city_id: str, cluster_id: str) -> Cluster:
    cluster = ops.city_plan_for(plan, city_id).find_cluster(cluster_id)
    if cluster is None:
        raise InvalidReference(f"Cluster '{cluster_id}' not found in city '{city_id}'")
    return cluster


def create_cluster(
    plan: TripPlan,
    city_id: str,
    name: str,
    center: Optional[Coordinate] = None,
    description: str = "",
) -> tuple[TripPlan, Cluster]:
    """Add an empty, user-named cluster."""
    city_plan = ops.city_plan_for(plan, city_id)
    if center is None:
        center = city_plan.city.coordinates or Coordinate(0.0, 0.0)
    cluster = Cluster(
        cluster_id=new_cluster_id(),
        name=name,
        center=center,
        description=description,
    )
    return ops.apply_cluster_state(plan, city_id, cluster.cluster_id, cluster), cluster


def rename_cluster(plan: TripPlan, city_id: str, cluster_id: str, name: str) -> TripPlan:
    cluster = _require_cluster(plan, city_id, cluster_id)
    city_plan = ops.city_plan_for(plan, city_id)
    renamed = replace(cluster, name=name)
    clusters = tuple(renamed if c.cluster_id == cluster_id else c for c in city_plan.clusters)
    return ops.with_city_plan(plan, replace(city_plan, clusters=clusters))


def delete_cluster(plan: TripPlan, city_id: str, cluster_id: str) -> TripPlan:
    """Remove a cluster; its members move to ``unclustered`` (not unscheduled)."""
    cluster = _require_cluster(plan, city_id, cluster_id)
    plan = ops.apply_cluster_state(plan, city_id, cluster_id, None)
    for item_id in cluster.item_ids:
        plan = ops.set_unclustered(plan, city_id, item_id, True)
    return plan


def move_item_to_cluster(
    plan: TripPlan,
    city_id: str,
    item_id: str,
    target_cluster_id: Optional[str],
) -> TripPlan:
    """Move a clustered or unclustered item into another cluster (None → unclustered)."""
    city_plan = ops.city_plan_for(plan, city_id)
    items_by_id = plan.items_by_id()
    if item_id not in items_by_id:
        raise InvalidReference(f"Item '{item_id}' is not in the plan")
    if city_plan.cluster_of(item_id) is None and item_id not in city_plan.unclustered:
        raise InvalidReference(f"Item '{item_id}' is not filed under city '{city_id}'")

    target = None
    if target_cluster_id is not None:
        target = _require_cluster(plan, city_id, target_cluster_id)
        if item_id in target.item_ids:
            return plan

    plan = detach_item(plan, city_id, item_id).plan
    if target is None:
        return ops.set_unclustered(plan, city_id, item_id, True)

    target = _require_cluster(plan, city_id, target.cluster_id)
    moved = restat(target, _members(target, items_by_id) + [items_by_id[item_id]], reorder=True)
    return ops.apply_cluster_state(plan, city_id, moved.cluster_id, moved)
