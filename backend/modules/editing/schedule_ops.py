"""
modules/editing/schedule_ops.py
---------------------------------
Pure operations on a TripPlan.  Each takes a plan and returns a new one;
nothing is mutated.  Guard failures raise a PlanEditError subclass before any
new state is built, so a failed call never leaves a half-applied edit.

Schedule invariants enforced here:
  - order_in_slot is 0..n-1 in every (Day, Slot) after every operation
  - a place_id is scheduled at most once across the whole trip
  - an item lives in exactly one (Day, Slot)

Cluster-side helpers at the bottom apply recorded ClusterEffect /
UnclusteredEffect snapshots and re-establish the cluster/schedule consistency
rule: every id in a city's clusters or unclustered list is an item scheduled
on one of that city's days, and sits in exactly one of those places.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional

from modules.editing.errors import DuplicatePlacement, InvalidReference
from modules.planning.clustering import compute_cluster_stats
from schemas.planning import (
    SLOT_ORDER,
    CityPlan,
    Cluster,
    Day,
    PlannedItem,
    Slot,
    TripPlan,
)


@dataclass(frozen=True)
class ItemLocation:
    """Where an item currently sits in the schedule."""
    day_index: int
    slot:      Slot
    order:     int
    item:      PlannedItem
    city_id:   str


# ── Lookups ────────────────────────────────────────────────────────────────────

def placed_place_ids(plan: TripPlan) -> set[str]:
    """Every place_id already scheduled somewhere in the trip."""
    return {item.place.place_id for day in plan.days for item in day.all_items()}


def locate_item(plan: TripPlan, item_id: str) -> ItemLocation:
    for day in plan.days:
        for slot in SLOT_ORDER:
            for pos, item in enumerate(day.items(slot)):
                if item.item_id == item_id:
                    return ItemLocation(day.day_index, slot, pos, item, day.city.city_id)
    raise InvalidReference(f"Item '{item_id}' is not in the plan")


def require_day(plan: TripPlan, day_index: int) -> Day:
    day = plan.find_day(day_index)
    if day is None:
        raise InvalidReference(f"Day {day_index} does not exist")
    return day


def _require_slot(slot) -> Slot:
    try:
        return Slot(slot)
    except ValueError:
        raise InvalidReference(f"Unknown slot '{slot}'") from None


# ── Internal builders ──────────────────────────────────────────────────────────

def _normalize(items: list[PlannedItem], slot: Slot) -> tuple[PlannedItem, ...]:
    return tuple(
        item if (item.order_in_slot == i and item.slot == slot)
        else replace(item, order_in_slot=i, slot=slot)
        for i, item in enumerate(items)
    )


def _with_day(plan: TripPlan, day: Day) -> TripPlan:
    days = tuple(day if d.day_index == day.day_index else d for d in plan.days)
    return replace(plan, days=days)


# ── Schedule operations ────────────────────────────────────────────────────────

def insert_item(
    plan: TripPlan,
    day_index: int,
    slot: Slot,
    item: PlannedItem,
    order: Optional[int] = None,
) -> TripPlan:
    """
    Insert ``item`` at ``order`` (0..n, default: end) in (day, slot).

    Raises DuplicatePlacement when the place or the item id is already
    scheduled, InvalidReference for a bad day, slot or order.
    """
    slot = _require_slot(slot)
    day = require_day(plan, day_index)
    if item.place.place_id in placed_place_ids(plan):
        raise DuplicatePlacement(f"{item.place.name} is already in the itinerary")
    if item.item_id in plan.items_by_id():
        raise DuplicatePlacement(f"Item '{item.item_id}' is already in the plan")

    items = list(day.items(slot))
    if order is None:
        order = len(items)
    if not 0 <= order <= len(items):
        raise InvalidReference(f"Order {order} out of range 0..{len(items)}")

    items.insert(order, item)
    return _with_day(plan, day.with_slot(slot, _normalize(items, slot)))


def remove_item(plan: TripPlan, item_id: str) -> tuple[TripPlan, PlannedItem]:
    """Remove an item and close the gap.  Returns (new plan, removed item)."""
    loc = locate_item(plan, item_id)
    day = require_day(plan, loc.day_index)
    items = list(day.items(loc.slot))
    removed = items.pop(loc.order)
    return _with_day(plan, day.with_slot(loc.slot, _normalize(items, loc.slot))), removed


def move_item(
    plan: TripPlan,
    item_id: str,
    to_day: int,
    to_slot: Slot,
    to_order: Optional[int] = None,
) -> TripPlan:
    """
    Move an item to (to_day, to_slot) at ``to_order``.

    ``to_order`` indexes the destination list *without* the moved item, so it
    ranges 0..n where n excludes the item itself (default: end).
    """
    to_slot = _require_slot(to_slot)
    require_day(plan, to_day)

    without, moved = remove_item(plan, item_id)
    day = require_day(without, to_day)
    target_items = list(day.items(to_slot))
    if to_order is None:
        to_order = len(target_items)
    if not 0 <= to_order <= len(target_items):
        raise InvalidReference(f"Order {to_order} out of range 0..{len(target_items)}")

    target_items.insert(to_order, moved)
    return _with_day(without, day.with_slot(to_slot, _normalize(target_items, to_slot)))


def reorder_item(plan: TripPlan, item_id: str, to_order: int) -> TripPlan:
    """Move an item to ``to_order`` (0..n-1) within its own slot."""
    loc = locate_item(plan, item_id)
    day = require_day(plan, loc.day_index)
    items = list(day.items(loc.slot))
    if not 0 <= to_order < len(items):
        raise InvalidReference(f"Order {to_order} out of range 0..{len(items) - 1}")

    moved = items.pop(loc.order)
    items.insert(to_order, moved)
    return _with_day(plan, day.with_slot(loc.slot, _normalize(items, loc.slot)))


def set_notes(plan: TripPlan, item_id: str, notes: str) -> TripPlan:
    loc = locate_item(plan, item_id)
    day = require_day(plan, loc.day_index)
    items = list(day.items(loc.slot))
    items[loc.order] = replace(items[loc.order], user_notes=notes)
    return _with_day(plan, day.with_slot(loc.slot, tuple(items)))


# ── City plans and cluster effects ─────────────────────────────────────────────

def city_plan_for(plan: TripPlan, city_id: str) -> CityPlan:
    """The city's cluster layout, or an empty one for a city never clustered."""
    existing = plan.city_plans.get(city_id)
    if existing is not None:
        return existing
    for day in plan.days:
        if day.city.city_id == city_id:
            return CityPlan(city=day.city)
    raise InvalidReference(f"City '{city_id}' is not part of the trip")


def with_city_plan(plan: TripPlan, city_plan: CityPlan) -> TripPlan:
    city_plans = dict(plan.city_plans)
    city_plans[city_plan.city.city_id] = city_plan
    return replace(plan, city_plans=city_plans)


def apply_cluster_state(
    plan: TripPlan,
    city_id: str,
    cluster_id: str,
    target: Optional[Cluster],
) -> TripPlan:
    """
    Drive one cluster to ``target``.

      target None, cluster present  → cluster removed
      target set,  cluster absent   → target appended
      target set,  cluster present  → replaced, keeping the current name
                                      and server_id
    """
    city_plan = city_plan_for(plan, city_id)
    current = city_plan.find_cluster(cluster_id)

    if target is None:
        if current is None:
            return plan
        clusters = tuple(c for c in city_plan.clusters if c.cluster_id != cluster_id)
    elif current is None:
        clusters = city_plan.clusters + (target,)
    else:
        merged = replace(target, name=current.name, server_id=current.server_id)
        clusters = tuple(merged if c.cluster_id == cluster_id else c for c in city_plan.clusters)

    return with_city_plan(plan, replace(city_plan, clusters=clusters))


def apply_cluster_membership(
    plan: TripPlan,
    city_id: str,
    cluster_id: str,
    item_id: str,
    target: Optional[Cluster],
) -> TripPlan:
    """
    Give ``item_id`` the membership of ``cluster_id`` that ``target`` records.

    Only that one item joins or leaves; the rest of the live cluster is left
    as it is, so direct cluster edits made since ``target`` was captured
    survive.  Members shared with ``target`` keep its order; others follow.

      target None            → item leaves; an emptied cluster is removed
      target set, absent     → cluster recreated from target with the item
      target set, present    → item joins or leaves per target.item_ids
    """
    city_plan = city_plan_for(plan, city_id)
    current = city_plan.find_cluster(cluster_id)
    wanted = target is not None and item_id in target.item_ids

    if current is None:
        if not wanted:
            return plan
        current = replace(target, item_ids=())

    live = [i for i in current.item_ids if i != item_id]
    if wanted:
        ids = [i for i in target.item_ids if i in live or i == item_id]
        ids += [i for i in live if i not in ids]
    else:
        ids = live

    if target is None and not ids:
        return apply_cluster_state(plan, city_id, cluster_id, None)

    items_by_id = plan.items_by_id()
    members = [items_by_id[i] for i in ids if i in items_by_id]
    stats = compute_cluster_stats(members, fallback_center=current.center)
    updated = replace(
        current,
        item_ids=tuple(m.item_id for m in members),
        total_duration_minutes=stats.total_duration_minutes,
        max_walking_minutes=stats.max_walking_minutes,
        center=stats.center,
    )
    return apply_cluster_state(plan, city_id, cluster_id, updated)


def set_unclustered(
    plan: TripPlan,
    city_id: str,
    item_id: str,
    present: bool,
    position: Optional[int] = None,
) -> TripPlan:
    """Add (at ``position``, default: end) or drop ``item_id`` in the unclustered list."""
    city_plan = city_plan_for(plan, city_id)
    ids = [i for i in city_plan.unclustered if i != item_id]
    if present:
        ids.insert(len(ids) if position is None else min(position, len(ids)), item_id)
    if tuple(ids) == city_plan.unclustered:
        return plan
    return with_city_plan(plan, replace(city_plan, unclustered=tuple(ids)))


def reconcile_city(plan: TripPlan, city_id: str) -> TripPlan:
    """
    Re-establish cluster/schedule consistency for one city.

    Drops ids that are no longer scheduled on this city's days and keeps each
    id in the first cluster that lists it.  Clustered ids leave the
    unclustered list; scheduled items filed nowhere are appended to it in
    schedule order.  Clusters whose membership changed are restatted.  Empty
    clusters are kept; deleting them is the user's call.
    """
    if city_id not in plan.city_plans:
        return plan
    city_plan = plan.city_plans[city_id]

    scheduled = {
        item.item_id: item
        for day in plan.days if day.city.city_id == city_id
        for item in day.all_items()
    }

    seen: set[str] = set()
    clusters = []
    for cluster in city_plan.clusters:
        kept = tuple(i for i in cluster.item_ids if i in scheduled and i not in seen)
        seen.update(kept)
        if kept != cluster.item_ids:
            stats = compute_cluster_stats([scheduled[i] for i in kept], fallback_center=cluster.center)
            cluster = replace(
                cluster,
                item_ids=kept,
                total_duration_minutes=stats.total_duration_minutes,
                max_walking_minutes=stats.max_walking_minutes,
                center=stats.center,
            )
        clusters.append(cluster)

    unclustered = []
    for item_id in city_plan.unclustered:
        if item_id in scheduled and item_id not in seen:
            unclustered.append(item_id)
            seen.add(item_id)
    unclustered.extend(i for i in scheduled if i not in seen)

    rebuilt = replace(city_plan, clusters=tuple(clusters), unclustered=tuple(unclustered))
    if rebuilt == city_plan:
        return plan
    return with_city_plan(plan, rebuilt)
