"""
modules/planning/session.py
-----------------------------
PlanningSession — the single object a UI or API handler talks to.

Owns the current TripPlan, its MutationLog and (optionally) a SyncReconciler.
Every command and every incoming sync patch runs under one re-entrant lock,
so edits to a plan apply one at a time in arrival order.

Schedule commands (add / remove / move / reorder / update_notes) are recorded
as PlanActions and can be undone.  Cluster edits made directly by the user
(create / rename / delete / move_item_to_cluster) change only the cluster
view and are not part of undo history.

Adding an item is optimistic: the item lands in the plan immediately, in the
cluster chosen locally, under a provisional name.  The server's answer later
arrives as a SyncPatch and may rename the cluster; a patch whose cluster no
longer exists is dropped.

Usage:
    session = PlanningSession.new("plan-1", [(date(2026, 5, 1), marseille)])
    result = session.add_item(place, day_index=0, slot=Slot.MORNING)
    session.undo()
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
import time
import uuid
from dataclasses import replace
from datetime import date, datetime, timezone
from typing import Callable, Optional, Sequence

import config
from modules.editing import schedule_ops as ops
from modules.editing.errors import InvalidPlace, InvalidReference, PlanEditError
from modules.editing.mutation_log import MAX_UNDO_DEPTH, EditResult, MutationLog
from modules.editing.plan_action import PlanAction
from modules.export.plan_export import place_to_dict, plan_to_dict
from modules.observability.logger import StructuredLogger
from modules.planning import cluster_ops
from modules.planning.insertion_solver import (
    DetourPreview,
    InsertionResult,
    Waypoint,
    best_insertion_index,
    cheapest_detour,
)
from modules.sync.models import SyncKind, SyncPatch, SyncRequest
from modules.sync.reconciler import SyncBackend, SyncReconciler
from modules.tool_usage.distance_tool import distance_km
from modules.validation.place_validator import place_record, validate_day_dates, validate_place
from schemas.planning import (
    Cluster,
    CityPlan,
    CityRef,
    Coordinate,
    Day,
    Place,
    PlannedItem,
    PlanningFilters,
    Slot,
    TripPlan,
)

logger = logging.getLogger(__name__)

SORT_OPTIONS: frozenset[str] = frozenset({"proximity", "rating", "price"})


# ── State hashing ─────────────────────────────────────────────────────────────

def compute_plan_hash(plan: TripPlan) -> str:
    """Deterministic SHA-256 of the plan's serialised form."""
    raw = json.dumps(plan_to_dict(plan), sort_keys=True, default=str)
    return hashlib.sha256(raw.encode()).hexdigest()


def _waypoint(item: PlannedItem) -> Waypoint:
    return Waypoint(waypoint_id=item.item_id, location=item.place.location, name=item.place.name)


class PlanningSession:
    """Command and query surface over one TripPlan."""

    def __init__(
        self,
        plan: TripPlan,
        sync_backend: Optional[SyncBackend] = None,
        event_logger: Optional[StructuredLogger] = None,
        max_undo_depth: int = MAX_UNDO_DEPTH,
    ) -> None:
        self._plan = plan
        self._log = MutationLog(max_undo_depth)
        self._lock = threading.RLock()
        self._observers: list[Callable[[TripPlan], None]] = []
        self._events = event_logger or StructuredLogger()
        self._sync = SyncReconciler(sync_backend, self.apply_sync_patch, self._events) if sync_backend else None

    @classmethod
    def new(
        cls,
        plan_id: str,
        days: Sequence[tuple[date, CityRef]],
        **kwargs,
    ) -> "PlanningSession":
        """Start an empty plan: one Day per (date, city), one CityPlan per city."""
        check = validate_day_dates([d for d, _ in days])
        if not check.valid:
            raise InvalidReference("; ".join(check.errors))

        built = tuple(Day.empty(i, d, city) for i, (d, city) in enumerate(days))
        city_plans: dict[str, CityPlan] = {}
        for _, city in days:
            city_plans.setdefault(city.city_id, CityPlan(city=city))
        return cls(TripPlan(plan_id=plan_id, days=built, city_plans=city_plans), **kwargs)

    # ── Query surface ─────────────────────────────────────────────────────────

    @property
    def plan(self) -> TripPlan:
        return self._plan

    @property
    def plan_id(self) -> str:
        return self._plan.plan_id

    @property
    def sync(self) -> Optional[SyncReconciler]:
        return self._sync

    def get_day(self, day_index: int) -> Optional[Day]:
        return self._plan.find_day(day_index)

    def get_slot_items(self, day_index: int, slot: Slot) -> list[PlannedItem]:
        day = self._plan.find_day(day_index)
        return list(day.items(Slot(slot))) if day else []

    def get_total_duration(self, day_index: int, slot: Optional[Slot] = None) -> int:
        """Sum of place durations for a day, or one slot of it."""
        day = self._plan.find_day(day_index)
        if day is None:
            return 0
        items = day.items(Slot(slot)) if slot is not None else day.all_items()
        return sum(item.place.duration_minutes for item in items)

    def list_clusters(self, city_id: str) -> list[Cluster]:
        city_plan = self._plan.city_plans.get(city_id)
        return list(city_plan.clusters) if city_plan else []

    def get_cluster(self, city_id: str, cluster_id: str) -> Optional[Cluster]:
        city_plan = self._plan.city_plans.get(city_id)
        return city_plan.find_cluster(cluster_id) if city_plan else None

    def placed_place_ids(self) -> set[str]:
        return ops.placed_place_ids(self._plan)

    def filter_search_results(
        self,
        candidates: Sequence[Place],
        near: Optional[Coordinate] = None,
    ) -> list[Place]:
        """
        Apply the plan's browse filters to search results.

        Drops places already scheduled and places above ``price_max``, then
        sorts: "rating" highest first, "price" cheapest first, "proximity"
        nearest to ``near`` first (input order when ``near`` is None).
        """
        filters = self._plan.filters
        placed = self.placed_place_ids()
        results = [
            p for p in candidates
            if p.place_id not in placed
            and (filters.price_max is None or p.price_level is None or p.price_level <= filters.price_max)
        ]
        if filters.sort_by == "rating":
            results.sort(key=lambda p: -(p.rating or 0.0))
        elif filters.sort_by == "price":
            results.sort(key=lambda p: p.price_level if p.price_level is not None else 99)
        elif near is not None:
            results.sort(key=lambda p: distance_km(near, p.location))
        return results

    def can_undo(self) -> bool:
        return self._log.can_undo()

    def can_redo(self) -> bool:
        return self._log.can_redo()

    @property
    def undo_depth(self) -> int:
        return self._log.undo_depth

    @property
    def redo_depth(self) -> int:
        return self._log.redo_depth

    def history(self) -> list[dict]:
        return self._log.history()

    def insertion_preview(self, day_index: int, slot: Slot, place: Place) -> InsertionResult:
        """Where the insertion solver would put ``place`` in the slot's walk."""
        route = [_waypoint(item) for item in self.get_slot_items(day_index, slot)]
        return best_insertion_index(route, Waypoint(place.place_id, place.location, place.name))

    def road_trip_route(self) -> list[Waypoint]:
        """Consecutive distinct cities of the trip, for cities with coordinates."""
        route: list[Waypoint] = []
        for day in self._plan.days:
            city = day.city
            if city.coordinates is None:
                continue
            if route and route[-1].waypoint_id == city.city_id:
                continue
            route.append(Waypoint(city.city_id, city.coordinates, city.name))
        return route

    def detour_preview(self, place: Place) -> Optional[DetourPreview]:
        """Cheapest leg of the road trip to detour through a landmark."""
        return cheapest_detour(
            self.road_trip_route(),
            Waypoint(place.place_id, place.location, place.name),
        )

    # ── Observers ─────────────────────────────────────────────────────────────

    def subscribe(self, callback: Callable[[TripPlan], None]) -> Callable[[], None]:
        """Call ``callback(plan)`` after every change; returns an unsubscribe function."""
        with self._lock:
            self._observers.append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                if callback in self._observers:
                    self._observers.remove(callback)

        return _unsubscribe

    def _set_plan(self, plan: TripPlan) -> None:
        self._plan = plan
        for callback in list(self._observers):
            callback(plan)

    # ── Logged schedule commands ──────────────────────────────────────────────

    def _commit(self, label: str, run: Callable[[TripPlan], EditResult]) -> EditResult:
        with self._lock:
            t0 = time.perf_counter()
            before_hash = compute_plan_hash(self._plan)
            result = run(self._plan)
            if not result.success:
                logger.debug("%s on %s rejected: %s", label, self.plan_id, result.error)
                return result

            self._set_plan(result.plan)
            self._events.log(self.plan_id, "PLAN_MUTATION", {
                "command":     label,
                "description": result.description,
                "before_hash": before_hash,
                "after_hash":  compute_plan_hash(result.plan),
                "undo_depth":  self._log.undo_depth,
                "redo_depth":  self._log.redo_depth,
            })
            self._events.log(self.plan_id, "PERFORMANCE", {
                "stage": label,
                "latency_ms": round((time.perf_counter() - t0) * 1000, 2),
            })
            if config.SYNC_AUTOSAVE and self._sync is not None:
                self._submit_save()
            return result

    def _execute(self, label: str, build: Callable[[TripPlan], PlanAction], **extra) -> EditResult:
        def _run(plan: TripPlan) -> EditResult:
            try:
                action = build(plan)
            except PlanEditError as exc:
                return EditResult(False, "", plan, error=str(exc))
            result = self._log.execute(plan, action)
            return replace(result, **extra) if result.success and extra else result

        return self._commit(label, _run)

    def add_item(
        self,
        place: Place,
        day_index: int,
        slot: Slot,
        order: Optional[int] = None,
        *,
        added_by: str = "user",
        notes: str = "",
        is_locked: bool = False,
        auto_cluster: bool = True,
    ) -> EditResult:
        """
        Schedule ``place`` in (day, slot) at ``order`` (default: end of slot)
        and file it into a cluster of the day's city.
        """
        with self._lock:
            check = validate_place(place_record(place))
            if not check.valid:
                return EditResult(False, "", self._plan, error=str(InvalidPlace("; ".join(check.errors))))

            try:
                slot = Slot(slot)
                day = ops.require_day(self._plan, day_index)
                item = PlannedItem(
                    item_id=f"item-{uuid.uuid4().hex[:12]}",
                    place=place,
                    slot=slot,
                    is_locked=is_locked,
                    user_notes=notes,
                    added_by=added_by,
                    added_at=datetime.now(timezone.utc).isoformat(),
                )
                staged = ops.insert_item(self._plan, day_index, slot, item, order)
                placed = ops.locate_item(staged, item.item_id)
                change = cluster_ops.attach_item(staged, day.city.city_id, placed.item, auto_cluster)
            except (PlanEditError, ValueError) as exc:
                return EditResult(False, "", self._plan, error=str(exc))

            action = PlanAction.add(
                placed.item, day_index, slot, placed.order,
                cluster_effects=change.cluster_effects,
                unclustered_effects=change.unclustered_effects,
            )
            result = self._execute(
                "add_item", lambda _plan: action,
                item_id=item.item_id, cluster_id=change.cluster_id,
            )
            if result.success and change.cluster_id is not None:
                self._submit_add(day.city.city_id, placed.item, change)
            return result

    def add_item_optimally(self, place: Place, day_index: int, slot: Slot, **kwargs) -> EditResult:
        """add_item() at the position that adds the least walking distance to the slot."""
        if self._plan.find_day(day_index) is None:
            return EditResult(False, "", self._plan, error=f"Day {day_index} does not exist")
        best = self.insertion_preview(day_index, slot, place)
        return self.add_item(place, day_index, slot, best.index, **kwargs)

    def remove_item(self, item_id: str) -> EditResult:
        def _build(plan: TripPlan) -> PlanAction:
            loc = ops.locate_item(plan, item_id)
            change = cluster_ops.detach_item(plan, loc.city_id, item_id)
            return PlanAction.remove(
                loc.item, loc.day_index, loc.slot, loc.order,
                cluster_effects=change.cluster_effects,
                unclustered_effects=change.unclustered_effects,
            )

        return self._execute("remove_item", _build, item_id=item_id)

    def remove_item_from_cluster(self, item_id: str) -> EditResult:
        """Removing from the cluster view unschedules the item too; both views stay in step."""
        return self.remove_item(item_id)

    def move_item(
        self,
        item_id: str,
        to_day: int,
        to_slot: Slot,
        to_order: Optional[int] = None,
    ) -> EditResult:
        """
        Move an item to another (day, slot).  Within one city it keeps its
        cluster; across cities it leaves the old city's layout and is filed
        into the new city's clusters.
        """
        def _build(plan: TripPlan) -> PlanAction:
            slot = Slot(to_slot)
            loc = ops.locate_item(plan, item_id)
            target = ops.require_day(plan, to_day)

            effects, unclustered = (), ()
            staged = plan
            if target.city.city_id != loc.city_id:
                detached = cluster_ops.detach_item(plan, loc.city_id, item_id)
                staged = detached.plan
                effects += detached.cluster_effects
                unclustered += detached.unclustered_effects

            staged = ops.move_item(staged, item_id, to_day, slot, to_order)
            moved = ops.locate_item(staged, item_id)

            if target.city.city_id != loc.city_id:
                attached = cluster_ops.attach_item(staged, target.city.city_id, moved.item)
                effects += attached.cluster_effects
                unclustered += attached.unclustered_effects

            return PlanAction.move(
                loc.item, loc.day_index, loc.slot, loc.order,
                to_day, slot, moved.order,
                cluster_effects=effects,
                unclustered_effects=unclustered,
            )

        try:
            return self._execute("move_item", _build, item_id=item_id)
        except ValueError as exc:
            return EditResult(False, "", self._plan, error=str(exc))

    def reorder_item(self, item_id: str, to_order: int) -> EditResult:
        def _build(plan: TripPlan) -> PlanAction:
            loc = ops.locate_item(plan, item_id)
            size = len(ops.require_day(plan, loc.day_index).items(loc.slot))
            if not 0 <= to_order < size:
                raise InvalidReference(f"Order {to_order} out of range 0..{size - 1}")
            return PlanAction.reorder(loc.item, loc.day_index, loc.slot, loc.order, to_order)

        return self._execute("reorder_item", _build, item_id=item_id)

    def update_notes(self, item_id: str, notes: str) -> EditResult:
        def _build(plan: TripPlan) -> PlanAction:
            return PlanAction.update_notes(ops.locate_item(plan, item_id).item, notes)

        return self._execute("update_notes", _build, item_id=item_id)

    def undo(self) -> EditResult:
        return self._commit("undo", self._log.undo)

    def redo(self) -> EditResult:
        return self._commit("redo", self._log.redo)

    # ── Direct cluster edits (not undoable) ───────────────────────────────────

    def _edit_clusters(self, label: str, edit: Callable[[TripPlan], tuple[TripPlan, str, Optional[str]]]) -> EditResult:
        def _run(plan: TripPlan) -> EditResult:
            try:
                new_plan, description, cluster_id = edit(plan)
            except PlanEditError as exc:
                return EditResult(False, "", plan, error=str(exc))
            return EditResult(True, description, new_plan, cluster_id=cluster_id)

        return self._commit(label, _run)

    def create_cluster(self, city_id: str, name: str, center: Optional[Coordinate] = None) -> EditResult:
        def _edit(plan: TripPlan):
            new_plan, cluster = cluster_ops.create_cluster(plan, city_id, name, center)
            return new_plan, f"Created {name}", cluster.cluster_id

        return self._edit_clusters("create_cluster", _edit)

    def rename_cluster(self, city_id: str, cluster_id: str, name: str) -> EditResult:
        def _edit(plan: TripPlan):
            return cluster_ops.rename_cluster(plan, city_id, cluster_id, name), f"Renamed to {name}", cluster_id

        return self._edit_clusters("rename_cluster", _edit)

    def delete_cluster(self, city_id: str, cluster_id: str) -> EditResult:
        def _edit(plan: TripPlan):
            cluster = ops.city_plan_for(plan, city_id).find_cluster(cluster_id)
            new_plan = cluster_ops.delete_cluster(plan, city_id, cluster_id)
            return new_plan, f"Deleted {cluster.name}", cluster_id

        return self._edit_clusters("delete_cluster", _edit)

    def move_item_to_cluster(self, city_id: str, item_id: str, cluster_id: Optional[str]) -> EditResult:
        def _edit(plan: TripPlan):
            new_plan = cluster_ops.move_item_to_cluster(plan, city_id, item_id, cluster_id)
            return new_plan, "Moved to another area" if cluster_id else "Moved to unclustered", cluster_id

        return self._edit_clusters("move_item_to_cluster", _edit)

    def set_filters(self, price_max: Optional[int] = None, sort_by: str = "proximity") -> EditResult:
        def _edit(plan: TripPlan):
            if sort_by not in SORT_OPTIONS:
                raise InvalidReference(f"Unknown sort option '{sort_by}'")
            if price_max is not None and price_max < 0:
                raise InvalidReference(f"price_max={price_max} must be >= 0")
            filters = PlanningFilters(price_max=price_max, sort_by=sort_by)
            return replace(plan, filters=filters), "Filters updated", None

        return self._edit_clusters("set_filters", _edit)

    # ── Sync ──────────────────────────────────────────────────────────────────

    def _submit_add(self, city_id: str, item: PlannedItem, change: cluster_ops.ClusterChange) -> None:
        if self._sync is None:
            return
        cluster = self.get_cluster(city_id, change.cluster_id)
        if cluster is None:
            return
        self._sync.submit(SyncRequest(
            kind=SyncKind.ADD_ITEM,
            plan_id=self.plan_id,
            city_id=city_id,
            temp_id=change.cluster_id,
            suggested_name=change.suggested_name or cluster.name,
            payload={
                "item": {"item_id": item.item_id, "slot": item.slot.value, "place": place_to_dict(item.place)},
                "cluster": {
                    "name":      cluster.name,
                    "center":    cluster.center.to_dict(),
                    "server_id": cluster.server_id,
                },
                "is_new_cluster": change.is_new_cluster,
            },
        ))

    def _submit_save(self):
        return self._sync.submit(SyncRequest(
            kind=SyncKind.SAVE_PLAN,
            plan_id=self.plan_id,
            payload=plan_to_dict(self._plan),
        ))

    def save(self) -> EditResult:
        """Queue a full snapshot for the server; the result only says it was queued."""
        with self._lock:
            if self._sync is None:
                return EditResult(False, "", self._plan, error="No sync backend configured")
            self._submit_save()
            return EditResult(True, "Saving plan", self._plan)

    def apply_sync_patch(self, patch: SyncPatch) -> bool:
        """
        Fold a server answer into the plan.

        The cluster is found by its client temp id.  Not found (deleted, or
        its creating add was undone) → the patch is stale and ignored.  Found
        → server_id is recorded; the name is replaced only when the server
        says the cluster is new and its name differs from ours.
        """
        with self._lock:
            for city_id, city_plan in self._plan.city_plans.items():
                cluster = city_plan.find_cluster(patch.temp_id)
                if cluster is not None:
                    break
            else:
                logger.debug("Stale sync patch for %s on plan %s ignored", patch.temp_id, self.plan_id)
                return False

            patched = replace(cluster, server_id=patch.server_id or cluster.server_id)
            if patch.is_new_cluster and patch.cluster_name and patch.cluster_name != cluster.name:
                patched = replace(patched, name=patch.cluster_name)
            if patched == cluster:
                return True

            clusters = tuple(patched if c.cluster_id == cluster.cluster_id else c for c in city_plan.clusters)
            self._set_plan(ops.with_city_plan(self._plan, replace(city_plan, clusters=clusters)))
            self._events.log(self.plan_id, "SYNC_PATCH", {
                "cluster_id": cluster.cluster_id,
                "server_id":  patched.server_id,
                "old_name":   cluster.name,
                "new_name":   patched.name,
            })
            return True

    def close(self) -> None:
        if self._sync is not None:
            self._sync.shutdown()
        self._events.close(self.plan_id)
