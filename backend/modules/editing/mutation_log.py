"""
modules/editing/mutation_log.py
---------------------------------
Command-pattern undo/redo over TripPlan edits.

  execute(plan, action) → apply forward, push onto undo, clear redo
  undo(plan)            → pop undo, apply inverse, push onto redo
  redo(plan)            → pop redo, apply forward, push onto undo

The log does not own the plan: callers pass the current plan in and take the
new plan out of the returned EditResult.  Every call returns an EditResult;
a PlanEditError raised by the pure operations becomes ``success=False`` with
both stacks and the plan exactly as they were.

History is bounded to MAX_UNDO_DEPTH entries; the oldest entry is dropped
silently when a new one would exceed the cap.

Cluster effects move only the action's own item in or out of the live
cluster; direct cluster edits made in between (moves, deletions) stay put.
Each time an action is applied, the snapshot on the side being left is
refreshed from the live cluster, so a name patched in by the sync reconciler
between an edit and its undo (or redo) is carried along instead of reverting
to the provisional one.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, replace
from typing import Optional

from modules.editing.errors import PlanEditError
from modules.editing.plan_action import ActionType, ClusterEffect, PlanAction
from modules.editing import schedule_ops as ops
from schemas.planning import TripPlan

MAX_UNDO_DEPTH: int = 50


@dataclass(frozen=True)
class EditResult:
    """Outcome of one command; ``plan`` is the plan to keep using."""
    success:     bool
    description: str
    plan:        TripPlan
    error:       str = ""
    action:      Optional[PlanAction] = None
    item_id:     Optional[str] = None
    cluster_id:  Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "success":     self.success,
            "description": self.description,
            "error":       self.error,
            "action":      self.action.to_dict() if self.action else None,
            "item_id":     self.item_id,
            "cluster_id":  self.cluster_id,
        }


# ── Forward / inverse application ─────────────────────────────────────────────

def _apply_schedule(plan: TripPlan, action: PlanAction, inverse: bool) -> TripPlan:
    kind = action.action_type

    if kind is ActionType.ADD:
        if inverse:
            return ops.remove_item(plan, action.item_id)[0]
        return ops.insert_item(plan, action.to_day, action.to_slot, action.item, action.to_order)

    if kind is ActionType.REMOVE:
        if inverse:
            return ops.insert_item(plan, action.from_day, action.from_slot, action.item, action.from_order)
        return ops.remove_item(plan, action.item_id)[0]

    if kind is ActionType.MOVE:
        if inverse:
            return ops.move_item(plan, action.item_id, action.from_day, action.from_slot, action.from_order)
        return ops.move_item(plan, action.item_id, action.to_day, action.to_slot, action.to_order)

    if kind is ActionType.REORDER:
        return ops.reorder_item(plan, action.item_id, action.from_order if inverse else action.to_order)

    if kind is ActionType.UPDATE_NOTES:
        return ops.set_notes(plan, action.item_id, action.old_notes if inverse else action.new_notes)

    raise PlanEditError(f"Unsupported action type {kind!r}")


def _apply_effects(
    plan: TripPlan,
    action: PlanAction,
    inverse: bool,
) -> tuple[TripPlan, tuple[ClusterEffect, ...]]:
    refreshed = []
    for effect in action.cluster_effects:
        expected = effect.after if inverse else effect.before
        target = effect.before if inverse else effect.after
        current = ops.city_plan_for(plan, effect.city_id).find_cluster(effect.cluster_id)

        if current is None and expected is not None:
            # deleted outside the log since this action ran; leave it gone,
            # reconcile_city files the item as unclustered
            refreshed.append(effect)
            continue

        plan = ops.apply_cluster_membership(plan, effect.city_id, effect.cluster_id, action.item_id, target)
        if inverse:
            refreshed.append(replace(effect, after=current))
        else:
            refreshed.append(replace(effect, before=current))

    for effect in action.unclustered_effects:
        present = effect.before if inverse else effect.after
        plan = ops.set_unclustered(plan, effect.city_id, effect.item_id, present, effect.position)

    return plan, tuple(refreshed)


def _touched_cities(before: TripPlan, after: TripPlan, action: PlanAction) -> list[str]:
    cities = [e.city_id for e in action.cluster_effects]
    cities += [e.city_id for e in action.unclustered_effects]
    for plan in (before, after):
        for day_index in (action.from_day, action.to_day):
            if day_index is None:
                continue
            day = plan.find_day(day_index)
            if day is not None:
                cities.append(day.city.city_id)
    return list(dict.fromkeys(cities))


def _apply(plan: TripPlan, action: PlanAction, inverse: bool) -> tuple[TripPlan, PlanAction]:
    new_plan = _apply_schedule(plan, action, inverse)
    new_plan, effects = _apply_effects(new_plan, action, inverse)
    for city_id in _touched_cities(plan, new_plan, action):
        new_plan = ops.reconcile_city(new_plan, city_id)
    return new_plan, replace(action, cluster_effects=effects)


def apply_forward(plan: TripPlan, action: PlanAction) -> tuple[TripPlan, PlanAction]:
    """Apply ``action``; returns the new plan and the action with refreshed snapshots."""
    return _apply(plan, action, inverse=False)


def apply_inverse(plan: TripPlan, action: PlanAction) -> tuple[TripPlan, PlanAction]:
    """Reverse ``action``; returns the restored plan and the refreshed action."""
    return _apply(plan, action, inverse=True)


# ── MutationLog ───────────────────────────────────────────────────────────────

class MutationLog:
    """
    Bounded undo history plus redo stack.

    Not thread-safe on its own: PlanningSession serialises every call under
    its lock.
    """

    def __init__(self, max_depth: int = MAX_UNDO_DEPTH) -> None:
        self._undo: deque[PlanAction] = deque(maxlen=max_depth)
        self._redo: list[PlanAction] = []

    # ── Queries ───────────────────────────────────────────────────────────────

    def can_undo(self) -> bool:
        return bool(self._undo)

    def can_redo(self) -> bool:
        return bool(self._redo)

    @property
    def undo_depth(self) -> int:
        return len(self._undo)

    @property
    def redo_depth(self) -> int:
        return len(self._redo)

    def history(self) -> list[dict]:
        """Undo stack oldest-first, as dicts (for debugging and the API)."""
        return [a.to_dict() for a in self._undo]

    # ── Commands ──────────────────────────────────────────────────────────────

    def execute(self, plan: TripPlan, action: PlanAction) -> EditResult:
        try:
            new_plan, applied = apply_forward(plan, action)
        except PlanEditError as exc:
            return EditResult(False, "", plan, error=str(exc), action=action, item_id=action.item_id)

        self._undo.append(applied)
        self._redo.clear()
        return EditResult(True, action.description, new_plan, action=applied, item_id=action.item_id)

    def undo(self, plan: TripPlan) -> EditResult:
        if not self._undo:
            return EditResult(False, "", plan, error="Nothing to undo")

        action = self._undo[-1]
        try:
            new_plan, applied = apply_inverse(plan, action)
        except PlanEditError as exc:
            return EditResult(False, "", plan, error=f"Undo failed: {exc}", action=action)

        self._undo.pop()
        self._redo.append(applied)
        return EditResult(
            True, f"Undid: {action.description}", new_plan,
            action=applied, item_id=action.item_id,
        )

    def redo(self, plan: TripPlan) -> EditResult:
        if not self._redo:
            return EditResult(False, "", plan, error="Nothing to redo")

        action = self._redo[-1]
        try:
            new_plan, applied = apply_forward(plan, action)
        except PlanEditError as exc:
            return EditResult(False, "", plan, error=f"Redo failed: {exc}", action=action)

        self._redo.pop()
        self._undo.append(applied)
        return EditResult(
            True, f"Redid: {action.description}", new_plan,
            action=applied, item_id=action.item_id,
        )

    def clear(self) -> None:
        self._undo.clear()
        self._redo.clear()
