"""
modules/editing/plan_action.py
--------------------------------
Reversible edit records kept by MutationLog.

Every schedule edit is captured as exactly one PlanAction whose
``action_type`` is drawn from the closed ``ActionType`` enum.  The payload
holds enough to replay the edit forward or in reverse:

  ADD          item snapshot + (to_day, to_slot, to_order)
  REMOVE       item snapshot + (from_day, from_slot, from_order)
  MOVE         item id + from/to (day, slot, order)
  REORDER      item id + day, slot, from_order, to_order
  UPDATE_NOTES item id + old_notes / new_notes (full text, never diffed)

Cluster side effects of an edit (joining, leaving or spawning a cluster) are
recorded as before/after cluster snapshots so undo restores the cluster view
together with the schedule view.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from schemas.planning import Cluster, PlannedItem, Slot


# ── Action taxonomy ───────────────────────────────────────────────────────────

class ActionType(Enum):
    """Closed set of undoable schedule edits."""

    ADD          = "add"
    """Insert a new PlannedItem; inverse removes it."""

    REMOVE       = "remove"
    """Remove an item; inverse re-inserts the snapshot at its old position."""

    MOVE         = "move"
    """Move between (day, slot) positions; inverse moves it back."""

    REORDER      = "reorder"
    """Change position within one slot; inverse swaps from/to."""

    UPDATE_NOTES = "update_notes"
    """Replace free-text notes; inverse restores the old text."""


# ── Cluster side effects ──────────────────────────────────────────────────────

@dataclass(frozen=True)
class ClusterEffect:
    """
    One cluster touched by an edit.

    before=None means the edit created the cluster; after=None means the edit
    removed it.  Undo/redo reads a side only for whether the action's item is
    a member (and to recreate a cluster that is gone); the cluster's *current*
    name, server_id and other members are kept.
    """
    city_id:    str
    cluster_id: str
    before:     Optional[Cluster]
    after:      Optional[Cluster]


@dataclass(frozen=True)
class UnclusteredEffect:
    """
    Whether ``item_id`` sat in the city's unclustered list before/after the
    edit.  ``position`` is its index in that list on the side where it is
    present, so reinsertion restores the original order.
    """
    city_id:  str
    item_id:  str
    before:   bool
    after:    bool
    position: Optional[int] = None


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ── Action payload ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class PlanAction:
    """
    Immutable record of one schedule edit.

    ``description`` is the toast text shown after the forward edit; it is
    not part of the reversibility contract.
    """

    action_type: ActionType
    item_id:     str
    item:        Optional[PlannedItem] = None

    from_day:    Optional[int] = None
    from_slot:   Optional[Slot] = None
    from_order:  Optional[int] = None
    to_day:      Optional[int] = None
    to_slot:     Optional[Slot] = None
    to_order:    Optional[int] = None

    old_notes:   str = ""
    new_notes:   str = ""

    description: str = ""
    cluster_effects:     tuple[ClusterEffect, ...] = ()
    unclustered_effects: tuple[UnclusteredEffect, ...] = ()
    created_at:  str = field(default_factory=_now_iso)

    # ── Factories ─────────────────────────────────────────────────────────────

    @classmethod
    def add(
        cls,
        item: PlannedItem,
        to_day: int,
        to_slot: Slot,
        to_order: int,
        **extra,
    ) -> "PlanAction":
        return cls(
            action_type=ActionType.ADD,
            item_id=item.item_id,
            item=item,
            to_day=to_day,
            to_slot=to_slot,
            to_order=to_order,
            description=f"Added {item.place.name} to Day {to_day + 1} {to_slot.value}",
            **extra,
        )

    @classmethod
    def remove(
        cls,
        item: PlannedItem,
        from_day: int,
        from_slot: Slot,
        from_order: int,
        **extra,
    ) -> "PlanAction":
        return cls(
            action_type=ActionType.REMOVE,
            item_id=item.item_id,
            item=item,
            from_day=from_day,
            from_slot=from_slot,
            from_order=from_order,
            description=f"Removed {item.place.name}",
            **extra,
        )

    @classmethod
    def move(
        cls,
        item: PlannedItem,
        from_day: int,
        from_slot: Slot,
        from_order: int,
        to_day: int,
        to_slot: Slot,
        to_order: int,
        **extra,
    ) -> "PlanAction":
        return cls(
            action_type=ActionType.MOVE,
            item_id=item.item_id,
            from_day=from_day,
            from_slot=from_slot,
            from_order=from_order,
            to_day=to_day,
            to_slot=to_slot,
            to_order=to_order,
            description=f"Moved {item.place.name} to Day {to_day + 1} {to_slot.value}",
            **extra,
        )

    @classmethod
    def reorder(
        cls,
        item: PlannedItem,
        day: int,
        slot: Slot,
        from_order: int,
        to_order: int,
    ) -> "PlanAction":
        return cls(
            action_type=ActionType.REORDER,
            item_id=item.item_id,
            from_day=day,
            from_slot=slot,
            from_order=from_order,
            to_day=day,
            to_slot=slot,
            to_order=to_order,
            description=f"Reordered {item.place.name} in {slot.value}",
        )

    @classmethod
    def update_notes(cls, item: PlannedItem, new_notes: str) -> "PlanAction":
        return cls(
            action_type=ActionType.UPDATE_NOTES,
            item_id=item.item_id,
            old_notes=item.user_notes,
            new_notes=new_notes,
            description=f"Updated notes for {item.place.name}",
        )

    def to_dict(self) -> dict:
        def _slot(s: Optional[Slot]) -> Optional[str]:
            return s.value if s is not None else None

        return {
            "action_type": self.action_type.value,
            "item_id":     self.item_id,
            "from":        {"day": self.from_day, "slot": _slot(self.from_slot), "order": self.from_order},
            "to":          {"day": self.to_day, "slot": _slot(self.to_slot), "order": self.to_order},
            "description": self.description,
            "created_at":  self.created_at,
        }

    def __repr__(self) -> str:  # pragma: no cover
        return f"PlanAction({self.action_type.value} → {self.item_id}: {self.description})"
