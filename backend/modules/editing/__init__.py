"""modules/editing — Reversible schedule edits (command log with undo/redo)."""

from modules.editing.errors import (
    PlanEditError, InvalidReference, DuplicatePlacement, InvalidPlace,
)
from modules.editing.plan_action import (
    ActionType, PlanAction, ClusterEffect, UnclusteredEffect,
)
from modules.editing.mutation_log import (
    MutationLog, EditResult, MAX_UNDO_DEPTH, apply_forward, apply_inverse,
)

__all__ = [
    "PlanEditError",
    "InvalidReference",
    "DuplicatePlacement",
    "InvalidPlace",
    "ActionType",
    "PlanAction",
    "ClusterEffect",
    "UnclusteredEffect",
    "MutationLog",
    "EditResult",
    "MAX_UNDO_DEPTH",
    "apply_forward",
    "apply_inverse",
]
