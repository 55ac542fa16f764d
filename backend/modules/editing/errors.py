"""
modules/editing/errors.py
---------------------------
Guard failures raised by the pure schedule operations.

They never cross the MutationLog / PlanningSession boundary: both catch
PlanEditError and turn it into a failed EditResult, leaving the plan as it was.
"""

from __future__ import annotations


class PlanEditError(RuntimeError):
    """Base class for an edit that cannot be applied."""


class InvalidReference(PlanEditError):
    """Missing item, day, slot, cluster, or an order index out of range."""


class DuplicatePlacement(PlanEditError):
    """The place is already scheduled somewhere in the trip."""


class InvalidPlace(PlanEditError):
    """The place failed validation (bad coordinates, empty name, ...)."""
