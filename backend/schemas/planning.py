"""
schemas/planning.py
-------------------
Dataclass definitions for the trip-planning state.

Every type here is a frozen dataclass: edits never mutate a TripPlan in place,
they build a new one (see modules/editing/schedule_ops.py).  Equality is by
value, which is what the undo/redo round-trip relies on.

Ownership:
  TripPlan ─┬─ days: Day ── slots: {Slot: (PlannedItem, ...)}
            └─ city_plans: {city_id: CityPlan} ── clusters: Cluster (item ids only)
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum
from typing import Mapping, Optional


# ── Geometry ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Coordinate:
    """A WGS-84 point in decimal degrees."""
    lat: float
    lng: float

    def to_dict(self) -> dict:
        return {"lat": self.lat, "lng": self.lng}


# ── Places ────────────────────────────────────────────────────────────────────

ACTIVITY_CATEGORIES:   frozenset[str] = frozenset({"activity", "photo_spot", "experience"})
RESTAURANT_CATEGORIES: frozenset[str] = frozenset({"restaurant", "bar", "cafe"})


@dataclass(frozen=True)
class Place:
    """
    A point of interest as returned by the place search provider.

    Only ``place_id``, ``location`` and ``duration_minutes`` are required by
    the engine; the rest is display metadata carried through untouched.
    ``area`` is the neighbourhood label ("Le Panier", "Vieux Port") used as a
    provisional cluster name.
    """
    place_id:         str
    name:             str
    category:         str
    location:         Coordinate
    duration_minutes: int = 60
    rating:           Optional[float] = None
    price_level:      Optional[int] = None
    area:             str = ""
    tags:             tuple[str, ...] = ()


# ── Schedule ──────────────────────────────────────────────────────────────────

class Slot(str, Enum):
    """Time-of-day bucket within a Day."""

    MORNING   = "morning"
    AFTERNOON = "afternoon"
    EVENING   = "evening"
    NIGHT     = "night"


SLOT_ORDER: tuple[Slot, ...] = (Slot.MORNING, Slot.AFTERNOON, Slot.EVENING, Slot.NIGHT)


@dataclass(frozen=True)
class PlannedItem:
    """
    A Place scheduled into one (Day, Slot).

    order_in_slot is kept contiguous (0..n-1) by every schedule operation.
    added_by: "user" | "ai"
    added_at: ISO-8601 UTC timestamp of creation.
    """
    item_id:       str
    place:         Place
    slot:          Slot
    order_in_slot: int = 0
    is_locked:     bool = False
    user_notes:    str = ""
    added_by:      str = "user"
    added_at:      str = ""


@dataclass(frozen=True)
class CityRef:
    """The city a Day is spent in."""
    city_id:     str
    name:        str
    country:     str = ""
    coordinates: Optional[Coordinate] = None


@dataclass(frozen=True)
class Day:
    """One calendar day bound to one city, with one item list per Slot."""
    day_index: int
    date:      date
    city:      CityRef
    slots:     Mapping[Slot, tuple[PlannedItem, ...]] = field(default_factory=dict)

    @classmethod
    def empty(cls, day_index: int, day_date: date, city: CityRef) -> "Day":
        return cls(
            day_index=day_index,
            date=day_date,
            city=city,
            slots={slot: () for slot in SLOT_ORDER},
        )

    def items(self, slot: Slot) -> tuple[PlannedItem, ...]:
        return tuple(self.slots.get(slot, ()))

    def all_items(self) -> list[PlannedItem]:
        return [item for slot in SLOT_ORDER for item in self.items(slot)]

    def with_slot(self, slot: Slot, items: tuple[PlannedItem, ...]) -> "Day":
        slots = dict(self.slots)
        slots[slot] = items
        return replace(self, slots=slots)


# ── Clusters ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Cluster:
    """
    A named walkable area inside a city plan.

    Members are referenced by PlannedItem id.  total_duration_minutes and
    max_walking_minutes are derived (see clustering.compute_cluster_stats)
    and recomputed whenever membership or order changes.

    cluster_id is generated client-side; server_id is filled in later by the
    sync reconciler and never replaces cluster_id.
    """
    cluster_id:             str
    name:                   str
    center:                 Coordinate
    item_ids:               tuple[str, ...] = ()
    total_duration_minutes: int = 0
    max_walking_minutes:    int = 0
    server_id:              Optional[str] = None
    description:            str = ""


@dataclass(frozen=True)
class CityPlan:
    """Cluster layout for one city; an item id sits in one cluster or in unclustered."""
    city:        CityRef
    clusters:    tuple[Cluster, ...] = ()
    unclustered: tuple[str, ...] = ()

    def find_cluster(self, cluster_id: str) -> Optional[Cluster]:
        for cluster in self.clusters:
            if cluster.cluster_id == cluster_id:
                return cluster
        return None

    def cluster_of(self, item_id: str) -> Optional[Cluster]:
        for cluster in self.clusters:
            if item_id in cluster.item_ids:
                return cluster
        return None


# ── Trip ──────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class PlanningFilters:
    """Global browse filters; sort_by: "proximity" | "rating" | "price"."""
    price_max: Optional[int] = None
    sort_by:   str = "proximity"


@dataclass(frozen=True)
class TripPlan:
    """Ownership root: ordered days plus per-city cluster layouts."""
    plan_id:    str
    days:       tuple[Day, ...] = ()
    city_plans: Mapping[str, CityPlan] = field(default_factory=dict)
    filters:    PlanningFilters = field(default_factory=PlanningFilters)

    def find_day(self, day_index: int) -> Optional[Day]:
        for day in self.days:
            if day.day_index == day_index:
                return day
        return None

    def items_by_id(self) -> dict[str, PlannedItem]:
        return {item.item_id: item for day in self.days for item in day.all_items()}
