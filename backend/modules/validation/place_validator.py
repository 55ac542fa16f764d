"""
modules/validation/place_validator.py
---------------------------------------
Data-quality guards applied before a place enters a plan, and before a plan
is created or restored.

  Place:
    ✓ Non-null, numeric coordinates
    ✓ Latitude in [-90, 90], longitude in [-180, 180]
    ✓ Coordinates are not both exactly 0.0 (likely missing)
    ✓ Non-empty name and place_id
    ✓ duration_minutes is an integer >= 0
    ✓ Rating in [1, 5] if present (0.0 treated as absent)

  Days:
    ✓ at least one day
    ✓ dates strictly increasing (no duplicate calendar days)

Usage:
    from modules.validation import validate_place, place_record, filter_valid

    result = validate_place(place_record(place))
    if not result.valid:
        print(result.errors)

    clean = filter_valid(search_results, validate_place, to_dict=place_record)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Sequence, TypeVar

from schemas.planning import Place

T = TypeVar("T")

logger = logging.getLogger(__name__)


# ── Result dataclass ───────────────────────────────────────────────────────────

@dataclass
class ValidationResult:
    """
    Outcome of a single validation run.

    Attributes:
        valid:  True iff there are zero errors.
        errors: Human-readable list of failure reasons.
        record: The input record dict (for logging purposes).
    """
    valid: bool
    errors: list[str] = field(default_factory=list)
    record: dict = field(default_factory=dict, repr=False)

    def __bool__(self) -> bool:
        return self.valid


def place_record(place: Place) -> dict[str, Any]:
    """Flatten a Place into the dict shape validate_place() reads."""
    return {
        "place_id":         place.place_id,
        "name":             place.name,
        "lat":              place.location.lat if place.location else None,
        "lng":              place.location.lng if place.location else None,
        "duration_minutes": place.duration_minutes,
        "rating":           place.rating,
    }


# ── Place validation ───────────────────────────────────────────────────────────

def validate_place(record: dict[str, Any]) -> ValidationResult:
    """Validate a flattened place record (see place_record())."""
    errors: list[str] = []

    # ── Coordinates ────────────────────────────────────────────────────────
    lat = record.get("lat")
    lng = record.get("lng")

    if lat is None or lng is None:
        errors.append(f"lat/lng must not be NULL (got lat={lat!r}, lng={lng!r})")
    else:
        try:
            lat = float(lat)
            lng = float(lng)
        except (TypeError, ValueError):
            errors.append(f"lat/lng must be numeric (got lat={lat!r}, lng={lng!r})")
            return ValidationResult(valid=False, errors=errors, record=record)

        if not (-90.0 <= lat <= 90.0):
            errors.append(f"lat={lat} is outside valid range [-90, 90]")
        if not (-180.0 <= lng <= 180.0):
            errors.append(f"lng={lng} is outside valid range [-180, 180]")
        if lat == 0.0 and lng == 0.0:
            errors.append("lat=0.0 and lng=0.0: likely a missing/default value")

    # ── Identity ───────────────────────────────────────────────────────────
    name = record.get("name", "")
    if not name or not str(name).strip():
        errors.append("name must not be empty or NULL")
    if not record.get("place_id"):
        errors.append("place_id must not be empty or NULL")

    # ── Duration ───────────────────────────────────────────────────────────
    duration = record.get("duration_minutes")
    if isinstance(duration, bool) or not isinstance(duration, int):
        errors.append(f"duration_minutes={duration!r} must be an integer")
    elif duration < 0:
        errors.append(f"duration_minutes={duration} must be >= 0")

    # ── Rating ─────────────────────────────────────────────────────────────
    rating = record.get("rating")
    if rating is not None:
        try:
            r = float(rating)
            # 0.0 is the sentinel for "absent"
            if r != 0.0 and not (1.0 <= r <= 5.0):
                errors.append(f"rating={r} is outside valid range [1, 5]")
        except (TypeError, ValueError):
            errors.append(f"rating={rating!r} must be numeric")

    return ValidationResult(valid=len(errors) == 0, errors=errors, record=record)


# ── Day validation ─────────────────────────────────────────────────────────────

def validate_day_dates(dates: Sequence[date]) -> ValidationResult:
    """A trip needs at least one day, and its dates must strictly increase."""
    errors: list[str] = []
    record = {"dates": [d.isoformat() for d in dates]}

    if not dates:
        errors.append("a plan needs at least one day")
    for prev, nxt in zip(dates, dates[1:]):
        if nxt <= prev:
            errors.append(f"date {nxt.isoformat()} does not follow {prev.isoformat()}")

    return ValidationResult(valid=len(errors) == 0, errors=errors, record=record)


# ── Batch filter helper ────────────────────────────────────────────────────────

def filter_valid(
    items: list[T],
    validator: Callable[[dict], ValidationResult],
    to_dict: Callable[[T], dict] | None = None,
    log: bool = True,
) -> list[T]:
    """
    Apply a validator to every item in a list, return only the valid ones.

    Args:
        items:     Items (dataclass instances or dicts).
        validator: e.g. validate_place.
        to_dict:   Converts each item to the validator's dict shape.
                   If None, items are assumed to already be dicts or have __dict__.
        log:       If True, log a warning for every rejected record.
    """
    valid_items: list[T] = []
    rejected = 0

    for item in items:
        record_dict = (
            to_dict(item)
            if to_dict is not None
            else (item if isinstance(item, dict) else item.__dict__)
        )
        result = validator(record_dict)
        if result.valid:
            valid_items.append(item)
        else:
            rejected += 1
            if log:
                logger.warning("Rejected '%s': %s", record_dict.get("name", "?"), "; ".join(result.errors))

    if log and rejected:
        logger.info("%d/%d records rejected; %d passed.", rejected, len(items), len(valid_items))

    return valid_items
