"""modules/export — TripPlan serialisation (JSON, iCalendar, Google Maps)."""

from modules.export.plan_export import (
    plan_to_dict,
    plan_from_dict,
    place_to_dict,
    place_from_dict,
    export_json,
    generate_ics,
    google_maps_url,
)

__all__ = [
    "plan_to_dict",
    "plan_from_dict",
    "place_to_dict",
    "place_from_dict",
    "export_json",
    "generate_ics",
    "google_maps_url",
]
