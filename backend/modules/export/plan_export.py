"""
modules/export/plan_export.py
-------------------------------
Serialisation of a TripPlan for storage, sync and sharing.

  plan_to_dict / plan_from_dict  — JSON-safe dict (dates ISO, coordinates
                                   {lat, lng}); the wire and storage format
  export_json                    — pretty-printed plan_to_dict
  generate_ics                   — iCalendar file, one VEVENT per item
  google_maps_url                — walking directions through every stop

ICS timing: each slot starts at a fixed clock time (morning 09:00,
afternoon 13:00, evening 18:30, night 22:00); an item starts after the
durations of the items before it plus 10 minutes of travel per earlier item.
"""

from __future__ import annotations

import json
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Optional
from urllib.parse import quote

from schemas.planning import (
    SLOT_ORDER,
    CityPlan,
    CityRef,
    Cluster,
    Coordinate,
    Day,
    Place,
    PlannedItem,
    PlanningFilters,
    Slot,
    TripPlan,
)

SLOT_START_TIMES: dict[Slot, time] = {
    Slot.MORNING:   time(9, 0),
    Slot.AFTERNOON: time(13, 0),
    Slot.EVENING:   time(18, 30),
    Slot.NIGHT:     time(22, 0),
}
TRAVEL_MINUTES_BETWEEN_ITEMS: int = 10


# ── Dict codec ─────────────────────────────────────────────────────────────────

def _coord_from(data: Optional[dict]) -> Optional[Coordinate]:
    if data is None:
        return None
    return Coordinate(lat=float(data["lat"]), lng=float(data["lng"]))


def place_to_dict(place: Place) -> dict:
    return {
        "place_id":         place.place_id,
        "name":             place.name,
        "category":         place.category,
        "location":         place.location.to_dict(),
        "duration_minutes": place.duration_minutes,
        "rating":           place.rating,
        "price_level":      place.price_level,
        "area":             place.area,
        "tags":             list(place.tags),
    }


def place_from_dict(data: dict) -> Place:
    return Place(
        place_id=data["place_id"],
        name=data["name"],
        category=data.get("category", "activity"),
        location=_coord_from(data["location"]),
        duration_minutes=int(data.get("duration_minutes", 60)),
        rating=data.get("rating"),
        price_level=data.get("price_level"),
        area=data.get("area", ""),
        tags=tuple(data.get("tags", ())),
    )


def _item_to_dict(item: PlannedItem) -> dict:
    return {
        "item_id":       item.item_id,
        "place":         place_to_dict(item.place),
        "slot":          item.slot.value,
        "order_in_slot": item.order_in_slot,
        "is_locked":     item.is_locked,
        "user_notes":    item.user_notes,
        "added_by":      item.added_by,
        "added_at":      item.added_at,
    }


def _item_from_dict(data: dict) -> PlannedItem:
    return PlannedItem(
        item_id=data["item_id"],
        place=place_from_dict(data["place"]),
        slot=Slot(data["slot"]),
        order_in_slot=int(data.get("order_in_slot", 0)),
        is_locked=bool(data.get("is_locked", False)),
        user_notes=data.get("user_notes", ""),
        added_by=data.get("added_by", "user"),
        added_at=data.get("added_at", ""),
    )


def _city_to_dict(city: CityRef) -> dict:
    return {
        "city_id":     city.city_id,
        "name":        city.name,
        "country":     city.country,
        "coordinates": city.coordinates.to_dict() if city.coordinates else None,
    }


def _city_from_dict(data: dict) -> CityRef:
    return CityRef(
        city_id=data["city_id"],
        name=data["name"],
        country=data.get("country", ""),
        coordinates=_coord_from(data.get("coordinates")),
    )


def _cluster_to_dict(cluster: Cluster) -> dict:
    return {
        "cluster_id":             cluster.cluster_id,
        "name":                   cluster.name,
        "center":                 cluster.center.to_dict(),
        "item_ids":               list(cluster.item_ids),
        "total_duration_minutes": cluster.total_duration_minutes,
        "max_walking_minutes":    cluster.max_walking_minutes,
        "server_id":              cluster.server_id,
        "description":            cluster.description,
    }


def _cluster_from_dict(data: dict) -> Cluster:
    return Cluster(
        cluster_id=data["cluster_id"],
        name=data["name"],
        center=_coord_from(data["center"]),
        item_ids=tuple(data.get("item_ids", ())),
        total_duration_minutes=int(data.get("total_duration_minutes", 0)),
        max_walking_minutes=int(data.get("max_walking_minutes", 0)),
        server_id=data.get("server_id"),
        description=data.get("description", ""),
    )


def plan_to_dict(plan: TripPlan) -> dict[str, Any]:
    return {
        "plan_id": plan.plan_id,
        "days": [
            {
                "day_index": day.day_index,
                "date":      day.date.isoformat(),
                "city":      _city_to_dict(day.city),
                "slots":     {slot.value: [_item_to_dict(i) for i in day.items(slot)] for slot in SLOT_ORDER},
            }
            for day in plan.days
        ],
        "city_plans": {
            city_id: {
                "city":        _city_to_dict(cp.city),
                "clusters":    [_cluster_to_dict(c) for c in cp.clusters],
                "unclustered": list(cp.unclustered),
            }
            for city_id, cp in plan.city_plans.items()
        },
        "filters": {
            "price_max": plan.filters.price_max,
            "sort_by":   plan.filters.sort_by,
        },
    }


def plan_from_dict(data: dict[str, Any]) -> TripPlan:
    days = tuple(
        Day(
            day_index=int(d["day_index"]),
            date=date.fromisoformat(d["date"]),
            city=_city_from_dict(d["city"]),
            slots={
                slot: tuple(_item_from_dict(i) for i in d.get("slots", {}).get(slot.value, ()))
                for slot in SLOT_ORDER
            },
        )
        for d in data.get("days", ())
    )
    city_plans = {
        city_id: CityPlan(
            city=_city_from_dict(cp["city"]),
            clusters=tuple(_cluster_from_dict(c) for c in cp.get("clusters", ())),
            unclustered=tuple(cp.get("unclustered", ())),
        )
        for city_id, cp in data.get("city_plans", {}).items()
    }
    filters = data.get("filters") or {}
    return TripPlan(
        plan_id=data["plan_id"],
        days=days,
        city_plans=city_plans,
        filters=PlanningFilters(
            price_max=filters.get("price_max"),
            sort_by=filters.get("sort_by", "proximity"),
        ),
    )


def export_json(plan: TripPlan) -> str:
    return json.dumps(plan_to_dict(plan), indent=2, ensure_ascii=False)


# ── iCalendar ──────────────────────────────────────────────────────────────────

def _escape_ics(text: str) -> str:
    return (
        text.replace("\\", "\\\\")
        .replace(",", "\\,")
        .replace(";", "\\;")
        .replace("\n", "\\n")
    )


def _ics_stamp(moment: datetime) -> str:
    return moment.strftime("%Y%m%dT%H%M%S")


def _event_description(item: PlannedItem) -> str:
    parts = []
    if item.place.rating:
        parts.append(f"Rating: {item.place.rating:.1f}")
    if item.place.price_level is not None:
        parts.append(f"Price: {'€' * (item.place.price_level + 1)}")
    parts.append(f"Duration: ~{item.place.duration_minutes} min")
    if item.user_notes:
        parts.append(f"Notes: {item.user_notes}")
    return "\n".join(parts)


def slot_schedule(day: Day, slot: Slot, include_travel: bool = True) -> list[tuple[PlannedItem, datetime, datetime]]:
    """(item, start, end) for every item in one slot, as naive local datetimes."""
    cursor = datetime.combine(day.date, SLOT_START_TIMES[slot])
    travel = timedelta(minutes=TRAVEL_MINUTES_BETWEEN_ITEMS if include_travel else 0)
    timeline = []
    for i, item in enumerate(day.items(slot)):
        start = cursor + travel * (1 if i else 0)
        end = start + timedelta(minutes=item.place.duration_minutes)
        timeline.append((item, start, end))
        cursor = end
    return timeline


def generate_ics(
    plan: TripPlan,
    include_travel: bool = True,
    reminder_minutes: Optional[int] = 30,
    now: Optional[datetime] = None,
) -> str:
    """Render the plan as an RFC 5545 calendar (CRLF line endings)."""
    now = now or datetime.now(timezone.utc)
    calendar_name = f"Trip: {plan.days[0].city.name}" if plan.days else "My Trip"

    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "PRODID:-//Waycraft//Trip Planner//EN",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
        f"X-WR-CALNAME:{_escape_ics(calendar_name)}",
        "X-WR-TIMEZONE:UTC",
    ]

    for day in plan.days:
        for slot in SLOT_ORDER:
            for item, start, end in slot_schedule(day, slot, include_travel):
                lines += [
                    "BEGIN:VEVENT",
                    f"UID:{item.item_id}@waycraft.app",
                    f"DTSTAMP:{_ics_stamp(now)}Z",
                    f"DTSTART:{_ics_stamp(start)}",
                    f"DTEND:{_ics_stamp(end)}",
                    f"SUMMARY:{_escape_ics(item.place.name)}",
                    f"LOCATION:{_escape_ics(item.place.area or day.city.name)}",
                    f"DESCRIPTION:{_escape_ics(_event_description(item))}",
                    f"GEO:{item.place.location.lat};{item.place.location.lng}",
                ]
                if reminder_minutes:
                    lines += [
                        "BEGIN:VALARM",
                        "ACTION:DISPLAY",
                        f"DESCRIPTION:{_escape_ics(item.place.name)} in {reminder_minutes} minutes",
                        f"TRIGGER:-PT{reminder_minutes}M",
                        "END:VALARM",
                    ]
                lines += [f"CATEGORIES:{item.place.category.upper()}", "END:VEVENT"]

    lines.append("END:VCALENDAR")
    return "\r\n".join(lines)


# ── Google Maps ────────────────────────────────────────────────────────────────

def google_maps_url(plan: TripPlan) -> str:
    """
    Walking-directions URL through every scheduled stop in day/slot order.

    One stop gives a search URL; none gives "".
    """
    stops = [
        item.place for day in plan.days for item in day.all_items()
    ]
    if not stops:
        return ""

    def _ll(p: Place) -> str:
        return f"{p.location.lat},{p.location.lng}"

    if len(stops) == 1:
        p = stops[0]
        return f"https://www.google.com/maps/search/?api=1&query={_ll(p)}&query_place_id={quote(p.name)}"

    url = "https://www.google.com/maps/dir/?api=1"
    url += f"&origin={_ll(stops[0])}&destination={_ll(stops[-1])}"
    if len(stops) > 2:
        url += "&waypoints=" + quote("|".join(_ll(p) for p in stops[1:-1]))
    return url + "&travelmode=walking"
