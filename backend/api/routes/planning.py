"""
api/routes/planning.py
-----------------------
Interactive planning over a PlanningSession.

    POST   /v1/planning/sessions                               new plan
    GET    /v1/planning/sessions/{plan_id}                     plan + undo/redo state
    POST   /v1/planning/sessions/{plan_id}/items               add a place
    DELETE /v1/planning/sessions/{plan_id}/items/{item_id}     remove
    POST   /v1/planning/sessions/{plan_id}/items/{item_id}/move
    POST   /v1/planning/sessions/{plan_id}/items/{item_id}/reorder
    PUT    /v1/planning/sessions/{plan_id}/items/{item_id}/notes
    POST   /v1/planning/sessions/{plan_id}/undo | /redo
    POST   /v1/planning/sessions/{plan_id}/clusters            create
    PATCH  /v1/planning/sessions/{plan_id}/clusters/{cluster_id}   rename
    DELETE /v1/planning/sessions/{plan_id}/clusters/{cluster_id}   delete
    POST   /v1/planning/sessions/{plan_id}/clusters/move-item
    PUT    /v1/planning/sessions/{plan_id}/filters
    POST   /v1/planning/sessions/{plan_id}/preview             insertion + detour preview
    POST   /v1/planning/sessions/{plan_id}/save
    GET    /v1/planning/sessions/{plan_id}/export?fmt=json|ics|maps

Sessions live in an in-memory store keyed by plan_id and sync through the
in-process LocalSyncBackend.
"""

from __future__ import annotations

import uuid
from datetime import date as date_type
from typing import Optional

from fastapi import APIRouter, HTTPException
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from api.routes.sync import get_local_backend
from modules.editing.errors import PlanEditError
from modules.editing.mutation_log import EditResult
from modules.export.plan_export import export_json, generate_ics, google_maps_url, plan_to_dict
from modules.planning.session import PlanningSession
from schemas.planning import CityRef, Coordinate, Place, Slot

router = APIRouter()

# ── In-memory session store ────────────────────────────────────────────────────
# key: plan_id, value: PlanningSession
_sessions: dict[str, PlanningSession] = {}


# ── Request schemas ────────────────────────────────────────────────────────────

class CityIn(BaseModel):
    city_id: str
    name:    str
    country: str = ""
    lat:     Optional[float] = None
    lng:     Optional[float] = None

    def to_ref(self) -> CityRef:
        coords = Coordinate(self.lat, self.lng) if self.lat is not None and self.lng is not None else None
        return CityRef(city_id=self.city_id, name=self.name, country=self.country, coordinates=coords)


class DayIn(BaseModel):
    date: str = Field(..., description="ISO-8601 date YYYY-MM-DD")
    city: CityIn


class CreatePlanRequest(BaseModel):
    plan_id: Optional[str] = None
    days:    list[DayIn] = Field(..., min_length=1)


class PlaceIn(BaseModel):
    place_id:         str
    name:             str
    category:         str = "activity"
    lat:              float
    lng:              float
    duration_minutes: int = 60
    rating:           Optional[float] = None
    price_level:      Optional[int] = None
    area:             str = ""
    tags:             list[str] = Field(default_factory=list)

    def to_place(self) -> Place:
        return Place(
            place_id=self.place_id,
            name=self.name,
            category=self.category,
            location=Coordinate(self.lat, self.lng),
            duration_minutes=self.duration_minutes,
            rating=self.rating,
            price_level=self.price_level,
            area=self.area,
            tags=tuple(self.tags),
        )


class AddItemRequest(BaseModel):
    place:        PlaceIn
    day_index:    int
    slot:         Slot
    order:        Optional[int] = None
    optimal:      bool = Field(False, description="Let the insertion solver pick the position")
    notes:        str = ""
    added_by:     str = "user"
    auto_cluster: bool = True


class MoveRequest(BaseModel):
    to_day:   int
    to_slot:  Slot
    to_order: Optional[int] = None


class ReorderRequest(BaseModel):
    to_order: int


class NotesRequest(BaseModel):
    notes: str


class ClusterRequest(BaseModel):
    city_id: str
    name:    str
    lat:     Optional[float] = None
    lng:     Optional[float] = None


class RenameClusterRequest(BaseModel):
    city_id: str
    name:    str


class MoveToClusterRequest(BaseModel):
    city_id:    str
    item_id:    str
    cluster_id: Optional[str] = None


class FiltersRequest(BaseModel):
    price_max: Optional[int] = None
    sort_by:   str = "proximity"


class PreviewRequest(BaseModel):
    place:     PlaceIn
    day_index: int
    slot:      Slot


# ── Helpers ────────────────────────────────────────────────────────────────────

def _get_session(plan_id: str) -> PlanningSession:
    session = _sessions.get(plan_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Plan '{plan_id}' not found")
    return session


def _state(session: PlanningSession) -> dict:
    return {
        "plan":       plan_to_dict(session.plan),
        "can_undo":   session.can_undo(),
        "can_redo":   session.can_redo(),
        "undo_depth": session.undo_depth,
        "redo_depth": session.redo_depth,
    }


def _respond(session: PlanningSession, result: EditResult) -> dict:
    if not result.success:
        raise HTTPException(status_code=400, detail=result.error)
    return {**result.to_dict(), **_state(session)}


# ── Endpoints ──────────────────────────────────────────────────────────────────

@router.post("/sessions", summary="Create an empty plan")
def create_plan(req: CreatePlanRequest) -> dict:
    try:
        days = [(date_type.fromisoformat(d.date), d.city.to_ref()) for d in req.days]
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=f"Invalid date format: {exc}") from exc

    plan_id = req.plan_id or f"plan-{uuid.uuid4().hex[:12]}"
    if plan_id in _sessions:
        raise HTTPException(status_code=409, detail=f"Plan '{plan_id}' already exists")
    try:
        session = PlanningSession.new(plan_id, days, sync_backend=get_local_backend())
    except PlanEditError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    _sessions[plan_id] = session
    return {"plan_id": plan_id, **_state(session)}


@router.get("/sessions/{plan_id}", summary="Current plan and undo/redo state")
def get_plan(plan_id: str) -> dict:
    return _state(_get_session(plan_id))


@router.post("/sessions/{plan_id}/items", summary="Add a place to a day slot")
def add_item(plan_id: str, req: AddItemRequest) -> dict:
    session = _get_session(plan_id)
    kwargs = {"added_by": req.added_by, "notes": req.notes, "auto_cluster": req.auto_cluster}
    if req.optimal:
        result = session.add_item_optimally(req.place.to_place(), req.day_index, req.slot, **kwargs)
    else:
        result = session.add_item(req.place.to_place(), req.day_index, req.slot, req.order, **kwargs)
    return _respond(session, result)


@router.delete("/sessions/{plan_id}/items/{item_id}", summary="Remove an item")
def remove_item(plan_id: str, item_id: str) -> dict:
    session = _get_session(plan_id)
    return _respond(session, session.remove_item(item_id))


@router.post("/sessions/{plan_id}/items/{item_id}/move", summary="Move an item to another day/slot")
def move_item(plan_id: str, item_id: str, req: MoveRequest) -> dict:
    session = _get_session(plan_id)
    return _respond(session, session.move_item(item_id, req.to_day, req.to_slot, req.to_order))


@router.post("/sessions/{plan_id}/items/{item_id}/reorder", summary="Reorder an item within its slot")
def reorder_item(plan_id: str, item_id: str, req: ReorderRequest) -> dict:
    session = _get_session(plan_id)
    return _respond(session, session.reorder_item(item_id, req.to_order))


@router.put("/sessions/{plan_id}/items/{item_id}/notes", summary="Replace an item's notes")
def update_notes(plan_id: str, item_id: str, req: NotesRequest) -> dict:
    session = _get_session(plan_id)
    return _respond(session, session.update_notes(item_id, req.notes))


@router.post("/sessions/{plan_id}/undo", summary="Undo the last edit")
def undo(plan_id: str) -> dict:
    session = _get_session(plan_id)
    return _respond(session, session.undo())


@router.post("/sessions/{plan_id}/redo", summary="Redo the last undone edit")
def redo(plan_id: str) -> dict:
    session = _get_session(plan_id)
    return _respond(session, session.redo())


@router.post("/sessions/{plan_id}/clusters", summary="Create an empty cluster")
def create_cluster(plan_id: str, req: ClusterRequest) -> dict:
    session = _get_session(plan_id)
    center = Coordinate(req.lat, req.lng) if req.lat is not None and req.lng is not None else None
    return _respond(session, session.create_cluster(req.city_id, req.name, center))


# declared before the {cluster_id} routes so "move-item" is not taken for an id
@router.post("/sessions/{plan_id}/clusters/move-item", summary="Move an item between clusters")
def move_item_to_cluster(plan_id: str, req: MoveToClusterRequest) -> dict:
    session = _get_session(plan_id)
    return _respond(session, session.move_item_to_cluster(req.city_id, req.item_id, req.cluster_id))


@router.patch("/sessions/{plan_id}/clusters/{cluster_id}", summary="Rename a cluster")
def rename_cluster(plan_id: str, cluster_id: str, req: RenameClusterRequest) -> dict:
    session = _get_session(plan_id)
    return _respond(session, session.rename_cluster(req.city_id, cluster_id, req.name))


@router.delete("/sessions/{plan_id}/clusters/{cluster_id}", summary="Delete a cluster (members become unclustered)")
def delete_cluster(plan_id: str, cluster_id: str, city_id: str) -> dict:
    session = _get_session(plan_id)
    return _respond(session, session.delete_cluster(city_id, cluster_id))


@router.put("/sessions/{plan_id}/filters", summary="Set browse filters")
def set_filters(plan_id: str, req: FiltersRequest) -> dict:
    session = _get_session(plan_id)
    return _respond(session, session.set_filters(req.price_max, req.sort_by))


@router.post("/sessions/{plan_id}/preview", summary="Best insertion position and road-trip detour for a place")
def preview(plan_id: str, req: PreviewRequest) -> dict:
    session = _get_session(plan_id)
    if session.get_day(req.day_index) is None:
        raise HTTPException(status_code=400, detail=f"Day {req.day_index} does not exist")
    place = req.place.to_place()
    insertion = session.insertion_preview(req.day_index, req.slot, place)
    detour = session.detour_preview(place)
    return {
        "insertion": {
            "index":             insertion.index,
            "added_distance_km": round(insertion.added_distance_km, 3),
            "total_distance_km": round(insertion.total_distance_km, 3),
        },
        "detour": None if detour is None else {
            "insert_after_index": detour.insert_after_index,
            "detour_km":          round(detour.detour_km, 3),
            "detour_minutes":     detour.detour_minutes,
        },
    }


@router.post("/sessions/{plan_id}/save", summary="Queue the plan for saving")
def save(plan_id: str) -> dict:
    session = _get_session(plan_id)
    return _respond(session, session.save())


@router.get("/sessions/{plan_id}/export", summary="Export as JSON, iCalendar or a Google Maps link")
def export(plan_id: str, fmt: str = "json"):
    session = _get_session(plan_id)
    if fmt == "json":
        return PlainTextResponse(export_json(session.plan), media_type="application/json")
    if fmt == "ics":
        return PlainTextResponse(generate_ics(session.plan), media_type="text/calendar")
    if fmt == "maps":
        return {"url": google_maps_url(session.plan)}
    raise HTTPException(status_code=422, detail=f"Unknown export format '{fmt}'")
