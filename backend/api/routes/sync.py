"""
api/routes/sync.py
-------------------
Server side of the optimistic sync protocol (what HttpSyncBackend calls).

    POST /v1/planning/{plan_id}/add-item   name + server id for the item's cluster
    POST /v1/planning/{plan_id}/save       persist a full plan snapshot
    GET  /v1/planning/{plan_id}            load a saved snapshot
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from modules.sync.backends import LocalSyncBackend

router = APIRouter()

_backend: Optional[LocalSyncBackend] = None


def get_local_backend() -> LocalSyncBackend:
    """Process-wide backend shared by these routes and API-created sessions."""
    global _backend
    if _backend is None:
        _backend = LocalSyncBackend()
    return _backend


def reset_local_backend(backend: Optional[LocalSyncBackend] = None) -> None:
    global _backend
    _backend = backend


# ── Request schemas ────────────────────────────────────────────────────────────

class AddItemSyncRequest(BaseModel):
    city_id:         str = ""
    temp_cluster_id: Optional[str] = None
    suggested_name:  str = ""
    item:            dict = Field(default_factory=dict)
    cluster:         dict = Field(default_factory=dict)
    is_new_cluster:  bool = False


class SavePlanRequest(BaseModel):
    plan: dict


# ── Endpoints ──────────────────────────────────────────────────────────────────

@router.post("/{plan_id}/add-item", summary="Resolve the cluster of an optimistically added item")
def add_item(plan_id: str, req: AddItemSyncRequest) -> dict:
    return get_local_backend().handle_add_item(plan_id, req.model_dump())


@router.post("/{plan_id}/save", summary="Persist a plan snapshot")
def save_plan(plan_id: str, req: SavePlanRequest) -> dict:
    if req.plan.get("plan_id", plan_id) != plan_id:
        raise HTTPException(status_code=422, detail="plan_id in body does not match the URL")
    get_local_backend().save_plan(plan_id, req.plan)
    return {"saved": True, "plan_id": plan_id}


@router.get("/{plan_id}", summary="Load a saved plan snapshot")
def load_plan(plan_id: str) -> dict:
    data = get_local_backend().load_plan(plan_id)
    if data is None:
        raise HTTPException(status_code=404, detail=f"Plan '{plan_id}' not found")
    return data
