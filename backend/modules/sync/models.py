"""
modules/sync/models.py
------------------------
Messages exchanged between PlanningSession and a sync backend.

  SyncRequest — fired after an optimistic local edit
  SyncPatch   — what the server said back, keyed by the client temp id
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class SyncKind(str, Enum):
    ADD_ITEM  = "add_item"
    SAVE_PLAN = "save_plan"


class SyncError(RuntimeError):
    """The backend answered, but not with something we can use."""


@dataclass(frozen=True)
class SyncRequest:
    """
    kind:           ADD_ITEM carries the new item and its (possibly new) cluster;
                    SAVE_PLAN carries a full plan_to_dict snapshot.
    temp_id:        client-generated cluster id the response will be matched on.
    suggested_name: provisional cluster name shown until the server answers.
    """
    kind:           SyncKind
    plan_id:        str
    city_id:        str = ""
    temp_id:        Optional[str] = None
    suggested_name: str = ""
    payload:        dict = field(default_factory=dict)


@dataclass(frozen=True)
class SyncPatch:
    temp_id:        str
    server_id:      Optional[str] = None
    cluster_name:   Optional[str] = None
    is_new_cluster: bool = False

    @classmethod
    def from_response(cls, temp_id: str, data: dict) -> "SyncPatch":
        if not isinstance(data, dict):
            raise SyncError(f"Expected a JSON object, got {type(data).__name__}")
        return cls(
            temp_id=temp_id,
            server_id=data.get("cluster_id"),
            cluster_name=data.get("cluster_name"),
            is_new_cluster=bool(data.get("is_new_cluster", False)),
        )
