"""
modules/sync/backends.py
--------------------------
Two ways to answer a SyncRequest.

HttpSyncBackend — client side; talks to the planning API with requests:

    POST {base}/v1/planning/{plan_id}/add-item   → {cluster_id, cluster_name, is_new_cluster}
    POST {base}/v1/planning/{plan_id}/save       → {saved: true}
    GET  {base}/v1/planning/{plan_id}            → plan_to_dict snapshot

LocalSyncBackend — server side; what those endpoints run.  Names new
clusters by reverse geocoding their centre (falling back to the client's
provisional name), hands out server ids, and persists saved plans through
the configured plan store.
"""

from __future__ import annotations

import logging
import threading
import uuid
from typing import Optional

import requests

import config
from db.plan_store import get_plan_store
from modules.sync.models import SyncError, SyncKind, SyncPatch, SyncRequest
from modules.tool_usage.geocoding_tool import GeocodingTool
from schemas.planning import Coordinate

logger = logging.getLogger(__name__)


def add_item_body(request: SyncRequest) -> dict:
    """JSON body for POST /add-item (shared by both backends)."""
    return {
        "city_id":         request.city_id,
        "temp_cluster_id": request.temp_id,
        "suggested_name":  request.suggested_name,
        **request.payload,
    }


# ── Client side ───────────────────────────────────────────────────────────────

class HttpSyncBackend:
    """Sends sync requests to a remote planning API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._base = (base_url or config.PLANNING_API_BASE_URL).rstrip("/")
        self._timeout = timeout or config.SYNC_REQUEST_TIMEOUT
        self._session = session or requests.Session()
        token = config.PLANNING_API_TOKEN if token is None else token
        if token:
            self._session.headers["Authorization"] = f"Bearer {token}"

    def _url(self, plan_id: str, suffix: str = "") -> str:
        return f"{self._base}/v1/planning/{plan_id}{suffix}"

    def send(self, request: SyncRequest) -> Optional[SyncPatch]:
        if request.kind is SyncKind.ADD_ITEM:
            res = self._session.post(
                self._url(request.plan_id, "/add-item"),
                json=add_item_body(request),
                timeout=self._timeout,
            )
            res.raise_for_status()
            if request.temp_id is None:
                return None
            try:
                data = res.json()
            except ValueError as exc:
                raise SyncError(f"add-item returned non-JSON body: {exc}") from exc
            return SyncPatch.from_response(request.temp_id, data)

        if request.kind is SyncKind.SAVE_PLAN:
            res = self._session.post(
                self._url(request.plan_id, "/save"),
                json={"plan": request.payload},
                timeout=self._timeout,
            )
            res.raise_for_status()
            return None

        raise SyncError(f"Unsupported sync kind {request.kind!r}")

    def load_plan(self, plan_id: str) -> Optional[dict]:
        """Fetch a saved plan snapshot; None when the server has none."""
        res = self._session.get(self._url(plan_id), timeout=self._timeout)
        if res.status_code == 404:
            return None
        res.raise_for_status()
        return res.json()


# ── Server side ───────────────────────────────────────────────────────────────

class LocalSyncBackend:
    """In-process implementation of the planning API's sync endpoints."""

    def __init__(self, store=None, geocoder: Optional[GeocodingTool] = None) -> None:
        self._store = store or get_plan_store()
        self._geocoder = geocoder or GeocodingTool()
        self._server_ids: dict[tuple[str, str], str] = {}  # (plan_id, temp id) -> server id
        self._lock = threading.Lock()

    def handle_add_item(self, plan_id: str, body: dict) -> dict:
        """
        Assign a server id to the item's cluster and, for a new cluster,
        pick its display name.
        """
        temp_id = body.get("temp_cluster_id")
        cluster = body.get("cluster") or {}
        is_new = bool(body.get("is_new_cluster", False))
        name = cluster.get("name") or body.get("suggested_name") or config.DEFAULT_CLUSTER_NAME

        if is_new and cluster.get("center"):
            center = Coordinate(lat=float(cluster["center"]["lat"]), lng=float(cluster["center"]["lng"]))
            name = self._geocoder.reverse_geocode_area(center) or body.get("suggested_name") or name

        server_id = None
        if temp_id:
            with self._lock:
                key = (plan_id, temp_id)
                server_id = self._server_ids.get(key) or cluster.get("server_id")
                if server_id is None:
                    server_id = f"srv-{uuid.uuid4().hex[:12]}"
                self._server_ids[key] = server_id

        return {"cluster_id": server_id, "cluster_name": name, "is_new_cluster": is_new}

    def save_plan(self, plan_id: str, data: dict) -> None:
        self._store.save(plan_id, data)
        logger.info("Saved plan %s (%d days)", plan_id, len(data.get("days", ())))

    def load_plan(self, plan_id: str) -> Optional[dict]:
        return self._store.load(plan_id)

    def send(self, request: SyncRequest) -> Optional[SyncPatch]:
        if request.kind is SyncKind.ADD_ITEM:
            data = self.handle_add_item(request.plan_id, add_item_body(request))
            return SyncPatch.from_response(request.temp_id, data) if request.temp_id else None
        if request.kind is SyncKind.SAVE_PLAN:
            self.save_plan(request.plan_id, request.payload)
            return None
        raise SyncError(f"Unsupported sync kind {request.kind!r}")
