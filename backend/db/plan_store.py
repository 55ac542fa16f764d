"""
db/plan_store.py
-----------------
Where saved plans live, behind one small interface:

    store.save(plan_id, data)   data = plan_to_dict(...) snapshot
    store.load(plan_id)         → dict | None

  InMemoryPlanStore  — process-local dict (dev server, tests)
  PostgresPlanStore  — trip_plans table, read-through Redis cache

get_plan_store() picks one from config.PLAN_STORE ("memory" | "postgres").
"""

from __future__ import annotations

import copy
import logging
import threading

import redis

import config
from db.connection import get_conn
from db.redis_client import cache_plan, get_cached_plan
from db.repositories import plan_repo

logger = logging.getLogger(__name__)


class InMemoryPlanStore:
    def __init__(self) -> None:
        self._plans: dict[str, dict] = {}
        self._lock = threading.Lock()

    def save(self, plan_id: str, data: dict) -> None:
        with self._lock:
            self._plans[plan_id] = copy.deepcopy(data)

    def load(self, plan_id: str) -> dict | None:
        with self._lock:
            data = self._plans.get(plan_id)
        return copy.deepcopy(data) if data is not None else None


class PostgresPlanStore:
    """Postgres is authoritative; Redis errors only cost a cache miss."""

    def save(self, plan_id: str, data: dict) -> None:
        with get_conn() as conn:
            plan_repo.upsert_plan(conn, plan_id, data)
        try:
            cache_plan(plan_id, data)
        except redis.RedisError as exc:
            logger.warning("Plan cache write failed for %s: %s", plan_id, exc)

    def load(self, plan_id: str) -> dict | None:
        try:
            cached = get_cached_plan(plan_id)
        except redis.RedisError as exc:
            logger.warning("Plan cache read failed for %s: %s", plan_id, exc)
            cached = None
        if cached is not None:
            return cached
        with get_conn() as conn:
            return plan_repo.get_plan(conn, plan_id)


_store = None


def get_plan_store():
    """Return the process-wide plan store selected by config.PLAN_STORE."""
    global _store
    if _store is None:
        if config.PLAN_STORE == "postgres":
            _store = PostgresPlanStore()
        else:
            _store = InMemoryPlanStore()
    return _store
