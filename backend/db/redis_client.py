"""
db/redis_client.py
-------------------
redis-py client singleton plus the plan snapshot cache.

Key schema:

  plan:{plan_id}
      Type : String (JSON, see modules/export/plan_export.plan_to_dict)
      TTL  : PLAN_CACHE_TTL (default 86,400 s = 24 hours; reset on each write)

Postgres (db/repositories/plan_repo.py) is the durable copy; this cache
only spares the JSON round-trip through the pool for hot plans.
"""

from __future__ import annotations

import json
from typing import Any

import redis

import config

_client: redis.Redis | None = None


def get_redis() -> redis.Redis:
    """Return the singleton Redis client, creating it on first call."""
    global _client
    if _client is None:
        kwargs: dict[str, Any] = {
            "host":             config.REDIS_HOST,
            "port":             config.REDIS_PORT,
            "db":               config.REDIS_DB,
            "decode_responses": True,   # return str, not bytes
        }
        if config.REDIS_PASSWORD:
            kwargs["password"] = config.REDIS_PASSWORD
        _client = redis.Redis(**kwargs)
    return _client


def _plan_key(plan_id: str) -> str:
    return f"plan:{plan_id}"


def cache_plan(plan_id: str, data: dict) -> None:
    """Write a plan snapshot and reset its TTL."""
    get_redis().setex(_plan_key(plan_id), config.PLAN_CACHE_TTL, json.dumps(data, default=str))


def get_cached_plan(plan_id: str) -> dict | None:
    """Return the cached snapshot, or None on a miss (caller falls back to Postgres)."""
    raw = get_redis().get(_plan_key(plan_id))
    return json.loads(raw) if raw is not None else None
