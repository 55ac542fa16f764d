"""
db/
----
Storage for saved trip plans.

  PostgreSQL (psycopg2) — durable store
    table: trip_plans (plan_id, data jsonb, updated_at)
    apply: python scripts/run_migrations.py

  Redis (redis-py) — hot cache
    plan:{plan_id}   TTL = PLAN_CACHE_TTL (24 h)

Public exports:
    from db import get_conn, get_redis
    from db.repositories import plan_repo
"""

from db.connection import get_conn, close_pool
from db.redis_client import get_redis

__all__ = ["get_conn", "close_pool", "get_redis"]
