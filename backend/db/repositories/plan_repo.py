"""
db/repositories/plan_repo.py
------------------------------
Persistence for whole-plan snapshots in the ``trip_plans`` table.

    CREATE TABLE IF NOT EXISTS trip_plans (
        plan_id     TEXT PRIMARY KEY,
        data        JSONB NOT NULL,
        updated_at  TIMESTAMPTZ NOT NULL DEFAULT now()
    );

All functions accept a psycopg2 connection object.
Commit/rollback is managed by the caller via db.connection.get_conn().
"""

from __future__ import annotations

import json

CREATE_TABLE_SQL = """
    CREATE TABLE IF NOT EXISTS trip_plans (
        plan_id     TEXT PRIMARY KEY,
        data        JSONB NOT NULL,
        updated_at  TIMESTAMPTZ NOT NULL DEFAULT now()
    )
"""


def ensure_schema(conn) -> None:
    with conn.cursor() as cur:
        cur.execute(CREATE_TABLE_SQL)


def upsert_plan(conn, plan_id: str, data: dict) -> None:
    """Insert or overwrite the snapshot for ``plan_id``."""
    sql = """
        INSERT INTO trip_plans (plan_id, data, updated_at)
        VALUES (%s, %s::jsonb, now())
        ON CONFLICT (plan_id)
        DO UPDATE SET data = EXCLUDED.data, updated_at = now()
    """
    with conn.cursor() as cur:
        cur.execute(sql, (plan_id, json.dumps(data, default=str)))


def get_plan(conn, plan_id: str) -> dict | None:
    """Return the stored snapshot dict, or None if the plan was never saved."""
    with conn.cursor() as cur:
        cur.execute("SELECT data FROM trip_plans WHERE plan_id = %s", (plan_id,))
        row = cur.fetchone()
    if row is None:
        return None
    data = row[0]
    # psycopg2 decodes jsonb to dict; text fallback for plain json columns
    return json.loads(data) if isinstance(data, str) else data
