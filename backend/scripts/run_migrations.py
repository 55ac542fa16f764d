#!/usr/bin/env python
"""
scripts/run_migrations.py
--------------------------
Creates the trip_plans table (db/repositories/plan_repo.CREATE_TABLE_SQL) in
the configured Postgres database.

Usage:
    python scripts/run_migrations.py [--dry-run]

Exit codes:
    0 — schema applied (or dry-run completed)
    1 — connection failed or SQL error

Environment variables (all have defaults — override as needed):
    POSTGRES_HOST, POSTGRES_PORT, POSTGRES_DB, POSTGRES_USER, POSTGRES_PASSWORD
    (same vars used by db/connection.py)

Re-running is idempotent: the DDL uses CREATE TABLE IF NOT EXISTS.
"""

from __future__ import annotations

import argparse
import pathlib
import sys

# Add the backend directory to sys.path so that config is importable
_BACKEND_DIR = pathlib.Path(__file__).resolve().parent.parent
sys.path.insert(0, str(_BACKEND_DIR))

import psycopg2

import config
from db.connection import close_pool, get_conn
from db.repositories import plan_repo


def run(dry_run: bool = False) -> None:
    print(f"[migrations] Target DB  : {config.POSTGRES_DB} @ "
          f"{config.POSTGRES_HOST}:{config.POSTGRES_PORT}")

    if dry_run:
        print("[migrations] DRY-RUN — no changes applied.")
        print(plan_repo.CREATE_TABLE_SQL)
        return

    try:
        with get_conn() as conn:
            plan_repo.ensure_schema(conn)
    except psycopg2.Error as exc:
        print(f"[migrations] ROLLED BACK: {exc.pgerror or exc}")
        raise
    finally:
        close_pool()
    print("[migrations] Done — trip_plans is ready.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Apply Postgres schema migrations.")
    parser.add_argument(
        "--dry-run", action="store_true",
        help="Print the DDL without executing it.",
    )
    args = parser.parse_args()
    try:
        run(dry_run=args.dry_run)
    except Exception as exc:
        print(f"[migrations] ERROR: {exc}", file=sys.stderr)
        sys.exit(1)
