"""
db/connection.py
-----------------
psycopg2 ThreadedConnectionPool, shared across the process.

Usage:
    from db.connection import get_conn

    with get_conn() as conn:
        plan_repo.upsert_plan(conn, plan_id, data)

The context manager borrows a connection, commits on clean exit, rolls back
on exception, and always hands the connection back to the pool.

Connection settings come from config.POSTGRES_* (database ``waycraft`` by
default).
"""

from __future__ import annotations

import psycopg2
import psycopg2.pool
from contextlib import contextmanager
from typing import Generator

import config

# initialised lazily on first get_conn()
_pool: psycopg2.pool.ThreadedConnectionPool | None = None


def get_pool() -> psycopg2.pool.ThreadedConnectionPool:
    """Return the singleton connection pool, creating it on first call."""
    global _pool
    if _pool is None or _pool.closed:
        _pool = psycopg2.pool.ThreadedConnectionPool(
            minconn=config.POSTGRES_MIN_CONN,
            maxconn=config.POSTGRES_MAX_CONN,
            host=config.POSTGRES_HOST,
            port=config.POSTGRES_PORT,
            dbname=config.POSTGRES_DB,
            user=config.POSTGRES_USER,
            password=config.POSTGRES_PASSWORD,
        )
    return _pool


@contextmanager
def get_conn() -> Generator:
    """Borrow a connection: commit on success, roll back and re-raise on error."""
    pool = get_pool()
    conn = pool.getconn()
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        pool.putconn(conn)


def close_pool() -> None:
    """Close all pooled connections (application shutdown)."""
    global _pool
    if _pool and not _pool.closed:
        _pool.closeall()
    _pool = None
