"""
api/routes/health.py
--------------------
Health-check endpoint — used by load balancers, Docker health probes, etc.
Also reports which storage and geocoding modes the process was started in.
"""
from __future__ import annotations

from fastapi import APIRouter

import config

router = APIRouter()


@router.get("/health", summary="Health check")
def health() -> dict:
    """Returns 200 OK when the service is running."""
    return {
        "status":     "ok",
        "service":    "waycraft-planner",
        "plan_store": config.PLAN_STORE,
        "geocoding":  "stub" if config.USE_STUB_GEOCODING else "google",
    }
