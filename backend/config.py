"""
config.py
---------
Central configuration for the Waycraft planning engine.
All secrets loaded from environment variables — never hard-coded.

The walking-time constants (12 min/km, +20 % path factor) and the undo-history
cap live next to the code that uses them; they are part of the engine's
contract and are not environment knobs.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the backend directory (if it exists) so env vars in that file
# are picked up by os.getenv() below.  Won't override vars already set in the shell.
_env_path = Path(__file__).parent / ".env"
if _env_path.exists():
    load_dotenv(_env_path, override=False)


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


# ── Clustering ────────────────────────────────────────────────────────────────
# Places within this many walking minutes of a cluster centre join that cluster.
CLUSTER_MAX_WALK_MINUTES: int = int(os.getenv("CLUSTER_MAX_WALK_MINUTES", "15"))

# Provisional name for a new cluster when the place carries no area label.
DEFAULT_CLUSTER_NAME: str = os.getenv("DEFAULT_CLUSTER_NAME", "New Area")

# ── Route detour preview ──────────────────────────────────────────────────────
# Average road speed used to turn a landmark detour (km) into minutes.
DETOUR_DRIVING_SPEED_KMH: float = float(os.getenv("DETOUR_DRIVING_SPEED_KMH", "80"))

# ── Remote planning API (used by HttpSyncBackend) ─────────────────────────────
PLANNING_API_BASE_URL: str = os.getenv("PLANNING_API_BASE_URL", "http://localhost:8000")
PLANNING_API_TOKEN:    str = os.getenv("PLANNING_API_TOKEN", "")
# Timeout in seconds for every outbound sync call
SYNC_REQUEST_TIMEOUT: int = int(os.getenv("SYNC_REQUEST_TIMEOUT", "15"))
# Push a full plan snapshot after every successful edit
SYNC_AUTOSAVE: bool = _flag("SYNC_AUTOSAVE", "false")

# ── Reverse geocoding (cluster naming) ────────────────────────────────────────
# Stub mode by default: no external API keys needed.
# Set USE_STUB_GEOCODING=false and supply GOOGLE_MAPS_API_KEY to name clusters
# from the Google Geocoding API.
USE_STUB_GEOCODING:  bool = _flag("USE_STUB_GEOCODING", "true")
GOOGLE_MAPS_API_KEY: str  = os.getenv("GOOGLE_MAPS_API_KEY", "")
GEOCODING_URL:       str  = os.getenv(
    "GEOCODING_URL", "https://maps.googleapis.com/maps/api/geocode/json"
)
GEOCODING_TIMEOUT: int = int(os.getenv("GEOCODING_TIMEOUT", "10"))

# ── Observability ─────────────────────────────────────────────────────────────
# JSONL session logs (StructuredLogger); defaults to backend/logs
LOGS_DIR: str = os.getenv("LOGS_DIR", str(Path(__file__).parent / "logs"))

# ── PostgreSQL ────────────────────────────────────────────────────────────────
POSTGRES_HOST:     str = os.getenv("POSTGRES_HOST",     "localhost")
POSTGRES_PORT:     int = int(os.getenv("POSTGRES_PORT", "5432"))
POSTGRES_DB:       str = os.getenv("POSTGRES_DB",       "waycraft")
POSTGRES_USER:     str = os.getenv("POSTGRES_USER",     "waycraft_user")
POSTGRES_PASSWORD: str = os.getenv("POSTGRES_PASSWORD", "waycraft_pass")
POSTGRES_MIN_CONN: int = int(os.getenv("POSTGRES_MIN_CONN", "1"))
POSTGRES_MAX_CONN: int = int(os.getenv("POSTGRES_MAX_CONN", "10"))

# ── Redis ─────────────────────────────────────────────────────────────────────
REDIS_HOST:     str = os.getenv("REDIS_HOST",     "localhost")
REDIS_PORT:     int = int(os.getenv("REDIS_PORT", "6379"))
REDIS_DB:       int = int(os.getenv("REDIS_DB",   "0"))
REDIS_PASSWORD: str = os.getenv("REDIS_PASSWORD", "")
# plan snapshot TTL: 24 hours, reset on every write
PLAN_CACHE_TTL: int = int(os.getenv("PLAN_CACHE_TTL", "86400"))

# ── Plan storage ──────────────────────────────────────────────────────────────
# "memory" keeps saved plans in-process (dev server, tests);
# "postgres" writes to trip_plans with the Redis cache in front.
PLAN_STORE: str = os.getenv("PLAN_STORE", "memory").lower()
