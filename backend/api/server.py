"""
api/server.py
-------------
FastAPI application entry point.

Run dev server:
    cd backend
    uvicorn api.server:app --reload --port 8000

Endpoints:
    GET  /v1/health
    /v1/planning/sessions/...          interactive planning (see api/routes/planning.py)
    POST /v1/planning/{plan_id}/add-item
    POST /v1/planning/{plan_id}/save
    GET  /v1/planning/{plan_id}
"""
from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import health, planning, sync

app = FastAPI(
    title="Waycraft Planning API",
    version="1.0.0",
    description=(
        "Interactive itinerary planning: proximity clustering, cheapest "
        "insertion, undoable schedule edits and optimistic plan sync."
    ),
    docs_url="/docs",
    redoc_url="/redoc",
)

# Allow the web frontend (any origin during development)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router,    prefix="/v1",          tags=["Health"])
app.include_router(planning.router,  prefix="/v1/planning", tags=["Planning"])
app.include_router(sync.router,      prefix="/v1/planning", tags=["Sync"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("api.server:app", host="0.0.0.0", port=8000, reload=True)
