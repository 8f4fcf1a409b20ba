from __future__ import annotations

import logging
import os
from typing import List

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.config import load_config
from src.api.routers import alerts, graph, health, namespace_deps
from src.api.state import get_state, init_state

openapi_tags = [
    {"name": "Health", "description": "Service health and liveness."},
    {"name": "Graph", "description": "Namespace/service dependency graph and dashboard composition."},
    {"name": "Alerts", "description": "Alert aggregation: counts, MTTA, MTTR, open duration."},
    {"name": "Namespace dependencies", "description": "Declared namespace -> namespace dependencies."},
]

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Service Graph API",
    description=(
        "Backend API for the service dependency dashboard. Topology and alert records are read from MongoDB; "
        "the filtered graph and alert statistics are recomputed on every request."
    ),
    version="0.1.0",
    openapi_tags=openapi_tags,
)

# Initialize typed app state (config + Mongo manager + record store)
init_state(app, load_config())


@app.on_event("startup")
async def _on_startup() -> None:
    """Startup hook: connect to Mongo, validate connectivity and ensure indexes."""
    state = get_state(app)

    # Connect + verify early so a misconfigured store fails at boot rather than per request.
    state.mongo.connect_app()
    if not state.mongo.ping():
        raise RuntimeError("Mongo connectivity check failed during startup. Verify BACKEND_MONGO_URI.")

    state.mongo.init_indexes()
    logger.info("Service graph API started (db=%s)", state.config.mongo_db_name)


@app.on_event("shutdown")
async def _on_shutdown() -> None:
    """Shutdown hook: close Mongo connections."""
    get_state(app).mongo.close()


def _env_frontend_url() -> str | None:
    # Support both:
    # - standardized: FRONTEND_URL
    # - legacy: REACT_APP_FRONTEND_URL
    return os.getenv("FRONTEND_URL") or os.getenv("REACT_APP_FRONTEND_URL")


def _env_cors_extra_origins() -> List[str]:
    # Comma-separated list for preview deployments, etc.
    raw = os.getenv("CORS_ALLOW_ORIGINS") or ""
    parts = [p.strip() for p in raw.split(",") if p.strip()]
    return parts


# CORS: allow local frontend by default, plus explicit frontend URL and optional extra origins.
allowed_origins: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]
frontend_url = _env_frontend_url()
if frontend_url:
    allowed_origins.append(frontend_url)
allowed_origins.extend(_env_cors_extra_origins())

# De-dupe while preserving order
_seen = set()
allowed_origins = [o for o in allowed_origins if not (o in _seen or _seen.add(o))]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(graph.router)
app.include_router(alerts.router)
app.include_router(namespace_deps.router)
