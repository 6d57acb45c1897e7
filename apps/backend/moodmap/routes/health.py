"""
health.py — Liveness probe for the MoodMap API.

  GET /health → {status, version, database, environment}

`status` is "ok" whenever the process answers. `database` reports whether
the Motor client can still ping the cluster that holds the moodcheckins
collection; when it can't, the map and feed routes fail with 500
"Database unavailable" while this endpoint keeps answering 200.
"""

import logging

from fastapi import APIRouter
from pydantic import BaseModel

from moodmap.core import database as db_module
from moodmap.core.config import settings

logger = logging.getLogger(__name__)
router = APIRouter()

API_VERSION = "0.1.0"


class HealthResponse(BaseModel):
    status: str
    version: str
    database: str   # "connected" | "disconnected"
    environment: str


async def _database_status() -> str:
    # Read through the module so tests can swap db_client.client
    client = db_module.db_client.client
    if client is None:
        return "disconnected"
    try:
        await client.admin.command("ping")
    except Exception as exc:
        logger.warning("Ping to %s failed: %s", settings.mongo_db_name, exc)
        return "disconnected"
    return "connected"


@router.get("", response_model=HealthResponse, summary="Liveness and MongoDB reachability")
async def health_check() -> HealthResponse:
    return HealthResponse(
        status="ok",
        version=API_VERSION,
        database=await _database_status(),
        environment=settings.environment,
    )
