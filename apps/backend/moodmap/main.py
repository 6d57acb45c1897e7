"""
MoodMap API — Application entry point.

Bootstraps FastAPI, wires up middleware and error handlers, registers
route groups, and manages the MongoDB connection lifecycle.

Extension points:
  - Add new route groups with app.include_router() below
  - Add new middleware in the middleware block
  - Change startup behaviour in the lifespan context manager
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from moodmap.core.config import settings
from moodmap.core.database import close_mongo_connection, connect_to_mongo
from moodmap.core.errors import (
    MoodMapError,
    error_body,
    mood_map_error_handler,
    rate_limit_error_handler,
)
from moodmap.core.rate_limit import limiter
from moodmap.routes.feed import router as feed_router
from moodmap.routes.health import router as health_router
from moodmap.routes.map import router as map_router

# ─── Logging ───────────────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


# ─── Lifespan ──────────────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage startup and shutdown lifecycle.

    Code before `yield` runs on startup; code after runs on shutdown.
    """
    logger.info("Starting MoodMap API (env: %s)", settings.environment)
    await connect_to_mongo()
    yield
    logger.info("Shutting down MoodMap API")
    await close_mongo_connection()


# ─── App ───────────────────────────────────────────────────────────────────────
app = FastAPI(
    title="MoodMap API",
    description="Map, heatmap, nearby, area statistics and feed queries over public mood check-ins.",
    version="0.1.0",
    lifespan=lifespan,
    # Disable docs in production to reduce attack surface
    docs_url="/docs" if settings.environment != "production" else None,
    redoc_url="/redoc" if settings.environment != "production" else None,
)


# ─── Rate limiting ─────────────────────────────────────────────────────────────
# Routes opt-in with @limiter.limit(...) + a `request: Request` parameter.
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_error_handler)


# ─── Error envelope ────────────────────────────────────────────────────────────
app.add_exception_handler(MoodMapError, mood_map_error_handler)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort: log the traceback, return the envelope without internals."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=error_body("Internal server error", type(exc).__name__))


# ─── Middleware ─────────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ─── Routes ────────────────────────────────────────────────────────────────────
app.include_router(health_router, prefix="/health", tags=["health"])
app.include_router(map_router)
app.include_router(feed_router)


@app.get("/", tags=["root"])
async def root():
    """API root — basic metadata."""
    return {
        "name": "MoodMap API",
        "version": "0.1.0",
        "status": "running",
        "environment": settings.environment,
        "docs": "/docs",
    }
