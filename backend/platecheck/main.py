"""
PlateCheck FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from platecheck.api.routes.vehicles import router as vehicles_router
from platecheck.config import settings
from platecheck.db import close_db, get_db
from platecheck.services.plate_lock import close_redis_client, get_redis_client

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    # Startup
    logger.info(f"Starting PlateCheck API ({'test' if settings.test_mode else 'production'} provider mode)...")
    if not settings.checkcard_api_key:
        logger.warning("CHECKCARD_API_KEY not set - every provider call will fail and lookups will be empty")

    try:
        client = await get_redis_client()
        await client.ping()
        logger.info("Redis connection initialized")
    except Exception as e:
        logger.warning(f"Redis connection failed (per-plate locks are process-local): {e}")

    try:
        await get_db()
        logger.info("SQLite database initialized")
    except Exception as e:
        logger.warning(f"SQLite initialization failed (cache disabled): {e}")

    yield

    # Shutdown
    logger.info("Shutting down PlateCheck API...")
    await close_redis_client()
    await close_db()


# Create FastAPI app
app = FastAPI(
    title=settings.api_title,
    version=settings.api_version,
    debug=settings.debug,
    lifespan=lifespan,
)

# CORS middleware for frontend access
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, specify actual frontend origin
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(vehicles_router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "PlateCheck API",
        "version": settings.api_version,
        "endpoints": {
            "lookup": "/vehicles/{plate}?use_cache=true&mileage=...",
            "cache": "/vehicles/{plate}/cache",
            "docs": "/docs",
        },
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}
