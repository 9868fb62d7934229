"""FastAPI application entry point."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from sts_helper import __version__
from sts_helper.api.v1 import router as api_router
from sts_helper.core.scheduler import start_scheduler, stop_scheduler

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info("Starting stS Helper API", version=__version__)

    # Background boost tracking (no-op unless enabled)
    start_scheduler()

    yield

    logger.info("Shutting down...")
    stop_scheduler()
    logger.info("Cleanup complete")


# Create FastAPI app
app = FastAPI(
    title="stS Helper API",
    description="Validator staking/unstaking recommendations and delegation boost calculations",
    version=__version__,
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
)

# Public read-only API
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_router)


@app.get("/")
async def root(request: Request):
    """Root endpoint listing the available routes."""
    base_url = str(request.base_url).rstrip("/")
    return {
        "name": "stS Helper API",
        "version": __version__,
        "endpoints": {
            "unstakeRecommendation": f"{base_url}/api/v1/unstake-recommendation?amount=1000000000000000000",
            "stakeRecommendation": f"{base_url}/api/v1/stake-recommendation",
            "boostWeights": f"{base_url}/api/v1/boost-weights",
            "health": f"{base_url}/api/v1/health",
        },
        "docs": "/api/docs",
    }
