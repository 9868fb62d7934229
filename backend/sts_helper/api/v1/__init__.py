"""API v1 router."""

from fastapi import APIRouter

from sts_helper.api.v1 import boost, health, recommendations

router = APIRouter(prefix="/api/v1")

router.include_router(health.router, tags=["Health"])
router.include_router(recommendations.router, tags=["Recommendations"])
router.include_router(boost.router, prefix="/boost-weights", tags=["Boost Weights"])
