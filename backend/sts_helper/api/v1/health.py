"""Health check endpoint."""

from datetime import datetime, timezone

from fastapi import APIRouter

from sts_helper import __version__
from sts_helper.core.config import get_settings
from sts_helper.core.scheduler import get_scheduler_status
from sts_helper.schemas.common import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Report service status and boost scheduler state."""
    settings = get_settings()
    scheduler_status = get_scheduler_status()
    last_run = scheduler_status.get("last_run") or {}
    degraded = last_run.get("consecutive_failures", 0) > 0

    return HealthResponse(
        status="degraded" if degraded else "healthy",
        timestamp=datetime.now(timezone.utc),
        version=__version__,
        environment=settings.environment,
        scheduler=scheduler_status,
    )
