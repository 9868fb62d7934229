"""Common schemas used across the API."""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialising field names as camelCase."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SchedulerLastRun(BaseModel):
    """Last boost tracking run."""
    success: Optional[bool] = None
    timestamp: Optional[str] = None
    error: Optional[str] = None
    consecutive_failures: int = 0


class SchedulerStatus(BaseModel):
    """Scheduler status for health check."""
    running: bool
    next_run: Optional[str] = None
    job_count: int = 0
    last_run: Optional[SchedulerLastRun] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    timestamp: datetime
    version: str
    environment: str
    scheduler: Optional[SchedulerStatus] = None


class ErrorResponse(BaseModel):
    """Error response."""
    error: str
    message: Optional[str] = None
    context: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
