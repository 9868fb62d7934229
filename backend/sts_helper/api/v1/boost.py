"""Boost weight endpoints."""

from datetime import datetime, timezone
from decimal import Decimal

import structlog
from fastapi import APIRouter, Depends, HTTPException

from sts_helper.schemas.recommendation import (
    BoostRecordSchema,
    BoostTrackingResponse,
    BoostTrackingSummary,
    BoostWeightsResponse,
)
from sts_helper.services.boost import BoostTracker
from sts_helper.services.data.boost_store import BoostWeightStore
from sts_helper.services.data.errors import DataSourceError
from sts_helper.services.data.records import BoostRecord

logger = structlog.get_logger()
router = APIRouter()


def get_boost_store() -> BoostWeightStore:
    return BoostWeightStore()


def get_boost_tracker() -> BoostTracker:
    return BoostTracker()


def _record_schema(record: BoostRecord) -> BoostRecordSchema:
    return BoostRecordSchema(
        validator_id=record.validator_id,
        sts_balance=float(record.sts_balance),
        s_balance=float(record.s_balance),
        weight=float(record.weight),
    )


@router.get("", response_model=BoostWeightsResponse)
async def get_boost_weights(
    store: BoostWeightStore = Depends(get_boost_store),
) -> BoostWeightsResponse:
    """Current boost weights from the configured CSV source."""
    try:
        records = await store.load()
    except DataSourceError as e:
        logger.error("Failed to load boost weights", error=str(e))
        raise HTTPException(status_code=502, detail=str(e))

    return BoostWeightsResponse(
        data=[_record_schema(r) for r in records],
        total_weight=float(sum((r.weight for r in records), Decimal("0"))),
        timestamp=datetime.now(timezone.utc),
    )


@router.post("/track", response_model=BoostTrackingResponse)
async def track_boost_weights(
    tracker: BoostTracker = Depends(get_boost_tracker),
) -> BoostTrackingResponse:
    """Recompute boost weights from affiliated wallet balances."""
    try:
        result = await tracker.run()
    except DataSourceError as e:
        logger.error("Boost tracking failed", error=str(e))
        raise HTTPException(status_code=502, detail=str(e))

    return BoostTrackingResponse(
        summary=BoostTrackingSummary(
            total_sts=float(result.total_sts),
            sts_rate=float(result.sts_rate),
            validator_count=result.validator_count,
            csv_file_name=result.csv_path,
            written=result.written,
        ),
        validators=[_record_schema(r) for r in result.records],
        csv_data=result.csv_data,
        timestamp=datetime.now(timezone.utc),
    )
