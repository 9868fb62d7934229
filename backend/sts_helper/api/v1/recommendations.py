"""Staking and unstaking recommendation endpoints."""

from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query

from sts_helper.core.units import format_tokens
from sts_helper.schemas.common import ErrorResponse
from sts_helper.schemas.recommendation import (
    StakeRecommendationResponse,
    UnstakeRecommendationResponse,
    WithdrawalRecommendationSchema,
)
from sts_helper.services.allocation import (
    AllocationInputError,
    UnsatisfiableWithdrawalError,
    WithdrawalConservationError,
)
from sts_helper.services.data.errors import DataSourceError
from sts_helper.services.recommendations import RecommendationService, get_recommendation_service

logger = structlog.get_logger()
router = APIRouter()


def _error(status_code: int, error: str, exc: Exception, **context) -> HTTPException:
    body = ErrorResponse(error=error, message=str(exc), context=context)
    return HTTPException(status_code=status_code, detail=body.model_dump(mode="json"))


@router.get("/unstake-recommendation", response_model=UnstakeRecommendationResponse)
async def unstake_recommendation(
    amount: int = Query(
        ...,
        gt=0,
        description="Amount to unstake in base units (wei, 18 decimals)",
        examples=[1000000000000000000],
    ),
    service: RecommendationService = Depends(get_recommendation_service),
) -> UnstakeRecommendationResponse:
    """Split an unstake request across validators.

    Not-allowed validators are drained first, then over-delegated ones,
    then the largest remaining delegations.
    """
    try:
        plan = await service.plan_withdrawal(amount)
    except UnsatisfiableWithdrawalError as e:
        raise _error(
            422, "Insufficient withdrawable delegation", e,
            requested=str(e.requested),
            remaining=str(e.remaining),
            available={tier: str(v) for tier, v in e.available.items()},
        )
    except AllocationInputError as e:
        logger.error("Unstake calculation input error", error=str(e))
        raise _error(503, "Delegation data unusable", e)
    except DataSourceError as e:
        logger.error("Unstake calculation data source error", error=str(e))
        raise _error(502, "Upstream data source failed", e)
    except WithdrawalConservationError as e:
        logger.error(
            "Withdrawal plan failed conservation check",
            requested=format_tokens(e.requested),
            planned=format_tokens(e.planned),
        )
        raise _error(500, "Internal server error while calculating withdrawals", e)

    return UnstakeRecommendationResponse(
        data=[WithdrawalRecommendationSchema.from_recommendation(r) for r in plan.recommendations],
        requested_amount=str(plan.requested_amount),
        timestamp=datetime.now(timezone.utc),
    )


@router.get(
    "/stake-recommendation",
    response_model=StakeRecommendationResponse,
    response_model_exclude_none=True,
)
async def stake_recommendation(
    service: RecommendationService = Depends(get_recommendation_service),
) -> StakeRecommendationResponse:
    """Delegation analysis with stake-more / avoid-staking recommendations."""
    try:
        advice = await service.stake_recommendation()
    except AllocationInputError as e:
        logger.error("Delegation analysis input error", error=str(e))
        raise _error(503, "Delegation data unusable", e)
    except DataSourceError as e:
        logger.error("Delegation analysis data source error", error=str(e))
        raise _error(502, "Upstream data source failed", e)

    return StakeRecommendationResponse.from_advice(advice, datetime.now(timezone.utc))
