"""Recommendation service wiring the data layer to the allocation core.

Inputs are fetched concurrently, then handed as plain records to the pure
engine, planner and advisor. No state is kept between calls.
"""

import asyncio
from dataclasses import dataclass
from typing import List, Optional, Tuple

import structlog

from sts_helper.core.config import get_settings
from sts_helper.core.units import format_tokens
from sts_helper.services.allocation import (
    AllocationConfig,
    AllocationEngine,
    AllocationResult,
    StakingAdvice,
    StakingAdvisor,
    WithdrawalPlanner,
    WithdrawalRecommendation,
)
from sts_helper.services.data.boost_store import BoostWeightStore
from sts_helper.services.data.chain_client import ChainClient, get_chain_client
from sts_helper.services.data.graphql_client import GraphQLClient, get_graphql_client
from sts_helper.services.data.records import BoostRecord, DelegationRecord

logger = structlog.get_logger()


@dataclass
class WithdrawalPlan:
    requested_amount: int
    recommendations: List[WithdrawalRecommendation]


class RecommendationService:
    """Produces staking and unstaking recommendations from live data."""

    def __init__(
        self,
        config: Optional[AllocationConfig] = None,
        graphql: Optional[GraphQLClient] = None,
        boost_store: Optional[BoostWeightStore] = None,
        chain: Optional[ChainClient] = None,
    ):
        settings = get_settings()
        self.config = config or AllocationConfig.from_settings(settings)
        self.graphql = graphql or get_graphql_client()
        self.boost_store = boost_store or BoostWeightStore()
        self.chain = chain or get_chain_client()
        self.decimals = settings.token_decimals

    async def load_inputs(self) -> Tuple[List[BoostRecord], List[DelegationRecord]]:
        """Fetch boost weights and the delegation snapshot concurrently."""
        boost_records, delegation_records = await asyncio.gather(
            self.boost_store.load(),
            self.graphql.get_delegation_records(),
        )
        return boost_records, delegation_records

    async def compute_allocation(self) -> AllocationResult:
        boost_records, delegation_records = await self.load_inputs()
        return AllocationEngine(self.config).compute(boost_records, delegation_records)

    async def plan_withdrawal(self, amount: int) -> WithdrawalPlan:
        """Split ``amount`` base units across validators to unstake from."""
        allocation = await self.compute_allocation()
        recommendations = WithdrawalPlanner(self.config, self.decimals).plan(amount, allocation)

        logger.info(
            "Withdrawal plan computed",
            requested=format_tokens(amount, self.decimals),
            validators=[r.validator_id for r in recommendations],
            tiers=[r.tier.value for r in recommendations],
        )
        return WithdrawalPlan(requested_amount=amount, recommendations=recommendations)

    async def stake_recommendation(self) -> StakingAdvice:
        """Classify validators and recommend where to stake."""
        allocation = await self.compute_allocation()
        infos = await self.chain.get_validator_infos(v.validator_id for v in allocation.validators)
        return StakingAdvisor(self.config).advise(allocation, infos)


# Lazy singleton
_service: Optional[RecommendationService] = None


def get_recommendation_service() -> RecommendationService:
    """Get the shared service, created on first use."""
    global _service
    if _service is None:
        _service = RecommendationService()
    return _service
