"""Staking advisor turning allocation results into stake recommendations.

Under-delegated validators with room to receive stake are recommended;
those without capacity (or inactive) are flagged to avoid.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Mapping, Optional

import structlog

from sts_helper.services.allocation.engine import (
    AllocationConfig,
    AllocationResult,
    ValidatorAllocation,
    ValidatorStatus,
)
from sts_helper.services.data.records import ValidatorInfo, validator_sort_key

logger = structlog.get_logger()

ZERO = Decimal("0")


@dataclass(frozen=True)
class StakeRecommendation:
    validator_id: str
    recommended_amount: Decimal
    reason: str
    priority: str  # "high" or "medium"


@dataclass(frozen=True)
class AvoidStakingRecommendation:
    validator_id: str
    reason: str


@dataclass(frozen=True)
class ValidatorReport:
    """Allocation row enriched with capacity data."""
    allocation: ValidatorAllocation
    info: Optional[ValidatorInfo] = None

    @property
    def validator_id(self) -> str:
        return self.allocation.validator_id

    @property
    def max_delegation(self) -> Decimal:
        return self.info.max_delegation if self.info else ZERO

    @property
    def remaining_capacity(self) -> Decimal:
        return self.info.remaining_capacity if self.info else ZERO

    @property
    def can_receive_delegation(self) -> bool:
        return bool(self.info and self.info.can_receive_delegation)


@dataclass
class StakingAdvice:
    """Full staking recommendation for the API layer."""
    total_delegation: Decimal
    total_boosted_delegation: Decimal
    allowed_validators: List[str]
    stake_more: List[StakeRecommendation] = field(default_factory=list)
    avoid_staking: List[AvoidStakingRecommendation] = field(default_factory=list)
    validators: Dict[ValidatorStatus, List[ValidatorReport]] = field(default_factory=dict)

    @property
    def validator_counts(self) -> Dict[str, int]:
        counts = {status.value: len(self.validators.get(status, [])) for status in ValidatorStatus}
        counts["total"] = sum(counts.values())
        return counts


class StakingAdvisor:
    """Formats allocation output into stake-more / avoid-staking lists."""

    def __init__(self, config: AllocationConfig):
        self.config = config

    def advise(
        self,
        allocation: AllocationResult,
        validator_infos: Mapping[str, ValidatorInfo],
    ) -> StakingAdvice:
        reports = [
            ValidatorReport(allocation=v, info=validator_infos.get(v.validator_id))
            for v in allocation.validators
        ]

        grouped: Dict[ValidatorStatus, List[ValidatorReport]] = {}
        for status in ValidatorStatus:
            grouped[status] = sorted(
                (r for r in reports if r.allocation.status == status),
                key=lambda r: validator_sort_key(r.validator_id),
                reverse=True,
            )

        under_delegated = [
            r for r in reports if r.allocation.status == ValidatorStatus.UNDER_DELEGATED
        ]

        stake_more = sorted(
            (
                StakeRecommendation(
                    validator_id=r.validator_id,
                    recommended_amount=abs(r.allocation.difference),
                    reason="Under-delegated with available capacity",
                    priority="high" if r.allocation.boost_weight > 0 else "medium",
                )
                for r in under_delegated
                if r.can_receive_delegation
            ),
            key=lambda rec: rec.recommended_amount,
            reverse=True,
        )

        avoid_staking = [
            AvoidStakingRecommendation(
                validator_id=r.validator_id,
                reason=self._avoid_reason(r),
            )
            for r in under_delegated
            if not r.can_receive_delegation
        ]

        logger.info(
            "Staking advice computed",
            stake_more=len(stake_more),
            avoid_staking=len(avoid_staking),
            **{status.value: len(items) for status, items in grouped.items()},
        )

        return StakingAdvice(
            total_delegation=allocation.total_delegation,
            total_boosted_delegation=allocation.total_boosted_amount,
            allowed_validators=sorted(self.config.allowed_validators, key=validator_sort_key),
            stake_more=stake_more,
            avoid_staking=avoid_staking,
            validators=grouped,
        )

    def _avoid_reason(self, report: ValidatorReport) -> str:
        if report.info is None:
            return "Validator info unavailable"
        if not report.info.is_active:
            return "Validator inactive"
        if report.remaining_capacity <= 0:
            return "At maximum capacity"
        return "Low capacity"

