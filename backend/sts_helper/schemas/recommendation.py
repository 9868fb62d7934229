"""Staking and unstaking recommendation schemas.

Unstake amounts are decimal strings of base units (18 decimals) so large
values survive JSON clients. Stake recommendation amounts are whole S.
"""

from datetime import datetime
from typing import List, Optional

from sts_helper.schemas.common import CamelModel
from sts_helper.services.allocation import StakingAdvice, ValidatorStatus, WithdrawalRecommendation
from sts_helper.services.allocation.staking_advisor import ValidatorReport


# ==================== Unstake ====================

class WithdrawalRecommendationSchema(CamelModel):
    validator_id: str
    withdrawal_amount: str

    @classmethod
    def from_recommendation(cls, rec: WithdrawalRecommendation) -> "WithdrawalRecommendationSchema":
        return cls(validator_id=rec.validator_id, withdrawal_amount=str(rec.withdrawal_amount))


class UnstakeRecommendationResponse(CamelModel):
    data: List[WithdrawalRecommendationSchema]
    requested_amount: str
    timestamp: datetime


# ==================== Stake ====================

class ValidatorCounts(CamelModel):
    over_delegated: int
    under_delegated: int
    balanced: int
    not_allowed: int
    total: int


class StakeSummary(CamelModel):
    total_delegation: float
    total_boosted_delegation: float
    allowed_validators: List[str]
    validator_counts: ValidatorCounts


class StakeMoreItem(CamelModel):
    validator_id: str
    recommended_amount: float
    reason: str
    priority: str


class AvoidStakingItem(CamelModel):
    validator_id: str
    reason: str


class StakeRecommendations(CamelModel):
    stake_more: List[StakeMoreItem]
    avoid_staking: List[AvoidStakingItem]


class ValidatorDetail(CamelModel):
    """Per-validator allocation row. Capacity fields are omitted for not-allowed validators."""
    validator_id: str
    current_delegation: float
    expected_delegation: float
    difference: float
    status: str
    sts_balance: Optional[float] = None
    boost_weight: Optional[float] = None
    max_delegation: Optional[float] = None
    remaining_capacity: Optional[float] = None
    can_receive_delegation: Optional[bool] = None

    @classmethod
    def from_report(cls, report: ValidatorReport) -> "ValidatorDetail":
        allocation = report.allocation
        fields = dict(
            validator_id=allocation.validator_id,
            current_delegation=float(allocation.current_delegation),
            expected_delegation=float(allocation.expected_delegation),
            difference=float(allocation.difference),
            status=allocation.status.value,
        )
        if allocation.is_allowed:
            fields.update(
                sts_balance=float(allocation.boost.sts_balance) if allocation.boost else 0.0,
                boost_weight=float(allocation.boost_weight),
                max_delegation=float(report.max_delegation),
                remaining_capacity=float(report.remaining_capacity),
                can_receive_delegation=report.can_receive_delegation,
            )
        return cls(**fields)


class ValidatorsByStatus(CamelModel):
    over_delegated: List[ValidatorDetail]
    under_delegated: List[ValidatorDetail]
    balanced: List[ValidatorDetail]
    not_allowed: List[ValidatorDetail]


class StakeRecommendationResponse(CamelModel):
    summary: StakeSummary
    recommendations: StakeRecommendations
    validators: ValidatorsByStatus
    timestamp: datetime

    @classmethod
    def from_advice(cls, advice: StakingAdvice, timestamp: datetime) -> "StakeRecommendationResponse":
        counts = advice.validator_counts

        def details(status: ValidatorStatus) -> List[ValidatorDetail]:
            return [ValidatorDetail.from_report(r) for r in advice.validators.get(status, [])]

        return cls(
            summary=StakeSummary(
                total_delegation=float(advice.total_delegation),
                total_boosted_delegation=float(advice.total_boosted_delegation),
                allowed_validators=advice.allowed_validators,
                validator_counts=ValidatorCounts(
                    over_delegated=counts[ValidatorStatus.OVER_DELEGATED.value],
                    under_delegated=counts[ValidatorStatus.UNDER_DELEGATED.value],
                    balanced=counts[ValidatorStatus.BALANCED.value],
                    not_allowed=counts[ValidatorStatus.NOT_ALLOWED.value],
                    total=counts["total"],
                ),
            ),
            recommendations=StakeRecommendations(
                stake_more=[
                    StakeMoreItem(
                        validator_id=r.validator_id,
                        recommended_amount=float(r.recommended_amount),
                        reason=r.reason,
                        priority=r.priority,
                    )
                    for r in advice.stake_more
                ],
                avoid_staking=[
                    AvoidStakingItem(validator_id=r.validator_id, reason=r.reason)
                    for r in advice.avoid_staking
                ],
            ),
            validators=ValidatorsByStatus(
                over_delegated=details(ValidatorStatus.OVER_DELEGATED),
                under_delegated=details(ValidatorStatus.UNDER_DELEGATED),
                balanced=details(ValidatorStatus.BALANCED),
                not_allowed=details(ValidatorStatus.NOT_ALLOWED),
            ),
            timestamp=timestamp,
        )


# ==================== Boost weights ====================

class BoostRecordSchema(CamelModel):
    validator_id: str
    sts_balance: float
    s_balance: float
    weight: float


class BoostWeightsResponse(CamelModel):
    data: List[BoostRecordSchema]
    total_weight: float
    timestamp: datetime


class BoostTrackingSummary(CamelModel):
    total_sts: float
    sts_rate: float
    validator_count: int
    csv_file_name: str
    written: bool


class BoostTrackingResponse(CamelModel):
    summary: BoostTrackingSummary
    validators: List[BoostRecordSchema]
    csv_data: str
    timestamp: datetime

