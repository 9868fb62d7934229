"""Delegation allocation core.

This module implements the pure recommendation logic:
- Expected delegation per validator from boost weights
- Over/under/balanced/not-allowed classification
- Three-tier, amount-conserving withdrawal planning
- Stake-more / avoid-staking recommendations

Nothing here performs I/O; inputs come fully resolved from the data layer.
"""

from sts_helper.services.allocation.engine import (
    AllocationConfig,
    AllocationEngine,
    AllocationResult,
    ValidatorAllocation,
    ValidatorStatus,
)
from sts_helper.services.allocation.errors import (
    AllocationError,
    AllocationInputError,
    UnsatisfiableWithdrawalError,
    WithdrawalConservationError,
)
from sts_helper.services.allocation.staking_advisor import (
    StakingAdvice,
    StakingAdvisor,
)
from sts_helper.services.allocation.withdrawal_planner import (
    WithdrawalCandidate,
    WithdrawalPlanner,
    WithdrawalRecommendation,
    WithdrawalTier,
)

__all__ = [
    # Engine
    "AllocationConfig",
    "AllocationEngine",
    "AllocationResult",
    "ValidatorAllocation",
    "ValidatorStatus",
    # Errors
    "AllocationError",
    "AllocationInputError",
    "UnsatisfiableWithdrawalError",
    "WithdrawalConservationError",
    # Staking
    "StakingAdvice",
    "StakingAdvisor",
    # Withdrawals
    "WithdrawalCandidate",
    "WithdrawalPlanner",
    "WithdrawalRecommendation",
    "WithdrawalTier",
]
