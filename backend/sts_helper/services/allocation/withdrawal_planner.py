"""Withdrawal planner splitting an unstake request across validators.

Works in integer base units so the plan always sums exactly to the request.
Sources are drained in three tiers:

1. Not-allowed validators, largest delegation first, down to zero
2. Over-delegated allowed validators, largest surplus first, down to expected
3. Any allowed validator, largest delegation first, whatever is left

The operator's own validator is never a withdrawal source. A request that
the three tiers cannot cover fails instead of returning a partial plan.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Sequence, Tuple

import structlog

from sts_helper.core.units import TOKEN_DECIMALS, format_tokens, to_base_units
from sts_helper.services.allocation.engine import (
    AllocationConfig,
    AllocationResult,
    ValidatorStatus,
)
from sts_helper.services.allocation.errors import (
    AllocationInputError,
    UnsatisfiableWithdrawalError,
    WithdrawalConservationError,
)

logger = structlog.get_logger()


class WithdrawalTier(str, Enum):
    """Priority tier a withdrawal was drawn from."""
    NOT_ALLOWED = "not_allowed"
    OVER_DELEGATED = "over_delegated"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class WithdrawalCandidate:
    """A validator that can supply stake, amounts in base units."""
    validator_id: str
    current_delegation: int
    surplus: int = 0  # withdrawable down to expected, at most current; 0 unless over-delegated


@dataclass(frozen=True)
class WithdrawalRecommendation:
    """Amount to withdraw from one validator, in base units."""
    validator_id: str
    withdrawal_amount: int
    tier: WithdrawalTier


class WithdrawalPlanner:
    """Builds amount-conserving withdrawal plans from an allocation result."""

    def __init__(self, config: AllocationConfig, decimals: int = TOKEN_DECIMALS):
        self.config = config
        self.decimals = decimals
        self.surplus_threshold = to_base_units(config.balanced_tolerance, decimals)

    def plan(
        self,
        withdrawal_amount: int,
        allocation: AllocationResult,
    ) -> List[WithdrawalRecommendation]:
        """Plan a withdrawal of ``withdrawal_amount`` base units.

        Raises:
            AllocationInputError: Amount is not a positive integer
            UnsatisfiableWithdrawalError: Not enough stake across all tiers
            WithdrawalConservationError: Planned total differs from request
        """
        not_allowed, allowed = self.build_candidates(allocation)
        return self.allocate(withdrawal_amount, not_allowed, allowed)

    def build_candidates(
        self,
        allocation: AllocationResult,
    ) -> Tuple[List[WithdrawalCandidate], List[WithdrawalCandidate]]:
        """Split the allocation into not-allowed and allowed candidates.

        Snapshot order is preserved so sorting ties stay reproducible.
        """
        not_allowed: List[WithdrawalCandidate] = []
        allowed: List[WithdrawalCandidate] = []

        for validator in allocation.validators:
            current = to_base_units(validator.current_delegation, self.decimals)

            if validator.status == ValidatorStatus.NOT_ALLOWED:
                if current > 0:
                    not_allowed.append(WithdrawalCandidate(
                        validator_id=validator.validator_id,
                        current_delegation=current,
                        surplus=current,
                    ))
                continue

            if validator.validator_id == self.config.own_validator_id:
                continue

            difference = current - to_base_units(validator.expected_delegation, self.decimals)
            is_over = (
                validator.status == ValidatorStatus.OVER_DELEGATED
                and difference > self.surplus_threshold
            )
            allowed.append(WithdrawalCandidate(
                validator_id=validator.validator_id,
                current_delegation=current,
                # A negative expected share would otherwise exceed the delegation
                surplus=min(difference, current) if is_over else 0,
            ))

        return not_allowed, allowed

    def allocate(
        self,
        withdrawal_amount: int,
        not_allowed: Sequence[WithdrawalCandidate],
        allowed: Sequence[WithdrawalCandidate],
    ) -> List[WithdrawalRecommendation]:
        """Run the three withdrawal tiers over prepared candidates."""
        if isinstance(withdrawal_amount, bool) or not isinstance(withdrawal_amount, int):
            raise AllocationInputError(
                f"Withdrawal amount must be an integer in base units, got {withdrawal_amount!r}"
            )
        if withdrawal_amount <= 0:
            raise AllocationInputError("Withdrawal amount must be positive")

        recommendations: List[WithdrawalRecommendation] = []
        planned: Dict[str, int] = {}
        remaining = withdrawal_amount

        def take(candidate: WithdrawalCandidate, available: int, tier: WithdrawalTier) -> None:
            nonlocal remaining
            amount = min(available, remaining)
            if amount <= 0:
                return
            recommendations.append(WithdrawalRecommendation(
                validator_id=candidate.validator_id,
                withdrawal_amount=amount,
                tier=tier,
            ))
            planned[candidate.validator_id] = planned.get(candidate.validator_id, 0) + amount
            remaining -= amount

        # Tier 1: drain not-allowed validators, even sub-unit dust
        for candidate in sorted(not_allowed, key=lambda c: -c.current_delegation):
            if remaining <= 0:
                break
            take(candidate, candidate.current_delegation, WithdrawalTier.NOT_ALLOWED)

        # Tier 2: shave surplus off over-delegated validators
        if remaining > 0:
            over_delegated = sorted(
                (c for c in allowed if c.surplus > 0),
                key=lambda c: -c.surplus,
            )
            if not over_delegated:
                logger.info(
                    "No over-delegated allowed validators for remaining withdrawal",
                    remaining=format_tokens(remaining, self.decimals),
                )
            for candidate in over_delegated:
                if remaining <= 0:
                    break
                take(candidate, candidate.surplus, WithdrawalTier.OVER_DELEGATED)

        # Tier 3: fall back to the largest allowed delegations
        if remaining > 0:
            for candidate in sorted(allowed, key=lambda c: -c.current_delegation):
                if remaining <= 0:
                    break
                withdrawable = candidate.current_delegation - planned.get(candidate.validator_id, 0)
                take(candidate, withdrawable, WithdrawalTier.FALLBACK)

        if remaining > 0:
            available = self._available_by_tier(not_allowed, allowed)
            logger.warning(
                "Unable to satisfy withdrawal request",
                requested=format_tokens(withdrawal_amount, self.decimals),
                remaining=format_tokens(remaining, self.decimals),
                **{f"available_{tier}": format_tokens(amount, self.decimals)
                   for tier, amount in available.items()},
            )
            raise UnsatisfiableWithdrawalError(withdrawal_amount, remaining, available)

        total = sum(r.withdrawal_amount for r in recommendations)
        if total != withdrawal_amount:
            raise WithdrawalConservationError(withdrawal_amount, total)

        return recommendations

    @staticmethod
    def _available_by_tier(
        not_allowed: Sequence[WithdrawalCandidate],
        allowed: Sequence[WithdrawalCandidate],
    ) -> Dict[str, int]:
        # Fallback covers whatever the over-delegated tier leaves of each delegation
        return {
            WithdrawalTier.NOT_ALLOWED.value: sum(c.current_delegation for c in not_allowed),
            WithdrawalTier.OVER_DELEGATED.value: sum(c.surplus for c in allowed),
            WithdrawalTier.FALLBACK.value: sum(
                max(0, c.current_delegation - c.surplus) for c in allowed
            ),
        }
