"""Tests for the three-tier withdrawal planner."""

from decimal import Decimal

import pytest

from sts_helper.core.units import ONE_TOKEN
from sts_helper.services.allocation import (
    AllocationConfig,
    AllocationEngine,
    AllocationInputError,
    AllocationResult,
    UnsatisfiableWithdrawalError,
    ValidatorStatus,
    WithdrawalCandidate,
    WithdrawalPlanner,
    WithdrawalTier,
)
from sts_helper.services.allocation.engine import ValidatorAllocation


def tokens(amount) -> int:
    return int(Decimal(str(amount)) * ONE_TOKEN)


def plan_pairs(plan):
    return [(r.validator_id, r.withdrawal_amount) for r in plan]


@pytest.fixture
def planner(allocation_config):
    return WithdrawalPlanner(allocation_config)


class TestWithdrawalTiers:
    """Tier priority and amounts."""

    def test_not_allowed_covers_request(self, allocation_config, planner, make_delegations):
        """A not-allowed validator alone covers a smaller request."""
        allocation = AllocationEngine(allocation_config).compute(
            [], make_delegations(("9", 50), ("1", 10), ("2", 10))
        )
        plan = planner.plan(tokens(30), allocation)

        assert plan_pairs(plan) == [("9", tokens(30))]
        assert plan[0].tier == WithdrawalTier.NOT_ALLOWED

    def test_spills_into_over_delegated(self, planner):
        """Not-allowed is drained first, then over-delegated surplus."""
        not_allowed = [WithdrawalCandidate("9", tokens(50), surplus=tokens(50))]
        allowed = [
            WithdrawalCandidate("1", tokens(100), surplus=tokens(40)),
            WithdrawalCandidate("2", tokens(20)),
        ]
        plan = planner.allocate(tokens(80), not_allowed, allowed)

        assert plan_pairs(plan) == [("9", tokens(50)), ("1", tokens(30))]
        assert [r.tier for r in plan] == [WithdrawalTier.NOT_ALLOWED, WithdrawalTier.OVER_DELEGATED]
        assert sum(r.withdrawal_amount for r in plan) == tokens(80)

    def test_not_allowed_sorted_by_delegation(self, planner):
        not_allowed = [
            WithdrawalCandidate("7", tokens(5), surplus=tokens(5)),
            WithdrawalCandidate("8", tokens(20), surplus=tokens(20)),
        ]
        plan = planner.allocate(tokens(22), not_allowed, [])
        assert plan_pairs(plan) == [("8", tokens(20)), ("7", tokens(2))]

    def test_over_delegated_sorted_by_surplus(self, planner):
        allowed = [
            WithdrawalCandidate("1", tokens(500), surplus=tokens(10)),
            WithdrawalCandidate("2", tokens(100), surplus=tokens(30)),
        ]
        plan = planner.allocate(tokens(35), [], allowed)
        assert plan_pairs(plan) == [("2", tokens(30)), ("1", tokens(5))]

    def test_fallback_to_largest_delegation(self, planner):
        """Without surplus the largest allowed delegations are used."""
        allowed = [
            WithdrawalCandidate("1", tokens(10)),
            WithdrawalCandidate("2", tokens(40)),
        ]
        plan = planner.allocate(tokens(45), [], allowed)

        assert plan_pairs(plan) == [("2", tokens(40)), ("1", tokens(5))]
        assert all(r.tier == WithdrawalTier.FALLBACK for r in plan)

    def test_fallback_capped_by_earlier_withdrawal(self, planner):
        """A validator never gives more than it holds across tiers."""
        allowed = [WithdrawalCandidate("1", tokens(40), surplus=tokens(10))]
        plan = planner.allocate(tokens(40), [], allowed)

        assert plan_pairs(plan) == [("1", tokens(10)), ("1", tokens(30))]
        assert [r.tier for r in plan] == [WithdrawalTier.OVER_DELEGATED, WithdrawalTier.FALLBACK]

        with pytest.raises(UnsatisfiableWithdrawalError):
            planner.allocate(tokens(41), [], allowed)

    def test_not_allowed_ties_keep_snapshot_order(self, planner):
        not_allowed = [
            WithdrawalCandidate("8", tokens(10), surplus=tokens(10)),
            WithdrawalCandidate("7", tokens(10), surplus=tokens(10)),
        ]
        plan = planner.allocate(tokens(15), not_allowed, [])
        assert plan_pairs(plan) == [("8", tokens(10)), ("7", tokens(5))]

    def test_over_delegated_ties_keep_snapshot_order(self, planner):
        allowed = [
            WithdrawalCandidate("5", tokens(50), surplus=tokens(10)),
            WithdrawalCandidate("4", tokens(50), surplus=tokens(10)),
        ]
        plan = planner.allocate(tokens(15), [], allowed)

        assert plan_pairs(plan) == [("5", tokens(10)), ("4", tokens(5))]
        assert all(r.tier == WithdrawalTier.OVER_DELEGATED for r in plan)

    def test_sub_token_dust_drained(self, planner):
        not_allowed = [WithdrawalCandidate("9", tokens("0.5"), surplus=tokens("0.5"))]
        allowed = [WithdrawalCandidate("1", tokens(10))]
        plan = planner.allocate(tokens(1), not_allowed, allowed)

        assert plan_pairs(plan) == [("9", tokens("0.5")), ("1", tokens("0.5"))]


class TestWithdrawalFailures:
    """Unsatisfiable requests and invalid amounts."""

    def test_unsatisfiable_reports_remainder(self, planner):
        not_allowed = [WithdrawalCandidate("9", tokens(20), surplus=tokens(20))]
        allowed = [WithdrawalCandidate("1", tokens(40), surplus=tokens(10))]

        with pytest.raises(UnsatisfiableWithdrawalError) as exc_info:
            planner.allocate(tokens(100), not_allowed, allowed)

        error = exc_info.value
        assert error.requested == tokens(100)
        assert error.remaining == tokens(40)
        assert error.available == {
            "not_allowed": tokens(20),
            "over_delegated": tokens(10),
            "fallback": tokens(30),
        }
        assert "Remaining: 40 S" in str(error)

    @pytest.mark.parametrize("amount", [0, -5, 1.5, "10", True])
    def test_invalid_amount_rejected(self, planner, amount):
        with pytest.raises(AllocationInputError):
            planner.allocate(amount, [], [WithdrawalCandidate("1", tokens(10))])


class TestCandidates:
    """Candidate construction from an allocation result."""

    def test_own_validator_never_a_source(self, allocation_config, planner, make_delegations):
        """Validator 3 is over-delegated but reserved; ties keep snapshot order."""
        allocation = AllocationEngine(allocation_config).compute(
            [], make_delegations(("1", 10), ("2", 10), ("3", 1000))
        )
        assert allocation.get("3").status == ValidatorStatus.OVER_DELEGATED

        plan = planner.plan(tokens(20), allocation)
        assert plan_pairs(plan) == [("1", tokens(10)), ("2", tokens(10))]

        with pytest.raises(UnsatisfiableWithdrawalError):
            planner.plan(tokens(21), allocation)

    def test_surplus_requires_margin_over_one_token(self, planner):
        def row(validator_id, current, expected, status):
            return ValidatorAllocation(
                validator_id=validator_id,
                current_delegation=Decimal(current),
                expected_delegation=Decimal(expected),
                difference=Decimal(current) - Decimal(expected),
                status=status,
            )

        allocation = AllocationResult(
            total_delegation=Decimal("0"),
            total_boosted_amount=Decimal("0"),
            evenly_distributed_amount=Decimal("0"),
            boosted_distributed_amount=Decimal("0"),
            even_share=Decimal("0"),
            expected_delegations={},
            validators=[
                row("1", "101", "100", ValidatorStatus.OVER_DELEGATED),
                row("2", "105", "100", ValidatorStatus.OVER_DELEGATED),
                row("8", "0", "0", ValidatorStatus.NOT_ALLOWED),
                row("9", "7", "0", ValidatorStatus.NOT_ALLOWED),
            ],
        )
        not_allowed, allowed = planner.build_candidates(allocation)

        assert [c.validator_id for c in not_allowed] == ["9"]
        assert not_allowed[0].surplus == tokens(7)
        surplus = {c.validator_id: c.surplus for c in allowed}
        assert surplus == {"1": 0, "2": tokens(5)}


class TestNegativeExpectedDelegation:
    """Boosted capital above the pool pushes some expected shares below zero."""

    @pytest.fixture
    def allocation(self, make_boost, make_delegations):
        config = AllocationConfig.create(["1", "2"])
        allocation = AllocationEngine(config).compute(
            [make_boost("1", 300, 100)],
            make_delegations(("1", 100), ("2", 10)),
        )
        assert allocation.get("2").expected_delegation == Decimal("-47.5")
        return config, allocation

    def test_surplus_capped_at_delegation(self, allocation):
        config, result = allocation
        _, allowed = WithdrawalPlanner(config).build_candidates(result)

        surplus = {c.validator_id: c.surplus for c in allowed}
        assert surplus == {"1": 0, "2": tokens(10)}

    def test_never_withdraws_more_than_held(self, allocation):
        config, result = allocation
        plan = WithdrawalPlanner(config).plan(tokens(50), result)

        assert plan_pairs(plan) == [("2", tokens(10)), ("1", tokens(40))]
        assert [r.tier for r in plan] == [WithdrawalTier.OVER_DELEGATED, WithdrawalTier.FALLBACK]

        withdrawn = {}
        for r in plan:
            withdrawn[r.validator_id] = withdrawn.get(r.validator_id, 0) + r.withdrawal_amount
        for validator_id, amount in withdrawn.items():
            assert amount <= tokens(result.get(validator_id).current_delegation)

    def test_available_by_tier_not_negative(self, allocation):
        config, result = allocation
        with pytest.raises(UnsatisfiableWithdrawalError) as exc_info:
            WithdrawalPlanner(config).plan(tokens(111), result)

        error = exc_info.value
        assert error.remaining == tokens(1)
        assert error.available == {
            "not_allowed": 0,
            "over_delegated": tokens(10),
            "fallback": tokens(100),
        }
