"""Allocation engine computing expected delegation per validator.

Half of the delegated pool (net of boosted capital) is spread evenly across
allowed validators. The other half, plus all boosted capital, is handed out
in proportion to each validator's boost weight:

    evenly_distributed  = (total_delegation - total_boosted) / 2
    boosted_distributed = evenly_distributed + total_boosted
    expected[v]         = evenly_distributed / n_allowed
                          + weight[v] / 100 * boosted_distributed

Validators outside the allowed set expect nothing. The engine is pure: every
call builds a fresh result from its inputs.
"""

from collections import Counter
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence

import structlog

from sts_helper.services.allocation.errors import AllocationInputError
from sts_helper.services.data.records import BoostRecord, DelegationRecord, find_boost

logger = structlog.get_logger()

ZERO = Decimal("0")
HUNDRED = Decimal("100")


class ValidatorStatus(str, Enum):
    """Delegation classification of a validator."""
    OVER_DELEGATED = "over-delegated"
    UNDER_DELEGATED = "under-delegated"
    BALANCED = "balanced"
    NOT_ALLOWED = "not-allowed"


@dataclass(frozen=True)
class AllocationConfig:
    """Delegation policy passed explicitly into the engine and planner."""
    allowed_validators: FrozenSet[str]
    own_validator_id: Optional[str] = None
    balanced_tolerance: Decimal = Decimal("1")

    @classmethod
    def create(
        cls,
        allowed_validators: Iterable[str],
        own_validator_id: Optional[str] = None,
        balanced_tolerance: Decimal = Decimal("1"),
    ) -> "AllocationConfig":
        return cls(
            allowed_validators=frozenset(str(v) for v in allowed_validators),
            own_validator_id=own_validator_id,
            balanced_tolerance=Decimal(balanced_tolerance),
        )

    @classmethod
    def from_settings(cls, settings) -> "AllocationConfig":
        """Build the config from application settings."""
        return cls.create(
            allowed_validators=settings.allowed_validators,
            own_validator_id=settings.own_validator_id,
            balanced_tolerance=settings.balanced_tolerance,
        )

    def is_allowed(self, validator_id: str) -> bool:
        return validator_id in self.allowed_validators


@dataclass(frozen=True)
class ValidatorAllocation:
    """Current vs expected delegation for one validator."""
    validator_id: str
    current_delegation: Decimal
    expected_delegation: Decimal
    difference: Decimal  # current - expected
    status: ValidatorStatus
    boost: Optional[BoostRecord] = None

    @property
    def is_allowed(self) -> bool:
        return self.status != ValidatorStatus.NOT_ALLOWED

    @property
    def boost_weight(self) -> Decimal:
        return self.boost.weight if self.boost else ZERO


@dataclass
class AllocationResult:
    """Output of one engine run."""
    total_delegation: Decimal
    total_boosted_amount: Decimal
    evenly_distributed_amount: Decimal
    boosted_distributed_amount: Decimal
    even_share: Decimal
    expected_delegations: Dict[str, Decimal]
    # Snapshot order
    validators: List[ValidatorAllocation] = field(default_factory=list)

    def get(self, validator_id: str) -> Optional[ValidatorAllocation]:
        for allocation in self.validators:
            if allocation.validator_id == validator_id:
                return allocation
        return None


class AllocationEngine:
    """Computes expected delegation and classifies each validator."""

    def __init__(self, config: AllocationConfig):
        self.config = config

    def compute(
        self,
        boost_records: Sequence[BoostRecord],
        delegation_records: Sequence[DelegationRecord],
    ) -> AllocationResult:
        """Run the allocation formula over a delegation snapshot.

        Args:
            boost_records: Boost weights per validator (may be empty)
            delegation_records: Current delegation; defines the validator universe

        Returns:
            AllocationResult with per-validator classification in snapshot order

        Raises:
            AllocationInputError: Empty or duplicated snapshot, or no allowed
                validator present in it
        """
        if not delegation_records:
            raise AllocationInputError("No delegation data found")

        validator_ids = [record.validator_id for record in delegation_records]
        duplicates = sorted(v for v, n in Counter(validator_ids).items() if n > 1)
        if duplicates:
            raise AllocationInputError(
                f"Duplicate validators in delegation snapshot: {', '.join(duplicates)}"
            )

        total_delegation = sum((r.current_delegation for r in delegation_records), ZERO)
        total_boosted = sum((b.s_balance for b in boost_records), ZERO)

        expected = self.expected_delegations(
            boost_records, total_delegation, total_boosted, validator_ids
        )
        evenly = (total_delegation - total_boosted) / 2
        eligible_count = sum(1 for v in validator_ids if self.config.is_allowed(v))

        allocations = [
            self._classify(record, expected[record.validator_id], boost_records)
            for record in delegation_records
        ]

        return AllocationResult(
            total_delegation=total_delegation,
            total_boosted_amount=total_boosted,
            evenly_distributed_amount=evenly,
            boosted_distributed_amount=evenly + total_boosted,
            even_share=evenly / eligible_count,
            expected_delegations=expected,
            validators=allocations,
        )

    def expected_delegations(
        self,
        boost_records: Sequence[BoostRecord],
        total_delegation: Decimal,
        total_boosted: Decimal,
        validator_ids: Sequence[str],
    ) -> Dict[str, Decimal]:
        """Expected delegation for every validator in the snapshot.

        Not-allowed validators map to zero. Allowed validators without a
        positive boost weight keep just the even share.
        """
        eligible = [v for v in validator_ids if self.config.is_allowed(v)]
        if not eligible:
            raise AllocationInputError(
                "No allowed validators present in the delegation snapshot"
            )

        evenly_distributed = (total_delegation - total_boosted) / 2
        boosted_distributed = evenly_distributed + total_boosted
        even_share = evenly_distributed / len(eligible)

        if evenly_distributed < 0:
            logger.warning(
                "Boosted amount exceeds total delegation, even share is negative",
                total_delegation=str(total_delegation),
                total_boosted=str(total_boosted),
                evenly_distributed=str(evenly_distributed),
            )

        expected: Dict[str, Decimal] = {v: ZERO for v in validator_ids}
        for validator_id in eligible:
            expected[validator_id] = even_share

        for validator_id in eligible:
            boost = find_boost(boost_records, validator_id)
            if boost is not None and boost.weight > 0:
                expected[validator_id] += boost.weight / HUNDRED * boosted_distributed

        return expected

    def _classify(
        self,
        record: DelegationRecord,
        expected_delegation: Decimal,
        boost_records: Sequence[BoostRecord],
    ) -> ValidatorAllocation:
        difference = record.current_delegation - expected_delegation

        if not self.config.is_allowed(record.validator_id):
            status = ValidatorStatus.NOT_ALLOWED
        elif abs(difference) < self.config.balanced_tolerance:
            status = ValidatorStatus.BALANCED
        elif difference > 0:
            status = ValidatorStatus.OVER_DELEGATED
        else:
            status = ValidatorStatus.UNDER_DELEGATED

        return ValidatorAllocation(
            validator_id=record.validator_id,
            current_delegation=record.current_delegation,
            expected_delegation=expected_delegation,
            difference=difference,
            status=status,
            boost=find_boost(boost_records, record.validator_id),
        )
