"""Input records consumed by the allocation engine.

These are the fully resolved outputs of the data layer. They are immutable
once loaded for a computation.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional


@dataclass(frozen=True)
class BoostRecord:
    """Balance-derived boost weight for one validator."""
    validator_id: str
    sts_balance: Decimal
    s_balance: Decimal
    weight: Decimal  # percent of total tracked capital, 0..100


@dataclass(frozen=True)
class DelegationRecord:
    """Stake currently delegated to a validator, in whole S."""
    validator_id: str
    current_delegation: Decimal


@dataclass(frozen=True)
class ValidatorInfo:
    """On-chain validator state with derived delegation capacity."""
    validator_id: str
    status: int
    self_stake: Decimal
    received_stake: Decimal
    max_delegation: Decimal
    remaining_capacity: Decimal
    can_receive_delegation: bool

    @property
    def is_active(self) -> bool:
        return self.status == 0

    @classmethod
    def from_chain(
        cls,
        validator_id: str,
        status: int,
        self_stake: Decimal,
        received_stake: Decimal,
        multiplier: Decimal = Decimal("16"),
        min_capacity: Decimal = Decimal("500000"),
    ) -> "ValidatorInfo":
        """Derive delegation capacity from raw SFC validator state.

        Received stake may not exceed ``multiplier`` times self stake, and a
        validator only takes new stake while active (status 0) with at least
        ``min_capacity`` of room left.
        """
        max_delegation = self_stake * multiplier
        remaining = max(Decimal("0"), max_delegation - received_stake)
        return cls(
            validator_id=validator_id,
            status=status,
            self_stake=self_stake,
            received_stake=received_stake,
            max_delegation=max_delegation,
            remaining_capacity=remaining,
            can_receive_delegation=status == 0 and remaining >= min_capacity,
        )


def validator_sort_key(validator_id: str):
    """Sort key ordering numeric validator IDs by value.

    Non-numeric IDs sort after numeric ones.
    """
    try:
        return (0, int(validator_id), "")
    except (TypeError, ValueError):
        return (1, 0, str(validator_id))


def find_boost(records, validator_id: str) -> Optional[BoostRecord]:
    """Return the first boost record for a validator, if any."""
    for record in records:
        if record.validator_id == validator_id:
            return record
    return None
