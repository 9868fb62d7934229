"""Allocation failures raised by the engine and withdrawal planner."""

from typing import Dict, Optional

from sts_helper.core.units import format_tokens


class AllocationError(Exception):
    """Base class for allocation failures."""


class AllocationInputError(AllocationError):
    """Input data cannot produce a meaningful allocation."""


class UnsatisfiableWithdrawalError(AllocationError):
    """Requested withdrawal exceeds what every tier can supply."""

    def __init__(
        self,
        requested: int,
        remaining: int,
        available: Optional[Dict[str, int]] = None,
    ):
        self.requested = requested
        self.remaining = remaining
        self.available = dict(available or {})
        super().__init__(
            f"Unable to withdraw the full amount of {format_tokens(requested)} S. "
            f"Remaining: {format_tokens(remaining)} S"
        )


class WithdrawalConservationError(AllocationError):
    """Planned total differs from the request. Indicates a planner bug."""

    def __init__(self, requested: int, planned: int):
        self.requested = requested
        self.planned = planned
        super().__init__(
            f"Total withdrawal amount {format_tokens(planned)} S does not match "
            f"requested amount {format_tokens(requested)} S"
        )
