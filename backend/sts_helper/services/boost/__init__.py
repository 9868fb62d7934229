"""Boost weight tracking job."""

from sts_helper.services.boost.tracker import (
    BoostTracker,
    BoostTrackingResult,
    apply_validator_groups,
    compute_boost_records,
)

__all__ = [
    "BoostTracker",
    "BoostTrackingResult",
    "apply_validator_groups",
    "compute_boost_records",
]
