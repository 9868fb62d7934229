"""Pytest configuration and fixtures for stS Helper tests."""

import os
import sys
from decimal import Decimal
from pathlib import Path

import pytest

# Add backend to Python path
backend_path = Path(__file__).parent.parent
sys.path.insert(0, str(backend_path))

# Set required env vars for tests before importing app modules
os.environ.setdefault("GRAPHQL_API_URL", "https://graphql.test/graphql")
os.environ.setdefault("RPC_URL", "http://rpc.test")
os.environ.setdefault("ALLOWED_VALIDATORS", '["13", "14", "15", "16", "17", "18", "44"]')
os.environ.setdefault("BOOST_CSV_SOURCE", "https://csv.test/validator-delegation-boost.csv")
os.environ.setdefault("ENABLE_BOOST_TRACKING", "false")


@pytest.fixture
def allocation_config():
    """Allowed set {1, 2, 3}, own validator 3."""
    from sts_helper.services.allocation import AllocationConfig

    return AllocationConfig.create(["1", "2", "3"], own_validator_id="3")


@pytest.fixture
def make_boost():
    """Factory for boost records with whole-S amounts."""
    from sts_helper.services.data.records import BoostRecord

    def _make(validator_id: str, s_balance, weight, sts_balance=None) -> BoostRecord:
        s_balance = Decimal(str(s_balance))
        return BoostRecord(
            validator_id=validator_id,
            sts_balance=Decimal(str(sts_balance)) if sts_balance is not None else s_balance,
            s_balance=s_balance,
            weight=Decimal(str(weight)),
        )

    return _make


@pytest.fixture
def make_delegations():
    """Factory turning (id, amount) pairs into delegation records."""
    from sts_helper.services.data.records import DelegationRecord

    def _make(*pairs):
        return [
            DelegationRecord(validator_id=v, current_delegation=Decimal(str(amount)))
            for v, amount in pairs
        ]

    return _make
