"""Integration tests for the recommendation and boost endpoints.

Hits the FastAPI app through dependency injection with the upstream
GraphQL, CSV and RPC sources replaced by in-memory fakes.
"""

import sys
from pathlib import Path

# Add backend to Python path
backend_path = Path(__file__).parent.parent.parent
sys.path.insert(0, str(backend_path))

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from sts_helper.api.v1.boost import get_boost_store, get_boost_tracker
from sts_helper.core.units import ONE_TOKEN
from sts_helper.main import app
from sts_helper.services.allocation import AllocationConfig
from sts_helper.services.boost import BoostTrackingResult
from sts_helper.services.data.errors import BoostDataError, DelegationSourceError
from sts_helper.services.data.records import BoostRecord, DelegationRecord, ValidatorInfo
from sts_helper.services.recommendations import RecommendationService, get_recommendation_service


def delegations(*pairs):
    return [DelegationRecord(v, Decimal(str(amount))) for v, amount in pairs]


def boost(validator_id, s_balance, weight):
    return BoostRecord(validator_id, Decimal(str(s_balance)), Decimal(str(s_balance)), Decimal(str(weight)))


def fake_sources(delegation_records, boost_records=(), infos=None):
    graphql = MagicMock()
    graphql.get_delegation_records = AsyncMock(return_value=list(delegation_records))
    store = MagicMock()
    store.load = AsyncMock(return_value=list(boost_records))
    chain = MagicMock()
    chain.get_validator_infos = AsyncMock(return_value=infos or {})
    return graphql, store, chain


@pytest.fixture
def sources():
    """Default snapshot: 9 is not allowed, 1 is over-delegated, 3 is our own."""
    infos = {
        "2": ValidatorInfo.from_chain("2", 0, Decimal("100000"), Decimal("0")),
        "3": ValidatorInfo.from_chain("3", 0, Decimal("100000"), Decimal("1600000")),
    }
    return fake_sources(
        delegations(("1", 300), ("2", 0), ("3", 0), ("9", 50)),
        [boost("2", 0, 10)],
        infos,
    )


@pytest.fixture
async def client(sources):
    """App client with the recommendation service built on fake sources."""
    graphql, store, chain = sources
    service = RecommendationService(
        config=AllocationConfig.create(["1", "2", "3"], own_validator_id="3"),
        graphql=graphql,
        boost_store=store,
        chain=chain,
    )
    app.dependency_overrides[get_recommendation_service] = lambda: service

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


class TestUnstakeRecommendation:
    """GET /api/v1/unstake-recommendation"""

    @pytest.mark.asyncio
    async def test_not_allowed_drained_first(self, client):
        response = await client.get(
            "/api/v1/unstake-recommendation", params={"amount": str(30 * ONE_TOKEN)}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["data"] == [
            {"validatorId": "9", "withdrawalAmount": str(30 * ONE_TOKEN)},
        ]
        assert body["requestedAmount"] == str(30 * ONE_TOKEN)
        assert "timestamp" in body

    @pytest.mark.asyncio
    async def test_spills_into_over_delegated(self, client):
        response = await client.get(
            "/api/v1/unstake-recommendation", params={"amount": str(80 * ONE_TOKEN)}
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert [item["validatorId"] for item in data] == ["9", "1"]
        assert sum(int(item["withdrawalAmount"]) for item in data) == 80 * ONE_TOKEN

    @pytest.mark.asyncio
    async def test_unsatisfiable_returns_422(self, client):
        # Everything except own validator 3: 50 + 300 + 0
        response = await client.get(
            "/api/v1/unstake-recommendation", params={"amount": str(400 * ONE_TOKEN)}
        )

        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["context"]["remaining"] == str(50 * ONE_TOKEN)
        assert "Remaining: 50 S" in detail["message"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", ["0", "-1", "abc", "1.5"])
    async def test_invalid_amount_returns_422(self, client, amount):
        response = await client.get("/api/v1/unstake-recommendation", params={"amount": amount})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_missing_amount_returns_422(self, client):
        response = await client.get("/api/v1/unstake-recommendation")
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_upstream_failure_returns_502(self, client, sources):
        graphql, _, _ = sources
        graphql.get_delegation_records.side_effect = DelegationSourceError("GraphQL API error 500")

        response = await client.get("/api/v1/unstake-recommendation", params={"amount": "1"})
        assert response.status_code == 502

    @pytest.mark.asyncio
    async def test_empty_snapshot_returns_503(self, client, sources):
        graphql, _, _ = sources
        graphql.get_delegation_records.return_value = []

        response = await client.get("/api/v1/unstake-recommendation", params={"amount": "1"})
        assert response.status_code == 503
        assert response.json()["detail"]["message"] == "No delegation data found"


class TestStakeRecommendation:
    """GET /api/v1/stake-recommendation"""

    @pytest.mark.asyncio
    async def test_stake_recommendation(self, client):
        response = await client.get("/api/v1/stake-recommendation")

        assert response.status_code == 200
        body = response.json()

        summary = body["summary"]
        assert summary["totalDelegation"] == 350.0
        assert summary["allowedValidators"] == ["1", "2", "3"]
        assert summary["validatorCounts"] == {
            "overDelegated": 1,
            "underDelegated": 2,
            "balanced": 0,
            "notAllowed": 1,
            "total": 4,
        }

        recommendations = body["recommendations"]
        assert recommendations["stakeMore"][0]["validatorId"] == "2"
        assert recommendations["stakeMore"][0]["priority"] == "high"
        assert recommendations["avoidStaking"] == [
            {"validatorId": "3", "reason": "At maximum capacity"},
        ]

    @pytest.mark.asyncio
    async def test_not_allowed_rows_omit_capacity(self, client):
        response = await client.get("/api/v1/stake-recommendation")
        validators = response.json()["validators"]

        not_allowed = validators["notAllowed"][0]
        assert not_allowed["validatorId"] == "9"
        assert not_allowed["expectedDelegation"] == 0.0
        assert "maxDelegation" not in not_allowed

        under = {v["validatorId"]: v for v in validators["underDelegated"]}
        assert under["2"]["canReceiveDelegation"] is True
        assert under["2"]["maxDelegation"] == 1600000.0

    @pytest.mark.asyncio
    async def test_boost_source_failure_returns_502(self, client, sources):
        _, store, _ = sources
        store.load.side_effect = BoostDataError("CSV file is empty")

        response = await client.get("/api/v1/stake-recommendation")
        assert response.status_code == 502


class TestBoostWeights:
    """/api/v1/boost-weights"""

    @pytest.mark.asyncio
    async def test_get_boost_weights(self, client):
        store = MagicMock()
        store.load = AsyncMock(return_value=[boost("13", "10.5", 60), boost("14", 7, 40)])
        app.dependency_overrides[get_boost_store] = lambda: store

        response = await client.get("/api/v1/boost-weights")

        assert response.status_code == 200
        body = response.json()
        assert body["totalWeight"] == 100.0
        assert body["data"][0] == {
            "validatorId": "13",
            "stsBalance": 10.5,
            "sBalance": 10.5,
            "weight": 60.0,
        }

    @pytest.mark.asyncio
    async def test_track_boost_weights(self, client):
        records = [boost("13", 2, 100)]
        tracker = MagicMock()
        tracker.run = AsyncMock(return_value=BoostTrackingResult(
            total_sts=Decimal("2"),
            sts_rate=Decimal("1.05"),
            records=records,
            csv_path="results/validator-delegation-boost.csv",
            csv_data="validatorid,total_sts_amount,total_s_amount,weight\n13,2.000000,2.000000,100.0000",
            written=False,
        ))
        app.dependency_overrides[get_boost_tracker] = lambda: tracker

        response = await client.post("/api/v1/boost-weights/track")

        assert response.status_code == 200
        summary = response.json()["summary"]
        assert summary["validatorCount"] == 1
        assert summary["stsRate"] == 1.05
        assert summary["written"] is False


class TestServiceEndpoints:
    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/api/v1/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] in ("healthy", "degraded")
        assert body["scheduler"]["running"] is False

    @pytest.mark.asyncio
    async def test_root_lists_endpoints(self, client):
        response = await client.get("/")

        assert response.status_code == 200
        endpoints = response.json()["endpoints"]
        assert endpoints["stakeRecommendation"] == "http://test/api/v1/stake-recommendation"
