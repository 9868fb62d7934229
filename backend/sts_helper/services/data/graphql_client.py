"""GraphQL client for stS delegation and pool data.

Retries transport failures and 5xx responses with exponential backoff and
jitter. GraphQL-level ``errors`` payloads are not retried.
"""

import asyncio
import random
import time
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

import httpx
import structlog

from sts_helper.core.config import get_settings
from sts_helper.services.data.errors import DelegationSourceError
from sts_helper.services.data.records import DelegationRecord

logger = structlog.get_logger()

DELEGATED_VALIDATORS_QUERY = """
{
    stsGetGqlStakedSonicData {
        delegatedValidators {
            validatorId
            assetsDelegated
        }
    }
}
"""

USER_POOLS_QUERY = """
query UserPools($userAddress: String!) {
    poolGetPools(where: { chainIn: [SONIC], userAddress: $userAddress }) {
        poolTokens {
            address
            balance
        }
        dynamicData {
            totalShares
        }
        userBalance {
            totalBalance
        }
    }
}
"""


class GraphQLClient:
    """Async client for the stS GraphQL API."""

    def __init__(self, api_url: Optional[str] = None):
        settings = get_settings()
        self.api_url = api_url or settings.graphql_api_url
        self.timeout = settings.api_timeout_seconds
        self.max_retries = settings.api_max_retries
        self.initial_backoff = settings.api_initial_backoff_seconds
        self.backoff_multiplier = settings.api_backoff_multiplier
        self.max_backoff = settings.api_max_backoff_seconds

    def _calculate_backoff(self, attempt: int) -> float:
        """Exponential backoff with 0-25% jitter."""
        delay = min(self.initial_backoff * (self.backoff_multiplier ** attempt), self.max_backoff)
        return delay + random.uniform(0, 0.25 * delay)

    async def execute(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Execute a GraphQL query and return its ``data`` object.

        Raises:
            DelegationSourceError: On HTTP failure after retries, or a GraphQL
                error payload
        """
        payload: Dict[str, Any] = {"query": query}
        if variables:
            payload["variables"] = variables

        last_error: Optional[Exception] = None
        for attempt in range(self.max_retries + 1):
            start = time.monotonic()
            try:
                async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout)) as client:
                    response = await client.post(
                        self.api_url,
                        json=payload,
                        headers={"Content-Type": "application/json", "Accept": "application/json"},
                    )
                latency_ms = (time.monotonic() - start) * 1000

                if response.status_code >= 500:
                    last_error = DelegationSourceError(
                        f"GraphQL API error {response.status_code}: {response.text[:200]}",
                        status_code=response.status_code,
                    )
                    logger.warning(
                        "GraphQL server error",
                        status=response.status_code,
                        attempt=attempt + 1,
                        latency_ms=round(latency_ms, 1),
                    )
                elif response.status_code != 200:
                    raise DelegationSourceError(
                        f"GraphQL API error {response.status_code}: {response.text[:200]}",
                        status_code=response.status_code,
                    )
                else:
                    body = response.json()
                    if body.get("errors"):
                        messages = "; ".join(str(e.get("message", e)) for e in body["errors"])
                        raise DelegationSourceError(f"GraphQL errors: {messages}")
                    logger.debug("GraphQL query ok", latency_ms=round(latency_ms, 1))
                    return body.get("data") or {}

            except httpx.TransportError as e:
                last_error = e
                logger.warning(
                    "GraphQL transport error",
                    error=str(e),
                    attempt=attempt + 1,
                )

            if attempt < self.max_retries:
                await asyncio.sleep(self._calculate_backoff(attempt))

        raise DelegationSourceError(
            f"GraphQL request failed after {self.max_retries + 1} attempts: {last_error}"
        ) from last_error

    async def get_delegation_records(self) -> List[DelegationRecord]:
        """Fetch current delegation per validator.

        Raises:
            DelegationSourceError: Response is missing the delegation list or
                contains unparseable amounts
        """
        data = await self.execute(DELEGATED_VALIDATORS_QUERY)
        delegated = (data.get("stsGetGqlStakedSonicData") or {}).get("delegatedValidators")
        if delegated is None:
            raise DelegationSourceError("Invalid delegation data response")

        records = []
        for item in delegated:
            try:
                records.append(DelegationRecord(
                    validator_id=str(item["validatorId"]),
                    current_delegation=Decimal(str(item["assetsDelegated"])),
                ))
            except (KeyError, InvalidOperation) as e:
                raise DelegationSourceError(f"Malformed delegation entry {item!r}") from e

        logger.info("Fetched delegation data", validators=len(records))
        return records

    async def get_user_pools(self, user_address: str) -> List[Dict[str, Any]]:
        """Fetch pools the user holds a balance in."""
        data = await self.execute(USER_POOLS_QUERY, {"userAddress": user_address})
        return data.get("poolGetPools") or []


# Lazy singleton
_graphql_client: Optional[GraphQLClient] = None


def get_graphql_client() -> GraphQLClient:
    global _graphql_client
    if _graphql_client is None:
        _graphql_client = GraphQLClient()
    return _graphql_client
