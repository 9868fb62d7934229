"""Boost tracker computing validator boost weights from wallet balances.

Each validator has a set of affiliated wallets. The stS they hold (directly,
via tracked wrapper tokens, or as pool liquidity) is summed per validator,
pooled across validator groups, and turned into a percentage weight. The
result is written as the boost CSV consumed by the allocation engine.
"""

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Mapping, Optional, Sequence

import structlog

from sts_helper.core.config import get_settings
from sts_helper.core.units import from_base_units
from sts_helper.services.data.boost_store import BoostWeightStore, render_boost_csv
from sts_helper.services.data.chain_client import ChainClient, get_chain_client
from sts_helper.services.data.errors import ChainReadError, DataSourceError
from sts_helper.services.data.graphql_client import GraphQLClient, get_graphql_client
from sts_helper.services.data.records import BoostRecord, validator_sort_key

logger = structlog.get_logger()

ZERO = Decimal("0")
SERVERLESS_ENV_VARS = ("VERCEL", "AWS_LAMBDA_FUNCTION_NAME", "FUNCTIONS_WORKER")


@dataclass
class BoostTrackingResult:
    """Outcome of one tracking run."""
    total_sts: Decimal
    sts_rate: Decimal
    records: List[BoostRecord]
    csv_path: str
    csv_data: str
    written: bool

    @property
    def validator_count(self) -> int:
        return len(self.records)


def apply_validator_groups(
    balances: Mapping[str, Decimal],
    groups: Sequence[Sequence[str]],
) -> Dict[str, Decimal]:
    """Spread each group's combined balance evenly over its members.

    Group members absent from ``balances`` count as zero and still receive
    the group average.
    """
    result = dict(balances)
    for group in groups:
        if not group:
            continue
        group_total = sum((balances.get(v, ZERO) for v in group), ZERO)
        average = group_total / len(group)
        for validator_id in group:
            result[validator_id] = average
    return result


def compute_boost_records(
    balances: Mapping[str, Decimal],
    sts_rate: Decimal,
) -> List[BoostRecord]:
    """Turn per-validator stS balances into weighted boost records.

    Records are ordered by numeric validator ID. Weights are percentages of
    the total tracked stS, or zero when nothing is tracked.
    """
    total = sum(balances.values(), ZERO)
    records = []
    for validator_id in sorted(balances, key=validator_sort_key):
        sts_balance = balances[validator_id]
        weight = sts_balance / total * 100 if total > 0 else ZERO
        records.append(BoostRecord(
            validator_id=validator_id,
            sts_balance=sts_balance,
            s_balance=sts_balance * sts_rate,
            weight=weight,
        ))
    return records


def pool_sts_amount(pools: Sequence[Mapping], sts_address: str) -> Decimal:
    """The user's pro-rata share of stS held across pools."""
    total = ZERO
    target = sts_address.lower()
    for pool in pools:
        token = next(
            (t for t in pool.get("poolTokens") or [] if str(t.get("address", "")).lower() == target),
            None,
        )
        total_shares = (pool.get("dynamicData") or {}).get("totalShares")
        user_balance = (pool.get("userBalance") or {}).get("totalBalance")
        if token is None or not total_shares or not user_balance:
            continue
        try:
            shares = Decimal(str(total_shares))
            if shares == 0:
                continue
            total += Decimal(str(token["balance"])) * Decimal(str(user_balance)) / shares
        except (InvalidOperation, KeyError):
            logger.warning("Skipping pool with malformed balances", pool=pool)
    return total


def is_serverless() -> bool:
    return any(os.environ.get(name) for name in SERVERLESS_ENV_VARS)


class BoostTracker:
    """Reads affiliated wallet balances and writes the boost CSV."""

    def __init__(
        self,
        chain: Optional[ChainClient] = None,
        graphql: Optional[GraphQLClient] = None,
    ):
        settings = get_settings()
        self.chain = chain or get_chain_client()
        self.graphql = graphql or get_graphql_client()
        self.validator_mapping = settings.validator_mapping
        self.validator_groups = settings.validator_groups
        self.sts_address = settings.sts_address
        self.tokens = [*settings.tracked_tokens, settings.sts_address]
        self.output_path = settings.boost_csv_output_path

    async def wallet_sts_balance(self, wallet: str, token_decimals: Mapping[str, int]) -> Decimal:
        """Direct token balances plus pooled stS for one wallet."""
        total = ZERO
        for token in self.tokens:
            try:
                raw = await self.chain.get_token_balance(token, wallet)
            except ChainReadError as e:
                logger.warning("Token balance unavailable, counting zero", token=token, wallet=wallet, error=str(e))
                continue
            total += from_base_units(raw, token_decimals[token])

        try:
            pools = await self.graphql.get_user_pools(wallet)
        except DataSourceError as e:
            logger.warning("Pool data unavailable", wallet=wallet, error=str(e))
        else:
            total += pool_sts_amount(pools, self.sts_address)
        return total

    async def collect_balances(self) -> Dict[str, Decimal]:
        """Sum stS held by each validator's affiliated wallets."""
        token_decimals: Dict[str, int] = {}
        for token in self.tokens:
            _, decimals = await self.chain.get_token_info(token)
            token_decimals[token] = decimals

        balances: Dict[str, Decimal] = {}
        for validator_id, wallets in self.validator_mapping.items():
            validator_total = ZERO
            for wallet in wallets:
                validator_total += await self.wallet_sts_balance(wallet, token_decimals)
            balances[str(validator_id)] = validator_total
            logger.debug("Validator wallets tracked", validator_id=validator_id, sts=str(validator_total))
        return balances

    async def run(self) -> BoostTrackingResult:
        """Track balances, compute weights and persist the CSV.

        Raises:
            DataSourceError: No validator mapping configured
            ChainReadError: stS rate could not be read
        """
        if not self.validator_mapping:
            raise DataSourceError("VALIDATOR_MAPPING is not configured")

        logger.info("Boost tracking started", validators=len(self.validator_mapping))
        sts_rate = await self.chain.get_sts_rate()
        balances = apply_validator_groups(await self.collect_balances(), self.validator_groups)
        records = compute_boost_records(balances, sts_rate)

        written = False
        if is_serverless():
            csv_data = render_boost_csv(records)
            logger.info("Serverless environment detected, boost CSV not written")
        else:
            csv_data = BoostWeightStore.save(records, self.output_path)
            written = True

        total_sts = sum(balances.values(), ZERO)
        logger.info(
            "Boost tracking complete",
            total_sts=str(total_sts),
            sts_rate=str(sts_rate),
            validators=len(records),
        )
        return BoostTrackingResult(
            total_sts=total_sts,
            sts_rate=sts_rate,
            records=records,
            csv_path=self.output_path,
            csv_data=csv_data,
            written=written,
        )
