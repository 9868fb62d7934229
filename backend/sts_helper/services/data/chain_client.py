"""On-chain reads against the Sonic network.

Covers the SFC validator registry (self stake, status, received stake), ERC20
balances, and the stS exchange rate.
"""

import asyncio
from decimal import Decimal
from typing import Dict, Iterable, Optional, Tuple

import structlog
from web3 import AsyncHTTPProvider, AsyncWeb3

from sts_helper.core.config import get_settings
from sts_helper.core.units import from_base_units
from sts_helper.services.data.errors import ChainReadError
from sts_helper.services.data.records import ValidatorInfo

logger = structlog.get_logger()

SFC_ABI = [
    {
        "inputs": [{"internalType": "uint256", "name": "validatorID", "type": "uint256"}],
        "name": "getSelfStake",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"internalType": "uint256", "name": "validatorID", "type": "uint256"}],
        "name": "getValidator",
        "outputs": [
            {"internalType": "uint256", "name": "status", "type": "uint256"},
            {"internalType": "uint256", "name": "receivedStake", "type": "uint256"},
            {"internalType": "address", "name": "auth", "type": "address"},
            {"internalType": "uint256", "name": "createdEpoch", "type": "uint256"},
            {"internalType": "uint256", "name": "createdTime", "type": "uint256"},
            {"internalType": "uint256", "name": "deactivatedTime", "type": "uint256"},
            {"internalType": "uint256", "name": "deactivatedEpoch", "type": "uint256"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
]

ERC20_ABI = [
    {
        "constant": True,
        "inputs": [{"name": "_owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "balance", "type": "uint256"}],
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [],
        "name": "decimals",
        "outputs": [{"name": "", "type": "uint8"}],
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [],
        "name": "symbol",
        "outputs": [{"name": "", "type": "string"}],
        "type": "function",
    },
]

STS_ABI = [
    {
        "constant": True,
        "inputs": [],
        "name": "getRate",
        "outputs": [{"name": "", "type": "uint256"}],
        "type": "function",
    },
]


class ChainClient:
    """Async contract reader for validator and token state."""

    def __init__(self, rpc_url: Optional[str] = None):
        settings = get_settings()
        self.rpc_url = rpc_url or settings.rpc_url
        self.sfc_address = settings.sfc_address
        self.sts_address = settings.sts_address
        self.decimals = settings.token_decimals
        self.max_delegation_multiplier = settings.max_delegation_multiplier
        self.min_delegation_capacity = settings.min_delegation_capacity
        self._w3: Optional[AsyncWeb3] = None

    @property
    def w3(self) -> AsyncWeb3:
        if self._w3 is None:
            self._w3 = AsyncWeb3(AsyncHTTPProvider(self.rpc_url))
        return self._w3

    def _contract(self, address: str, abi):
        return self.w3.eth.contract(address=AsyncWeb3.to_checksum_address(address), abi=abi)

    async def get_validator_info(self, validator_id: str) -> ValidatorInfo:
        """Read SFC state for one validator and derive its capacity.

        Raises:
            ChainReadError: Contract call failed
        """
        sfc = self._contract(self.sfc_address, SFC_ABI)
        try:
            self_stake, validator = await asyncio.gather(
                sfc.functions.getSelfStake(int(validator_id)).call(),
                sfc.functions.getValidator(int(validator_id)).call(),
            )
        except Exception as e:
            raise ChainReadError(f"Failed to read validator {validator_id}: {e}") from e

        status, received_stake = validator[0], validator[1]
        return ValidatorInfo.from_chain(
            validator_id=validator_id,
            status=int(status),
            self_stake=from_base_units(self_stake, self.decimals),
            received_stake=from_base_units(received_stake, self.decimals),
            multiplier=self.max_delegation_multiplier,
            min_capacity=self.min_delegation_capacity,
        )

    async def get_validator_infos(self, validator_ids: Iterable[str]) -> Dict[str, ValidatorInfo]:
        """Read every validator concurrently; failed reads are logged and omitted."""
        ids = list(validator_ids)
        results = await asyncio.gather(
            *(self.get_validator_info(v) for v in ids),
            return_exceptions=True,
        )

        infos: Dict[str, ValidatorInfo] = {}
        for validator_id, result in zip(ids, results):
            if isinstance(result, ChainReadError):
                logger.warning("Validator info unavailable", validator_id=validator_id, error=str(result))
                continue
            if isinstance(result, BaseException):
                raise result
            infos[validator_id] = result
        return infos

    async def get_token_info(self, token_address: str) -> Tuple[str, int]:
        """Return (symbol, decimals), defaulting to ("UNKNOWN", 18) on failure."""
        token = self._contract(token_address, ERC20_ABI)
        try:
            symbol, decimals = await asyncio.gather(
                token.functions.symbol().call(),
                token.functions.decimals().call(),
            )
            return symbol, int(decimals)
        except Exception as e:
            logger.warning("Token info unavailable", token=token_address, error=str(e))
            return "UNKNOWN", self.decimals

    async def get_token_balance(self, token_address: str, wallet: str) -> int:
        """Raw ERC20 balance in base units.

        Raises:
            ChainReadError: Contract call failed
        """
        token = self._contract(token_address, ERC20_ABI)
        try:
            return int(await token.functions.balanceOf(AsyncWeb3.to_checksum_address(wallet)).call())
        except Exception as e:
            raise ChainReadError(
                f"Failed to read balance of {token_address} for {wallet}: {e}"
            ) from e

    async def get_sts_rate(self) -> Decimal:
        """stS -> S exchange rate.

        Raises:
            ChainReadError: Contract call failed
        """
        sts = self._contract(self.sts_address, STS_ABI)
        try:
            rate = await sts.functions.getRate().call()
        except Exception as e:
            raise ChainReadError(f"Failed to read stS rate: {e}") from e
        return from_base_units(rate, 18)


# Lazy singleton
_chain_client: Optional[ChainClient] = None


def get_chain_client() -> ChainClient:
    global _chain_client
    if _chain_client is None:
        _chain_client = ChainClient()
    return _chain_client
