"""Application configuration loaded from environment variables."""

from decimal import Decimal
from functools import lru_cache
from typing import Dict, List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Data sources
    graphql_api_url: str = Field(..., description="GraphQL API serving stS delegation and pool data")
    rpc_url: str = Field(
        default="https://rpc.soniclabs.com",
        description="Sonic JSON-RPC endpoint for on-chain reads"
    )
    sfc_address: str = Field(
        default="0xFC00FACE00000000000000000000000000000000",
        description="Special Fee Contract (validator registry) address"
    )
    sts_address: str = Field(
        default="0xE5DA20F15420aD15DE0fa650600aFc998bbE3955",
        description="stS token address"
    )
    tracked_tokens: List[str] = Field(
        default=[
            "0xeaa74d7f42267eb907092af4bc700f667eed0b8b",  # asonstS
            "0x396922EF30Cf012973343f7174db850c7D265278",  # bstS-3
        ],
        description="Tokens counted as stS held by affiliated wallets"
    )

    # Delegation policy
    allowed_validators: List[str] = Field(
        default_factory=list,
        description="Validator IDs eligible to receive delegation"
    )
    own_validator_id: Optional[str] = Field(
        default="44",
        description="Operator's own validator, never used as a withdrawal source"
    )
    balanced_tolerance: Decimal = Field(
        default=Decimal("1"),
        description="Absolute difference (in S) under which a validator counts as balanced"
    )
    max_delegation_multiplier: Decimal = Field(
        default=Decimal("16"),
        description="Max received stake as a multiple of validator self stake"
    )
    min_delegation_capacity: Decimal = Field(
        default=Decimal("500000"),
        description="Minimum remaining capacity (S) for a validator to receive stake"
    )
    token_decimals: int = Field(default=18)

    # Boost weights
    boost_csv_source: str = Field(
        default=(
            "https://raw.githubusercontent.com/beethovenxfi/sts-helper-api/"
            "refs/heads/main/src/results/validator-delegation-boost.csv"
        ),
        description="URL or local path of the boost weight CSV"
    )
    boost_csv_output_path: str = Field(
        default="results/validator-delegation-boost.csv",
        description="Where the boost tracker writes its CSV"
    )
    validator_mapping: Dict[str, List[str]] = Field(
        default_factory=dict,
        description="Validator ID -> affiliated wallet addresses"
    )
    validator_groups: List[List[str]] = Field(
        default=[["15", "16", "17", "18"], ["13", "14"]],
        description="Validators that share wallet balances evenly"
    )

    # Outbound HTTP
    api_timeout_seconds: float = Field(default=15.0)
    api_max_retries: int = Field(default=3)
    api_initial_backoff_seconds: float = Field(default=1.0)
    api_backoff_multiplier: float = Field(default=2.0)
    api_max_backoff_seconds: float = Field(default=30.0)

    # Scheduler
    enable_boost_tracking: bool = Field(default=False)
    boost_refresh_minutes: int = Field(default=60)

    # Environment
    environment: str = Field(default="development")


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
