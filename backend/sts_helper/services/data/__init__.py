# Data services module
from sts_helper.services.data.boost_store import BoostWeightStore
from sts_helper.services.data.chain_client import ChainClient, get_chain_client
from sts_helper.services.data.errors import (
    BoostDataError,
    ChainReadError,
    DataSourceError,
    DelegationSourceError,
)
from sts_helper.services.data.graphql_client import GraphQLClient, get_graphql_client
from sts_helper.services.data.records import BoostRecord, DelegationRecord, ValidatorInfo

__all__ = [
    "BoostWeightStore",
    "ChainClient",
    "get_chain_client",
    "GraphQLClient",
    "get_graphql_client",
    "BoostRecord",
    "DelegationRecord",
    "ValidatorInfo",
    "DataSourceError",
    "DelegationSourceError",
    "BoostDataError",
    "ChainReadError",
]
