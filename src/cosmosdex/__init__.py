"""
cosmosdex - client and CLI for a CosmWasm constant-product DEX on the Cosmos Hub.
"""

from .cache import TokenMetadataCache, get_default_cache
from .client import DexClient
from .config import ChainConfig, load_config
from .errors import (
    ContractExecuteError,
    ContractQueryError,
    DexError,
    FormValidationError,
    InsufficientBalanceError,
    PoolNotFoundError,
    TokenConfigError,
    WalletNotConnectedError,
    friendly_error_message,
)
from .fetcher import fetch_pools, fetch_positions, fetch_positions_async
from .models import LPPosition, Pool, PoolListing, Token
from .registry import TokenRegistry
from .wallet import WalletSession

__version__ = "0.1.0"

__all__ = [
    "ChainConfig",
    "ContractExecuteError",
    "ContractQueryError",
    "DexClient",
    "DexError",
    "FormValidationError",
    "InsufficientBalanceError",
    "LPPosition",
    "Pool",
    "PoolListing",
    "PoolNotFoundError",
    "Token",
    "TokenConfigError",
    "TokenMetadataCache",
    "TokenRegistry",
    "WalletNotConnectedError",
    "WalletSession",
    "fetch_pools",
    "fetch_positions",
    "fetch_positions_async",
    "friendly_error_message",
    "get_default_cache",
    "load_config",
]
