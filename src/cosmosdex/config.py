"""
Network and contract configuration.

Defaults point at the Cosmos Hub mainnet deployment and can be overridden
through COSMOSDEX_* environment variables or CLI flags.
"""

import os
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

from cosmpy.aerial.config import NetworkConfig

IBC_DENOM_PREFIX = "ibc/"
LP_DENOM_PREFIX = "lp:"

CHAIN_REGISTRY_URL = (
    "https://raw.githubusercontent.com/cosmos/chain-registry/master/"
    "cosmoshub/assetlist.json"
)
TOKEN_CACHE_DURATION = 24 * 60 * 60  # seconds

DEFAULT_SLIPPAGE = Decimal("0.05")
DEFAULT_POOLS_PAGE = 10
MAX_POOLS_PAGE = 30  # hard cap enforced by the contract
POSITION_SCAN_LIMIT = 100
LP_TOKEN_DECIMALS = 6
DEFAULT_DECIMALS = 6

DEFAULT_CONTRACT_ADDRESS = (
    "cosmos1svd8fpfwrf237qprqt33ajylg302s05neruqt37p3ju2qktkt6wqytq4ez"
)

# Noble USDC as seen on the hub; also used as the balance fallback denom
USDC_IBC_DENOM = "ibc/F663521BF1836B00F5F177680F74BFB9A8B5654A694D0D2BC249E03CF2509013"

DEFAULT_TOKENS: List[Dict[str, Any]] = [
    {
        "denom": "uatom",
        "symbol": "ATOM",
        "name": "Atom",
        "decimals": 6,
        "coingecko_id": "cosmos",
        "kind": "native",
    },
    {
        "denom": "stake",
        "symbol": "STAKE",
        "name": "Stake Token",
        "decimals": 6,
        "kind": "native",
    },
]

KNOWN_IBC_TOKENS: List[Dict[str, Any]] = [
    {
        "denom": USDC_IBC_DENOM,
        "symbol": "USDC",
        "name": "USD Coin",
        "decimals": 6,
        "coingecko_id": "usd-coin",
        "kind": "ibc",
        "ibc": {
            "source_denom": "uusdc",
            "source_chain": "noble",
        },
    },
]


@dataclass
class ChainConfig:
    chain_id: str = "cosmoshub-4"
    chain_name: str = "Cosmos Hub"
    rpc: str = "https://cosmos-rpc.polkachu.com"
    rest: str = "https://cosmos-rest.polkachu.com"
    bech32_prefix: str = "cosmos"
    coin_denom: str = "ATOM"
    coin_minimal_denom: str = "uatom"
    coin_decimals: int = 6
    gas_price_step: Dict[str, float] = field(
        default_factory=lambda: {"low": 0.01, "average": 0.025, "high": 0.04}
    )
    contract_address: str = DEFAULT_CONTRACT_ADDRESS
    cw20_code_id: int = 1
    tokens: List[Dict[str, Any]] = field(
        default_factory=lambda: [dict(t) for t in DEFAULT_TOKENS]
    )

    @property
    def fee_denom(self) -> str:
        return self.coin_minimal_denom

    @property
    def address_prefix(self) -> str:
        """Prefix every account address on this chain starts with."""
        return f"{self.bech32_prefix}1"

    def with_overrides(self, **overrides: Any) -> "ChainConfig":
        """Return a copy with the non-None overrides applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def network_config(self) -> NetworkConfig:
        """Build the cosmpy network configuration for this chain."""
        url = self.rest
        if not url.startswith(("rest+", "grpc+")):
            url = f"rest+{url}"
        return NetworkConfig(
            chain_id=self.chain_id,
            url=url,
            fee_minimum_gas_price=self.gas_price_step["average"],
            fee_denomination=self.coin_minimal_denom,
            staking_denomination=self.coin_minimal_denom,
        )

    def chain_info(self) -> Dict[str, Any]:
        """
        Chain description in the format browser wallets accept when a dApp
        suggests a chain.
        """
        prefix = self.bech32_prefix
        currency = {
            "coinDenom": self.coin_denom,
            "coinMinimalDenom": self.coin_minimal_denom,
            "coinDecimals": self.coin_decimals,
        }
        return {
            "chainId": self.chain_id,
            "chainName": self.chain_name,
            "rpc": self.rpc,
            "rest": self.rest,
            "bip44": {"coinType": 118},
            "bech32Config": {
                "bech32PrefixAccAddr": prefix,
                "bech32PrefixAccPub": f"{prefix}pub",
                "bech32PrefixValAddr": f"{prefix}valoper",
                "bech32PrefixValPub": f"{prefix}valoperpub",
                "bech32PrefixConsAddr": f"{prefix}valcons",
                "bech32PrefixConsPub": f"{prefix}valconspub",
            },
            "currencies": [dict(currency)],
            "feeCurrencies": [dict(currency, gasPriceStep=dict(self.gas_price_step))],
            "stakeCurrency": dict(currency),
        }


def load_config(env: Optional[Mapping[str, str]] = None) -> ChainConfig:
    """
    Build a ChainConfig from defaults plus environment overrides.

    Args:
        env: Mapping to read overrides from (defaults to os.environ)

    Returns:
        The resolved configuration
    """
    env = os.environ if env is None else env

    code_id = env.get("COSMOSDEX_CW20_CODE_ID")
    return ChainConfig().with_overrides(
        chain_id=env.get("COSMOSDEX_CHAIN_ID") or None,
        rpc=env.get("COSMOSDEX_RPC_ENDPOINT") or None,
        rest=env.get("COSMOSDEX_REST_ENDPOINT") or None,
        contract_address=env.get("COSMOSDEX_CONTRACT_ADDRESS") or None,
        cw20_code_id=int(code_id) if code_id else None,
    )
