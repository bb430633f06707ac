"""
Token registry: chain-registry metadata merged with configured and user tokens.

Token lists are cached locally for a day. Liquidity pairs get synthetic LP
tokens that live next to the ordinary tokens.
"""

import asyncio
import json
import logging
import shlex
import time
from typing import Any, Dict, Iterable, List, Optional

import aiohttp

from .cache import TokenMetadataCache
from .config import (
    CHAIN_REGISTRY_URL,
    DEFAULT_DECIMALS,
    IBC_DENOM_PREFIX,
    KNOWN_IBC_TOKENS,
    LP_DENOM_PREFIX,
    LP_TOKEN_DECIMALS,
    TOKEN_CACHE_DURATION,
    ChainConfig,
)
from .cw20 import get_token_balance, get_token_info
from .errors import ContractQueryError, DexError
from .lp import generate_lp_token_id, generate_lp_token_info, parse_lp_token
from .messages import create_pool_msg, format_funds, native_funds
from .models import IbcTrace, LPPosition, Pair, Pool, Token

logger = logging.getLogger(__name__)

USER_TOKENS_KEY = "tokens.user"
LP_POSITIONS_KEY = "lp.positions"
PAIRS_KEY = "lp.pairs"

REGISTRY_CHAIN_NAME = "cosmoshub"
TOKEN_KIND_FILTERS = ("all", "native", "ibc", "lp")


def asset_to_token(asset: Dict[str, Any]) -> Token:
    """Map one chain-registry asset entry to a Token."""
    base = asset["base"]
    display = asset.get("display")

    decimals = DEFAULT_DECIMALS
    for unit in asset.get("denom_units") or []:
        if unit.get("denom") == display and unit.get("exponent") is not None:
            decimals = int(unit["exponent"])
            break

    logos = asset.get("logo_URIs") or {}

    ibc = None
    traces = asset.get("traces") or []
    if traces:
        counterparty = traces[0].get("counterparty") or {}
        if counterparty.get("base_denom"):
            ibc = IbcTrace(
                source_channel=counterparty.get("channel_id"),
                source_denom=counterparty.get("base_denom"),
                source_chain=counterparty.get("chain_name"),
            )

    kind = "ibc" if base.startswith(IBC_DENOM_PREFIX) or ibc is not None else "native"
    return Token(
        denom=base,
        symbol=asset.get("symbol") or base,
        name=asset.get("name") or asset.get("symbol") or base,
        decimals=decimals,
        logo=logos.get("png") or logos.get("svg"),
        kind=kind,
        description=asset.get("description"),
        coingecko_id=asset.get("coingecko_id"),
        ibc=ibc,
    )


def placeholder_token(denom: str) -> Token:
    """Stand-in metadata for a denom nobody has described."""
    if denom.startswith(IBC_DENOM_PREFIX):
        symbol = f"IBC-{denom[-8:]}"
    else:
        symbol = denom[:8].upper()
    return Token(
        denom=denom,
        symbol=symbol,
        name="Unknown Token",
        decimals=DEFAULT_DECIMALS,
        kind="ibc" if denom.startswith(IBC_DENOM_PREFIX) else "native",
    )


class TokenRegistry:
    """
    In-memory token, LP token and pair lookup backed by the local cache.

    Args:
        config: Chain configuration (supplies the configured token list)
        cache: Local store for token records and settings
        known_tokens: Locally maintained overrides, e.g. IBC assets
        registry_url: Chain-registry assetlist URL
    """

    def __init__(
        self,
        config: ChainConfig,
        cache: TokenMetadataCache,
        known_tokens: Optional[List[Dict[str, Any]]] = None,
        registry_url: str = CHAIN_REGISTRY_URL,
    ):
        self.config = config
        self.cache = cache
        self.known_tokens = KNOWN_IBC_TOKENS if known_tokens is None else known_tokens
        self.registry_url = registry_url

        self.tokens: Dict[str, Token] = {}
        self.lp_tokens: Dict[str, Token] = {}
        self.lp_pools: Dict[str, Pool] = {}
        self.pairs: Dict[str, Pair] = {}
        self.last_updated: Optional[float] = None

        self._restore_lp_state()

    def _restore_lp_state(self):
        for data in self.cache.get_item(LP_POSITIONS_KEY, []):
            try:
                position = LPPosition.from_dict(data)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping cached LP position: {e}")
                continue
            self.lp_tokens[position.lp_token.denom] = position.lp_token
            self.lp_pools[position.lp_token.denom] = position.pool
        for data in self.cache.get_item(PAIRS_KEY, []):
            try:
                pair = Pair.from_dict(data)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping cached pair: {e}")
                continue
            self.pairs[pair.id] = pair
            self.lp_tokens.setdefault(pair.lp_token.denom, pair.lp_token)

    # Loading

    async def fetch_chain_registry_tokens(self) -> List[Token]:
        """
        Download the chain-registry assetlist.

        Returns:
            Tokens described by the registry, or an empty list on any failure
        """
        try:
            timeout = aiohttp.ClientTimeout(total=30)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(self.registry_url) as response:
                    response.raise_for_status()
                    # raw.githubusercontent.com serves text/plain
                    data = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.error(f"Failed to fetch chain registry tokens: {e}")
            return []

        tokens = []
        for asset in data.get("assets", []) if isinstance(data, dict) else []:
            try:
                tokens.append(asset_to_token(asset))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed registry asset: {e}")
        logger.info(f"Fetched {len(tokens)} tokens from chain registry")
        return tokens

    def load_tokens(self, force_refresh: bool = False) -> List[Token]:
        """
        Load tokens from the cache, or fetch and merge a fresh list.

        Args:
            force_refresh: Ignore a fresh cache and refetch

        Returns:
            The merged token list
        """
        try:
            # Check if we're already in an event loop
            asyncio.get_running_loop()
        except RuntimeError:
            return asyncio.run(self.load_tokens_async(force_refresh))

        import concurrent.futures

        with concurrent.futures.ThreadPoolExecutor() as pool:
            return pool.submit(asyncio.run, self.load_tokens_async(force_refresh)).result()

    async def load_tokens_async(self, force_refresh: bool = False) -> List[Token]:
        if not force_refresh and self.cache.is_fresh(TOKEN_CACHE_DURATION):
            tokens = self._cached_tokens()
            self._set_tokens(tokens)
            self.last_updated = self.cache.last_refresh()
            logger.info(f"Loaded {len(tokens)} tokens from cache")
            return tokens

        fetched = await self.fetch_chain_registry_tokens()
        if not fetched and self.cache.last_refresh() and len(self.cache):
            logger.warning("Chain registry unavailable, using stale token cache")
            tokens = self._cached_tokens()
            self._set_tokens(tokens)
            self.last_updated = self.cache.last_refresh()
            return tokens

        tokens = self._merge(fetched)
        now = time.time()
        self._set_tokens(tokens)
        self.last_updated = now
        self.cache.replace_all([token.to_dict() for token in tokens], now)
        logger.info(f"Stored {len(tokens)} merged tokens")
        return tokens

    def _cached_tokens(self) -> List[Token]:
        return [Token.from_dict(data) for data in self.cache.all()]

    def _merge(self, fetched: List[Token]) -> List[Token]:
        merged: Dict[str, Token] = {}
        sources: Iterable[Iterable[Token]] = (
            fetched,
            (Token.from_dict(data) for data in self.config.tokens),
            (Token.from_dict(data) for data in self.known_tokens),
            self.custom_tokens(),
        )
        for source in sources:
            for token in source:
                merged[token.denom] = token
        return list(merged.values())

    def _set_tokens(self, tokens: List[Token]):
        self.tokens = {token.denom: token for token in tokens}

    # Lookup

    def get_all_tokens(self) -> List[Token]:
        """Every known token, LP tokens last."""
        extra = [t for denom, t in self.lp_tokens.items() if denom not in self.tokens]
        return list(self.tokens.values()) + extra

    def get_token(self, denom: str) -> Optional[Token]:
        return self.tokens.get(denom) or self.lp_tokens.get(denom)

    def resolve_token(self, denom: str) -> Token:
        """Known token, synthesized LP token, or a placeholder."""
        token = self.get_token(denom)
        if token is not None:
            return token
        pair = parse_lp_token(denom)
        if pair is not None:
            return generate_lp_token_info(pair[0], pair[1], registry=self)
        return placeholder_token(denom)

    def search_tokens(self, query: str) -> List[Token]:
        query = query.lower()
        return [
            token
            for token in self.get_all_tokens()
            if query in token.symbol.lower()
            or query in token.name.lower()
            or query in token.denom.lower()
        ]

    def filter_tokens(self, kind: str = "all", tokens: Optional[List[Token]] = None) -> List[Token]:
        if kind not in TOKEN_KIND_FILTERS:
            raise ValueError(f"Unknown token filter {kind!r}, expected one of {TOKEN_KIND_FILTERS}")
        tokens = self.get_all_tokens() if tokens is None else tokens
        if kind == "native":
            return [t for t in tokens if t.is_native]
        if kind == "ibc":
            return [t for t in tokens if t.is_ibc]
        if kind == "lp":
            return [t for t in tokens if t.is_lp]
        return list(tokens)

    def selection_list(
        self, query: str = "", kind: str = "all", balances: Optional[Dict[str, int]] = None
    ) -> List[Token]:
        """
        Tokens for a picker: filtered by query and kind, richest first.
        """
        tokens = self.search_tokens(query) if query else self.get_all_tokens()
        tokens = self.filter_tokens(kind, tokens)
        balances = balances or {}

        def balance_of(token: Token) -> int:
            if token.denom in balances:
                return int(balances[token.denom])
            return int(token.balance or 0)

        return sorted(tokens, key=lambda t: (-balance_of(t), t.symbol.lower()))

    # User-added CW20 tokens

    def custom_tokens(self) -> List[Token]:
        return [Token.from_dict(data) for data in self.cache.get_item(USER_TOKENS_KEY, [])]

    def _save_custom_tokens(self, tokens: List[Token]):
        self.cache.set_item(USER_TOKENS_KEY, [token.to_dict() for token in tokens])

    def add_custom_token(self, client: Any, contract_address: str) -> Token:
        """
        Track a CW20 token by contract address.

        Args:
            client: DexClient used for the token_info query
            contract_address: CW20 contract

        Returns:
            The added token
        """
        contract_address = contract_address.strip()
        if not contract_address:
            raise DexError("Please enter a token contract address")

        existing = self.custom_tokens()
        if any(token.denom == contract_address for token in existing):
            raise DexError("Token already added")

        try:
            info = get_token_info(client, contract_address)
        except DexError as e:
            raise ContractQueryError(
                "Failed to add token. Please check the contract address."
            ) from e

        balance = None
        if client.sender:
            balance = str(get_token_balance(client, contract_address, client.sender))

        token = Token(
            denom=contract_address,
            symbol=info["symbol"],
            name=info["name"],
            decimals=int(info.get("decimals", DEFAULT_DECIMALS)),
            kind="cw20",
            balance=balance,
        )
        self._save_custom_tokens(existing + [token])
        self.tokens[token.denom] = token
        self.cache.put(token.denom, token.to_dict())
        logger.info(f"Added custom token {token.symbol} ({contract_address})")
        return token

    def remove_custom_token(self, denom: str) -> bool:
        tokens = self.custom_tokens()
        remaining = [token for token in tokens if token.denom != denom]
        if len(remaining) == len(tokens):
            return False
        self._save_custom_tokens(remaining)
        self.tokens.pop(denom, None)
        self.cache.remove(denom)
        logger.info(f"Removed custom token {denom}")
        return True

    # LP tokens and pairs

    @staticmethod
    def pair_id(token_a: str, token_b: str) -> str:
        return generate_lp_token_id(token_a, token_b)[len(LP_DENOM_PREFIX):]

    def create_lp_token(self, token_a: Token, token_b: Token) -> Token:
        """Register a pair and its LP token; order of arguments does not matter."""
        first, second = sorted((token_a, token_b), key=lambda t: t.denom)
        lp_token = Token(
            denom=generate_lp_token_id(first.denom, second.denom),
            symbol=f"{first.symbol}-{second.symbol} LP",
            name=f"{first.name}/{second.name} Liquidity Pool Token",
            decimals=LP_TOKEN_DECIMALS,
            kind="lp",
            description=f"Liquidity pool token for {first.symbol}-{second.symbol} pair",
        )
        pair = Pair(
            id=self.pair_id(first.denom, second.denom),
            token_a=first,
            token_b=second,
            lp_token=lp_token,
            created=time.time(),
        )
        self.lp_tokens[lp_token.denom] = lp_token
        self.pairs[pair.id] = pair
        self.cache.set_item(PAIRS_KEY, [p.to_dict() for p in self.pairs.values()])
        return lp_token

    def get_lp_token(self, token_a: str, token_b: str) -> Optional[Token]:
        return self.lp_tokens.get(generate_lp_token_id(token_a, token_b))

    def get_all_lp_tokens(self) -> List[Token]:
        return list(self.lp_tokens.values())

    def get_pair(self, token_a: str, token_b: str) -> Optional[Pair]:
        return self.pairs.get(self.pair_id(token_a, token_b))

    def get_all_pairs(self) -> List[Pair]:
        return list(self.pairs.values())

    def set_lp_positions(self, positions: List[LPPosition]):
        """Replace all position-derived LP tokens with a fresh scan."""
        self.lp_tokens = {pair.lp_token.denom: pair.lp_token for pair in self.pairs.values()}
        self.lp_pools = {}
        for position in positions:
            self.lp_tokens[position.lp_token.denom] = position.lp_token
            self.lp_pools[position.lp_token.denom] = position.pool
        self.cache.set_item(LP_POSITIONS_KEY, [p.to_dict() for p in positions])
        logger.info(f"Updated token registry with {len(positions)} LP tokens")

    def cached_lp_pools(self) -> List[Pool]:
        """Pool snapshots remembered from the last position scan."""
        return list(self.lp_pools.values())

    # Export

    def export_for_git(self) -> Dict[str, Any]:
        return {
            "assetlist": {
                "chain_name": REGISTRY_CHAIN_NAME,
                "assets": [t.to_dict() for t in self.tokens.values() if not t.is_lp],
            },
            "lp_tokens": [t.to_dict() for t in self.get_all_lp_tokens()],
            "pairs": [
                {
                    "id": pair.id,
                    "token_a": {"denom": pair.token_a.denom, "symbol": pair.token_a.symbol},
                    "token_b": {"denom": pair.token_b.denom, "symbol": pair.token_b.symbol},
                    "lp_token": pair.lp_token.denom,
                    "created": pair.created,
                }
                for pair in self.get_all_pairs()
            ],
        }

    def generate_contract_data(self, pair: Pair, contract_address: Optional[str] = None) -> Dict[str, Any]:
        """Assetlist and pairs.json entries for publishing a pair."""
        lp_token = pair.lp_token
        display = lp_token.symbol.lower().replace(" ", "")
        return {
            "assetlist_entry": {
                "description": f"Liquidity pool token for {pair.token_a.symbol}-{pair.token_b.symbol} pair",
                "denom_units": [
                    {"denom": lp_token.denom, "exponent": 0},
                    {"denom": display, "exponent": lp_token.decimals},
                ],
                "base": lp_token.denom,
                "name": lp_token.name,
                "display": display,
                "symbol": lp_token.symbol,
                "type_asset": "lp",
            },
            "pair_entry": {
                "id": pair.id,
                "contract_address": contract_address or self.config.contract_address,
                "token_a": pair.token_a.denom,
                "token_b": pair.token_b.denom,
                "lp_token": lp_token.denom,
                "created": pair.created,
            },
        }

    def create_pool_command(
        self,
        pair: Pair,
        initial_a: int = 1000000,
        initial_b: int = 1000000,
        key_name: str = "your-key",
    ) -> str:
        """gaiad command line that creates the pool for a pair."""
        msg = create_pool_msg(pair.token_a.denom, pair.token_b.denom, initial_a, initial_b)
        funds = format_funds(
            native_funds(
                [(pair.token_a.denom, initial_a), (pair.token_b.denom, initial_b)],
                self.config.fee_denom,
            )
        )
        gas_price = self.config.gas_price_step["average"]
        command = (
            f"gaiad tx wasm execute {self.config.contract_address} "
            f"{shlex.quote(json.dumps(msg, separators=(',', ':')))} "
        )
        if funds:
            command += f"--amount {shlex.quote(funds)} "
        return command + (
            f"--from {key_name} --chain-id {self.config.chain_id} "
            f"--gas-prices {gas_price}{self.config.fee_denom} "
            f"--gas auto --gas-adjustment 1.3 --yes"
        )
