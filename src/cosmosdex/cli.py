#!/usr/bin/env python
"""
Command-line interface for the cosmosdex package.
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Callable, Dict, List, Optional

from rich.console import Console

from .amounts import format_amount, parse_percentage
from .cache import DEFAULT_CACHE_DIR, TokenMetadataCache, get_default_cache
from .client import DexClient
from .config import DEFAULT_SLIPPAGE, TOKEN_CACHE_DURATION, ChainConfig, load_config
from .cw20 import (
    burn_tokens,
    format_token_amount,
    get_token_balance,
    get_token_info,
    mint_tokens,
    parse_token_amount,
    transfer_tokens,
)
from .errors import DexError
from .fetcher import fetch_pools, fetch_positions
from .forms import (
    AddLiquidityForm,
    CreatePoolForm,
    RemoveLiquidityForm,
    SwapForm,
    TokenLaunchForm,
)
from .lp import generate_lp_token_info
from .models import Cw20TokenConfig, ExecuteResult, LPPosition, Token
from .notify import Notifier
from .registry import TokenRegistry
from .wallet import WalletSession, credentials_from_env

logger = logging.getLogger(__name__)


def format_size(size_bytes: float) -> str:
    """Format bytes as a human-readable string with units."""
    if size_bytes < 1024:
        return f"{size_bytes:.2f} B"
    size_kb = size_bytes / 1024
    if size_kb < 1024:
        return f"{size_kb:.2f} KB"
    size_mb = size_kb / 1024
    return f"{size_mb:.2f} MB"


class CliContext:
    """Objects shared by every command, created once per invocation."""

    def __init__(
        self,
        config: ChainConfig,
        cache: TokenMetadataCache,
        console: Optional[Console] = None,
        show_progress: bool = True,
        ledger_factory=None,
        contract_factory=None,
        code_factory=None,
    ):
        self.config = config
        self.cache = cache
        self.console = console or Console()
        self.notifier = Notifier(self.console)
        self.show_progress = show_progress
        self.registry = TokenRegistry(config, cache)
        self.session = WalletSession(config, cache, ledger_factory)
        self._contract_factory = contract_factory
        self._code_factory = code_factory
        self._tokens_loaded = False

    def client(self, signed: bool = False) -> DexClient:
        """A DexClient; signed clients connect the wallet from the environment."""
        if signed and not self.session.is_connected:
            self.session.connect(*credentials_from_env())
        return self.session.client(self._contract_factory, self._code_factory)

    def load_tokens(self, force_refresh: bool = False):
        if force_refresh or not self._tokens_loaded:
            self.registry.load_tokens(force_refresh=force_refresh)
            self._tokens_loaded = True

    def find_token(self, ref: str) -> Token:
        """Token by denom, then by symbol (case-insensitive)."""
        self.load_tokens()
        token = self.registry.get_token(ref)
        if token is not None:
            return token
        matches = [t for t in self.registry.get_all_tokens() if t.symbol.lower() == ref.lower()]
        if len(matches) == 1:
            return matches[0]
        if len(matches) > 1:
            denoms = ", ".join(t.denom for t in matches)
            raise DexError(f"Symbol {ref} is ambiguous, use a denom: {denoms}")
        return self.registry.resolve_token(ref)

    def user_address(self, address: Optional[str]) -> str:
        if address:
            return address
        self.client(signed=True)
        return self.session.address

    def trade_balances(self, client: DexClient, *tokens: Token) -> Dict[str, int]:
        """Bank balances plus the CW20 balances of the traded tokens."""
        balances = self.session.get_all_balances()
        for token in tokens:
            if token.kind == "cw20" or token.denom.startswith(self.config.address_prefix):
                balances[token.denom] = get_token_balance(client, token.denom, client.sender)
        return balances


def build_context(args: argparse.Namespace) -> CliContext:
    config = load_config().with_overrides(
        contract_address=args.contract,
        rest=args.rest,
        chain_id=args.chain_id,
    )
    cache = get_default_cache(persist=True, cache_dir=args.cache_dir)
    return CliContext(config, cache, show_progress=not args.no_progress)


def _print_tx(result: ExecuteResult):
    print(f"tx: {result.tx_hash}")
    if result.height is not None:
        print(f"height: {result.height}, gas used: {result.gas_used}")


# Token commands


def tokens_cli(ctx: CliContext, args: argparse.Namespace) -> int:
    """List tokens, optionally filtered by a search string and kind."""
    ctx.load_tokens(force_refresh=args.refresh)
    tokens = ctx.registry.selection_list(args.query or "", args.kind)
    if not tokens:
        ctx.notifier.warning("No tokens found")
        return 0
    for token in tokens[: args.limit]:
        print(f"{token.symbol:<12} {token.kind:<7} {token.denom}")
    if len(tokens) > args.limit:
        print(f"... and {len(tokens) - args.limit} more tokens")
    return 0


def token_cli(ctx: CliContext, args: argparse.Namespace) -> int:
    print(ctx.find_token(args.token))
    return 0


def add_token_cli(ctx: CliContext, args: argparse.Namespace) -> int:
    ctx.load_tokens()
    token = ctx.registry.add_custom_token(ctx.client(), args.address)
    ctx.notifier.success(f"Added {token.symbol} token")
    return 0


def remove_token_cli(ctx: CliContext, args: argparse.Namespace) -> int:
    if ctx.registry.remove_custom_token(args.address):
        ctx.notifier.success("Token removed")
        return 0
    ctx.notifier.warning(f"{args.address} is not a custom token")
    return 1


# Pool commands


def pools_cli(ctx: CliContext, args: argparse.Namespace) -> int:
    ctx.load_tokens()
    listings = fetch_pools(
        ctx.client(), ctx.registry, limit=args.limit, show_progress=ctx.show_progress
    )
    if args.json:
        print(json.dumps([listing.pool.to_dict() for listing in listings], indent=2))
        return 0
    for i, listing in enumerate(listings):
        print(f"\nPool {i + 1}/{len(listings)}:")
        print(listing)
    return 0


def pool_cli(ctx: CliContext, args: argparse.Namespace) -> int:
    token_a = ctx.find_token(args.token_a)
    token_b = ctx.find_token(args.token_b)
    pool = ctx.client().get_pool(token_a.denom, token_b.denom)
    print(f"{token_a.symbol}/{token_b.symbol}")
    print(f"├─ {token_a.symbol}: {format_amount(pool.reserve_a, token_a.decimals)}")
    print(f"├─ {token_b.symbol}: {format_amount(pool.reserve_b, token_b.decimals)}")
    print(f"└─ liquidity: {format_amount(pool.total_liquidity)}")
    return 0


def config_cli(ctx: CliContext, args: argparse.Namespace) -> int:
    """Show the contract configuration."""
    contract_config = ctx.client().get_config()
    print(f"contract: {ctx.config.contract_address}")
    print(f"├─ admin: {contract_config.admin}")
    print(f"└─ fee: {contract_config.fee_percent}% ({contract_config.fee_rate} bps)")
    return 0


def suggest_chain_cli(ctx: CliContext, args: argparse.Namespace) -> int:
    print(json.dumps(ctx.config.chain_info(), indent=2))
    return 0


# Trading commands


def _swap_form(ctx: CliContext, args: argparse.Namespace) -> SwapForm:
    return SwapForm(
        token_in=ctx.find_token(args.token_in),
        token_out=ctx.find_token(args.token_out),
        amount_in=args.amount,
        slippage=parse_percentage(args.slippage),
    )


def simulate_cli(ctx: CliContext, args: argparse.Namespace) -> int:
    form = _swap_form(ctx, args)
    quote = form.quote(ctx.client())
    print(quote.describe(form.token_in, form.token_out))
    return 0


def swap_cli(ctx: CliContext, args: argparse.Namespace) -> int:
    form = _swap_form(ctx, args)
    client = ctx.client(signed=True)
    quote, result = form.submit(
        client, ctx.trade_balances(client, form.token_in, form.token_out)
    )
    print(quote.describe(form.token_in, form.token_out))
    ctx.notifier.success("Swap executed successfully!")
    _print_tx(result)
    return 0


def create_pool_cli(ctx: CliContext, args: argparse.Namespace) -> int:
    form = CreatePoolForm(
        token_a=ctx.find_token(args.token_a),
        token_b=ctx.find_token(args.token_b),
        amount_a=args.amount_a,
        amount_b=args.amount_b,
    )
    client = ctx.client(signed=True)
    result = form.submit(client, ctx.trade_balances(client, form.token_a, form.token_b))
    ctx.notifier.success("Pool created successfully!")
    _print_tx(result)
    return 0


def add_liquidity_cli(ctx: CliContext, args: argparse.Namespace) -> int:
    form = AddLiquidityForm(
        token_a=ctx.find_token(args.token_a),
        token_b=ctx.find_token(args.token_b),
        amount_a=args.amount_a,
        amount_b=args.amount_b,
        min_liquidity=args.min_liquidity,
    )
    client = ctx.client(signed=True)
    result = form.submit(client, ctx.trade_balances(client, form.token_a, form.token_b))
    ctx.notifier.success("Liquidity added successfully!")
    _print_tx(result)
    return 0


def remove_liquidity_cli(ctx: CliContext, args: argparse.Namespace) -> int:
    token_a = ctx.find_token(args.token_a)
    token_b = ctx.find_token(args.token_b)
    client = ctx.client(signed=True)
    pool = client.get_pool(token_a.denom, token_b.denom)
    info = client.get_user_liquidity(ctx.session.address, pool.token_a, pool.token_b)
    if info.liquidity == 0:
        raise DexError(f"No liquidity in {token_a.symbol}/{token_b.symbol}")

    position = LPPosition(
        lp_token=generate_lp_token_info(pool.token_a, pool.token_b, info.liquidity, ctx.registry),
        token_a=ctx.registry.resolve_token(pool.token_a),
        token_b=ctx.registry.resolve_token(pool.token_b),
        liquidity=info.liquidity,
        pool=pool,
        share_a=info.share_a,
        share_b=info.share_b,
    )
    form = RemoveLiquidityForm(position, args.percent)
    breakdown = form.breakdown()
    print(f"Removing {args.percent}% of {position.lp_token.symbol}")
    print(f"├─ {position.token_a.symbol}: ~{format_amount(breakdown.amount_a, position.token_a.decimals)}")
    print(f"└─ {position.token_b.symbol}: ~{format_amount(breakdown.amount_b, position.token_b.decimals)}")

    result = form.submit(client)
    ctx.notifier.success(f"Successfully removed {args.percent}% liquidity!")
    _print_tx(result)
    return 0


def positions_cli(ctx: CliContext, args: argparse.Namespace) -> int:
    ctx.load_tokens()
    user = ctx.user_address(args.address)
    positions = fetch_positions(
        ctx.client(), ctx.registry, user, show_progress=ctx.show_progress
    )
    ctx.registry.set_lp_positions(positions)
    for position in positions:
        print(position)
    return 0


def balances_cli(ctx: CliContext, args: argparse.Namespace) -> int:
    ctx.load_tokens()
    user = ctx.user_address(args.address)
    balances = ctx.session.get_all_balances(user)
    if not balances:
        ctx.notifier.info(f"No balances for {user}")
        return 0
    for denom, amount in sorted(balances.items()):
        token = ctx.registry.resolve_token(denom)
        print(f"{token.symbol:<12} {format_amount(amount, token.decimals):>24}  {denom}")
    return 0


# CW20 commands


def launch_token_cli(ctx: CliContext, args: argparse.Namespace) -> int:
    client = ctx.client(signed=True)
    form = TokenLaunchForm(
        Cw20TokenConfig(
            name=args.name,
            symbol=args.symbol,
            initial_supply=args.supply,
            recipient=args.recipient or client.sender,
            decimals=args.decimals,
            max_supply=args.max_supply,
            mintable=args.mintable,
            description=args.description,
            logo_url=args.logo_url,
        )
    )
    result = form.submit(client)
    ctx.notifier.success(f"Token {result.token.symbol} launched at {result.contract_address}")
    print(f"total supply: {format_token_amount(result.total_supply, result.token.decimals)}")
    if result.max_supply is not None:
        print(f"max supply: {format_token_amount(result.max_supply, result.token.decimals)}")
    ctx.notifier.info(f"Track it with: cosmosdex add-token {result.contract_address}")
    return 0


def _cw20_amount(client: DexClient, contract: str, amount: str) -> int:
    info = get_token_info(client, contract)
    return int(parse_token_amount(amount, int(info.get("decimals", 6))))


def cw20_transfer_cli(ctx: CliContext, args: argparse.Namespace) -> int:
    client = ctx.client(signed=True)
    amount = _cw20_amount(client, args.contract_address, args.amount)
    _print_tx(transfer_tokens(client, args.contract_address, args.recipient, amount))
    ctx.notifier.success("Transfer complete")
    return 0


def cw20_mint_cli(ctx: CliContext, args: argparse.Namespace) -> int:
    client = ctx.client(signed=True)
    amount = _cw20_amount(client, args.contract_address, args.amount)
    _print_tx(mint_tokens(client, args.contract_address, args.recipient, amount))
    ctx.notifier.success("Mint complete")
    return 0


def cw20_burn_cli(ctx: CliContext, args: argparse.Namespace) -> int:
    client = ctx.client(signed=True)
    amount = _cw20_amount(client, args.contract_address, args.amount)
    _print_tx(burn_tokens(client, args.contract_address, amount))
    ctx.notifier.success("Burn complete")
    return 0


# LP export and cache commands


def lp_export_cli(ctx: CliContext, args: argparse.Namespace) -> int:
    ctx.load_tokens()
    data = ctx.registry.export_for_git()
    if args.pair:
        token_a = ctx.find_token(args.pair[0])
        token_b = ctx.find_token(args.pair[1])
        pair = ctx.registry.get_pair(token_a.denom, token_b.denom)
        if pair is None:
            ctx.registry.create_lp_token(token_a, token_b)
            pair = ctx.registry.get_pair(token_a.denom, token_b.denom)
        data = ctx.registry.generate_contract_data(pair)
        data["create_pool_command"] = ctx.registry.create_pool_command(pair)

    text = json.dumps(data, indent=2)
    if args.output:
        Path(args.output).write_text(text)
        ctx.notifier.success(f"Output written to {args.output}")
    else:
        print(text)
    return 0


def cache_info_cli(ctx: CliContext, args: argparse.Namespace) -> int:
    """Display information about the token cache."""
    stats = ctx.cache.get_stats()
    cache_dir = ctx.cache.cache_dir
    cache_dir_exists = Path(cache_dir).exists()

    total_size = 0
    if cache_dir_exists:
        for dirpath, dirnames, filenames in os.walk(cache_dir):
            for filename in filenames:
                total_size += os.path.getsize(os.path.join(dirpath, filename))

    print("\n=== cosmosdex Cache Information ===")
    print(f"Cache Directory: {cache_dir}")
    print(f"Directory Exists: {'Yes' if cache_dir_exists else 'No'}")
    print(f"Total Cache Size: {format_size(total_size)}")
    print(f"Persistence Enabled: {'Yes' if stats['persist_enabled'] else 'No'}")
    print("\n--- Cache Statistics ---")
    print(f"Tokens: {stats['entries']:,}")
    print(f"Maximum Tokens: {stats['max_entries']:,}")
    print(f"Usage: {stats['usage_percent']:.1f}%")
    print(f"Approximate Size: {format_size(stats['approx_size_mb'] * 1024 * 1024)}")
    fresh = ctx.cache.is_fresh(TOKEN_CACHE_DURATION)
    print(f"Token List Fresh: {'Yes' if fresh else 'No'}")
    if stats["items"]:
        print(f"Stored Items: {', '.join(stats['items'])}")
    return 0


def cache_clear_cli(ctx: CliContext, args: argparse.Namespace) -> int:
    entries_before = len(ctx.cache)
    ctx.cache.clear()
    ctx.notifier.success(f"Cache cleared successfully. Removed {entries_before:,} tokens.")
    return 0


COMMANDS: Dict[str, Callable[[CliContext, argparse.Namespace], int]] = {
    "tokens": tokens_cli,
    "token": token_cli,
    "add-token": add_token_cli,
    "remove-token": remove_token_cli,
    "pools": pools_cli,
    "pool": pool_cli,
    "config": config_cli,
    "suggest-chain": suggest_chain_cli,
    "simulate": simulate_cli,
    "swap": swap_cli,
    "create-pool": create_pool_cli,
    "add-liquidity": add_liquidity_cli,
    "remove-liquidity": remove_liquidity_cli,
    "positions": positions_cli,
    "balances": balances_cli,
    "launch-token": launch_token_cli,
    "cw20-transfer": cw20_transfer_cli,
    "cw20-mint": cw20_mint_cli,
    "cw20-burn": cw20_burn_cli,
    "lp-export": lp_export_cli,
    "cache-info": cache_info_cli,
    "cache-clear": cache_clear_cli,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="cosmosdex - Cosmos Hub DEX client",
    )
    parser.add_argument("--contract", help="DEX contract address")
    parser.add_argument("--rest", help="Chain REST endpoint")
    parser.add_argument("--chain-id", help="Chain id")
    parser.add_argument(
        "--cache-dir", type=Path, default=DEFAULT_CACHE_DIR, help="Token cache directory"
    )
    parser.add_argument("--no-progress", action="store_true", help="Disable progress output")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # Tokens
    tokens_parser = subparsers.add_parser("tokens", help="List and search tokens")
    tokens_parser.add_argument("query", nargs="?", help="Search by symbol, name or denom")
    tokens_parser.add_argument(
        "--kind", choices=["all", "native", "ibc", "lp"], default="all", help="Filter by kind"
    )
    tokens_parser.add_argument("--limit", type=int, default=50, help="Maximum tokens to show")
    tokens_parser.add_argument("--refresh", action="store_true", help="Refetch the chain registry")

    token_parser = subparsers.add_parser("token", help="Show one token")
    token_parser.add_argument("token", help="Denom or symbol")

    add_token_parser = subparsers.add_parser("add-token", help="Track a CW20 token")
    add_token_parser.add_argument("address", help="CW20 contract address")

    remove_token_parser = subparsers.add_parser("remove-token", help="Stop tracking a CW20 token")
    remove_token_parser.add_argument("address", help="CW20 contract address")

    # Pools
    pools_parser = subparsers.add_parser("pools", help="List pools")
    pools_parser.add_argument("--limit", type=int, help="Maximum pools to list")
    pools_parser.add_argument("--json", action="store_true", help="Print raw pool JSON")

    pool_parser = subparsers.add_parser("pool", help="Show one pool")
    pool_parser.add_argument("token_a")
    pool_parser.add_argument("token_b")

    subparsers.add_parser("config", help="Show the contract configuration")
    subparsers.add_parser("suggest-chain", help="Print the wallet chain-suggestion payload")

    # Trading
    for name, help_text in (("simulate", "Quote a swap"), ("swap", "Swap tokens")):
        swap_parser = subparsers.add_parser(name, help=help_text)
        swap_parser.add_argument("token_in", help="Denom or symbol to sell")
        swap_parser.add_argument("token_out", help="Denom or symbol to buy")
        swap_parser.add_argument("amount", help="Amount to sell, in display units")
        swap_parser.add_argument(
            "--slippage",
            default=f"{DEFAULT_SLIPPAGE * 100}%",
            help="Slippage tolerance, e.g. 0.5%% (default: 5%%)",
        )

    for name, help_text in (
        ("create-pool", "Create a pool with initial liquidity"),
        ("add-liquidity", "Add liquidity to a pool"),
    ):
        pair_parser = subparsers.add_parser(name, help=help_text)
        pair_parser.add_argument("token_a")
        pair_parser.add_argument("token_b")
        pair_parser.add_argument("amount_a", help="Amount of token_a, in display units")
        pair_parser.add_argument("amount_b", help="Amount of token_b, in display units")
        if name == "add-liquidity":
            pair_parser.add_argument(
                "--min-liquidity", type=int, default=0, help="Minimum liquidity units to accept"
            )

    remove_parser = subparsers.add_parser("remove-liquidity", help="Remove liquidity")
    remove_parser.add_argument("token_a")
    remove_parser.add_argument("token_b")
    remove_parser.add_argument(
        "--percent", type=float, default=100, help="Share of the position to remove (1-100)"
    )

    for name, help_text in (
        ("positions", "Scan pools for liquidity positions"),
        ("balances", "Show bank balances"),
    ):
        account_parser = subparsers.add_parser(name, help=help_text)
        account_parser.add_argument("--address", help="Account (default: connected wallet)")

    # CW20
    launch_parser = subparsers.add_parser("launch-token", help="Deploy a new CW20 token")
    launch_parser.add_argument("--name", required=True)
    launch_parser.add_argument("--symbol", required=True)
    launch_parser.add_argument("--supply", required=True, help="Initial supply, display units")
    launch_parser.add_argument("--max-supply", help="Supply cap for mintable tokens")
    launch_parser.add_argument("--decimals", type=int, default=6)
    launch_parser.add_argument("--mintable", action="store_true")
    launch_parser.add_argument("--recipient", help="Initial holder (default: sender)")
    launch_parser.add_argument("--description")
    launch_parser.add_argument("--logo-url")

    for name, help_text in (
        ("cw20-transfer", "Transfer CW20 tokens"),
        ("cw20-mint", "Mint CW20 tokens"),
        ("cw20-burn", "Burn CW20 tokens"),
    ):
        op_parser = subparsers.add_parser(name, help=help_text)
        op_parser.add_argument("contract_address")
        if name != "cw20-burn":
            op_parser.add_argument("recipient")
        op_parser.add_argument("amount", help="Amount in display units")

    export_parser = subparsers.add_parser("lp-export", help="Export tokens, LP tokens and pairs")
    export_parser.add_argument(
        "--pair", nargs=2, metavar="TOKEN", help="Only generate contract data for this pair"
    )
    export_parser.add_argument("--output", "-o", help="Write JSON to this file")

    subparsers.add_parser("cache-info", help="Show cache information")
    subparsers.add_parser("cache-clear", help="Clear the cache")

    return parser


def main(
    argv: Optional[List[str]] = None,
    context_factory: Callable[[argparse.Namespace], CliContext] = build_context,
) -> int:
    """Entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    if not args.command:
        # Show help if no command specified
        parser.print_help()
        return 0

    ctx = context_factory(args)
    action = args.command.replace("-", " ")
    try:
        return COMMANDS[args.command](ctx, args) or 0
    except (DexError, ValueError) as e:
        ctx.notifier.failure(action, e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
