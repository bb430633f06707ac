"""
Module for listing pools and scanning a user's liquidity positions.

Pools are read page by page from the DEX contract and paired with token
metadata from the registry. Position scans run one liquidity query per pool,
concurrently, with a progress bar.
"""

import asyncio
import logging
from typing import List, Optional

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)

from .client import DexClient
from .config import MAX_POOLS_PAGE, POSITION_SCAN_LIMIT
from .errors import DexError
from .lp import generate_lp_token_info
from .models import LPPosition, Pool, PoolListing
from .registry import TokenRegistry

logger = logging.getLogger(__name__)

console = Console()


def _listing(pool: Pool, registry: TokenRegistry, source: str) -> PoolListing:
    return PoolListing(
        pool=pool,
        token_a=registry.resolve_token(pool.token_a),
        token_b=registry.resolve_token(pool.token_b),
        source=source,
    )


def fetch_pools(
    client: DexClient,
    registry: TokenRegistry,
    limit: Optional[int] = None,
    show_progress: bool = True,
) -> List[PoolListing]:
    """
    List pools with resolved token metadata.

    Args:
        client: DEX client used for the pools queries
        registry: Token registry used to name both sides of each pool
        limit: Stop after this many pools (default: all)
        show_progress: Whether to print a summary line (default: True)

    Returns:
        Pool listings in contract order. When the contract has no pools,
        listings rebuilt from the last position scan (source "lp_cache").
    """
    pools = list(client.iter_all_pools(page_size=MAX_POOLS_PAGE, limit=limit))
    logger.info(f"Contract returned {len(pools)} pools")

    if pools:
        listings = [_listing(pool, registry, "contract") for pool in pools]
    else:
        cached = registry.cached_lp_pools()
        if cached:
            logger.info(f"No pools from contract, rebuilding {len(cached)} from LP cache")
        listings = [_listing(pool, registry, "lp_cache") for pool in cached]

    if show_progress:
        if listings:
            cache_msg = " (from LP cache)" if listings[0].source == "lp_cache" else ""
            console.print(f"[green]✓[/green] Found {len(listings)} pools{cache_msg}")
        else:
            console.print("[yellow]⚠[/yellow] No pools found")

    return listings


def fetch_positions(
    client: DexClient,
    registry: TokenRegistry,
    user: str,
    max_concurrent: int = 10,
    show_progress: bool = True,
) -> List[LPPosition]:
    """
    Find every pool where a user holds liquidity.

    Args:
        client: DEX client used for the queries
        registry: Token registry used to name LP tokens
        user: Account address
        max_concurrent: Maximum number of liquidity queries in flight (default: 10)
        show_progress: Whether to show a progress bar (default: True)

    Returns:
        Positions with non-zero liquidity, in pool order
    """
    scan = fetch_positions_async(
        client=client,
        registry=registry,
        user=user,
        max_concurrent=max_concurrent,
        show_progress=show_progress,
    )
    try:
        # Check if we're already in an event loop
        asyncio.get_running_loop()
    except RuntimeError:
        # No running event loop, create a new one
        return asyncio.run(scan)

    # We're in an async context, run the scan on a fresh loop in a thread
    import concurrent.futures

    with concurrent.futures.ThreadPoolExecutor() as pool:
        return pool.submit(asyncio.run, scan).result()


async def fetch_positions_async(
    client: DexClient,
    registry: TokenRegistry,
    user: str,
    max_concurrent: int = 10,
    show_progress: bool = True,
) -> List[LPPosition]:
    """
    Asynchronously scan pools for a user's liquidity.

    The pool list is capped at the first POSITION_SCAN_LIMIT pools, though
    the deployed contract's paging only ever yields its first page. A query
    that fails for one pool is logged and that pool is skipped.
    """
    pools = await asyncio.to_thread(
        lambda: list(client.iter_all_pools(limit=POSITION_SCAN_LIMIT))
    )
    if not pools:
        logger.debug("No pools to scan")
        return []

    logger.info(f"Scanning {len(pools)} pools for liquidity of {user}")

    scan_progress = None
    if show_progress:
        scan_progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold green]Scanning liquidity positions..."),
            BarColumn(),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
        )
        task_id = scan_progress.add_task("Scanning", total=len(pools))
        scan_progress.start()

    semaphore = asyncio.Semaphore(max_concurrent)

    async def scan_pool(pool: Pool) -> Optional[LPPosition]:
        async with semaphore:
            try:
                info = await asyncio.to_thread(
                    client.get_user_liquidity, user, pool.token_a, pool.token_b
                )
            except DexError as e:
                logger.warning(f"No liquidity info for {pool!r}: {e}")
                return None
            finally:
                if scan_progress:
                    scan_progress.update(task_id, advance=1)

            if info.liquidity == 0:
                return None

            logger.debug(f"Liquidity in {pool!r}: {info.liquidity}")
            return LPPosition(
                lp_token=generate_lp_token_info(
                    pool.token_a, pool.token_b, info.liquidity, registry
                ),
                token_a=registry.resolve_token(pool.token_a),
                token_b=registry.resolve_token(pool.token_b),
                liquidity=info.liquidity,
                pool=pool,
                share_a=info.share_a,
                share_b=info.share_b,
            )

    try:
        results = await asyncio.gather(*(scan_pool(pool) for pool in pools))
    finally:
        if scan_progress:
            scan_progress.stop()

    positions = [position for position in results if position is not None]

    if show_progress:
        if positions:
            console.print(f"[green]✓[/green] Found {len(positions)} liquidity positions")
        else:
            console.print("[yellow]⚠[/yellow] No liquidity positions found")

    logger.info(f"Finished scan. Total positions: {len(positions)}")
    return positions
