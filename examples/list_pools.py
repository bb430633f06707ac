#!/usr/bin/env python
"""
Example script listing DEX pools, and the liquidity positions of the
address given as the first argument.
"""

import sys

from cosmosdex import (
    DexClient,
    TokenRegistry,
    fetch_pools,
    fetch_positions,
    get_default_cache,
    load_config,
)


def main():
    config = load_config()
    registry = TokenRegistry(config, get_default_cache())
    registry.load_tokens()

    client = DexClient(config)
    listings = fetch_pools(client, registry, limit=10)

    for listing in listings:
        print(listing)
    # ATOM/USDC
    # ├─ ATOM: 1.2K
    # ├─ USDC: 9.8K
    # ├─ price: 1 ATOM = 8.1667 USDC
    # └─ liquidity: 3.4K

    if len(sys.argv) < 2:
        return
    positions = fetch_positions(client, registry, sys.argv[1])
    registry.set_lp_positions(positions)
    for position in positions:
        print(position)
    # ATOM-USDC LP
    # ├─ liquidity: 12.000000
    # ├─ ATOM: 4.200000
    # └─ USDC: 34.300000


if __name__ == "__main__":
    main()
