#!/usr/bin/env python
"""
Example script demonstrating the token cache.

The first load downloads the Cosmos chain-registry assetlist and merges it
with the configured and known IBC tokens. The merged list is stored in a
SQLite-backed cache and reused for 24 hours, so the second load below does
not touch the network.
"""

import logging
import time

from cosmosdex import TokenRegistry, get_default_cache, load_config

# Set logging to DEBUG level to see cache hits and evictions
logging.basicConfig(level=logging.DEBUG)


def main():
    config = load_config()
    cache = get_default_cache(persist=True)

    print("\n" + "=" * 50)
    print("First load (refetching the chain registry)")
    print("=" * 50)
    start_time = time.time()
    tokens = TokenRegistry(config, cache).load_tokens(force_refresh=True)
    cold_time = time.time() - start_time
    print(f"Loaded {len(tokens)} tokens in {cold_time:.2f} seconds")

    print("\n" + "=" * 50)
    print("Second load (from cache)")
    print("=" * 50)
    start_time = time.time()
    registry = TokenRegistry(config, cache)
    tokens = registry.load_tokens()
    warm_time = time.time() - start_time
    print(f"Loaded {len(tokens)} tokens in {warm_time:.2f} seconds")
    if warm_time > 0:
        print(f"Speedup from caching: {cold_time / warm_time:.1f}x faster\n")

    for token in registry.search_tokens("atom")[:5]:
        print(token)

    stats = cache.get_stats()
    print(f"\nCache: {stats['entries']} tokens, stored items: {', '.join(stats['items'])}")
    print("Run this script again to see that cached data persists between runs")


if __name__ == "__main__":
    main()
