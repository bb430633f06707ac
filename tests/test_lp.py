"""Tests for LP token helpers."""

import pytest

from cosmosdex.lp import (
    RemovalBreakdown,
    generate_lp_token_id,
    generate_lp_token_info,
    is_lp_token,
    liquidity_to_remove,
    parse_lp_token,
    removal_breakdown,
)
from cosmosdex.models import LPPosition, Pool, Token

from .conftest import USDC


class TestLpDenoms:
    def test_id_is_order_independent(self):
        """Both argument orders give the same sorted denom."""
        assert generate_lp_token_id("uatom", USDC) == f"lp:{USDC}:uatom"
        assert generate_lp_token_id(USDC, "uatom") == f"lp:{USDC}:uatom"

    def test_is_lp_token(self):
        """Only lp: denoms are LP tokens."""
        assert is_lp_token("lp:a:b")
        assert not is_lp_token("uatom")
        assert not is_lp_token(None)

    def test_parse(self):
        """Parsing returns both sides, or None for malformed denoms."""
        assert parse_lp_token(f"lp:{USDC}:uatom") == (USDC, "uatom")
        assert parse_lp_token("lp:onlyone") is None
        assert parse_lp_token("uatom") is None


class TestLpTokenInfo:
    def test_without_registry(self):
        """Unknown sides are named by denom."""
        token = generate_lp_token_info("ua", "ub", liquidity=42)
        assert token.denom == "lp:ua:ub"
        assert token.symbol == "ua-ub LP"
        assert token.kind == "lp"
        assert token.balance == "42"

    def test_with_registry(self, registry):
        """Symbols and names come from the registry, in argument order."""
        registry.tokens = {
            "uatom": Token(denom="uatom", symbol="ATOM", name="Atom"),
            USDC: Token(denom=USDC, symbol="USDC", name="USD Coin"),
        }
        token = generate_lp_token_info("uatom", USDC, registry=registry)
        assert token.symbol == "ATOM-USDC LP"
        assert token.name == "Atom/USD Coin Liquidity Pool Token"
        assert token.balance is None


class TestRemoval:
    @pytest.mark.parametrize(
        "balance, percentage, expected",
        [(1000, 100, 1000), (1000, 50, 500), (999, 50, 499), (3, 33.3, 0), (1000, "25", 250)],
    )
    def test_liquidity_to_remove(self, balance, percentage, expected):
        """A percentage of the balance, rounded down."""
        assert liquidity_to_remove(balance, percentage) == expected

    def test_breakdown(self):
        """Each side is reserve * liquidity / total, floored."""
        pool = Pool("uatom", USDC, reserve_a=1000, reserve_b=3000, total_liquidity=1500)
        lp = generate_lp_token_info("uatom", USDC, 300)
        position = LPPosition(lp, lp, lp, liquidity=300, pool=pool)
        assert removal_breakdown(position, 50) == RemovalBreakdown(liquidity=150, amount_a=100, amount_b=300)

    def test_breakdown_of_empty_pool(self):
        """An empty pool pays out nothing."""
        pool = Pool("uatom", USDC, 0, 0, 0)
        lp = generate_lp_token_info("uatom", USDC, 10)
        position = LPPosition(lp, lp, lp, liquidity=10, pool=pool)
        assert removal_breakdown(position, 100) == RemovalBreakdown(10, 0, 0)
