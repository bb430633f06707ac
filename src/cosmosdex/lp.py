"""
Liquidity-provider token helpers.

The contract tracks liquidity as a per-user number, not as a bank or CW20
token. These helpers give each pool a synthetic LP token so positions can be
listed next to ordinary tokens.
"""

import decimal
from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal
from typing import Any, Optional, Tuple

from .amounts import AMOUNT_CONTEXT, Number, to_decimal
from .config import LP_DENOM_PREFIX, LP_TOKEN_DECIMALS
from .models import LPPosition, Token


def generate_lp_token_id(token_a: str, token_b: str) -> str:
    """LP denom for a pair; independent of argument order."""
    first, second = sorted((token_a, token_b))
    return f"{LP_DENOM_PREFIX}{first}:{second}"


def is_lp_token(denom: Optional[str]) -> bool:
    return bool(denom) and denom.startswith(LP_DENOM_PREFIX)


def parse_lp_token(denom: str) -> Optional[Tuple[str, str]]:
    """Underlying denoms of an LP denom, or None if it is not one."""
    if not is_lp_token(denom):
        return None
    parts = denom.split(":")
    if len(parts) != 3:
        return None
    return parts[1], parts[2]


def _lookup(registry: Any, denom: str) -> Token:
    token = registry.get_token(denom) if registry is not None else None
    return token or Token(denom=denom, symbol=denom, name=denom)


def generate_lp_token_info(
    token_a: str, token_b: str, liquidity: Optional[int] = None, registry: Any = None
) -> Token:
    """
    Build the synthetic LP token for a pair.

    Args:
        token_a: Denom of one side
        token_b: Denom of the other side
        liquidity: User liquidity in base units, stored as the token balance
        registry: Anything with get_token(denom) used to name the LP token

    Returns:
        A Token of kind "lp"
    """
    info_a = _lookup(registry, token_a)
    info_b = _lookup(registry, token_b)
    return Token(
        denom=generate_lp_token_id(token_a, token_b),
        symbol=f"{info_a.symbol}-{info_b.symbol} LP",
        name=f"{info_a.name}/{info_b.name} Liquidity Pool Token",
        decimals=LP_TOKEN_DECIMALS,
        kind="lp",
        balance=str(liquidity) if liquidity is not None else None,
    )


def liquidity_to_remove(balance: int, percentage: Number) -> int:
    """Liquidity units for a percentage of a balance, floored."""
    with decimal.localcontext(AMOUNT_CONTEXT):
        amount = Decimal(balance) * to_decimal(percentage) / 100
        return int(amount.to_integral_value(rounding=ROUND_DOWN))


@dataclass
class RemovalBreakdown:
    liquidity: int
    amount_a: int
    amount_b: int


def removal_breakdown(position: LPPosition, percentage: Number) -> RemovalBreakdown:
    """
    Estimate what removing a percentage of a position pays out.

    Amounts are the position's share of each reserve, in base units. This is
    an estimate from the last pool snapshot; the contract settles the real
    amounts.
    """
    liquidity = liquidity_to_remove(position.liquidity, percentage)
    total = position.pool.total_liquidity
    if total == 0:
        return RemovalBreakdown(liquidity=liquidity, amount_a=0, amount_b=0)
    return RemovalBreakdown(
        liquidity=liquidity,
        amount_a=position.pool.reserve_a * liquidity // total,
        amount_b=position.pool.reserve_b * liquidity // total,
    )
