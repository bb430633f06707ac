"""
JSON messages understood by the DEX contract.

The shapes here must match the deployed contract exactly: snake_case
variant names, Uint128 values serialized as decimal strings.
"""

from typing import Any, Dict, Iterable, List, Optional, Tuple

from .amounts import UINT128_MAX
from .config import IBC_DENOM_PREFIX

Message = Dict[str, Dict[str, Any]]
Coin = Tuple[str, int]


def uint128(value: Any, field_name: str = "amount") -> str:
    """Serialize an integer amount as a Uint128 string."""
    if isinstance(value, bool):
        raise ValueError(f"{field_name} must be an integer, got {value!r}")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{field_name} must be an integer, got {value!r}") from None
    if isinstance(value, float) and number != value:
        raise ValueError(f"{field_name} must be an integer, got {value!r}")
    if number < 0 or number > UINT128_MAX:
        raise ValueError(f"{field_name} out of Uint128 range: {value}")
    return str(number)


# Execute messages


def create_pool_msg(token_a: str, token_b: str, initial_a: int, initial_b: int) -> Message:
    return {
        "create_pool": {
            "token_a": token_a,
            "token_b": token_b,
            "initial_a": uint128(initial_a, "initial_a"),
            "initial_b": uint128(initial_b, "initial_b"),
        }
    }


def add_liquidity_msg(
    token_a: str, token_b: str, amount_a: int, amount_b: int, min_liquidity: int = 0
) -> Message:
    return {
        "add_liquidity": {
            "token_a": token_a,
            "token_b": token_b,
            "amount_a": uint128(amount_a, "amount_a"),
            "amount_b": uint128(amount_b, "amount_b"),
            "min_liquidity": uint128(min_liquidity, "min_liquidity"),
        }
    }


def remove_liquidity_msg(
    token_a: str, token_b: str, liquidity: int, min_a: int = 0, min_b: int = 0
) -> Message:
    return {
        "remove_liquidity": {
            "token_a": token_a,
            "token_b": token_b,
            "liquidity": uint128(liquidity, "liquidity"),
            "min_a": uint128(min_a, "min_a"),
            "min_b": uint128(min_b, "min_b"),
        }
    }


def swap_msg(token_in: str, token_out: str, amount_in: int, min_amount_out: int) -> Message:
    return {
        "swap": {
            "token_in": token_in,
            "token_out": token_out,
            "amount_in": uint128(amount_in, "amount_in"),
            "min_amount_out": uint128(min_amount_out, "min_amount_out"),
        }
    }


def update_admin_msg(admin: str) -> Message:
    return {"update_admin": {"admin": admin}}


def update_fee_rate_msg(fee_rate: int) -> Message:
    return {"update_fee_rate": {"fee_rate": uint128(fee_rate, "fee_rate")}}


# Query messages


def pool_query(token_a: str, token_b: str) -> Message:
    return {"pool": {"token_a": token_a, "token_b": token_b}}


def pools_query(start_after: Optional[str] = None, limit: Optional[int] = None) -> Message:
    return {"pools": {"start_after": start_after, "limit": limit}}


def liquidity_query(user: str, token_a: str, token_b: str) -> Message:
    return {"liquidity": {"user": user, "token_a": token_a, "token_b": token_b}}


def simulation_query(token_in: str, token_out: str, amount_in: int) -> Message:
    return {
        "simulation": {
            "token_in": token_in,
            "token_out": token_out,
            "amount_in": uint128(amount_in, "amount_in"),
        }
    }


def config_query() -> Message:
    return {"config": {}}


# Funds


def is_native_funds_denom(denom: str, fee_denom: str) -> bool:
    """
    Whether an amount of this denom must be attached as coins.

    Only the chain fee denom and IBC denoms are bank coins the contract can
    receive as funds; anything else is treated as a CW20 address whose
    amount travels inside the message.
    """
    return denom == fee_denom or denom.startswith(IBC_DENOM_PREFIX)


def native_funds(pairs: Iterable[Tuple[str, int]], fee_denom: str) -> List[Coin]:
    """
    Coins to attach for a set of (denom, amount) pairs.

    Non-native denoms and zero amounts are dropped, repeated denoms are
    merged, and the result is sorted by denom as the SDK requires.
    """
    totals: Dict[str, int] = {}
    for denom, amount in pairs:
        amount = int(amount)
        if amount <= 0 or not is_native_funds_denom(denom, fee_denom):
            continue
        totals[denom] = totals.get(denom, 0) + amount
    return sorted(totals.items())


def format_funds(funds: Iterable[Coin]) -> str:
    """Render coins in the "100uatom,5ibc/..." form cosmpy accepts."""
    return ",".join(f"{amount}{denom}" for denom, amount in funds)
