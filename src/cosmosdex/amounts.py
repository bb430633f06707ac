"""
Conversions between display amounts and on-chain base units.

Amounts travel to the contract as integer base units (Uint128); everything
here uses Decimal so that no precision is lost on the way.
"""

import decimal
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional, Union

Number = Union[int, float, str, Decimal]

UINT128_MAX = 2**128 - 1

# Uint128 has 39 digits; leave room for the fractional part
AMOUNT_CONTEXT = decimal.Context(prec=78)


def to_decimal(value: Number) -> Decimal:
    if isinstance(value, float):
        # repr() gives the shortest string that round-trips
        value = repr(value)
    try:
        result = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {value!r}") from None
    if not result.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    return result


def to_base_units(amount: Number, decimals: int) -> int:
    """
    Scale a display amount to base units, rounding down.

    Args:
        amount: Display amount, e.g. "1.5"
        decimals: Token decimal exponent

    Returns:
        Integer amount in base units
    """
    value = to_decimal(amount)
    if value < 0:
        raise ValueError(f"Amount must not be negative: {amount}")
    with decimal.localcontext(AMOUNT_CONTEXT):
        scaled = (value * (Decimal(10) ** decimals)).to_integral_value(
            rounding=ROUND_DOWN
        )
    result = int(scaled)
    if result > UINT128_MAX:
        raise ValueError(f"Amount too large: {amount}")
    return result


def from_base_units(value: Number, decimals: int) -> Decimal:
    """Scale base units back to a display amount."""
    with decimal.localcontext(AMOUNT_CONTEXT):
        return to_decimal(value) / (Decimal(10) ** decimals)


def _quantize(value: Decimal, places: int) -> Decimal:
    with decimal.localcontext(AMOUNT_CONTEXT):
        return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def format_amount(value: Optional[Number], decimals: int = 6, places: int = 6) -> str:
    """Format base units as a fixed-point display string."""
    if value is None or value == "":
        return "0"
    return f"{_quantize(from_base_units(value, decimals), places):f}"


def format_compact(value: Optional[Number], decimals: int = 6) -> str:
    """Short human-readable rendering used in pool tables (1.2K, 3.4M)."""
    if value is None or value == "" or to_decimal(value) == 0:
        return "0"
    num = from_base_units(value, decimals)
    if num < Decimal("0.000001"):
        return "< 0.000001"
    if num < 1:
        return f"{_quantize(num, 6):f}"
    if num < 1000:
        return f"{_quantize(num, 2):f}"
    if num < 1000000:
        return f"{_quantize(num / 1000, 1):f}K"
    return f"{_quantize(num / 1000000, 1):f}M"


def apply_slippage(amount: int, slippage: Decimal) -> int:
    """
    Minimum amount to accept given a slippage tolerance.

    Args:
        amount: Expected amount in base units
        slippage: Tolerance as a fraction (0.05 for 5%)

    Returns:
        The floor of amount * (1 - slippage)
    """
    slippage = to_decimal(slippage)
    if slippage < 0 or slippage >= 1:
        raise ValueError(f"Slippage must be in [0, 1): {slippage}")
    with decimal.localcontext(AMOUNT_CONTEXT):
        minimum = (Decimal(amount) * (1 - slippage)).to_integral_value(
            rounding=ROUND_DOWN
        )
    return int(minimum)


def parse_percentage(value: Number) -> Decimal:
    """Parse a percentage such as "0.5" or "0.5%" into a fraction."""
    text = str(value).strip().rstrip("%")
    return to_decimal(text) / 100


def exchange_rate(amount_in: Number, amount_out: Number) -> Optional[Decimal]:
    """Output per unit of input, rounded to 6 places."""
    amount_in = to_decimal(amount_in)
    if amount_in == 0:
        return None
    return _quantize(to_decimal(amount_out) / amount_in, 6)
