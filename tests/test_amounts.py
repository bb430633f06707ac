"""Tests for display/base unit conversions."""

from decimal import Decimal

import pytest

from cosmosdex.amounts import (
    UINT128_MAX,
    apply_slippage,
    exchange_rate,
    format_amount,
    format_compact,
    from_base_units,
    parse_percentage,
    to_base_units,
)


class TestBaseUnits:
    """Scaling between display amounts and base units."""

    @pytest.mark.parametrize(
        "amount, decimals, expected",
        [
            ("1.5", 6, 1500000),
            (1, 6, 1000000),
            ("0.0000019", 6, 1),
            (0.1, 6, 100000),
            ("2", 0, 2),
            ("1.23456789", 18, 1234567890000000000),
        ],
    )
    def test_to_base_units(self, amount, decimals, expected):
        """Amounts scale by 10^decimals and round down."""
        assert to_base_units(amount, decimals) == expected

    def test_large_amounts_keep_precision(self):
        """Amounts near Uint128 do not lose digits."""
        assert to_base_units(str(UINT128_MAX), 0) == UINT128_MAX

    def test_too_large_rejected(self):
        """Values past Uint128 raise."""
        with pytest.raises(ValueError, match="too large"):
            to_base_units(str(UINT128_MAX + 1), 0)

    @pytest.mark.parametrize("amount", ["-1", "abc", "nan", "inf", ""])
    def test_invalid_amounts_rejected(self, amount):
        """Negative, non-numeric and non-finite amounts raise."""
        with pytest.raises(ValueError):
            to_base_units(amount, 6)

    def test_from_base_units(self):
        """Base units scale back to an exact Decimal."""
        assert from_base_units(1500000, 6) == Decimal("1.5")
        assert from_base_units("1", 18) == Decimal("1E-18")


class TestFormatting:
    """Rendering amounts for display."""

    def test_format_amount(self):
        """Fixed-point with six places by default."""
        assert format_amount(1500000) == "1.500000"
        assert format_amount(1234, 6, places=2) == "0.00"
        assert format_amount(None) == "0"

    @pytest.mark.parametrize(
        "value, expected",
        [
            (0, "0"),
            (None, "0"),
            (500000, "0.500000"),
            (12340000, "12.34"),
            (1500000000, "1.5K"),
            (2500000000000, "2.5M"),
        ],
    )
    def test_format_compact(self, value, expected):
        """Compact rendering used in pool tables."""
        assert format_compact(value, 6) == expected

    def test_format_compact_dust(self):
        """Amounts below one micro-unit show as a bound."""
        assert format_compact(1, 18) == "< 0.000001"


class TestSlippage:
    """Minimum output from a slippage tolerance."""

    def test_apply_slippage_floors(self):
        """amount * (1 - slippage) rounded down."""
        assert apply_slippage(1000000, Decimal("0.05")) == 950000
        assert apply_slippage(999, Decimal("0.005")) == 994

    def test_zero_slippage(self):
        """Zero tolerance keeps the full amount."""
        assert apply_slippage(12345, Decimal("0")) == 12345

    @pytest.mark.parametrize("slippage", ["-0.1", "1", "1.5"])
    def test_out_of_range(self, slippage):
        """Slippage outside [0, 1) raises."""
        with pytest.raises(ValueError):
            apply_slippage(100, Decimal(slippage))

    def test_parse_percentage(self):
        """Percent strings become fractions."""
        assert parse_percentage("0.5%") == Decimal("0.005")
        assert parse_percentage("5") == Decimal("0.05")


class TestExchangeRate:
    def test_rate(self):
        """Output per unit of input, six places."""
        assert exchange_rate("2", "3") == Decimal("1.500000")
        assert exchange_rate("3", "1") == Decimal("0.333333")

    def test_zero_input(self):
        """No rate for a zero input."""
        assert exchange_rate(0, 5) is None
