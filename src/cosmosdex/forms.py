"""
Form objects behind the swap, liquidity and launch commands.

Each form validates user input in display units, converts it to base units
and submits through a DexClient.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from .amounts import (
    Number,
    apply_slippage,
    exchange_rate,
    format_amount,
    from_base_units,
    to_base_units,
    to_decimal,
)
from .config import DEFAULT_SLIPPAGE
from .cw20 import deploy_token, validate_token_config
from .errors import FormValidationError, InsufficientBalanceError
from .lp import RemovalBreakdown, liquidity_to_remove, removal_breakdown
from .models import Cw20TokenConfig, ExecuteResult, LaunchResult, LPPosition, Token

logger = logging.getLogger(__name__)

Balances = Dict[str, int]


def insufficient_balance_message(token: Token, balance: int, amount: Number) -> str:
    have = from_base_units(balance, token.decimals)
    return f"Insufficient {token.symbol} balance. You have {have:.2f} but need {amount}"


def _amount_errors(label: str, amount: Optional[Number], token: Optional[Token]) -> List[str]:
    if token is None:
        return []
    try:
        if to_base_units(amount, token.decimals) > 0:
            return []
    except (TypeError, ValueError):
        pass
    return [f"Enter a valid {label} amount greater than 0"]


def _check_balance(token: Token, amount: Number, balances: Optional[Balances]):
    if balances is None:
        return
    balance = int(balances.get(token.denom, 0))
    if balance < to_base_units(amount, token.decimals):
        raise InsufficientBalanceError(insufficient_balance_message(token, balance, amount))


@dataclass
class SwapQuote:
    amount_in: int
    amount_out: int
    fee: int
    price_impact: str
    rate: Optional[Decimal]
    min_amount_out: int

    def describe(self, token_in: Token, token_out: Token) -> str:
        rate = f"{self.rate}" if self.rate is not None else "-"
        return (
            f"{format_amount(self.amount_in, token_in.decimals)} {token_in.symbol} -> "
            f"{format_amount(self.amount_out, token_out.decimals)} {token_out.symbol}\n"
            f"├─ rate: 1 {token_in.symbol} = {rate} {token_out.symbol}\n"
            f"├─ fee: {format_amount(self.fee, token_in.decimals)} {token_in.symbol}\n"
            f"├─ price impact: {self.price_impact}\n"
            f"└─ minimum received: {format_amount(self.min_amount_out, token_out.decimals)} {token_out.symbol}"
        )


@dataclass
class SwapForm:
    token_in: Optional[Token]
    token_out: Optional[Token]
    amount_in: Optional[Number]
    slippage: Decimal = DEFAULT_SLIPPAGE

    def errors(self) -> List[str]:
        errors = []
        if self.token_in is None or self.token_out is None:
            errors.append("Select both tokens")
        elif self.token_in.denom == self.token_out.denom:
            errors.append("Select two different tokens")
        errors.extend(_amount_errors("input", self.amount_in, self.token_in))
        try:
            if not 0 <= to_decimal(self.slippage) < 1:
                errors.append("Slippage must be between 0% and 100%")
        except ValueError:
            errors.append("Slippage must be between 0% and 100%")
        return errors

    def validate(self, balances: Optional[Balances] = None):
        errors = self.errors()
        if errors:
            raise FormValidationError(errors)
        _check_balance(self.token_in, self.amount_in, balances)

    @property
    def amount_in_base(self) -> int:
        return to_base_units(self.amount_in, self.token_in.decimals)

    def quote(self, client) -> SwapQuote:
        """Ask the contract what the swap would return."""
        errors = self.errors()
        if errors:
            raise FormValidationError(errors)
        amount_in = self.amount_in_base
        simulation = client.simulate_swap(self.token_in.denom, self.token_out.denom, amount_in)
        rate = exchange_rate(
            from_base_units(amount_in, self.token_in.decimals),
            from_base_units(simulation.amount_out, self.token_out.decimals),
        )
        return SwapQuote(
            amount_in=amount_in,
            amount_out=simulation.amount_out,
            fee=simulation.fee,
            price_impact=simulation.price_impact,
            rate=rate,
            min_amount_out=apply_slippage(simulation.amount_out, self.slippage),
        )

    def submit(self, client, balances: Optional[Balances] = None) -> Tuple[SwapQuote, ExecuteResult]:
        self.validate(balances)
        quote = self.quote(client)
        logger.info(
            f"Swapping {quote.amount_in} {self.token_in.denom} for at least "
            f"{quote.min_amount_out} {self.token_out.denom}"
        )
        result = client.swap(
            self.token_in.denom, self.token_out.denom, quote.amount_in, quote.min_amount_out
        )
        return quote, result


@dataclass
class _PairForm:
    token_a: Optional[Token]
    token_b: Optional[Token]
    amount_a: Optional[Number]
    amount_b: Optional[Number]

    def errors(self) -> List[str]:
        errors = []
        if self.token_a is None or self.token_b is None:
            errors.append("Select both tokens")
        elif self.token_a.denom == self.token_b.denom:
            errors.append("Select two different tokens")
        errors.extend(_amount_errors("first token", self.amount_a, self.token_a))
        errors.extend(_amount_errors("second token", self.amount_b, self.token_b))
        return errors

    def validate(self, balances: Optional[Balances] = None) -> Tuple[int, int]:
        """
        Check the form and, when balances are given, that both sides are
        covered.

        Returns:
            (amount_a, amount_b) in base units
        """
        errors = self.errors()
        if errors:
            raise FormValidationError(errors)
        _check_balance(self.token_a, self.amount_a, balances)
        _check_balance(self.token_b, self.amount_b, balances)
        return (
            to_base_units(self.amount_a, self.token_a.decimals),
            to_base_units(self.amount_b, self.token_b.decimals),
        )


class CreatePoolForm(_PairForm):
    def submit(self, client, balances: Optional[Balances] = None) -> ExecuteResult:
        amount_a, amount_b = self.validate(balances)
        return client.create_pool(self.token_a.denom, self.token_b.denom, amount_a, amount_b)


@dataclass
class AddLiquidityForm(_PairForm):
    min_liquidity: int = 0

    def submit(self, client, balances: Optional[Balances] = None) -> ExecuteResult:
        amount_a, amount_b = self.validate(balances)
        return client.add_liquidity(
            self.token_a.denom, self.token_b.denom, amount_a, amount_b, self.min_liquidity
        )


@dataclass
class RemoveLiquidityForm:
    position: LPPosition
    percentage: Number = 100

    def validate(self) -> int:
        """Liquidity units to remove."""
        try:
            percentage = to_decimal(self.percentage)
        except ValueError:
            raise FormValidationError(["Percentage must be a number"]) from None
        if not 1 <= percentage <= 100:
            raise FormValidationError(["Percentage must be between 1 and 100"])
        liquidity = liquidity_to_remove(self.position.liquidity, percentage)
        if liquidity == 0:
            raise FormValidationError(["Position is too small to remove that percentage"])
        return liquidity

    def breakdown(self) -> RemovalBreakdown:
        return removal_breakdown(self.position, self.percentage)

    def submit(self, client) -> ExecuteResult:
        liquidity = self.validate()
        pool = self.position.pool
        # No minimums: the breakdown is only an estimate from a snapshot
        return client.remove_liquidity(pool.token_a, pool.token_b, liquidity, 0, 0)


@dataclass
class TokenLaunchForm:
    config: Cw20TokenConfig

    def validate(self, address_prefix: str = "cosmos1"):
        errors = validate_token_config(self.config, address_prefix)
        if errors:
            raise FormValidationError(errors)

    def submit(self, client) -> LaunchResult:
        self.validate(client.config.address_prefix)
        return deploy_token(client, self.config)
