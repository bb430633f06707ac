"""
Exceptions raised by the client and helpers that turn chain errors into
messages a user can act on.
"""

import re
from typing import Iterable, List, Optional, Union


class DexError(Exception):
    """Base class for all cosmosdex errors."""


class WalletNotConnectedError(DexError):
    pass


class ContractQueryError(DexError):
    pass


class PoolNotFoundError(ContractQueryError):
    pass


class ContractExecuteError(DexError):
    pass


class InsufficientBalanceError(DexError):
    pass


class _ErrorList(DexError):
    def __init__(self, errors: Iterable[str]):
        self.errors: List[str] = list(errors)
        super().__init__("; ".join(self.errors))


class FormValidationError(_ErrorList):
    pass


class TokenConfigError(_ErrorList):
    pass


_SPENDABLE_RE = re.compile(r"spendable balance (\d+).*? is smaller than (\d+)")
_GAS_RE = re.compile(r"\bgas\b", re.IGNORECASE)

_FUNDS_MESSAGES = {
    "create pool": "Insufficient funds to create pool. Please check your token balances.",
    "launch token": "Insufficient ATOM balance for deployment fees.",
}


def friendly_error_message(
    error: Union[BaseException, str], action: Optional[str] = None
) -> str:
    """
    Rewrite a raw chain/contract error into something readable.

    Args:
        error: The exception (or its message)
        action: What the user was doing, e.g. "create pool"

    Returns:
        The rewritten message, or the original text when no rule matches
    """
    message = str(error)
    lowered = message.lower()

    if "code id" in lowered:
        return "CW20 contract code not found. Please contact support."

    if "insufficient funds" in lowered:
        return _FUNDS_MESSAGES.get(
            action or "", "Insufficient funds. Please check your token balances."
        )

    match = _SPENDABLE_RE.search(message)
    if match:
        available, required = (int(v) / 1000000 for v in match.groups())
        return f"Insufficient balance: you have {available:.2f} but need {required:.2f}"

    if "slippage tolerance exceeded" in lowered:
        return (
            "Price moved beyond your slippage tolerance. "
            "Try a smaller amount or a higher tolerance."
        )

    if "pool not found" in lowered:
        return "Pool not found. Create it first with create-pool."

    if _GAS_RE.search(message):
        return "Transaction failed due to gas issues. Please try again."

    return message
