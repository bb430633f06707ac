"""
CW20 token launch and token operations.
"""

import logging
from typing import Any, Dict, List, Optional

from .amounts import Number, format_amount, to_base_units, to_decimal
from .errors import (
    ContractExecuteError,
    ContractQueryError,
    TokenConfigError,
    WalletNotConnectedError,
    friendly_error_message,
)
from .messages import uint128
from .models import Cw20TokenConfig, ExecuteResult, LaunchResult, Token

logger = logging.getLogger(__name__)

MAX_SYMBOL_LENGTH = 12
INSTANTIATE_GAS_LIMIT = 400000
TOKEN_OP_GAS_LIMIT = 200000


def _positive(value: Optional[Number]) -> bool:
    if value in (None, ""):
        return False
    try:
        return to_decimal(value) > 0
    except ValueError:
        return False


def validate_token_config(config: Cw20TokenConfig, address_prefix: str = "cosmos1") -> List[str]:
    """
    Check a launch configuration.

    Returns:
        Human-readable problems; empty when the config is valid
    """
    errors = []

    if not config.name or not config.name.strip():
        errors.append("Token name is required")

    if not config.symbol or not config.symbol.strip():
        errors.append("Token symbol is required")
    elif len(config.symbol) > MAX_SYMBOL_LENGTH:
        errors.append(f"Token symbol must be {MAX_SYMBOL_LENGTH} characters or less")

    initial_ok = _positive(config.initial_supply)
    if not initial_ok:
        errors.append("Initial supply must be greater than 0")

    if config.max_supply not in (None, ""):
        if not _positive(config.max_supply):
            errors.append("Max supply must be greater than 0")
        elif initial_ok and to_decimal(config.max_supply) < to_decimal(config.initial_supply):
            errors.append("Max supply must be greater than or equal to initial supply")

    if not config.recipient or not config.recipient.strip():
        errors.append("Recipient address is required")
    elif not config.recipient.startswith(address_prefix):
        errors.append("Recipient must be a valid Cosmos address")

    return errors


def build_instantiate_msg(config: Cw20TokenConfig, sender: str) -> Dict[str, Any]:
    """CW20 instantiate message with supplies scaled to base units."""
    decimals = int(config.decimals)
    initial_supply = to_base_units(config.initial_supply, decimals)
    max_supply = None
    if config.max_supply not in (None, ""):
        max_supply = to_base_units(config.max_supply, decimals)

    return {
        "name": config.name.strip(),
        "symbol": config.symbol.strip().upper(),
        "decimals": decimals,
        "initial_balances": [
            {"address": config.recipient or sender, "amount": str(initial_supply)}
        ],
        "mint": (
            {"minter": sender, "cap": str(max_supply) if max_supply is not None else None}
            if config.mintable
            else None
        ),
        "marketing": {
            "project": config.name.strip(),
            "description": config.description or None,
            "marketing": sender,
            "logo": {"url": config.logo_url} if config.logo_url else None,
        },
    }


def deploy_token(client: Any, config: Cw20TokenConfig) -> LaunchResult:
    """
    Instantiate a new CW20 token from the configured code id.

    Args:
        client: DexClient with a connected wallet
        config: Launch configuration

    Returns:
        The deployed token
    """
    errors = validate_token_config(config, client.config.address_prefix)
    if errors:
        raise TokenConfigError(errors)

    sender = client.sender
    if sender is None:
        raise WalletNotConnectedError("Wallet not connected")
    msg = build_instantiate_msg(config, sender)
    label = f"{msg['name']} ({msg['symbol']})"
    logger.info(f"Deploying CW20 token {label}")

    try:
        address = client.instantiate_contract(
            client.config.cw20_code_id,
            msg,
            label,
            gas_limit=INSTANTIATE_GAS_LIMIT,
            admin=sender if config.mintable else None,
        )
    except ContractExecuteError as e:
        raise ContractExecuteError(friendly_error_message(e, "launch token")) from e

    logger.info(f"Token deployed at {address}")
    token = Token(
        denom=address,
        symbol=msg["symbol"],
        name=msg["name"],
        decimals=msg["decimals"],
        kind="cw20",
        description=config.description,
        logo=config.logo_url,
    )
    mint = msg["mint"] or {}
    return LaunchResult(
        contract_address=address,
        token=token,
        total_supply=int(msg["initial_balances"][0]["amount"]),
        max_supply=int(mint["cap"]) if mint.get("cap") else None,
        mintable=config.mintable,
    )


def get_token_info(client: Any, contract_address: str) -> Dict[str, Any]:
    try:
        return client.query_contract({"token_info": {}}, contract_address)
    except ContractQueryError as e:
        logger.error(f"Failed to get token info for {contract_address}: {e}")
        raise ContractQueryError("Failed to query token information") from e


def get_token_balance(client: Any, contract_address: str, address: str) -> int:
    """CW20 balance in base units; 0 if the query fails."""
    try:
        response = client.query_contract({"balance": {"address": address}}, contract_address)
        return int(response.get("balance") or 0)
    except (ContractQueryError, ValueError) as e:
        logger.error(f"Failed to get token balance for {address}: {e}")
        return 0


def get_minter_info(client: Any, contract_address: str) -> Optional[Dict[str, Any]]:
    try:
        return client.query_contract({"minter": {}}, contract_address)
    except ContractQueryError as e:
        logger.error(f"Failed to get minter info for {contract_address}: {e}")
        return None


def transfer_tokens(client: Any, contract_address: str, recipient: str, amount: int) -> ExecuteResult:
    msg = {"transfer": {"recipient": recipient, "amount": uint128(amount)}}
    return client.execute_contract(msg, contract_address=contract_address, gas_limit=TOKEN_OP_GAS_LIMIT)


def mint_tokens(client: Any, contract_address: str, recipient: str, amount: int) -> ExecuteResult:
    msg = {"mint": {"recipient": recipient, "amount": uint128(amount)}}
    return client.execute_contract(msg, contract_address=contract_address, gas_limit=TOKEN_OP_GAS_LIMIT)


def burn_tokens(client: Any, contract_address: str, amount: int) -> ExecuteResult:
    msg = {"burn": {"amount": uint128(amount)}}
    return client.execute_contract(msg, contract_address=contract_address, gas_limit=TOKEN_OP_GAS_LIMIT)


def format_token_amount(amount: Optional[Number], decimals: int = 6) -> str:
    """Base units to a display string with thousands separators."""
    if amount in (None, "", 0, "0"):
        return "0"
    text = format_amount(amount, decimals, places=decimals)
    whole, _, fraction = text.partition(".")
    fraction = fraction.rstrip("0")
    whole = f"{int(whole):,}"
    return f"{whole}.{fraction}" if fraction else whole


def parse_token_amount(amount: Optional[Number], decimals: int = 6) -> str:
    """Display amount to a base-unit string."""
    if amount in (None, ""):
        return "0"
    return str(to_base_units(amount, decimals))
