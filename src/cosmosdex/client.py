"""
Thin wrapper around the DEX contract.

All pricing and settlement happen inside the contract; this module only
builds messages, attaches the right native funds and turns chain failures
into cosmosdex exceptions.
"""

import logging
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple

from cosmpy.aerial.client import LedgerClient
from cosmpy.aerial.contract import LedgerContract
from cosmpy.crypto.address import Address

from . import messages
from .config import DEFAULT_POOLS_PAGE, MAX_POOLS_PAGE, ChainConfig
from .errors import (
    ContractExecuteError,
    ContractQueryError,
    PoolNotFoundError,
    WalletNotConnectedError,
)
from .models import ContractConfig, ExecuteResult, LiquidityInfo, Pool, SimulationResult

logger = logging.getLogger(__name__)

ContractFactory = Callable[[str], Any]


class DexClient:
    """
    Query and execute messages against the DEX contract.

    Args:
        config: Chain configuration
        wallet: cosmpy wallet used to sign execute messages (None for read-only)
        ledger: cosmpy LedgerClient (created from config on first use)
        contract_factory: Callable returning a contract object for an address
        code_factory: Callable returning an instantiable contract for a code id
    """

    def __init__(
        self,
        config: ChainConfig,
        wallet: Any = None,
        ledger: Optional[LedgerClient] = None,
        contract_factory: Optional[ContractFactory] = None,
        code_factory: Optional[Callable[[int], Any]] = None,
    ):
        self.config = config
        self.wallet = wallet
        self._ledger = ledger
        self._contract_factory = contract_factory or self._ledger_contract
        self._code_factory = code_factory or self._ledger_code
        self._contracts: Dict[str, Any] = {}

    @property
    def ledger(self) -> LedgerClient:
        if self._ledger is None:
            self._ledger = LedgerClient(self.config.network_config())
        return self._ledger

    @property
    def sender(self) -> Optional[str]:
        """Address of the signing wallet, if any."""
        if self.wallet is None:
            return None
        return str(self.wallet.address())

    def _ledger_contract(self, address: str) -> LedgerContract:
        return LedgerContract(None, self.ledger, address=Address(address))

    def _ledger_code(self, code_id: int) -> LedgerContract:
        return LedgerContract(None, self.ledger, code_id=code_id)

    def contract(self, contract_address: Optional[str] = None) -> Any:
        address = contract_address or self.config.contract_address
        if address not in self._contracts:
            self._contracts[address] = self._contract_factory(address)
        return self._contracts[address]

    def query_contract(self, msg: Dict[str, Any], contract_address: Optional[str] = None) -> Any:
        """
        Run a smart query.

        Raises:
            PoolNotFoundError: if the contract reports a missing pool
            ContractQueryError: for any other failure
        """
        logger.debug(f"Query {next(iter(msg))}: {msg}")
        try:
            return self.contract(contract_address).query(msg)
        except Exception as e:
            text = str(e)
            if "not found" in text.lower():
                raise PoolNotFoundError(text) from e
            raise ContractQueryError(text) from e

    def execute_contract(
        self,
        msg: Dict[str, Any],
        funds: Iterable[Tuple[str, int]] = (),
        contract_address: Optional[str] = None,
        gas_limit: Optional[int] = None,
    ) -> ExecuteResult:
        """
        Sign, broadcast and wait for an execute message.

        Args:
            msg: Execute message
            funds: (denom, amount) coins to attach
            contract_address: Target contract (defaults to the DEX)
            gas_limit: Explicit gas limit, simulated when None

        Returns:
            The included transaction
        """
        if self.wallet is None:
            raise WalletNotConnectedError("Wallet not connected")

        funds_str = messages.format_funds(funds) or None
        action = next(iter(msg))
        logger.info(f"Executing {action} (funds={funds_str})")
        try:
            tx = self.contract(contract_address).execute(
                msg, self.wallet, gas_limit=gas_limit, funds=funds_str
            )
            tx.wait_to_complete()
            tx.response.ensure_successful()
        except Exception as e:
            logger.debug(f"{action} failed: {e}")
            raise ContractExecuteError(str(e)) from e

        response = tx.response
        logger.info(f"{action} included in block {response.height}: {tx.tx_hash}")
        return ExecuteResult(
            tx_hash=tx.tx_hash,
            height=response.height,
            gas_used=response.gas_used,
            raw_log=response.raw_log,
        )

    def instantiate_contract(
        self,
        code_id: int,
        msg: Dict[str, Any],
        label: str,
        gas_limit: Optional[int] = None,
        admin: Optional[str] = None,
    ) -> str:
        """Instantiate stored code and return the new contract address."""
        if self.wallet is None:
            raise WalletNotConnectedError("Wallet not connected")

        logger.info(f"Instantiating code {code_id} as {label!r}")
        try:
            address = self._code_factory(code_id).instantiate(
                msg, self.wallet, label=label, gas_limit=gas_limit, admin_address=admin
            )
        except Exception as e:
            logger.debug(f"Instantiate of code {code_id} failed: {e}")
            raise ContractExecuteError(str(e)) from e
        return str(address)

    def _funds(self, *pairs: Tuple[str, int]) -> List[Tuple[str, int]]:
        return messages.native_funds(pairs, self.config.fee_denom)

    # Execute

    def create_pool(self, token_a: str, token_b: str, initial_a: int, initial_b: int) -> ExecuteResult:
        msg = messages.create_pool_msg(token_a, token_b, initial_a, initial_b)
        return self.execute_contract(msg, self._funds((token_a, initial_a), (token_b, initial_b)))

    def add_liquidity(
        self, token_a: str, token_b: str, amount_a: int, amount_b: int, min_liquidity: int = 0
    ) -> ExecuteResult:
        msg = messages.add_liquidity_msg(token_a, token_b, amount_a, amount_b, min_liquidity)
        return self.execute_contract(msg, self._funds((token_a, amount_a), (token_b, amount_b)))

    def remove_liquidity(
        self, token_a: str, token_b: str, liquidity: int, min_a: int = 0, min_b: int = 0
    ) -> ExecuteResult:
        msg = messages.remove_liquidity_msg(token_a, token_b, liquidity, min_a, min_b)
        return self.execute_contract(msg)

    def swap(self, token_in: str, token_out: str, amount_in: int, min_amount_out: int) -> ExecuteResult:
        msg = messages.swap_msg(token_in, token_out, amount_in, min_amount_out)
        return self.execute_contract(msg, self._funds((token_in, amount_in)))

    def update_admin(self, admin: str) -> ExecuteResult:
        return self.execute_contract(messages.update_admin_msg(admin))

    def update_fee_rate(self, fee_rate: int) -> ExecuteResult:
        return self.execute_contract(messages.update_fee_rate_msg(fee_rate))

    # Queries

    def get_pool(self, token_a: str, token_b: str) -> Pool:
        return Pool.from_dict(self.query_contract(messages.pool_query(token_a, token_b)))

    def get_pools(self, start_after: Optional[str] = None, limit: int = DEFAULT_POOLS_PAGE) -> List[Pool]:
        """One page of pools; limit is capped at the contract maximum."""
        limit = max(1, min(int(limit), MAX_POOLS_PAGE))
        response = self.query_contract(messages.pools_query(start_after, limit))
        if isinstance(response, dict):
            response = response.get("pools") or []
        return [Pool.from_dict(item) for item in response]

    def iter_all_pools(
        self, page_size: int = MAX_POOLS_PAGE, limit: Optional[int] = None
    ) -> Iterator[Pool]:
        """
        Walk every pool, page by page.

        The contract turns start_after into the sorted pool key
        ("", start_after), which sits below every stored pair, so a second
        page repeats the first. Repeated pools are skipped and a page with
        nothing new ends the walk. Against that contract at most one page
        (MAX_POOLS_PAGE pools) is reachable.
        """
        page_size = max(1, min(page_size, MAX_POOLS_PAGE))
        seen = set()
        start_after = None
        while True:
            page = self.get_pools(start_after, page_size)
            new = [pool for pool in page if pool.pair not in seen]
            for pool in new:
                seen.add(pool.pair)
                yield pool
                if limit is not None and len(seen) >= limit:
                    return
            if len(page) < page_size or not new:
                return
            start_after = page[-1].token_a
            logger.debug(f"Next pools page after {start_after}")

    def get_user_liquidity(self, user: str, token_a: str, token_b: str) -> LiquidityInfo:
        return LiquidityInfo.from_dict(
            self.query_contract(messages.liquidity_query(user, token_a, token_b))
        )

    def simulate_swap(self, token_in: str, token_out: str, amount_in: int) -> SimulationResult:
        return SimulationResult.from_dict(
            self.query_contract(messages.simulation_query(token_in, token_out, amount_in))
        )

    def get_config(self) -> ContractConfig:
        return ContractConfig.from_dict(self.query_contract(messages.config_query()))
