"""Pytest configuration and fixtures.

The fakes below stand in for cosmpy's LedgerContract, LedgerClient and
wallet so that no test touches the network.
"""

import io
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import pytest
from rich.console import Console

from cosmosdex.cache import TokenMetadataCache
from cosmosdex.client import DexClient
from cosmosdex.config import ChainConfig
from cosmosdex.registry import TokenRegistry

USER = "cosmos1user00000000000000000000000000000000"
OTHER = "cosmos1other0000000000000000000000000000000"
CW20_ADDRESS = "cosmos1cw20token000000000000000000000000000000000000000000000"
NEW_TOKEN_ADDRESS = "cosmos1newtoken00000000000000000000000000000000000000000000"
USDC = "ibc/F663521BF1836B00F5F177680F74BFB9A8B5654A694D0D2BC249E03CF2509013"

# 32-byte test key; only ever used offline
TEST_PRIVATE_KEY = "01" * 32


@dataclass
class FakeResponse:
    height: int = 100
    gas_used: int = 150000
    raw_log: str = "[]"
    error: Optional[str] = None

    def ensure_successful(self):
        if self.error:
            raise RuntimeError(self.error)


class FakeTx:
    def __init__(self, tx_hash: str, response: FakeResponse):
        self.tx_hash = tx_hash
        self.response = response

    def wait_to_complete(self):
        return self


class FakeContract:
    """
    Records every call. Query responses are looked up by message name and
    may be a value, a callable taking the message body, or an exception.
    """

    def __init__(self, address: str, responses: Optional[Dict[str, Any]] = None):
        self.address = address
        self.responses: Dict[str, Any] = dict(responses or {})
        self.queries: List[dict] = []
        self.executes: List[dict] = []
        self.instantiations: List[dict] = []
        self.execute_error: Optional[Exception] = None
        self.tx_error: Optional[str] = None
        self.instantiated_address = NEW_TOKEN_ADDRESS

    def query(self, msg: dict):
        self.queries.append(msg)
        name = next(iter(msg))
        if name not in self.responses:
            raise RuntimeError(f"Error parsing into type msg::QueryMsg: unknown variant `{name}`")
        response = self.responses[name]
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(msg[name])
        return response

    def execute(self, msg: dict, sender: Any, gas_limit: Optional[int] = None, funds: Optional[str] = None):
        self.executes.append(
            {"msg": msg, "sender": sender, "gas_limit": gas_limit, "funds": funds}
        )
        if self.execute_error is not None:
            raise self.execute_error
        return FakeTx(f"TXHASH{len(self.executes)}", FakeResponse(error=self.tx_error))

    def instantiate(self, args, sender, label=None, gas_limit=None, admin_address=None, funds=None):
        self.instantiations.append(
            {
                "args": args,
                "sender": sender,
                "label": label,
                "gas_limit": gas_limit,
                "admin": admin_address,
            }
        )
        if self.execute_error is not None:
            raise self.execute_error
        return self.instantiated_address


class FakeWallet:
    def __init__(self, address: str = USER):
        self._address = address

    def address(self) -> str:
        return self._address


@dataclass
class FakeCoin:
    denom: str
    amount: int


class FakeLedger:
    def __init__(self, balances: Optional[Dict[str, int]] = None):
        self.balances = dict(balances or {})
        self.fail_all = False
        self.fail_denoms: List[str] = []
        self.calls: List[tuple] = []

    def query_bank_balance(self, address, denom=None):
        self.calls.append(("balance", str(address), denom))
        if denom in self.fail_denoms:
            raise RuntimeError(f"balance query for {denom} failed")
        return self.balances.get(denom, 0)

    def query_bank_all_balances(self, address):
        self.calls.append(("all_balances", str(address)))
        if self.fail_all:
            raise RuntimeError("all balances query failed")
        return [FakeCoin(denom, amount) for denom, amount in self.balances.items()]


def make_pool(token_a: str, token_b: str, reserve_a=1000000, reserve_b=2000000, total=1414213) -> dict:
    return {
        "token_a": token_a,
        "token_b": token_b,
        "reserve_a": str(reserve_a),
        "reserve_b": str(reserve_b),
        "total_liquidity": str(total),
    }


def pools_handler(pools: List[dict]) -> Callable[[dict], dict]:
    """
    Mimic the contract's pools query: pools sorted by pair, with the
    start_after bound built through the same sorted pool key as storage.
    That key is ("", start_after), below every stored pair, so the first
    page comes back whatever start_after is.
    """

    def handle(args: dict) -> dict:
        items = sorted(pools, key=lambda p: (p["token_a"], p["token_b"]))
        start = args.get("start_after")
        if start is not None:
            bound = tuple(sorted((start, "")))
            items = [p for p in items if (p["token_a"], p["token_b"]) > bound]
        return {"pools": items[: args.get("limit") or 10]}

    return handle


@pytest.fixture
def config() -> ChainConfig:
    return ChainConfig()


@pytest.fixture
def cache() -> TokenMetadataCache:
    store = TokenMetadataCache(persist=False)
    yield store
    store.close()


@pytest.fixture
def contracts() -> Dict[str, FakeContract]:
    """All fake contracts created during a test, by address."""
    return {}


@pytest.fixture
def contract_factory(contracts):
    def factory(address: str) -> FakeContract:
        return contracts.setdefault(address, FakeContract(address))

    return factory


@pytest.fixture
def code_contract(contracts) -> FakeContract:
    return contracts.setdefault("code", FakeContract("code"))


@pytest.fixture
def dex_contract(config, contract_factory) -> FakeContract:
    return contract_factory(config.contract_address)


@pytest.fixture
def cw20_contract(contract_factory) -> FakeContract:
    contract = contract_factory(CW20_ADDRESS)
    contract.responses.update(
        {
            "token_info": {"name": "Test Token", "symbol": "TEST", "decimals": 6, "total_supply": "1000000000"},
            "balance": {"balance": "2500000"},
            "minter": {"minter": USER, "cap": None},
        }
    )
    return contract


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger({"uatom": 10000000, USDC: 5000000})


@pytest.fixture
def client(config, contract_factory, code_contract, ledger) -> DexClient:
    return DexClient(
        config,
        wallet=FakeWallet(),
        ledger=ledger,
        contract_factory=contract_factory,
        code_factory=lambda code_id: code_contract,
    )


@pytest.fixture
def readonly_client(config, contract_factory, ledger) -> DexClient:
    return DexClient(config, ledger=ledger, contract_factory=contract_factory)


@pytest.fixture
def registry(config, cache) -> TokenRegistry:
    return TokenRegistry(config, cache)


@pytest.fixture
def console_output():
    """A rich Console writing to a buffer, plus the buffer."""
    buffer = io.StringIO()
    return Console(file=buffer, width=200, color_system=None), buffer
