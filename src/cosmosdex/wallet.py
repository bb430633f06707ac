"""
Wallet session: key loading, connection state and balances.
"""

import logging
import os
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from cosmpy.aerial.client import LedgerClient
from cosmpy.aerial.wallet import LocalWallet
from cosmpy.crypto.keypairs import PrivateKey

from .cache import TokenMetadataCache
from .client import DexClient
from .config import USDC_IBC_DENOM, ChainConfig
from .errors import WalletNotConnectedError

logger = logging.getLogger(__name__)

CONNECTED_KEY = "wallet.connected"

NO_CREDENTIALS_MESSAGE = (
    "No wallet configured. Set COSMOSDEX_MNEMONIC or COSMOSDEX_PRIVATE_KEY "
    "to connect."
)


def credentials_from_env(env: Optional[Mapping[str, str]] = None) -> Tuple[Optional[str], Optional[str]]:
    """(mnemonic, private_key) taken from the environment."""
    env = os.environ if env is None else env
    return env.get("COSMOSDEX_MNEMONIC") or None, env.get("COSMOSDEX_PRIVATE_KEY") or None


class WalletSession:
    """
    A connected account on the configured chain.

    The "connected" flag survives restarts in the local store so that
    auto_connect() can resume a session once credentials are available.
    """

    def __init__(
        self,
        config: ChainConfig,
        store: TokenMetadataCache,
        ledger_factory: Optional[Callable[[ChainConfig], Any]] = None,
    ):
        self.config = config
        self.store = store
        self._ledger_factory = ledger_factory or (lambda cfg: LedgerClient(cfg.network_config()))
        self.wallet: Optional[LocalWallet] = None
        self.ledger = None
        self._address: Optional[str] = None

    @property
    def address(self) -> Optional[str]:
        return self._address

    @property
    def is_connected(self) -> bool:
        return self.wallet is not None

    def _load_wallet(self, mnemonic: Optional[str], private_key: Optional[str]) -> LocalWallet:
        prefix = self.config.bech32_prefix
        if mnemonic:
            return LocalWallet.from_mnemonic(mnemonic.strip(), prefix=prefix)
        key = private_key.strip()
        if key.startswith("0x"):
            key = key[2:]
        return LocalWallet(PrivateKey(bytes.fromhex(key)), prefix=prefix)

    def connect(self, mnemonic: Optional[str] = None, private_key: Optional[str] = None) -> str:
        """
        Load the signing key and open a ledger connection.

        Returns:
            The account address
        """
        if not mnemonic and not private_key:
            raise WalletNotConnectedError(NO_CREDENTIALS_MESSAGE)
        try:
            wallet = self._load_wallet(mnemonic, private_key)
        except ValueError as e:
            raise WalletNotConnectedError(f"Invalid wallet credentials: {e}") from e

        self.wallet = wallet
        self._ensure_ledger()
        self._address = str(wallet.address())
        self.store.set_item(CONNECTED_KEY, True)
        logger.info(f"Connected {self._address} on {self.config.chain_id}")
        return self._address

    def disconnect(self):
        self.wallet = None
        self.ledger = None
        self._address = None
        self.store.remove_item(CONNECTED_KEY)
        logger.info("Wallet disconnected")

    def auto_connect(self, mnemonic: Optional[str] = None, private_key: Optional[str] = None) -> Optional[str]:
        """Reconnect a previous session; None when there is nothing to resume."""
        if not self.store.get_item(CONNECTED_KEY):
            return None
        if not mnemonic and not private_key:
            logger.debug("Previous session found but no credentials available")
            return None
        try:
            return self.connect(mnemonic, private_key)
        except WalletNotConnectedError as e:
            logger.warning(f"Auto-connect failed: {e}")
            return None

    def _ensure_ledger(self):
        if self.ledger is None:
            self.ledger = self._ledger_factory(self.config)
        return self.ledger

    def client(self, contract_factory=None, code_factory=None) -> DexClient:
        """DexClient that signs with this session's wallet (read-only if none)."""
        return DexClient(
            self.config,
            wallet=self.wallet,
            ledger=self._ensure_ledger(),
            contract_factory=contract_factory,
            code_factory=code_factory,
        )

    def get_balance(self, address: Optional[str] = None, denom: Optional[str] = None) -> Optional[int]:
        """
        Balance of one denom in base units.

        Returns None when there is no address to query (no wallet connected
        and none given) and 0 when the query fails.
        """
        address = address or self._address
        if not address:
            return None
        ledger = self._ensure_ledger()
        denom = denom or self.config.fee_denom
        try:
            return int(ledger.query_bank_balance(address, denom))
        except Exception as e:
            logger.error(f"Error fetching {denom} balance for {address}: {e}")
            return 0

    def get_all_balances(self, address: Optional[str] = None) -> Dict[str, int]:
        """
        All bank balances of an account, keyed by denom.

        If the bulk query fails, the fee denom and USDC are queried one at a
        time and only non-zero balances are kept.
        """
        address = address or self._address
        if not address:
            return {}
        ledger = self._ensure_ledger()
        try:
            coins = ledger.query_bank_all_balances(address)
            return {coin.denom: int(coin.amount) for coin in coins}
        except Exception as e:
            logger.warning(f"Bulk balance query failed for {address}, trying known denoms: {e}")

        balances = {}
        for denom in (self.config.fee_denom, USDC_IBC_DENOM):
            try:
                amount = int(ledger.query_bank_balance(address, denom))
            except Exception as e:
                logger.error(f"Error fetching {denom} balance for {address}: {e}")
                continue
            if amount > 0:
                balances[denom] = amount
        return balances
