"""Tests for the token registry."""

import asyncio
import json
import time

import pytest

from cosmosdex.errors import ContractQueryError, DexError
from cosmosdex.models import LPPosition, Pool, Token
from cosmosdex.registry import (
    LP_POSITIONS_KEY,
    PAIRS_KEY,
    USER_TOKENS_KEY,
    TokenRegistry,
    asset_to_token,
    placeholder_token,
)

from .conftest import CW20_ADDRESS, USDC, make_pool

OSMO_ASSET = {
    "description": "Osmosis on the hub",
    "denom_units": [
        {"denom": "ibc/14F9BC3E44B8A9C1BE1FB08980FAB87034C9905EF17CF2F5008FC085218811CC", "exponent": 0},
        {"denom": "osmo", "exponent": 6},
    ],
    "base": "ibc/14F9BC3E44B8A9C1BE1FB08980FAB87034C9905EF17CF2F5008FC085218811CC",
    "name": "Osmosis",
    "display": "osmo",
    "symbol": "OSMO",
    "logo_URIs": {"svg": "https://example.invalid/osmo.svg"},
    "coingecko_id": "osmosis",
    "traces": [
        {
            "type": "ibc",
            "counterparty": {"chain_name": "osmosis", "base_denom": "uosmo", "channel_id": "channel-0"},
            "chain": {"channel_id": "channel-141"},
        }
    ],
}


def registry_token(denom: str, symbol: str, name: str = None) -> Token:
    return Token(denom=denom, symbol=symbol, name=name or symbol)


class ServedTokens(list):
    calls: int = 0


@pytest.fixture
def served(monkeypatch):
    """Tokens the fake chain registry returns; .calls counts downloads."""
    tokens = ServedTokens()

    async def fake_fetch(self):
        tokens.calls += 1
        return list(tokens)

    monkeypatch.setattr(TokenRegistry, "fetch_chain_registry_tokens", fake_fetch)
    return tokens


class TestAssetMapping:
    def test_ibc_asset(self):
        """Registry assets map to tokens with decimals and IBC trace."""
        token = asset_to_token(OSMO_ASSET)
        assert token.symbol == "OSMO"
        assert token.decimals == 6
        assert token.kind == "ibc"
        assert token.logo == "https://example.invalid/osmo.svg"
        assert token.ibc.source_chain == "osmosis"
        assert token.ibc.source_denom == "uosmo"
        assert token.ibc.source_channel == "channel-0"

    def test_zero_exponent_kept(self):
        """A display exponent of zero is not replaced by the default."""
        token = asset_to_token(
            {"base": "unit", "display": "unit", "symbol": "UNIT", "denom_units": [{"denom": "unit", "exponent": 0}]}
        )
        assert token.decimals == 0
        assert token.kind == "native"

    def test_missing_display_unit_defaults(self):
        """Without a matching display unit, decimals default to 6."""
        assert asset_to_token({"base": "ufoo"}).decimals == 6

    def test_placeholders(self):
        """Unknown denoms get readable stand-ins."""
        ibc = placeholder_token(USDC)
        assert ibc.symbol == f"IBC-{USDC[-8:]}"
        assert ibc.kind == "ibc"
        assert placeholder_token("ufoobarbaz").symbol == "UFOOBARB"


class TestLoading:
    def test_merge_order(self, registry, served):
        """Configured and known tokens override the chain registry."""
        served.extend([registry_token("uatom", "ATOM", "Cosmos Hub Atom"), asset_to_token(OSMO_ASSET)])
        tokens = registry.load_tokens()
        by_denom = {t.denom: t for t in tokens}
        assert by_denom["uatom"].name == "Atom"
        assert by_denom[USDC].symbol == "USDC"
        assert "stake" in by_denom
        assert OSMO_ASSET["base"] in by_denom
        assert registry.last_updated is not None

    def test_fresh_cache_skips_download(self, registry, served, cache):
        """A fresh cache answers without fetching."""
        cache.replace_all([{"denom": "ucached", "symbol": "C", "name": "Cached"}], timestamp=time.time())
        tokens = registry.load_tokens()
        assert [t.denom for t in tokens] == ["ucached"]
        assert served.calls == 0

    def test_force_refresh(self, registry, served, cache):
        """force_refresh downloads even with a fresh cache."""
        cache.replace_all([{"denom": "ucached", "symbol": "C", "name": "Cached"}], timestamp=time.time())
        served.append(registry_token("unew", "NEW"))
        tokens = registry.load_tokens(force_refresh=True)
        assert served.calls == 1
        denoms = {t.denom for t in tokens}
        assert "unew" in denoms
        assert "ucached" not in denoms

    def test_stale_cache_used_when_download_fails(self, registry, served, cache):
        """An empty download falls back to an expired cache."""
        cache.replace_all([{"denom": "ucached", "symbol": "C", "name": "Cached"}], timestamp=1.0)
        tokens = registry.load_tokens()
        assert [t.denom for t in tokens] == ["ucached"]
        assert registry.last_updated == 1.0

    def test_nothing_cached_and_download_fails(self, registry, served):
        """Configured tokens are still available."""
        denoms = {t.denom for t in registry.load_tokens()}
        assert denoms == {"uatom", "stake", USDC}

    def test_refreshed_set_is_cached(self, registry, served, cache):
        """A merged download is written back to the cache."""
        registry.load_tokens()
        assert cache.get("uatom")["symbol"] == "ATOM"
        assert cache.is_fresh(60)

    def test_unreachable_registry(self, config, cache):
        """Download errors give an empty list."""
        registry = TokenRegistry(config, cache, registry_url="http://127.0.0.1:9/assetlist.json")
        assert asyncio.run(registry.fetch_chain_registry_tokens()) == []


class TestLookup:
    @pytest.fixture(autouse=True)
    def loaded(self, registry, served):
        served.append(asset_to_token(OSMO_ASSET))
        registry.load_tokens()
        registry.create_lp_token(registry.get_token("uatom"), registry.get_token(USDC))

    def test_get_and_resolve(self, registry):
        """Known tokens, LP tokens and placeholders."""
        assert registry.get_token("uatom").symbol == "ATOM"
        assert registry.get_token("ufoo") is None
        assert registry.resolve_token("ufoo").name == "Unknown Token"
        lp = registry.resolve_token("lp:stake:uatom")
        assert lp.symbol == "STAKE-ATOM LP"

    def test_all_tokens_lp_last(self, registry):
        """LP tokens follow ordinary tokens."""
        tokens = registry.get_all_tokens()
        assert tokens[-1].is_lp
        assert not any(t.is_lp for t in tokens[:-1])

    def test_search(self, registry):
        """Search matches symbol, name and denom, case-insensitively."""
        assert [t.symbol for t in registry.search_tokens("osmo")] == ["OSMO"]
        assert {t.denom for t in registry.search_tokens("coin")} >= {USDC}
        assert registry.search_tokens("lp:")[0].is_lp

    def test_filter(self, registry):
        """Kinds filter the list."""
        assert {t.denom for t in registry.filter_tokens("native")} == {"uatom", "stake"}
        assert {t.symbol for t in registry.filter_tokens("ibc")} == {"USDC", "OSMO"}
        assert len(registry.filter_tokens("lp")) == 1
        assert len(registry.filter_tokens("all")) == len(registry.get_all_tokens())

    def test_unknown_filter(self, registry):
        """Unknown kinds raise."""
        with pytest.raises(ValueError):
            registry.filter_tokens("cw721")

    def test_selection_list_sorted_by_balance(self, registry):
        """Richest tokens first, then by symbol."""
        tokens = registry.selection_list(kind="native", balances={"stake": 5})
        assert [t.symbol for t in tokens] == ["STAKE", "ATOM"]


class TestCustomTokens:
    def test_add(self, registry, client, cw20_contract, cache):
        """Adding queries token_info and the sender's balance."""
        token = registry.add_custom_token(client, f"  {CW20_ADDRESS} ")
        assert token.symbol == "TEST"
        assert token.kind == "cw20"
        assert token.balance == "2500000"
        assert registry.get_token(CW20_ADDRESS) is token
        assert cache.get_item(USER_TOKENS_KEY)[0]["denom"] == CW20_ADDRESS
        assert cache.get(CW20_ADDRESS)["symbol"] == "TEST"

    def test_add_without_wallet_skips_balance(self, registry, readonly_client, cw20_contract):
        """Read-only clients add the token without a balance."""
        assert registry.add_custom_token(readonly_client, CW20_ADDRESS).balance is None

    def test_duplicate(self, registry, client, cw20_contract):
        """The same contract cannot be added twice."""
        registry.add_custom_token(client, CW20_ADDRESS)
        with pytest.raises(DexError, match="Token already added"):
            registry.add_custom_token(client, CW20_ADDRESS)

    def test_empty_address(self, registry, client):
        """An empty address is rejected."""
        with pytest.raises(DexError):
            registry.add_custom_token(client, "   ")

    def test_not_a_token(self, registry, client):
        """A contract without token_info cannot be added."""
        with pytest.raises(ContractQueryError, match="check the contract address"):
            registry.add_custom_token(client, "cosmos1notatoken")

    def test_custom_tokens_survive_reload(self, registry, client, cw20_contract, served):
        """Custom tokens are merged into a freshly loaded list."""
        registry.add_custom_token(client, CW20_ADDRESS)
        denoms = {t.denom for t in registry.load_tokens(force_refresh=True)}
        assert CW20_ADDRESS in denoms

    def test_remove(self, registry, client, cw20_contract, cache):
        """Removal drops the token everywhere; unknown denoms report False."""
        registry.add_custom_token(client, CW20_ADDRESS)
        assert registry.remove_custom_token(CW20_ADDRESS) is True
        assert registry.get_token(CW20_ADDRESS) is None
        assert cache.get(CW20_ADDRESS) is None
        assert registry.custom_tokens() == []
        assert registry.remove_custom_token(CW20_ADDRESS) is False


class TestPairsAndPositions:
    def atom(self):
        return Token(denom="uatom", symbol="ATOM", name="Atom")

    def usdc(self):
        return Token(denom=USDC, symbol="USDC", name="USD Coin", kind="ibc")

    def test_create_lp_token(self, registry, cache):
        """Pairs are stored sorted by denom and persisted."""
        lp = registry.create_lp_token(self.atom(), self.usdc())
        assert lp.denom == f"lp:{USDC}:uatom"
        assert lp.symbol == "USDC-ATOM LP"
        pair = registry.get_pair("uatom", USDC)
        assert pair.id == f"{USDC}:uatom"
        assert pair.token_a.denom == USDC
        assert registry.get_lp_token(USDC, "uatom") is lp
        assert cache.get_item(PAIRS_KEY)[0]["id"] == pair.id

    def test_pairs_restored(self, registry, config, cache):
        """A new registry on the same store sees earlier pairs."""
        registry.create_lp_token(self.atom(), self.usdc())
        restored = TokenRegistry(config, cache)
        assert [p.id for p in restored.get_all_pairs()] == [f"{USDC}:uatom"]
        assert restored.get_token(f"lp:{USDC}:uatom") is not None

    def test_set_lp_positions(self, registry, config, cache):
        """Positions replace LP tokens and are remembered as pool snapshots."""
        pool = Pool.from_dict(make_pool("uatom", "ufoo"))
        lp = Token(denom="lp:uatom:ufoo", symbol="ATOM-FOO LP", name="x", kind="lp", balance="5")
        registry.set_lp_positions([LPPosition(lp, self.atom(), self.atom(), 5, pool)])
        assert registry.cached_lp_pools() == [pool]
        assert len(cache.get_item(LP_POSITIONS_KEY)) == 1

        restored = TokenRegistry(config, cache)
        assert restored.cached_lp_pools() == [pool]
        assert restored.get_token("lp:uatom:ufoo").balance == "5"

        registry.set_lp_positions([])
        assert registry.cached_lp_pools() == []

    def test_corrupt_cached_positions_skipped(self, config, cache):
        """Unreadable cached entries are ignored."""
        cache.set_item(LP_POSITIONS_KEY, [{"lp_token": {}}])
        assert TokenRegistry(config, cache).cached_lp_pools() == []


class TestExport:
    @pytest.fixture
    def pair(self, registry):
        registry.create_lp_token(
            Token(denom="uatom", symbol="ATOM", name="Atom"),
            Token(denom=USDC, symbol="USDC", name="USD Coin", kind="ibc"),
        )
        return registry.get_pair("uatom", USDC)

    def test_export_for_git(self, registry, pair):
        """Export lists assets, LP tokens and pairs."""
        registry.tokens = {"uatom": Token(denom="uatom", symbol="ATOM", name="Atom")}
        data = registry.export_for_git()
        assert data["assetlist"]["chain_name"] == "cosmoshub"
        assert [a["denom"] for a in data["assetlist"]["assets"]] == ["uatom"]
        assert data["lp_tokens"][0]["denom"] == pair.lp_token.denom
        assert data["pairs"][0]["lp_token"] == pair.lp_token.denom

    def test_contract_data(self, registry, pair, config):
        """Contract data uses the configured contract by default."""
        data = registry.generate_contract_data(pair)
        assert data["pair_entry"]["contract_address"] == config.contract_address
        assert data["assetlist_entry"]["display"] == "usdc-atomlp"
        assert data["assetlist_entry"]["denom_units"][1]["exponent"] == 6

    def test_create_pool_command(self, registry, pair, config):
        """The gaiad command carries the message and native funds."""
        command = registry.create_pool_command(pair, 10, 20, key_name="alice")
        assert command.startswith(f"gaiad tx wasm execute {config.contract_address} ")
        msg = json.loads(command.split("'")[1])
        assert msg["create_pool"]["initial_a"] == "10"
        assert f"--amount 10{USDC},20uatom " in command
        assert "--from alice" in command
        assert "--gas-prices 0.025uatom" in command
