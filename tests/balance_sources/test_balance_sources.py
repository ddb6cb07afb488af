"""
Tests for Balance Sources.

============================================================
PURPOSE
============================================================
Verify per-chain fan out, native token handling, the RPC
source and the two-level balance cache.

TEST PRINCIPLES:
- A failing chain is dropped, the others are still returned
- Zero balances are never reported as held tokens
- Cached holdings answer later balance queries

============================================================
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from balance_sources.base import BaseBalanceSource
from balance_sources.cached import CachedBalanceSource
from balance_sources.models import (
    NATIVE_TOKEN,
    BalanceQuery,
    is_native_token,
    to_balance,
)
from balance_sources.providers.rpc import RpcBalanceSource, encode_balance_of
from balance_sources.service import BalanceService
from balance_sources.single_chain import SingleChainBaseBalanceSource
from provider_sources.http import HttpProviderSource
from source_core.cache import CacheConfig
from source_core.exceptions import OperationNotSupportedError


ACCOUNT = "0x1111111111111111111111111111111111111111"
USDC = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
DAI = "0x6B175474E89094C44Da98b954EedeAC495271d0F"
BOTH_QUERIES = frozenset({BalanceQuery.TOKENS_HELD_BY_ACCOUNT, BalanceQuery.BALANCES_FOR_TOKENS})


class FakeSingleChainSource(SingleChainBaseBalanceSource):
    """Single chain source with canned per-chain answers."""

    def __init__(self, failing_chains=(), slow_chains=()) -> None:
        self.failing_chains = set(failing_chains)
        self.slow_chains = set(slow_chains)

    @property
    def name(self) -> str:
        return "fake-single-chain"

    def supported_queries(self):
        return {1: BOTH_QUERIES, 10: BOTH_QUERIES}

    async def _maybe_fail(self, chain_id):
        if chain_id in self.slow_chains:
            await asyncio.sleep(0.3)
        if chain_id in self.failing_chains:
            raise RuntimeError(f"chain {chain_id} is down")

    async def _fetch_erc20_tokens_held_by_accounts_in_chain(self, chain_id, accounts, timeout=None):
        await self._maybe_fail(chain_id)
        return {account: {USDC: "100", DAI: 0} for account in accounts}

    async def _fetch_erc20_balances_for_accounts_in_chain(self, chain_id, tokens, timeout=None):
        await self._maybe_fail(chain_id)
        # Answers with lowercased addresses
        return {account: {token.lower(): 5 for token in account_tokens} for account, account_tokens in tokens.items()}

    async def _fetch_native_balances_in_chain(self, chain_id, accounts, timeout=None):
        await self._maybe_fail(chain_id)
        return {account: "0x7" for account in accounts}


class CountingBalanceSource(BaseBalanceSource):
    """Balance source answering from a table, counting calls."""

    def __init__(self, holdings: dict) -> None:
        self.holdings = holdings
        self.held_calls = 0
        self.balance_calls = 0

    @property
    def name(self) -> str:
        return "counting"

    def supported_queries(self):
        return {1: BOTH_QUERIES}

    async def get_tokens_held_by_accounts(self, accounts, timeout=None):
        self.held_calls += 1
        return {
            chain_id: {account: dict(self.holdings.get(account, {})) for account in chain_accounts}
            for chain_id, chain_accounts in accounts.items()
        }

    async def get_balances_for_tokens(self, tokens, timeout=None):
        self.balance_calls += 1
        return {
            chain_id: {
                account: {token: self.holdings.get(account, {}).get(token, 0) for token in account_tokens}
                for account, account_tokens in by_account.items()
            }
            for chain_id, by_account in tokens.items()
        }


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def fetch_service():
    """Provide a mock fetch service."""
    service = MagicMock()
    service.fetch_json = AsyncMock()
    return service


# ============================================================
# MODELS
# ============================================================

class TestBalanceModels:
    """Tests for balance helpers."""

    @pytest.mark.parametrize("value,expected", [
        (5, 5),
        ("42", 42),
        ("0x10", 16),
        ("0X10", 16),
        (-1, None),
        ("nope", None),
        ("", None),
        (True, None),
        (None, None),
    ])
    def test_to_balance(self, value, expected):
        assert to_balance(value) == expected

    def test_native_token_is_case_insensitive(self):
        assert is_native_token(NATIVE_TOKEN.lower())
        assert not is_native_token(USDC)

    def test_encode_balance_of(self):
        data = encode_balance_of(ACCOUNT)

        assert data.startswith("0x70a08231")
        assert len(data) == 10 + 64
        assert data.endswith(ACCOUNT[2:].lower())


# ============================================================
# SINGLE CHAIN FAN OUT
# ============================================================

class TestSingleChainBalanceSource:
    """Tests for SingleChainBaseBalanceSource."""

    @pytest.mark.asyncio
    async def test_balances_keep_requested_addresses(self):
        source = FakeSingleChainSource()
        native = NATIVE_TOKEN.lower()

        result = await source.get_balances_for_tokens({1: {ACCOUNT: [USDC, native]}})

        assert result == {1: {ACCOUNT: {USDC: 5, native: 7}}}

    @pytest.mark.asyncio
    async def test_tokens_held_skip_zero_balances(self):
        result = await FakeSingleChainSource().get_tokens_held_by_accounts({1: [ACCOUNT]})

        assert result == {1: {ACCOUNT: {USDC: 100, NATIVE_TOKEN: 7}}}

    @pytest.mark.asyncio
    async def test_failing_chain_is_dropped(self):
        source = FakeSingleChainSource(failing_chains=[10])

        result = await source.get_tokens_held_by_accounts({1: [ACCOUNT], 10: [ACCOUNT]})

        assert list(result) == [1]

    @pytest.mark.asyncio
    async def test_slow_chain_is_dropped(self):
        source = FakeSingleChainSource(slow_chains=[10])

        result = await source.get_balances_for_tokens({1: {ACCOUNT: [USDC]}, 10: {ACCOUNT: [USDC]}}, timeout="200")

        assert result == {1: {ACCOUNT: {USDC: 5}}}

    @pytest.mark.asyncio
    async def test_unsupported_chain(self):
        with pytest.raises(OperationNotSupportedError, match="Operation not supported"):
            await FakeSingleChainSource().get_tokens_held_by_accounts({137: [ACCOUNT]})


# ============================================================
# RPC SOURCE
# ============================================================

class TestRpcBalanceSource:
    """Tests for RpcBalanceSource."""

    @pytest.fixture
    def source(self, fetch_service):
        async def fetch_json(url, method="GET", json=None, **kwargs):
            if json["method"] == "eth_getBalance":
                return {"result": "0x10"}
            if json["params"][0]["to"] == USDC:
                return {"result": "0x" + "0" * 62 + "64"}
            return {"error": {"code": 3, "message": "execution reverted"}}

        fetch_service.fetch_json.side_effect = fetch_json
        providers = HttpProviderSource("https://node.example.com", chains=[1])
        return RpcBalanceSource(providers, fetch_service)

    @pytest.mark.asyncio
    async def test_reads_native_and_erc20_balances(self, source):
        result = await source.get_balances_for_tokens({1: {ACCOUNT: [NATIVE_TOKEN, USDC, DAI]}})

        # DAI call reverted and is omitted
        assert result == {1: {ACCOUNT: {NATIVE_TOKEN: 16, USDC: 100}}}

    def test_only_balances_for_tokens(self, source):
        assert source.supported_queries() == {1: frozenset({BalanceQuery.BALANCES_FOR_TOKENS})}

    @pytest.mark.asyncio
    async def test_tokens_held_not_supported(self, source):
        with pytest.raises(OperationNotSupportedError):
            await source.get_tokens_held_by_accounts({1: [ACCOUNT]})


# ============================================================
# CACHED SOURCE
# ============================================================

class TestCachedBalanceSource:
    """Tests for CachedBalanceSource."""

    @pytest.mark.asyncio
    async def test_holdings_are_cached(self):
        source = CountingBalanceSource({ACCOUNT: {USDC: 100}})
        cached = CachedBalanceSource(source, CacheConfig())

        first = await cached.get_tokens_held_by_accounts({1: [ACCOUNT]})
        second = await cached.get_tokens_held_by_accounts({1: [ACCOUNT]})

        assert first == second == {1: {ACCOUNT: {USDC: 100}}}
        assert source.held_calls == 1

    @pytest.mark.asyncio
    async def test_balances_answered_from_holdings(self):
        source = CountingBalanceSource({ACCOUNT: {USDC: 100}})
        cached = CachedBalanceSource(source, CacheConfig())
        await cached.get_tokens_held_by_accounts({1: [ACCOUNT]})

        result = await cached.get_balances_for_tokens({1: {ACCOUNT: [USDC.lower(), DAI]}})

        assert result == {1: {ACCOUNT: {USDC.lower(): 100, DAI: 0}}}
        assert source.balance_calls == 0

    @pytest.mark.asyncio
    async def test_balances_cached_per_token(self):
        source = CountingBalanceSource({ACCOUNT: {USDC: 100}})
        cached = CachedBalanceSource(source, CacheConfig())

        await cached.get_balances_for_tokens({1: {ACCOUNT: [USDC]}})
        result = await cached.get_balances_for_tokens({1: {ACCOUNT: [USDC]}})

        assert result == {1: {ACCOUNT: {USDC: 100}}}
        assert source.balance_calls == 1
        assert source.held_calls == 0

    @pytest.mark.asyncio
    async def test_unsupported_chain(self):
        cached = CachedBalanceSource(CountingBalanceSource({}), CacheConfig())

        with pytest.raises(OperationNotSupportedError):
            await cached.get_balances_for_tokens({10: {ACCOUNT: [USDC]}})


# ============================================================
# SERVICE
# ============================================================

class TestBalanceService:
    """Tests for BalanceService."""

    @pytest.mark.asyncio
    async def test_balances_for_account_in_chain(self):
        service = BalanceService(CountingBalanceSource({ACCOUNT: {USDC: 100}}), default_timeout="5s")

        assert await service.get_balances_for_account_in_chain(1, ACCOUNT, [USDC]) == {USDC: 100}
        assert await service.get_balances_for_account_in_chain(1, "0xother", [USDC]) == {USDC: 0}

    @pytest.mark.asyncio
    async def test_tokens_held(self):
        service = BalanceService(CountingBalanceSource({ACCOUNT: {USDC: 100}}))

        assert await service.get_tokens_held_by_accounts({1: [ACCOUNT]}) == {1: {ACCOUNT: {USDC: 100}}}
        assert service.supported_chains() == [1]
