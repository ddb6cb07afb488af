"""
Cached Balance Source - two caches in front of another balance source.

- held-by-account cache: (chain, account) -> every token the account holds
- token-in-chain cache: (chain, account, token) -> balance

A balances-for-tokens request is answered from the held-by-account cache
for accounts that have a valid entry there, since that entry already lists
every non-zero balance. Only the remaining accounts go through the
per-token cache.
"""

import logging
from typing import Mapping, Optional, Sequence

from balance_sources.base import BaseBalanceSource, check_query_support
from balance_sources.models import (
    Address,
    BalanceQuery,
    BalanceQuerySupport,
    BalancesByChain,
    TokenAddress,
)
from source_core.cache import CacheConfig, ConcurrentLRUCache
from source_core.chains import ChainId
from source_core.timeouts import TimeString


logger = logging.getLogger(__name__)

HeldByAccountKey = tuple[ChainId, Address]
TokenInChainKey = tuple[ChainId, Address, TokenAddress]


class CachedBalanceSource(BaseBalanceSource):

    def __init__(self, source: BaseBalanceSource, config: CacheConfig) -> None:
        self._source = source
        self._held_by_account: ConcurrentLRUCache[HeldByAccountKey, dict[TokenAddress, int]] = ConcurrentLRUCache(
            calculate=self._fetch_tokens_held_by_account,
            config=config,
            name=f"cached-{source.name}-held",
        )
        self._token_in_chain: ConcurrentLRUCache[TokenInChainKey, int] = ConcurrentLRUCache(
            calculate=self._fetch_balances_for_tokens,
            config=config,
            name=f"cached-{source.name}-balances",
        )

    @property
    def name(self) -> str:
        return f"cached-{self._source.name}"

    def supported_queries(self) -> BalanceQuerySupport:
        return self._source.supported_queries()

    async def get_tokens_held_by_accounts(
        self,
        accounts: Mapping[ChainId, Sequence[Address]],
        timeout: Optional[TimeString] = None,
    ) -> BalancesByChain:
        check_query_support(self.supported_queries(), accounts, BalanceQuery.TOKENS_HELD_BY_ACCOUNT, self.name)

        keys = [(int(chain_id), account) for chain_id, chain_accounts in accounts.items() for account in chain_accounts]
        cached = await self._held_by_account.get_or_calculate(keys, timeout=timeout)

        result: BalancesByChain = {}
        for (chain_id, account), held in cached.items():
            result.setdefault(chain_id, {})[account] = held
        return result

    async def get_balances_for_tokens(
        self,
        tokens: Mapping[ChainId, Mapping[Address, Sequence[TokenAddress]]],
        timeout: Optional[TimeString] = None,
    ) -> BalancesByChain:
        pairs = [(int(chain_id), account) for chain_id, by_account in tokens.items() for account in by_account]
        with_held = [pair for pair in pairs if self._held_by_account.holds_valid_value(pair)]
        without_held = [pair for pair in pairs if not self._held_by_account.holds_valid_value(pair)]

        result: BalancesByChain = {}
        if with_held:
            # Already cached, nothing to gain from running this concurrently with the query below
            held_by_account = await self._held_by_account.get_or_calculate(with_held, timeout=timeout)
            for chain_id, account in with_held:
                held = held_by_account.get((chain_id, account))
                if held is None:
                    continue
                lowercased = {token.lower(): balance for token, balance in held.items()}
                result.setdefault(chain_id, {})[account] = {
                    token: lowercased.get(token.lower(), 0)
                    for token in tokens[chain_id][account]
                }

        if without_held:
            check_query_support(
                self.supported_queries(),
                {chain_id for chain_id, _ in without_held},
                BalanceQuery.BALANCES_FOR_TOKENS,
                self.name,
            )
            keys = [
                (chain_id, account, token)
                for chain_id, account in without_held
                for token in tokens[chain_id][account]
            ]
            amounts = await self._token_in_chain.get_or_calculate(keys, timeout=timeout)
            for (chain_id, account, token), balance in amounts.items():
                result.setdefault(chain_id, {}).setdefault(account, {})[token] = balance

        return result

    async def _fetch_tokens_held_by_account(
        self,
        keys: list[HeldByAccountKey],
    ) -> dict[HeldByAccountKey, dict[TokenAddress, int]]:
        accounts: dict[ChainId, list[Address]] = {}
        for chain_id, account in keys:
            accounts.setdefault(chain_id, []).append(account)

        balances = await self._source.get_tokens_held_by_accounts(accounts)

        return {
            (int(chain_id), account): held
            for chain_id, by_account in balances.items()
            for account, held in by_account.items()
        }

    async def _fetch_balances_for_tokens(
        self,
        keys: list[TokenInChainKey],
    ) -> dict[TokenInChainKey, int]:
        tokens: dict[ChainId, dict[Address, list[TokenAddress]]] = {}
        for chain_id, account, token in keys:
            tokens.setdefault(chain_id, {}).setdefault(account, []).append(token)

        balances = await self._source.get_balances_for_tokens(tokens)

        result: dict[TokenInChainKey, int] = {}
        for chain_id, account, token in keys:
            balance = balances.get(chain_id, {}).get(account, {}).get(token)
            if balance is not None:
                result[(chain_id, account, token)] = balance
        return result
