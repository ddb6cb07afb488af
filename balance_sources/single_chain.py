"""
Single Chain Base Balance Source - fans a multi-chain request out per chain.

Subclasses only know how to read balances on one chain. Each chain is
queried concurrently under the caller's timeout minus a small margin, and
chains that fail or time out are dropped from the result instead of
failing the whole request.
"""

import asyncio
import logging
from abc import abstractmethod
from typing import Awaitable, Mapping, Optional, Sequence

from balance_sources.base import BaseBalanceSource, check_query_support
from balance_sources.models import (
    NATIVE_TOKEN,
    Address,
    BalanceQuery,
    BalancesByChain,
    TokenAddress,
    is_native_token,
    to_balance,
)
from source_core.chains import ChainId
from source_core.timeouts import TimeString, with_timeout


logger = logging.getLogger(__name__)

# Leaves the caller's own envelope time to collect per-chain results
PER_CHAIN_TIMEOUT_MARGIN = "100"


class SingleChainBaseBalanceSource(BaseBalanceSource):
    """Base class for sources that read balances one chain at a time."""

    async def get_balances_for_tokens(
        self,
        tokens: Mapping[ChainId, Mapping[Address, Sequence[TokenAddress]]],
        timeout: Optional[TimeString] = None,
    ) -> BalancesByChain:
        check_query_support(self.supported_queries(), tokens, BalanceQuery.BALANCES_FOR_TOKENS, self.name)
        return await self._per_chain(
            {
                chain_id: self._fetch_balances_in_chain(chain_id, by_account, timeout)
                for chain_id, by_account in tokens.items()
            },
            timeout,
        )

    async def get_tokens_held_by_accounts(
        self,
        accounts: Mapping[ChainId, Sequence[Address]],
        timeout: Optional[TimeString] = None,
    ) -> BalancesByChain:
        check_query_support(self.supported_queries(), accounts, BalanceQuery.TOKENS_HELD_BY_ACCOUNT, self.name)
        return await self._per_chain(
            {
                chain_id: self._fetch_tokens_held_by_accounts_in_chain(chain_id, list(chain_accounts), timeout)
                for chain_id, chain_accounts in accounts.items()
            },
            timeout,
        )

    async def _per_chain(
        self,
        operations: dict[ChainId, Awaitable[dict[Address, dict[TokenAddress, int]]]],
        timeout: Optional[TimeString],
    ) -> BalancesByChain:
        chain_ids = list(operations)
        outcomes = await asyncio.gather(
            *(
                with_timeout(
                    operations[chain_id],
                    timeout,
                    description=f"{self.name} balances on chain {chain_id}",
                    reduce_by=PER_CHAIN_TIMEOUT_MARGIN,
                )
                for chain_id in chain_ids
            ),
            return_exceptions=True,
        )

        result: BalancesByChain = {}
        for chain_id, outcome in zip(chain_ids, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning(f"[{self.name}] Dropping chain {chain_id}: {outcome}")
                continue
            result[int(chain_id)] = outcome
        return result

    async def _fetch_balances_in_chain(
        self,
        chain_id: ChainId,
        tokens: Mapping[Address, Sequence[TokenAddress]],
        timeout: Optional[TimeString],
    ) -> dict[Address, dict[TokenAddress, int]]:
        native_accounts: list[Address] = []
        erc20_tokens: dict[Address, list[TokenAddress]] = {}
        for account, addresses in tokens.items():
            without_native = [address for address in addresses if not is_native_token(address)]
            if without_native:
                erc20_tokens[account] = without_native
            if len(without_native) < len(addresses):
                native_accounts.append(account)

        erc20_result, native_result = await asyncio.gather(
            self._fetch_erc20_balances_for_accounts_in_chain(chain_id, erc20_tokens, timeout)
            if erc20_tokens else _empty(),
            self._fetch_native_balances_in_chain(chain_id, native_accounts, timeout)
            if native_accounts else _empty(),
        )

        result: dict[Address, dict[TokenAddress, int]] = {}
        for account, addresses in tokens.items():
            # Sources may answer with differently cased addresses
            lowercased = {
                address.lower(): balance
                for address, raw in (erc20_result.get(account) or {}).items()
                if (balance := to_balance(raw)) is not None
            }
            for token in erc20_tokens.get(account, []):
                balance = lowercased.get(token.lower())
                if balance is not None:
                    result.setdefault(account, {})[token] = balance

            native_balance = to_balance(native_result.get(account))
            if native_balance is not None:
                native_used = next(address for address in addresses if is_native_token(address))
                result.setdefault(account, {})[native_used] = native_balance

        return result

    async def _fetch_tokens_held_by_accounts_in_chain(
        self,
        chain_id: ChainId,
        accounts: list[Address],
        timeout: Optional[TimeString],
    ) -> dict[Address, dict[TokenAddress, int]]:
        erc20_result, native_result = await asyncio.gather(
            self._fetch_erc20_tokens_held_by_accounts_in_chain(chain_id, accounts, timeout),
            self._fetch_native_balances_in_chain(chain_id, accounts, timeout),
        )

        result: dict[Address, dict[TokenAddress, int]] = {}
        for account in accounts:
            held = {
                token: balance
                for token, raw in (erc20_result.get(account) or {}).items()
                if (balance := to_balance(raw))
            }
            native_balance = to_balance(native_result.get(account))
            if native_balance:
                held[NATIVE_TOKEN] = native_balance
            result[account] = held
        return result

    @abstractmethod
    async def _fetch_erc20_tokens_held_by_accounts_in_chain(
        self,
        chain_id: ChainId,
        accounts: list[Address],
        timeout: Optional[TimeString] = None,
    ) -> dict[Address, dict[TokenAddress, object]]:
        pass

    @abstractmethod
    async def _fetch_erc20_balances_for_accounts_in_chain(
        self,
        chain_id: ChainId,
        tokens: Mapping[Address, Sequence[TokenAddress]],
        timeout: Optional[TimeString] = None,
    ) -> dict[Address, dict[TokenAddress, object]]:
        pass

    @abstractmethod
    async def _fetch_native_balances_in_chain(
        self,
        chain_id: ChainId,
        accounts: list[Address],
        timeout: Optional[TimeString] = None,
    ) -> dict[Address, object]:
        pass


async def _empty() -> dict:
    return {}
