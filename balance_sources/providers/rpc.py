"""
RPC Balance Source - balances read straight from nodes.

Native balances come from eth_getBalance, ERC-20 balances from an eth_call
to balanceOf(address). Nodes cannot list the tokens an account holds, so
only BALANCES_FOR_TOKENS is supported.
"""

import asyncio
import logging
from typing import Mapping, Optional, Sequence

from balance_sources.models import (
    Address,
    BalanceQuery,
    BalanceQuerySupport,
    TokenAddress,
)
from balance_sources.single_chain import SingleChainBaseBalanceSource
from provider_sources.base import BaseProviderSource
from provider_sources.models import ProviderClient
from provider_sources.rpc import JsonRpcClient
from source_core.chains import ChainId
from source_core.exceptions import OperationNotSupportedError
from source_core.fetch import FetchService
from source_core.timeouts import TimeString


logger = logging.getLogger(__name__)

BALANCE_OF_SELECTOR = "0x70a08231"


def encode_balance_of(account: Address) -> str:
    """Calldata for balanceOf(account)."""
    return BALANCE_OF_SELECTOR + account.lower().removeprefix("0x").rjust(64, "0")


class RpcBalanceSource(SingleChainBaseBalanceSource):
    """
    Usage:
        source = RpcBalanceSource(build_provider_source(), fetch)
        balances = await source.get_balances_for_tokens({1: {account: [NATIVE_TOKEN, USDC]}})
    """

    def __init__(self, provider_source: BaseProviderSource, fetch_service: FetchService) -> None:
        self._providers = provider_source
        self._fetch = fetch_service

    @property
    def name(self) -> str:
        return "rpc"

    def supported_queries(self) -> BalanceQuerySupport:
        support = frozenset({BalanceQuery.BALANCES_FOR_TOKENS})
        return {
            int(chain_id): support
            for chain_id, clients in self._providers.supported_clients().items()
            if ProviderClient.HTTP in clients
        }

    def _client(self, chain_id: ChainId) -> JsonRpcClient:
        return JsonRpcClient(self._fetch, self._providers.get_provider(chain_id, ProviderClient.HTTP))

    async def _fetch_erc20_tokens_held_by_accounts_in_chain(
        self,
        chain_id: ChainId,
        accounts: list[Address],
        timeout: Optional[TimeString] = None,
    ) -> dict[Address, dict[TokenAddress, object]]:
        raise OperationNotSupportedError(
            "Operation not supported: tokens held by account over RPC",
            source_name=self.name,
            chain_id=chain_id,
        )

    async def _fetch_erc20_balances_for_accounts_in_chain(
        self,
        chain_id: ChainId,
        tokens: Mapping[Address, Sequence[TokenAddress]],
        timeout: Optional[TimeString] = None,
    ) -> dict[Address, dict[TokenAddress, object]]:
        client = self._client(chain_id)
        pairs = [(account, token) for account, account_tokens in tokens.items() for token in account_tokens]
        outcomes = await asyncio.gather(
            *(
                client.request(
                    "eth_call",
                    [{"to": token, "data": encode_balance_of(account)}, "latest"],
                    timeout=timeout,
                )
                for account, token in pairs
            ),
            return_exceptions=True,
        )

        result: dict[Address, dict[TokenAddress, object]] = {}
        for (account, token), outcome in zip(pairs, outcomes):
            if isinstance(outcome, BaseException):
                logger.debug(f"[{self.name}] balanceOf {token} for {account} failed on chain {chain_id}: {outcome}")
                continue
            result.setdefault(account, {})[token] = outcome
        return result

    async def _fetch_native_balances_in_chain(
        self,
        chain_id: ChainId,
        accounts: list[Address],
        timeout: Optional[TimeString] = None,
    ) -> dict[Address, object]:
        client = self._client(chain_id)
        outcomes = await asyncio.gather(
            *(client.request("eth_getBalance", [account, "latest"], timeout=timeout) for account in accounts),
            return_exceptions=True,
        )

        result: dict[Address, object] = {}
        for account, outcome in zip(accounts, outcomes):
            if isinstance(outcome, BaseException):
                logger.debug(f"[{self.name}] eth_getBalance for {account} failed on chain {chain_id}: {outcome}")
                continue
            result[account] = outcome
        return result
