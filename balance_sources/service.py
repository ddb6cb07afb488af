"""
Balance Service - entry point for balance consumers.
"""

import logging
from typing import Mapping, Optional, Sequence

from balance_sources.base import BaseBalanceSource
from balance_sources.models import (
    Address,
    BalanceQuerySupport,
    BalancesByChain,
    TokenAddress,
)
from source_core.chains import ChainId
from source_core.timeouts import TimeString, with_timeout


logger = logging.getLogger(__name__)


class BalanceService:
    """
    Usage:
        service = BalanceService(CachedBalanceSource(RpcBalanceSource(...), config))
        balances = await service.get_balances_for_account_in_chain(1, account, [NATIVE_TOKEN])
    """

    def __init__(
        self,
        source: BaseBalanceSource,
        default_timeout: Optional[TimeString] = None,
    ) -> None:
        self._source = source
        self._default_timeout = default_timeout

    def supported_chains(self) -> list[ChainId]:
        return self._source.supported_chains()

    def supported_queries(self) -> BalanceQuerySupport:
        return self._source.supported_queries()

    async def get_balances_for_tokens(
        self,
        tokens: Mapping[ChainId, Mapping[Address, Sequence[TokenAddress]]],
        timeout: Optional[TimeString] = None,
    ) -> BalancesByChain:
        timeout = timeout or self._default_timeout
        return await with_timeout(
            self._source.get_balances_for_tokens(tokens, timeout),
            timeout,
            description="Balances for tokens",
        )

    async def get_tokens_held_by_accounts(
        self,
        accounts: Mapping[ChainId, Sequence[Address]],
        timeout: Optional[TimeString] = None,
    ) -> BalancesByChain:
        timeout = timeout or self._default_timeout
        return await with_timeout(
            self._source.get_tokens_held_by_accounts(accounts, timeout),
            timeout,
            description="Tokens held by accounts",
        )

    async def get_balances_for_account_in_chain(
        self,
        chain_id: ChainId,
        account: Address,
        tokens: Sequence[TokenAddress],
        timeout: Optional[TimeString] = None,
    ) -> dict[TokenAddress, int]:
        result = await self.get_balances_for_tokens({chain_id: {account: list(tokens)}}, timeout)
        return result.get(chain_id, {}).get(account, {})
